"""Tests for single-table aggregates through the repository facade."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from cqrs_ddd_persistence_sql import (
    ConfigurationError,
    NotFoundError,
    OptimisticConcurrencyError,
    PostgresDialect,
    SimpleMapping,
    SQLRepository,
    StatementError,
    Table,
    eq,
)


@dataclass
class Customer:
    id: str
    name: str
    version: int = 1


CUSTOMERS = Table(
    name="customers",
    primary_key="id",
    columns=("id", "name", "version"),
    version_column="version",
)


def customer_mapping(table: Table = CUSTOMERS) -> SimpleMapping[Customer]:
    return SimpleMapping(
        table=table,
        scan=lambda row: Customer(*row),
        values=lambda c: (c.id, c.name, c.version),
    )


def repo_for(executor, table: Table = CUSTOMERS) -> SQLRepository[Customer]:
    return SQLRepository(executor, customer_mapping(table), PostgresDialect())


# -- reads ------------------------------------------------------------------


@pytest.mark.asyncio()
async def test_find_scans_the_row(make_executor):
    executor = make_executor(results=[[("c1", "Ada", 3)]])
    customer = await repo_for(executor).find("c1")

    assert customer == Customer("c1", "Ada", 3)
    assert executor.log == [
        ("query", "SELECT id, name, version FROM customers WHERE id = $1", ["c1"])
    ]


@pytest.mark.asyncio()
async def test_find_missing_row_is_not_found(executor):
    with pytest.raises(NotFoundError) as exc_info:
        await repo_for(executor).find("nope")
    assert exc_info.value.table == "customers"
    assert exc_info.value.ids == ("nope",)


@pytest.mark.asyncio()
async def test_find_with_wrong_key_arity(executor):
    with pytest.raises(ConfigurationError):
        await repo_for(executor).find("a", "b")
    assert executor.log == []


@pytest.mark.asyncio()
async def test_find_respects_soft_delete(executor):
    table = Table(
        name="customers",
        primary_key="id",
        columns=("id", "name", "version"),
        soft_delete_column="deleted_at",
    )
    with pytest.raises(NotFoundError):
        await repo_for(executor, table).find("c1")
    assert executor.statements == [
        "SELECT id, name, version FROM customers "
        "WHERE (deleted_at IS NULL) AND (id = $1)"
    ]


@pytest.mark.asyncio()
async def test_find_by_scans_all_rows_and_closes(make_executor):
    executor = make_executor(results=[[("a", "A", 1), ("b", "B", 2)]])
    found = await repo_for(executor).find_by(eq("name", "A"))

    assert [c.id for c in found] == ["a", "b"]
    assert executor.row_sets[0].closed


@pytest.mark.asyncio()
async def test_find_by_closes_rows_when_scan_fails(make_executor):
    executor = make_executor(results=[[("a", "A", 1, "extra")]])
    with pytest.raises(TypeError):
        await repo_for(executor).find_by()
    assert executor.row_sets[0].closed


@pytest.mark.asyncio()
async def test_exists_and_count(make_executor):
    executor = make_executor(results=[[(0,)], [(12,)]])
    repo = repo_for(executor)

    assert await repo.exists_by(eq("name", "x")) is False
    assert await repo.count_by() == 12
    assert executor.statements == [
        "SELECT EXISTS(SELECT 1 FROM customers WHERE name = $1)",
        "SELECT COUNT(*) FROM customers",
    ]


# -- writes -----------------------------------------------------------------


@pytest.mark.asyncio()
async def test_save_upserts_positional_values(executor):
    await repo_for(executor).save(Customer("c1", "Ada", 4))

    ((sql, args),) = executor.executed
    assert sql.startswith("INSERT INTO customers (id, name, version)")
    assert "WHERE customers.version = EXCLUDED.version" in sql
    assert args == ["c1", "Ada", 4]


@pytest.mark.asyncio()
async def test_save_with_stale_version_is_a_conflict(make_executor):
    executor = make_executor(rowcount=0)
    with pytest.raises(OptimisticConcurrencyError, match="customers"):
        await repo_for(executor).save(Customer("c1", "Ada", 1))


@pytest.mark.asyncio()
async def test_zero_rows_without_version_column_is_fine(make_executor):
    table = Table(name="customers", primary_key="id", columns=("id", "name", "version"))
    executor = make_executor(rowcount=0)
    await repo_for(executor, table).save(Customer("c1", "Ada"))


@pytest.mark.asyncio()
async def test_save_tx_uses_the_given_transaction(executor, database):
    await repo_for(database).save_tx(executor, Customer("c1", "Ada"))

    assert len(executor.executed) == 1
    assert database.log == []


@pytest.mark.asyncio()
async def test_delete_hard(executor):
    await repo_for(executor).delete("c1")
    assert executor.executed == [("DELETE FROM customers WHERE id = $1", ["c1"])]


@pytest.mark.asyncio()
async def test_delete_soft(executor):
    table = Table(
        name="customers",
        primary_key="id",
        columns=("id", "name", "version"),
        soft_delete_column="deleted_at",
    )
    await repo_for(executor, table).delete_tx(executor, "c1")
    assert executor.executed == [
        (
            "UPDATE customers SET deleted_at = NOW() "
            "WHERE id = $1 AND deleted_at IS NULL",
            ["c1"],
        )
    ]


@pytest.mark.asyncio()
async def test_driver_errors_are_tagged_with_phase(make_executor):
    executor = make_executor(fail_on="INSERT")
    with pytest.raises(StatementError, match="upsert failed on customers") as exc_info:
        await repo_for(executor).save(Customer("c1", "Ada"))
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert exc_info.value.phase == "upsert"


def test_repository_requires_dialect(executor):
    with pytest.raises(ConfigurationError, match="dialect"):
        SQLRepository(executor, customer_mapping())
