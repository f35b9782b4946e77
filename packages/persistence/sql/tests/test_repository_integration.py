"""End-to-end tests against in-memory SQLite through SQLAlchemy's asyncio engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from cqrs_ddd_persistence_sql import (
    CompositeMapping,
    CompositeValues,
    ConfigurationError,
    MySQLDialect,
    NotFoundError,
    OptimisticConcurrencyError,
    PostgresDialect,
    Relation,
    SaveStrategy,
    SimpleMapping,
    SQLAlchemyDatabase,
    SQLAlchemyExecutor,
    SQLiteDialect,
    SQLRepository,
    StatementError,
    Table,
    eq,
    ge,
    ilike,
    in_,
)

SCHEMA = [
    """
    CREATE TABLE customers (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        version INTEGER NOT NULL,
        deleted_at TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE orders (
        id TEXT PRIMARY KEY,
        customer TEXT NOT NULL,
        version INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE order_lines (
        id TEXT PRIMARY KEY,
        order_id TEXT NOT NULL,
        sku TEXT NOT NULL,
        qty INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE order_notes (
        id TEXT PRIMARY KEY,
        order_id TEXT NOT NULL,
        body TEXT NOT NULL
    )
    """,
]


@dataclass
class Customer:
    id: str
    name: str
    version: int = 1


@dataclass
class Line:
    id: str
    order_id: str
    sku: str
    qty: int


@dataclass
class Note:
    id: str
    order_id: str
    body: str


@dataclass
class Order:
    id: str
    customer: str
    version: int = 1
    lines: list[Line] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)


CUSTOMERS = SimpleMapping(
    table=Table(
        name="customers",
        primary_key="id",
        columns=("id", "name", "version"),
        version_column="version",
        soft_delete_column="deleted_at",
        created_at_column="created_at",
        updated_at_column="updated_at",
    ),
    scan=lambda row: Customer(*row),
    values=lambda c: (c.id, c.name, c.version),
)


def _scan_child(table: str, row, order: Order) -> None:
    if table == "order_lines":
        order.lines.append(Line(*row))
    else:
        order.notes.append(Note(*row))


ORDERS = CompositeMapping(
    table=Table(
        name="orders",
        primary_key="id",
        columns=("id", "customer", "version"),
        version_column="version",
    ),
    relations=(
        Relation(
            table="order_lines",
            foreign_key="order_id",
            primary_key="id",
            columns=("id", "order_id", "sku", "qty"),
        ),
        Relation(
            table="order_notes",
            foreign_key="order_id",
            primary_key="id",
            columns=("id", "order_id", "body"),
            on_save=SaveStrategy.UPSERT,
        ),
    ),
    scan_root=lambda row: Order(*row),
    scan_child=_scan_child,
    build=lambda order: order,
    decompose=lambda o: CompositeValues(
        root=(o.id, o.customer, o.version),
        children={
            "order_lines": [(x.id, x.order_id, x.sku, x.qty) for x in o.lines],
            "order_notes": [(n.id, n.order_id, n.body) for n in o.notes],
        },
    ),
    extract_pk=lambda order: order.id,
)


@pytest.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        for ddl in SCHEMA:
            await conn.exec_driver_sql(ddl)

    yield engine
    await engine.dispose()


@pytest.fixture()
def database(engine) -> SQLAlchemyDatabase:
    return SQLAlchemyDatabase(engine)


@pytest.fixture()
def customers(database) -> SQLRepository[Customer]:
    return SQLRepository(database, CUSTOMERS)


@pytest.fixture()
def orders(database) -> SQLRepository[Order]:
    return SQLRepository(database, ORDERS)


def order_with_lines(*skus: str, version: int = 1) -> Order:
    return Order(
        id="o1",
        customer="ada",
        version=version,
        lines=[Line(f"l{i}", "o1", sku, i + 1) for i, sku in enumerate(skus)],
        notes=[Note("n1", "o1", "fragile")],
    )


# -- simple aggregates ------------------------------------------------------


def test_dialect_is_derived_from_engine(customers):
    assert isinstance(customers.dialect, SQLiteDialect)


def test_dialect_must_match_driver_paramstyle(engine):
    with pytest.raises(ConfigurationError, match="qmark"):
        SQLAlchemyDatabase(engine, PostgresDialect())

    database = SQLAlchemyDatabase(engine, SQLiteDialect())
    assert isinstance(database.dialect, SQLiteDialect)


def test_format_paramstyle_driver_gets_percent_s_placeholders():
    engine = SimpleNamespace(
        dialect=SimpleNamespace(name="mysql", driver="aiomysql", paramstyle="format")
    )
    database = SQLAlchemyDatabase(engine)

    assert database.dialect.placeholder(1) == "%s"
    with pytest.raises(ConfigurationError, match="format"):
        SQLAlchemyDatabase(engine, MySQLDialect())


@pytest.mark.asyncio()
async def test_save_and_find(customers):
    await customers.save(Customer("c1", "Ada"))

    assert await customers.find("c1") == Customer("c1", "Ada", 1)
    assert await customers.exists_by(eq("name", "Ada")) is True
    assert await customers.count_by() == 1


@pytest.mark.asyncio()
async def test_timestamps_are_set_by_the_database(customers, engine):
    await customers.save(Customer("c1", "Ada"))

    async with engine.connect() as conn:
        result = await conn.exec_driver_sql(
            "SELECT created_at, updated_at FROM customers WHERE id = ?", ("c1",)
        )
        created_at, updated_at = result.one()
    assert created_at is not None
    assert updated_at is not None


@pytest.mark.asyncio()
async def test_update_bumps_version(customers):
    await customers.save(Customer("c1", "Ada"))
    loaded = await customers.find("c1")
    loaded.name = "Ada Lovelace"

    await customers.save(loaded)

    assert await customers.find("c1") == Customer("c1", "Ada Lovelace", 2)


@pytest.mark.asyncio()
async def test_stale_version_is_rejected(customers):
    await customers.save(Customer("c1", "Ada"))
    first = await customers.find("c1")
    second = await customers.find("c1")

    first.name = "first writer"
    await customers.save(first)

    second.name = "second writer"
    with pytest.raises(OptimisticConcurrencyError):
        await customers.save(second)
    assert (await customers.find("c1")).name == "first writer"


@pytest.mark.asyncio()
async def test_soft_delete_hides_the_row(customers):
    await customers.save(Customer("c1", "Ada"))
    await customers.save(Customer("c2", "Bob"))

    await customers.delete("c1")
    await customers.delete("c1")  # already deleted: no-op

    with pytest.raises(NotFoundError):
        await customers.find("c1")
    assert [c.id for c in await customers.find_by()] == ["c2"]
    assert await customers.count_by() == 1
    assert await customers.exists_by(eq("id", "c1")) is False
    assert await customers.query().count() == 1


@pytest.mark.asyncio()
async def test_query_filters(customers):
    for i, name in enumerate(["Ada", "Bob", "alan", "Cy"]):
        await customers.save(Customer(f"c{i}", name))

    found = (
        await customers.query()
        .where(ilike("name", "a%"))
        .order_by("name")
        .all()
    )
    assert [c.name for c in found] == ["Ada", "alan"]

    first = await customers.query().where(in_("id", "c1", "c3")).order_by("id").first()
    assert first.name == "Bob"

    assert await customers.query().where(ge("id", "c2")).count() == 2
    assert await customers.query().where(eq("name", "Zed")).exists() is False


@pytest.mark.asyncio()
async def test_offset_without_limit(customers):
    for i, name in enumerate(["Ada", "Bob", "Cy"]):
        await customers.save(Customer(f"c{i}", name))

    rest = await customers.query().order_by("id").offset(1).all()
    assert [c.id for c in rest] == ["c1", "c2"]


@pytest.mark.asyncio()
async def test_keyset_pagination_forward_and_backward(customers):
    for i, name in enumerate("abcde"):
        await customers.save(Customer(f"c{i}", name))

    def key(c: Customer) -> dict:
        return {"name": c.name, "id": c.id}

    page1 = await customers.query().order_by("name").page_size(2).page(key)
    assert [c.name for c in page1.items] == ["a", "b"]
    assert page1.has_more

    page2 = (
        await customers.query()
        .order_by("name")
        .page_size(2)
        .after(page1.next_cursor)
        .page(key)
    )
    assert [c.name for c in page2.items] == ["c", "d"]
    assert page2.has_more

    page3 = (
        await customers.query()
        .order_by("name")
        .page_size(2)
        .after(page2.next_cursor)
        .page(key)
    )
    assert [c.name for c in page3.items] == ["e"]
    assert page3.has_more is False
    assert page3.next_cursor is None

    back = (
        await customers.query()
        .order_by("name")
        .page_size(2)
        .before(page2.next_cursor)
        .page(key)
    )
    assert [c.name for c in back.items] == ["b", "c"]
    assert back.has_more


# -- composite aggregates ---------------------------------------------------


@pytest.mark.asyncio()
async def test_composite_round_trip(orders):
    await orders.save(order_with_lines("apple", "pear"))

    loaded = await orders.find("o1")
    assert loaded.customer == "ada"
    assert [x.sku for x in sorted(loaded.lines, key=lambda x: x.id)] == [
        "apple",
        "pear",
    ]
    assert loaded.notes == [Note("n1", "o1", "fragile")]


@pytest.mark.asyncio()
async def test_resave_replaces_lines_and_upserts_notes(orders):
    await orders.save(order_with_lines("apple", "pear"))
    loaded = await orders.find("o1")

    loaded.lines = [Line("l9", "o1", "fig", 4)]
    loaded.notes = [Note("n1", "o1", "very fragile"), Note("n2", "o1", "gift")]
    await orders.save(loaded)

    reloaded = await orders.find("o1")
    assert reloaded.version == 2
    assert reloaded.lines == [Line("l9", "o1", "fig", 4)]
    assert sorted(n.body for n in reloaded.notes) == ["gift", "very fragile"]


@pytest.mark.asyncio()
async def test_find_by_loads_children_of_every_order(orders):
    await orders.save(order_with_lines("apple"))
    await orders.save(
        Order(id="o2", customer="bob", lines=[Line("m1", "o2", "kiwi", 2)])
    )

    by_id = {o.id: o for o in await orders.find_by()}
    assert [x.sku for x in by_id["o1"].lines] == ["apple"]
    assert [x.sku for x in by_id["o2"].lines] == ["kiwi"]
    assert by_id["o2"].notes == []


@pytest.mark.asyncio()
async def test_failed_child_write_rolls_back_the_root(orders):
    await orders.save(order_with_lines("apple"))
    loaded = await orders.find("o1")

    loaded.customer = "changed"
    loaded.lines = [Line("dup", "o1", "a", 1), Line("dup", "o1", "b", 1)]
    with pytest.raises(StatementError) as exc_info:
        await orders.save(loaded)

    assert exc_info.value.phase == "insert children"
    reloaded = await orders.find("o1")
    assert reloaded.customer == "ada"
    assert reloaded.version == 1
    assert [x.sku for x in reloaded.lines] == ["apple"]


@pytest.mark.asyncio()
async def test_composite_delete_removes_children(orders, engine):
    await orders.save(order_with_lines("apple", "pear"))

    await orders.delete("o1")

    with pytest.raises(NotFoundError):
        await orders.find("o1")
    async with engine.connect() as conn:
        result = await conn.exec_driver_sql("SELECT COUNT(*) FROM order_lines")
        assert result.scalar_one() == 0


@pytest.mark.asyncio()
async def test_save_tx_leaves_commit_to_the_caller(orders, engine):
    async with engine.connect() as conn:
        trans = await conn.begin()
        await orders.save_tx(SQLAlchemyExecutor(conn), order_with_lines("apple"))
        await trans.rollback()

    assert await orders.count_by() == 0
