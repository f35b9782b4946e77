"""
Driver contract shared by the single-table and composite drivers.

A driver knows how to turn rows into aggregates and aggregates into
statements for one table layout. It never builds a ``WHERE`` clause of its
own for reads: the repository and the query builder hand it finished SQL and
arguments, the driver executes and scans.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ...exceptions import (
    OptimisticConcurrencyError,
    SQLPersistenceError,
    StatementError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ...dialects import Dialect
    from ...ports import ExecResult, Executor, TxBeginner
    from ...schema import Table

T = TypeVar("T")


@contextmanager
def statement_phase(
    phase: str, table: str, relation: str | None = None
) -> Iterator[None]:
    """
    Tag driver failures raised inside the block with *phase*.

    Errors of this package pass through unchanged, as does anything that is
    not an ``Exception`` (cancellation included).
    """
    try:
        yield
    except SQLPersistenceError:
        raise
    except Exception as exc:
        raise StatementError(phase, table, relation=relation, cause=exc) from exc


class Driver(ABC, Generic[T]):
    """Executes reads and writes of one aggregate type."""

    def __init__(self, table: Table, dialect: Dialect) -> None:
        self.table = table
        self.dialect = dialect

    @abstractmethod
    async def find_one(self, executor: Executor, sql: str, args: Sequence[Any]) -> T:
        """
        Load exactly one aggregate.

        Raises:
            NoRowsError: The statement returned no row.
        """

    @abstractmethod
    async def find_many(
        self, executor: Executor, sql: str, args: Sequence[Any]
    ) -> list[T]:
        """Load every aggregate the statement returns, in row order."""

    @abstractmethod
    async def save(
        self, db: TxBeginner | None, executor: Executor, aggregate: T
    ) -> None:
        """
        Insert or update *aggregate*.

        ``db`` is given when multi-statement writes may open their own
        transaction; ``None`` means *executor* already is the transaction
        to run in (or none is available).
        """

    @abstractmethod
    async def delete(
        self, db: TxBeginner | None, executor: Executor, ids: Sequence[Any]
    ) -> None:
        """Delete (or soft-delete) the aggregate with primary key *ids*."""

    # -- shared helpers -----------------------------------------------------

    def check_version(self, result: ExecResult) -> None:
        """Zero affected rows on a versioned table means a lost race."""
        if self.table.version_column and result.rowcount == 0:
            raise OptimisticConcurrencyError(self.table.name)

    async def upsert_root(self, executor: Executor, values: Sequence[Any]) -> None:
        with statement_phase("upsert", self.table.name):
            result = await executor.execute(self.table.upsert_sql(self.dialect), values)
        self.check_version(result)

    async def delete_root(self, executor: Executor, ids: Sequence[Any]) -> None:
        with statement_phase("delete", self.table.name):
            await executor.execute(self.table.delete_sql(self.dialect), ids)
