"""Driver for aggregates stored in a single table."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import closing
from typing import TYPE_CHECKING, Any, TypeVar

from ...exceptions import NoRowsError
from .base import Driver, statement_phase

if TYPE_CHECKING:
    from ...dialects import Dialect
    from ...ports import Executor, Row, TxBeginner
    from ...schema import Table

T = TypeVar("T")


class SimpleDriver(Driver[T]):
    """
    One row per aggregate.

    ``scan`` builds an aggregate from a row laid out as ``Table.columns``;
    ``values`` produces the row for an aggregate in the same order.
    """

    def __init__(
        self,
        table: Table,
        dialect: Dialect,
        scan: Callable[[Row], T],
        values: Callable[[T], Sequence[Any]],
    ) -> None:
        super().__init__(table, dialect)
        self._scan = scan
        self._values = values

    async def find_one(self, executor: Executor, sql: str, args: Sequence[Any]) -> T:
        with statement_phase("select", self.table.name):
            row = await executor.query_row(sql, args)
        if row is None:
            raise NoRowsError(f"{self.table.name}: no rows in result set")
        return self._scan(row)

    async def find_many(
        self, executor: Executor, sql: str, args: Sequence[Any]
    ) -> list[T]:
        with statement_phase("select", self.table.name):
            rows = await executor.query(sql, args)
        with closing(rows):
            return [self._scan(row) for row in rows]

    async def save(
        self, db: TxBeginner | None, executor: Executor, aggregate: T
    ) -> None:
        await self.upsert_root(executor, self._values(aggregate))

    async def delete(
        self, db: TxBeginner | None, executor: Executor, ids: Sequence[Any]
    ) -> None:
        await self.delete_root(executor, ids)
