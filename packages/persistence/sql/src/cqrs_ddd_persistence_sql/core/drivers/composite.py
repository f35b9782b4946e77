"""
Driver for aggregates spread over a root table and child tables.

Reads go through a mutable *snapshot*: the root row is scanned into one,
child rows are folded into it, and only the completed snapshot is turned
into the aggregate. Loading many aggregates issues one ``IN (...)`` query
per relation, never one query per parent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from contextlib import closing
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ...exceptions import NoRowsError
from ...ports import run_in_transaction
from ...schema import SaveStrategy
from .base import Driver, statement_phase

if TYPE_CHECKING:
    from ...dialects import Dialect
    from ...ports import Executor, Row, TxBeginner
    from ...schema import CompositeValues, Relation, Table

logger = logging.getLogger("cqrs_ddd.persistence.sql.driver")

T = TypeVar("T")
S = TypeVar("S")


def _key(value: Any) -> str:
    # Drivers may hand back a foreign key with a different Python type than
    # the parent key (int vs str, UUID vs str).
    return str(value)


class CompositeDriver(Driver[T], Generic[T, S]):
    """
    Multi-table aggregate driver.

    Args:
        scan_root: Row of the root table to a fresh snapshot.
        scan_child: Folds one child row of the named relation table into a
            snapshot, in place.
        build: Completed snapshot to aggregate.
        decompose: Aggregate to :class:`CompositeValues` for saving.
        extract_pk: Primary-key value of a snapshot; child foreign keys are
            matched against it.
    """

    def __init__(
        self,
        table: Table,
        dialect: Dialect,
        relations: Sequence[Relation],
        *,
        scan_root: Callable[[Row], S],
        scan_child: Callable[[str, Row, S], None],
        build: Callable[[S], T],
        decompose: Callable[[T], CompositeValues],
        extract_pk: Callable[[S], Any],
    ) -> None:
        super().__init__(table, dialect)
        self.relations = tuple(relations)
        self._scan_root = scan_root
        self._scan_child = scan_child
        self._build = build
        self._decompose = decompose
        self._extract_pk = extract_pk

    # -- reads --------------------------------------------------------------

    async def find_one(self, executor: Executor, sql: str, args: Sequence[Any]) -> T:
        with statement_phase("select", self.table.name):
            row = await executor.query_row(sql, args)
        if row is None:
            raise NoRowsError(f"{self.table.name}: no rows in result set")
        snapshot = self._scan_root(row)

        if self.relations:
            parent_id = self._extract_pk(snapshot)
            for relation in self.relations:
                await self._load_children(executor, relation, parent_id, snapshot)
        return self._build(snapshot)

    async def find_many(
        self, executor: Executor, sql: str, args: Sequence[Any]
    ) -> list[T]:
        with statement_phase("select", self.table.name):
            rows = await executor.query(sql, args)
        with closing(rows):
            snapshots = [self._scan_root(row) for row in rows]

        if not self.relations or not snapshots:
            return [self._build(snapshot) for snapshot in snapshots]

        by_id: dict[str, S] = {}
        parent_ids: list[Any] = []
        for snapshot in snapshots:
            parent_id = self._extract_pk(snapshot)
            key = _key(parent_id)
            if key not in by_id:
                parent_ids.append(parent_id)
            by_id[key] = snapshot

        for relation in self.relations:
            await self._batch_load_children(executor, relation, parent_ids, by_id)

        return [self._build(snapshot) for snapshot in snapshots]

    async def _load_children(
        self, executor: Executor, relation: Relation, parent_id: Any, snapshot: S
    ) -> None:
        with statement_phase("select children", self.table.name, relation.table):
            rows = await executor.query(
                relation.select_by_fk(self.dialect), (parent_id,)
            )
        with closing(rows):
            for row in rows:
                self._scan_child(relation.table, row, snapshot)

    async def _batch_load_children(
        self,
        executor: Executor,
        relation: Relation,
        parent_ids: Sequence[Any],
        by_id: dict[str, S],
    ) -> None:
        logger.debug(
            "Loading %s children for %d %s row(s)",
            relation.table,
            len(parent_ids),
            self.table.name,
        )
        fk_index = relation.foreign_key_index
        sql = relation.batch_select_by_fks(self.dialect, len(parent_ids))
        with statement_phase("select children", self.table.name, relation.table):
            rows = await executor.query(sql, parent_ids)
        with closing(rows):
            for row in rows:
                snapshot = by_id.get(_key(row[fk_index]))
                if snapshot is None:
                    continue
                self._scan_child(relation.table, row, snapshot)

    # -- writes -------------------------------------------------------------

    async def save(
        self, db: TxBeginner | None, executor: Executor, aggregate: T
    ) -> None:
        values = self._decompose(aggregate)

        if not self.relations:
            await self.upsert_root(executor, values.root)
            return

        if db is not None:

            async def _save(tx: Executor) -> None:
                await self._save_with_children(tx, values)

            await run_in_transaction(db, _save)
            return

        await self._save_with_children(executor, values)

    async def _save_with_children(
        self, executor: Executor, values: CompositeValues
    ) -> None:
        await self.upsert_root(executor, values.root)

        root_id = values.root[self.table.column_index(self.table.primary_key[0])]
        for relation in self.relations:
            child_rows = values.children.get(relation.table, [])
            logger.debug(
                "Synchronising %d %s row(s) (%s)",
                len(child_rows),
                relation.table,
                relation.on_save.value,
            )
            if relation.on_save is SaveStrategy.UPSERT:
                await self._upsert_children(executor, relation, child_rows)
            else:
                await self._replace_children(executor, relation, root_id, child_rows)

    async def _replace_children(
        self,
        executor: Executor,
        relation: Relation,
        root_id: Any,
        child_rows: Sequence[Sequence[Any]],
    ) -> None:
        with statement_phase("delete children", self.table.name, relation.table):
            await executor.execute(relation.delete_by_fk(self.dialect), (root_id,))
        if not child_rows:
            return
        args = [value for row in child_rows for value in row]
        with statement_phase("insert children", self.table.name, relation.table):
            await executor.execute(
                relation.batch_insert_sql(self.dialect, len(child_rows)), args
            )

    async def _upsert_children(
        self,
        executor: Executor,
        relation: Relation,
        child_rows: Sequence[Sequence[Any]],
    ) -> None:
        sql = relation.upsert_sql(self.dialect)
        for row in child_rows:
            with statement_phase("upsert child", self.table.name, relation.table):
                await executor.execute(sql, row)

    async def delete(
        self, db: TxBeginner | None, executor: Executor, ids: Sequence[Any]
    ) -> None:
        if self.table.soft_delete_column or not self.relations:
            await self.delete_root(executor, ids)
            return

        if db is not None:

            async def _delete(tx: Executor) -> None:
                await self._delete_with_children(tx, ids)

            await run_in_transaction(db, _delete)
            return

        await self._delete_with_children(executor, ids)

    async def _delete_with_children(
        self, executor: Executor, ids: Sequence[Any]
    ) -> None:
        root_id = ids[0]
        for relation in reversed(self.relations):
            with statement_phase("delete children", self.table.name, relation.table):
                await executor.execute(relation.delete_by_fk(self.dialect), (root_id,))
        await self.delete_root(executor, ids)
