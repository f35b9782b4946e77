"""Shared fixtures: recording in-memory executors standing in for a database."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest


class FakeRows:
    """RowSet over canned rows that remembers whether it was closed."""

    def __init__(self, rows):
        self.rows = [tuple(r) for r in rows]
        self.closed = False

    def __iter__(self):
        return iter(self.rows)

    def close(self):
        self.closed = True


@dataclass
class FakeResult:
    rowcount: int = 1


class FakeExecutor:
    """
    Records every statement and replays canned results.

    ``results`` is a queue consumed by ``query`` / ``query_row`` in call
    order (an exhausted queue yields no rows). ``rowcount`` is returned by
    every ``execute``; a callable receives the SQL. Any statement containing
    ``fail_on`` raises ``RuntimeError``.
    """

    def __init__(self, *, results=None, rowcount: Any = 1, fail_on=None):
        self.log: list[tuple[str, str, list[Any]]] = []
        self.results: list[list[tuple[Any, ...]]] = list(results or [])
        self.rowcount = rowcount
        self.fail_on = fail_on
        self.row_sets: list[FakeRows] = []

    def _record(self, kind, sql, args):
        self.log.append((kind, sql, list(args)))
        if self.fail_on and self.fail_on in sql:
            raise RuntimeError(f"boom: {sql}")

    def _next_rows(self):
        return self.results.pop(0) if self.results else []

    @property
    def statements(self) -> list[str]:
        return [sql for kind, sql, _ in self.log if kind in ("query", "execute")]

    @property
    def executed(self) -> list[tuple[str, list[Any]]]:
        return [(sql, args) for kind, sql, args in self.log if kind == "execute"]

    async def query(self, sql, args=()):
        self._record("query", sql, args)
        rows = FakeRows(self._next_rows())
        self.row_sets.append(rows)
        return rows

    async def query_row(self, sql, args=()):
        self._record("query", sql, args)
        rows = self._next_rows()
        return tuple(rows[0]) if rows else None

    async def execute(self, sql, args=()):
        self._record("execute", sql, args)
        count = self.rowcount(sql) if callable(self.rowcount) else self.rowcount
        return FakeResult(count)


class FakeTransaction(FakeExecutor):
    """Transaction sharing its database's log and result queue."""

    def __init__(self, parent: FakeExecutor):
        super().__init__(rowcount=parent.rowcount, fail_on=parent.fail_on)
        self.log = parent.log
        self.results = parent.results
        self.row_sets = parent.row_sets
        self.committed = False
        self.rolled_back = False

    async def commit(self):
        self.committed = True
        self.log.append(("commit", "", []))

    async def rollback(self):
        self.rolled_back = True
        self.log.append(("rollback", "", []))


class FakeDatabase(FakeExecutor):
    """Executor that can also open transactions."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.transactions: list[FakeTransaction] = []

    async def begin(self):
        self.log.append(("begin", "", []))
        tx = FakeTransaction(self)
        self.transactions.append(tx)
        return tx


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def make_executor():
    """Factory for executors with canned results."""
    return FakeExecutor


@pytest.fixture
def make_database():
    """Factory for transactional databases with canned results."""
    return FakeDatabase
