"""
Capabilities the persistence layer consumes.

Connections and transactions are provisioned by the caller; the drivers
only need something that can run a statement (``Executor``) and, for
multi-statement writes, something that can open a transaction
(``TxBeginner``). ``core.executor`` adapts SQLAlchemy's asyncio engine to
both; tests use in-memory fakes.

A ``Row`` is a positional sequence of column values. Live driver rows and
already-materialised tuples both satisfy it, which is all the scan
functions of a mapping ever see.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger("cqrs_ddd.persistence.sql.tx")

R = TypeVar("R")

Row = Sequence[Any]


@runtime_checkable
class RowSet(Protocol):
    """Result rows of a query; must be closed once consumed."""

    def __iter__(self) -> Iterator[Row]: ...

    def close(self) -> None: ...


@runtime_checkable
class ExecResult(Protocol):
    """Outcome of a write statement."""

    @property
    def rowcount(self) -> int: ...


@runtime_checkable
class Executor(Protocol):
    """Runs single statements with positional arguments."""

    async def query(self, sql: str, args: Sequence[Any] = ()) -> RowSet: ...

    async def query_row(self, sql: str, args: Sequence[Any] = ()) -> Row | None: ...

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> ExecResult: ...


@runtime_checkable
class Transaction(Executor, Protocol):
    """An open transaction; statements run inside it until commit/rollback."""

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@runtime_checkable
class TxBeginner(Protocol):
    """Opens transactions."""

    async def begin(self) -> Transaction: ...


async def run_in_transaction(
    db: TxBeginner, fn: Callable[[Transaction], Awaitable[R]]
) -> R:
    """
    Run *fn* inside a new transaction.

    Commits when *fn* returns and rolls back when it raises, including on
    task cancellation, so a cancelled composite write never commits half
    of its statements. The original exception always propagates; a failing
    rollback is only logged.
    """
    tx = await db.begin()
    try:
        result = await fn(tx)
    except BaseException:
        try:
            await tx.rollback()
        except Exception:  # noqa: BLE001
            logger.warning("Rollback failed", exc_info=True)
        raise
    await tx.commit()
    return result
