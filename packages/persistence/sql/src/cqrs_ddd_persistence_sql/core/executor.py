"""
SQLAlchemy asyncio adapters for the ``Executor`` / ``TxBeginner`` ports.

Statements are sent with ``exec_driver_sql`` so the dialect's own
placeholder syntax reaches the DBAPI untouched; no SQLAlchemy expression
compilation is involved.

Two usage patterns:

1. **Engine-managed** (``SQLAlchemyDatabase``)::

       db = SQLAlchemyDatabase(create_async_engine("sqlite+aiosqlite://"))
       repo = SQLRepository(db, orders)   # dialect derived from engine

   Each single statement runs in its own short transaction; composite
   writes open one transaction through ``begin()``.

2. **Caller-managed** (``SQLAlchemyExecutor``)::

       async with engine.begin() as conn:
           await repo.save_tx(SQLAlchemyExecutor(conn), order)

   The caller owns the transaction; nothing is committed here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..dialects import Dialect, get_dialect
from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from sqlalchemy.engine import CursorResult
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction

    from ..ports import Row

logger = logging.getLogger("cqrs_ddd.persistence.sql.executor")


class BufferedRows:
    """A fully materialised ``RowSet``."""

    __slots__ = ("_rows",)

    def __init__(self, rows: Sequence[Row]) -> None:
        self._rows = [tuple(row) for row in rows]

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def close(self) -> None:
        self._rows = []


class WriteResult:
    """Affected-row count of a write, detached from its cursor."""

    __slots__ = ("rowcount",)

    def __init__(self, rowcount: int) -> None:
        self.rowcount = rowcount


def _params(args: Sequence[Any]) -> tuple[Any, ...]:
    return tuple(args)


class SQLAlchemyExecutor:
    """``Executor`` over an open ``AsyncConnection`` (caller-managed transaction)."""

    def __init__(self, connection: AsyncConnection) -> None:
        self._connection = connection

    @property
    def connection(self) -> AsyncConnection:
        return self._connection

    async def _run(self, sql: str, args: Sequence[Any]) -> CursorResult[Any]:
        logger.debug("Executing %s [%d args]", sql, len(args))
        return await self._connection.exec_driver_sql(sql, _params(args))

    async def query(self, sql: str, args: Sequence[Any] = ()) -> BufferedRows:
        result = await self._run(sql, args)
        try:
            return BufferedRows(result.fetchall())
        finally:
            result.close()

    async def query_row(self, sql: str, args: Sequence[Any] = ()) -> Row | None:
        result = await self._run(sql, args)
        row = result.first()
        return tuple(row) if row is not None else None

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> WriteResult:
        result = await self._run(sql, args)
        try:
            return WriteResult(result.rowcount)
        finally:
            result.close()


class SQLAlchemyTransaction(SQLAlchemyExecutor):
    """A connection plus the transaction opened on it by ``SQLAlchemyDatabase``."""

    def __init__(
        self, connection: AsyncConnection, transaction: AsyncTransaction
    ) -> None:
        super().__init__(connection)
        self._transaction = transaction

    async def commit(self) -> None:
        try:
            await self._transaction.commit()
        finally:
            await self._connection.close()

    async def rollback(self) -> None:
        try:
            if self._transaction.is_active:
                await self._transaction.rollback()
        finally:
            await self._connection.close()


class SQLAlchemyDatabase:
    """
    ``Executor`` and ``TxBeginner`` over an ``AsyncEngine``.

    The dialect must render the placeholders of the engine's driver
    (``engine.dialect.paramstyle``): ``qmark`` for aiosqlite,
    ``numeric_dollar`` for asyncpg, ``format`` for aiomysql and asyncmy.
    When omitted it is derived from the engine; a mismatch raises
    ``ConfigurationError``.
    """

    def __init__(self, engine: AsyncEngine, dialect: Dialect | None = None) -> None:
        paramstyle = engine.dialect.paramstyle
        if dialect is None:
            dialect = get_dialect(engine.dialect.name, paramstyle)
        elif dialect.paramstyle != paramstyle:
            raise ConfigurationError(
                f"{dialect!r} renders {dialect.paramstyle!r} placeholders but "
                f"the {engine.dialect.driver} driver expects {paramstyle!r}"
            )
        self._engine = engine
        self._dialect = dialect

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    async def begin(self) -> SQLAlchemyTransaction:
        connection = await self._engine.connect()
        try:
            transaction = await connection.begin()
        except BaseException:
            await connection.close()
            raise
        return SQLAlchemyTransaction(connection, transaction)

    async def query(self, sql: str, args: Sequence[Any] = ()) -> BufferedRows:
        async with self._engine.begin() as connection:
            return await SQLAlchemyExecutor(connection).query(sql, args)

    async def query_row(self, sql: str, args: Sequence[Any] = ()) -> Row | None:
        async with self._engine.begin() as connection:
            return await SQLAlchemyExecutor(connection).query_row(sql, args)

    async def execute(self, sql: str, args: Sequence[Any] = ()) -> WriteResult:
        async with self._engine.begin() as connection:
            return await SQLAlchemyExecutor(connection).execute(sql, args)
