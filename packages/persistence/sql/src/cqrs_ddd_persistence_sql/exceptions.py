"""Exceptions for the SQL persistence layer."""

from __future__ import annotations

from typing import Any


class SQLPersistenceError(Exception):
    """Base exception for all SQL persistence errors."""


class NotFoundError(SQLPersistenceError):
    """Raised when exactly one row was required but none matched."""

    def __init__(self, table: str, ids: tuple[Any, ...] | None = None) -> None:
        self.table = table
        self.ids = ids
        if ids:
            super().__init__(f"{table} with id={ids!r} not found")
        else:
            super().__init__(f"{table}: entity not found")


class NoRowsError(SQLPersistenceError):
    """Driver-level "no rows" condition.

    Raised by drivers when a single-row read returns nothing; the repository
    translates it into :class:`NotFoundError`.
    """


class OptimisticConcurrencyError(SQLPersistenceError):
    """Raised when a versioned write affected zero rows.

    The row was modified (or removed) by a concurrent writer since the
    aggregate was read. Nothing is retried: re-read and try again.
    """

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(
            f"Concurrent modification of {table}: "
            "version guard rejected the write (0 rows affected)"
        )


class InvalidCursorError(SQLPersistenceError, ValueError):
    """Raised when a pagination cursor token cannot be decoded."""


class ConfigurationError(SQLPersistenceError):
    """Raised when table, relation, dialect or mapping configuration is invalid."""


class StatementError(SQLPersistenceError):
    """
    A driver/statement failure tagged with the phase it happened in.

    The original exception is kept as ``__cause__`` and is not
    reinterpreted: constraint violations, connectivity problems and
    conversion failures all surface through this wrapper unchanged.
    """

    def __init__(
        self,
        phase: str,
        table: str,
        *,
        relation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.phase = phase
        self.table = table
        self.relation = relation
        target = f"{table} -> {relation}" if relation else table
        message = f"{phase} failed on {target}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


__all__: list[str] = [
    "ConfigurationError",
    "InvalidCursorError",
    "NoRowsError",
    "NotFoundError",
    "OptimisticConcurrencyError",
    "SQLPersistenceError",
    "StatementError",
]
