"""
SQL dialects and a name-based registry.

``get_dialect`` accepts the backend names SQLAlchemy reports through
``engine.dialect.name`` so a dialect can be derived from an engine.
"""

from __future__ import annotations

from ..exceptions import ConfigurationError
from .base import Dialect, UpsertOptions
from .mysql import MySQLDialect
from .postgres import PostgresDialect
from .sqlite import SQLiteDialect

DEFAULT_DIALECTS: dict[str, type[Dialect]] = {
    "postgresql": PostgresDialect,
    "postgres": PostgresDialect,
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "sqlite": SQLiteDialect,
}


def get_dialect(name: str, paramstyle: str | None = None) -> Dialect:
    """
    Return a dialect instance for a backend name.

    With *paramstyle* (a driver's DBAPI paramstyle, e.g.
    ``engine.dialect.paramstyle``) the instance renders placeholders that
    driver accepts, or ``ConfigurationError`` is raised.
    """
    try:
        dialect_cls = DEFAULT_DIALECTS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported SQL dialect {name!r}. "
            f"Known dialects: {', '.join(sorted(DEFAULT_DIALECTS))}"
        ) from None
    if paramstyle is None:
        return dialect_cls()
    return dialect_cls.for_paramstyle(paramstyle)


__all__ = [
    "DEFAULT_DIALECTS",
    "Dialect",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "UpsertOptions",
    "get_dialect",
]
