from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import ConfigurationError
from .base import Dialect, UpsertOptions

if TYPE_CHECKING:
    from collections.abc import Sequence


class MySQLDialect(Dialect):
    """
    MySQL / MariaDB: ``?`` placeholders, ``ON DUPLICATE KEY UPDATE``.

    ``ON DUPLICATE KEY UPDATE`` has no ``WHERE``, so with a version column
    every assignment is wrapped in ``IF(<version matches>, new, old)`` and the
    version itself is assigned last; MySQL evaluates assignments left to
    right, so an earlier bump would defeat the comparisons that follow it.
    A stale version leaves the row untouched and reports 0 affected rows.

    The async drivers (aiomysql, asyncmy) use the ``format`` paramstyle;
    ``MySQLDialect("format")`` renders ``%s`` placeholders for them.
    """

    name = "mysql"
    paramstyles = ("qmark", "format")

    def __init__(self, paramstyle: str = "qmark") -> None:
        if paramstyle not in self.paramstyles:
            raise ConfigurationError(
                f"MySQLDialect renders {' or '.join(map(repr, self.paramstyles))} "
                f"placeholders, not {paramstyle!r}"
            )
        self.paramstyle = paramstyle

    @classmethod
    def for_paramstyle(cls, paramstyle: str) -> MySQLDialect:
        return cls(paramstyle)

    def placeholder(self, n: int) -> str:
        return "%s" if self.paramstyle == "format" else "?"

    def now(self) -> str:
        return "NOW()"

    def ilike_op(self) -> str:
        # Case sensitivity follows the column collation; *_ci is the default.
        return "LIKE"

    def unbounded_limit(self) -> str:
        return "18446744073709551615"

    def quote_ident(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def upsert_sql(
        self,
        table: str,
        primary_key: Sequence[str],
        columns: Sequence[str],
        options: UpsertOptions | None = None,
    ) -> str:
        opts = options or UpsertOptions()
        insert = self._insert_head(table, columns, opts)
        version = opts.version_column

        def guarded(col: str, new: str) -> str:
            if not version:
                return f"{col} = {new}"
            return (
                f"{col} = IF({table}.{version} = VALUES({version}), {new}, {col})"
            )

        set_clauses: list[str] = []
        bump_version = False
        for col in self._non_key(primary_key, columns):
            if col == version:
                bump_version = True
                continue
            set_clauses.append(guarded(col, f"VALUES({col})"))
        if opts.updated_at:
            set_clauses.append(guarded(opts.updated_at, self.now()))
        if bump_version:
            set_clauses.append(guarded(str(version), f"{version} + 1"))

        if not set_clauses:
            return insert.replace("INSERT INTO", "INSERT IGNORE INTO", 1)
        return f"{insert} ON DUPLICATE KEY UPDATE {', '.join(set_clauses)}"

    def __repr__(self) -> str:
        return f"MySQLDialect({self.paramstyle!r})"
