from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Dialect, UpsertOptions

if TYPE_CHECKING:
    from collections.abc import Sequence


class SQLiteDialect(Dialect):
    """SQLite: ``?`` placeholders, ``datetime('now')``, ``ON CONFLICT(...)``."""

    name = "sqlite"

    def placeholder(self, n: int) -> str:
        return "?"

    def now(self) -> str:
        return "datetime('now')"

    def ilike_op(self) -> str:
        # LIKE is already case-insensitive for ASCII in SQLite.
        return "LIKE"

    def unbounded_limit(self) -> str:
        return "-1"

    def quote_ident(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def upsert_sql(
        self,
        table: str,
        primary_key: Sequence[str],
        columns: Sequence[str],
        options: UpsertOptions | None = None,
    ) -> str:
        opts = options or UpsertOptions()
        insert = self._insert_head(table, columns, opts)

        set_clauses: list[str] = []
        for col in self._non_key(primary_key, columns):
            if col == opts.version_column:
                set_clauses.append(f"{col} = {col} + 1")
            else:
                set_clauses.append(f"{col} = excluded.{col}")
        if opts.updated_at:
            set_clauses.append(f"{opts.updated_at} = {self.now()}")

        target = ", ".join(primary_key)
        if not set_clauses:
            return f"{insert} ON CONFLICT({target}) DO NOTHING"

        conflict = f" ON CONFLICT({target}) DO UPDATE SET {', '.join(set_clauses)}"
        if opts.version_column:
            version = opts.version_column
            conflict += f" WHERE {table}.{version} = excluded.{version}"
        return insert + conflict
