"""
Dialect port: placeholder, timestamp, case-insensitive match and UPSERT syntax.

Every backend renders the same statements; only the syntax differs. The
shared ``INSERT`` head and batch ``VALUES`` list live here, each concrete
dialect contributes its conflict clause.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True)
class UpsertOptions:
    """Optional managed columns of an UPSERT target."""

    version_column: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class Dialect(ABC):
    """SQL syntax of one database backend."""

    name: str = ""
    numbered_placeholders: bool = False
    #: DBAPI paramstyle of the rendered placeholders (PEP 249 names).
    paramstyle: str = "qmark"

    @classmethod
    def for_paramstyle(cls, paramstyle: str) -> Dialect:
        """
        Return an instance whose placeholders the driver's *paramstyle* accepts.

        Raises:
            ConfigurationError: The dialect cannot render that paramstyle.
        """
        if paramstyle != cls.paramstyle:
            raise ConfigurationError(
                f"{cls.__name__} renders {cls.paramstyle!r} placeholders, "
                f"the driver expects {paramstyle!r}"
            )
        return cls()

    @abstractmethod
    def placeholder(self, n: int) -> str:
        """Return the bind placeholder for the 1-based parameter *n*."""

    @abstractmethod
    def now(self) -> str:
        """Return the SQL expression for the current timestamp."""

    @abstractmethod
    def ilike_op(self) -> str:
        """Return the case-insensitive pattern match operator."""

    @abstractmethod
    def quote_ident(self, name: str) -> str:
        """Quote an identifier."""

    def unbounded_limit(self) -> str | None:
        """Return the LIMIT meaning "all rows" when OFFSET needs one, else None."""
        return None

    @abstractmethod
    def upsert_sql(
        self,
        table: str,
        primary_key: Sequence[str],
        columns: Sequence[str],
        options: UpsertOptions | None = None,
    ) -> str:
        """Render an insert-or-update statement keyed by *primary_key*."""

    def batch_insert_sql(
        self, table: str, columns: Sequence[str], row_count: int
    ) -> str:
        """Render a multi-row INSERT with one placeholder tuple per row."""
        width = len(columns)
        rows = [
            "("
            + ", ".join(self.placeholder(r * width + c + 1) for c in range(width))
            + ")"
            for r in range(row_count)
        ]
        return (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES {', '.join(rows)}"
        )

    # -- shared helpers -----------------------------------------------------

    def _insert_head(
        self, table: str, columns: Sequence[str], options: UpsertOptions
    ) -> str:
        """``INSERT INTO t (cols) VALUES (...)``, managed timestamps bound to now()."""
        insert_cols = list(columns)
        values = [self.placeholder(i + 1) for i in range(len(columns))]
        for managed in (options.created_at, options.updated_at):
            if managed:
                insert_cols.append(managed)
                values.append(self.now())
        return (
            f"INSERT INTO {table} ({', '.join(insert_cols)}) "
            f"VALUES ({', '.join(values)})"
        )

    @staticmethod
    def _non_key(primary_key: Sequence[str], columns: Sequence[str]) -> list[str]:
        """Columns that may change on conflict, in declared order."""
        keys = set(primary_key)
        return [col for col in columns if col not in keys]

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
