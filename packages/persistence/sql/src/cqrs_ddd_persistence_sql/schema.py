"""
Static table metadata and the SQL templates derived from it.

``Table`` and ``Relation`` are frozen pydantic models: built once when a
repository is configured, validated eagerly, then shared read-only by every
operation (and every concurrent task) using that repository.

``Table.columns`` is the positional contract with the aggregate's scan and
value functions: rows are read and written in exactly this order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .dialects import UpsertOptions
from .exceptions import ConfigurationError
from .specifications import Spec, and_, eq, is_null

if TYPE_CHECKING:
    from .dialects import Dialect


class SaveStrategy(str, Enum):
    """How a relation's child rows are synchronised on save."""

    DELETE_AND_REINSERT = "delete_and_reinsert"
    UPSERT = "upsert"


def _as_tuple(value: Any) -> Any:
    if isinstance(value, str):
        return (value,)
    return value


def _check_unique(owner: str, columns: Sequence[str]) -> None:
    seen: set[str] = set()
    for col in columns:
        if col in seen:
            raise ConfigurationError(f"{owner}: column {col!r} declared twice")
        seen.add(col)


class Table(BaseModel):
    """Root table of an aggregate."""

    model_config = ConfigDict(frozen=True)

    name: str
    primary_key: tuple[str, ...]
    columns: tuple[str, ...]
    version_column: str | None = None
    soft_delete_column: str | None = None
    created_at_column: str | None = None
    updated_at_column: str | None = None

    @field_validator("primary_key", mode="before")
    @classmethod
    def normalise_primary_key(cls, value: Any) -> Any:
        return _as_tuple(value)

    @model_validator(mode="after")
    def validate_layout(self) -> Table:
        if not self.name:
            raise ConfigurationError("Table name must not be empty")
        if not self.primary_key:
            raise ConfigurationError(f"Table {self.name!r} needs a primary key")
        _check_unique(f"Table {self.name!r}", self.columns)

        missing = [pk for pk in self.primary_key if pk not in self.columns]
        if missing:
            raise ConfigurationError(
                f"Table {self.name!r}: primary key column(s) {missing} "
                f"are not in columns {list(self.columns)}"
            )
        if self.version_column and self.version_column not in self.columns:
            raise ConfigurationError(
                f"Table {self.name!r}: version column {self.version_column!r} "
                "must be one of the declared columns"
            )
        for managed in (self.created_at_column, self.updated_at_column):
            if managed and managed in self.columns:
                raise ConfigurationError(
                    f"Table {self.name!r}: timestamp column {managed!r} is set "
                    "by the database and must not be a bound column"
                )
        return self

    # -- metadata -----------------------------------------------------------

    @property
    def upsert_options(self) -> UpsertOptions:
        return UpsertOptions(
            version_column=self.version_column,
            created_at=self.created_at_column,
            updated_at=self.updated_at_column,
        )

    def column_index(self, column: str) -> int:
        return self.columns.index(column)

    # -- predicates ---------------------------------------------------------

    def primary_key_spec(self, ids: Sequence[Any]) -> Spec:
        """Equality on every primary-key column, in declared order."""
        if len(ids) != len(self.primary_key):
            raise ConfigurationError(
                f"Table {self.name!r} has a {len(self.primary_key)}-column "
                f"primary key {list(self.primary_key)}, got {len(ids)} value(s)"
            )
        parts = [eq(col, value) for col, value in zip(self.primary_key, ids)]
        return parts[0] if len(parts) == 1 else and_(*parts)

    def with_soft_delete(self, spec: Spec | None) -> Spec | None:
        """AND the ``<soft_delete_column> IS NULL`` guard in front of *spec*."""
        if not self.soft_delete_column:
            return spec
        guard = is_null(self.soft_delete_column)
        if spec is None:
            return guard
        return and_(guard, spec)

    # -- SQL templates ------------------------------------------------------

    def select_from(self) -> str:
        return f"SELECT {', '.join(self.columns)} FROM {self.name}"

    def select_where(self, condition: str) -> str:
        return f"{self.select_from()} WHERE {condition}"

    def count_sql(self, condition: str | None = None) -> str:
        sql = f"SELECT COUNT(*) FROM {self.name}"
        return f"{sql} WHERE {condition}" if condition else sql

    def exists_sql(self, condition: str | None = None) -> str:
        inner = f"SELECT 1 FROM {self.name}"
        if condition:
            inner += f" WHERE {condition}"
        return f"SELECT EXISTS({inner})"

    def upsert_sql(self, dialect: Dialect) -> str:
        return dialect.upsert_sql(
            self.name, self.primary_key, self.columns, self.upsert_options
        )

    def delete_sql(self, dialect: Dialect) -> str:
        where = " AND ".join(
            f"{pk} = {dialect.placeholder(i + 1)}"
            for i, pk in enumerate(self.primary_key)
        )
        if self.soft_delete_column:
            col = self.soft_delete_column
            return (
                f"UPDATE {self.name} SET {col} = {dialect.now()} "
                f"WHERE {where} AND {col} IS NULL"
            )
        return f"DELETE FROM {self.name} WHERE {where}"


class Relation(BaseModel):
    """A child table of a composite aggregate, joined by ``foreign_key``."""

    model_config = ConfigDict(frozen=True)

    table: str
    foreign_key: str
    primary_key: str
    columns: tuple[str, ...]
    on_save: SaveStrategy = SaveStrategy.DELETE_AND_REINSERT

    @model_validator(mode="after")
    def validate_layout(self) -> Relation:
        _check_unique(f"Relation {self.table!r}", self.columns)
        if self.foreign_key not in self.columns:
            raise ConfigurationError(
                f"Relation {self.table!r}: foreign key {self.foreign_key!r} "
                f"not found in columns {list(self.columns)}"
            )
        if self.primary_key not in self.columns:
            raise ConfigurationError(
                f"Relation {self.table!r}: primary key {self.primary_key!r} "
                f"not found in columns {list(self.columns)}"
            )
        return self

    @property
    def foreign_key_index(self) -> int:
        """Position of the foreign key in a child row."""
        return self.columns.index(self.foreign_key)

    def select_by_fk(self, dialect: Dialect) -> str:
        return (
            f"SELECT {', '.join(self.columns)} FROM {self.table} "
            f"WHERE {self.foreign_key} = {dialect.placeholder(1)}"
        )

    def batch_select_by_fks(self, dialect: Dialect, count: int) -> str:
        placeholders = ", ".join(dialect.placeholder(i + 1) for i in range(count))
        return (
            f"SELECT {', '.join(self.columns)} FROM {self.table} "
            f"WHERE {self.foreign_key} IN ({placeholders})"
        )

    def delete_by_fk(self, dialect: Dialect) -> str:
        return (
            f"DELETE FROM {self.table} "
            f"WHERE {self.foreign_key} = {dialect.placeholder(1)}"
        )

    def insert_sql(self, dialect: Dialect) -> str:
        return self.batch_insert_sql(dialect, 1)

    def upsert_sql(self, dialect: Dialect) -> str:
        return dialect.upsert_sql(self.table, (self.primary_key,), self.columns)

    def batch_insert_sql(self, dialect: Dialect, row_count: int) -> str:
        return dialect.batch_insert_sql(self.table, self.columns, row_count)


@dataclass
class CompositeValues:
    """
    SQL projection of a composite aggregate for one save call.

    ``root`` follows ``Table.columns``; ``children`` maps a relation's table
    name to its rows, each following ``Relation.columns``.
    """

    root: Sequence[Any]
    children: dict[str, list[Sequence[Any]]] = field(default_factory=dict)
