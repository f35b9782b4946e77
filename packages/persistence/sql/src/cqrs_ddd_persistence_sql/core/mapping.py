"""
Mappings: how an aggregate type is laid out in tables.

The aggregate implements no interface. Everything the drivers need to know
about it is injected here as plain callables, and ``configure`` binds them
to a dialect::

    orders = SimpleMapping(
        table=Table(name="orders", primary_key="id", columns=("id", "total")),
        scan=lambda row: Order(id=row[0], total=row[1]),
        values=lambda o: (o.id, o.total),
    )
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..exceptions import ConfigurationError
from .drivers import CompositeDriver, SimpleDriver

if TYPE_CHECKING:
    from ..dialects import Dialect
    from ..ports import Row
    from ..schema import CompositeValues, Relation, Table
    from .drivers import Driver

T = TypeVar("T")
S = TypeVar("S")


@dataclass(frozen=True)
class SimpleMapping(Generic[T]):
    """Single-table aggregate: one row in, one aggregate out."""

    table: Table
    scan: Callable[[Row], T]
    values: Callable[[T], Sequence[Any]]

    def configure(self, dialect: Dialect) -> Driver[T]:
        return SimpleDriver(self.table, dialect, self.scan, self.values)


@dataclass(frozen=True)
class CompositeMapping(Generic[T, S]):
    """
    Aggregate made of a root row plus child rows in related tables.

    ``S`` is the intermediate snapshot type: ``scan_root`` creates it,
    ``scan_child(table, row, snapshot)`` folds child rows into it and
    ``build`` turns the completed snapshot into the aggregate.
    ``decompose`` goes the other way for saves. ``extract_pk`` returns the
    snapshot's primary-key value, matched against child foreign keys.
    """

    table: Table
    scan_root: Callable[[Row], S]
    scan_child: Callable[[str, Row, S], None]
    build: Callable[[S], T]
    decompose: Callable[[T], CompositeValues]
    extract_pk: Callable[[S], Any]
    relations: tuple[Relation, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "relations", tuple(self.relations))
        if self.relations and len(self.table.primary_key) != 1:
            raise ConfigurationError(
                f"Table {self.table.name!r}: child relations need a single-column "
                f"primary key, got {list(self.table.primary_key)}"
            )
        seen: set[str] = set()
        for relation in self.relations:
            if relation.table in seen:
                raise ConfigurationError(
                    f"Table {self.table.name!r}: relation {relation.table!r} "
                    "declared twice"
                )
            seen.add(relation.table)

    def configure(self, dialect: Dialect) -> Driver[T]:
        return CompositeDriver(
            self.table,
            dialect,
            self.relations,
            scan_root=self.scan_root,
            scan_child=self.scan_child,
            build=self.build,
            decompose=self.decompose,
            extract_pk=self.extract_pk,
        )


Mapping = SimpleMapping[T] | CompositeMapping[T, Any]
