"""
Predicate AST: a closed set of immutable specification nodes.

Nodes are only constructed and combined, never extended; compilation is a
single function (:func:`~.compiler.compile_spec`) that dispatches on the
node type. Combine with the constructors or with the Python operators::

    spec = eq("status", "active") & (gt("age", 18) | is_null("age"))
    spec = ~in_("role", "admin", "root")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..dialects import Dialect
    from .compiler import CompiledSQL


class ComparisonOperator(str, Enum):
    EQ = "="
    NE = "!="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="


class Spec(ABC):
    """Base class of all specification nodes."""

    __slots__ = ()

    def to_sql(self, dialect: Dialect, offset: int = 1) -> CompiledSQL:
        """Compile to ``(sql, args, next_offset)`` starting at placeholder *offset*."""
        from .compiler import compile_spec

        return compile_spec(self, dialect, offset)

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Serialise to the ``{"op": ..., "attr": ..., "val": ...}`` shape."""

    def __and__(self, other: Spec) -> And:
        return And((self, other))

    def __or__(self, other: Spec) -> Or:
        return Or((self, other))

    def __invert__(self) -> Not:
        return Not(self)


@dataclass(frozen=True)
class Comparison(Spec):
    column: str
    op: ComparisonOperator
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op.value, "attr": self.column, "val": self.value}


@dataclass(frozen=True)
class Membership(Spec):
    """``IN`` / ``NOT IN`` over a fixed value list."""

    column: str
    values: tuple[Any, ...]
    negate: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": "not_in" if self.negate else "in",
            "attr": self.column,
            "val": list(self.values),
        }


@dataclass(frozen=True)
class Pattern(Spec):
    """``LIKE``; with ``case_insensitive`` the dialect's ILIKE operator."""

    column: str
    pattern: str
    case_insensitive: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": "ilike" if self.case_insensitive else "like",
            "attr": self.column,
            "val": self.pattern,
        }


@dataclass(frozen=True)
class Range(Spec):
    column: str
    low: Any
    high: Any

    def to_dict(self) -> dict[str, Any]:
        return {"op": "between", "attr": self.column, "val": [self.low, self.high]}


@dataclass(frozen=True)
class NullCheck(Spec):
    column: str
    negate: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"op": "is_not_null" if self.negate else "is_null", "attr": self.column}


@dataclass(frozen=True)
class And(Spec):
    specs: tuple[Spec, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"op": "and", "conditions": [s.to_dict() for s in self.specs]}


@dataclass(frozen=True)
class Or(Spec):
    specs: tuple[Spec, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"op": "or", "conditions": [s.to_dict() for s in self.specs]}


@dataclass(frozen=True)
class Not(Spec):
    spec: Spec

    def to_dict(self) -> dict[str, Any]:
        return {"op": "not", "conditions": [self.spec.to_dict()]}


@dataclass(frozen=True)
class Raw(Spec):
    """
    Hand-written SQL using ``$1``, ``$2``, ... for its arguments.

    The placeholders are renumbered for the target dialect at compile time.
    The fragment is trusted as written: the number of ``$N`` tokens must
    match ``args``.
    """

    sql: str
    args: tuple[Any, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"op": "raw", "val": self.sql, "args": list(self.args)}


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def eq(column: str, value: Any) -> Comparison:
    return Comparison(column, ComparisonOperator.EQ, value)


def ne(column: str, value: Any) -> Comparison:
    return Comparison(column, ComparisonOperator.NE, value)


def gt(column: str, value: Any) -> Comparison:
    return Comparison(column, ComparisonOperator.GT, value)


def ge(column: str, value: Any) -> Comparison:
    return Comparison(column, ComparisonOperator.GE, value)


def lt(column: str, value: Any) -> Comparison:
    return Comparison(column, ComparisonOperator.LT, value)


def le(column: str, value: Any) -> Comparison:
    return Comparison(column, ComparisonOperator.LE, value)


def in_(column: str, *values: Any) -> Membership:
    return Membership(column, values)


def not_in(column: str, *values: Any) -> Membership:
    return Membership(column, values, negate=True)


def like(column: str, pattern: str) -> Pattern:
    return Pattern(column, pattern)


def ilike(column: str, pattern: str) -> Pattern:
    return Pattern(column, pattern, case_insensitive=True)


def between(column: str, low: Any, high: Any) -> Range:
    return Range(column, low, high)


def is_null(column: str) -> NullCheck:
    return NullCheck(column)


def is_not_null(column: str) -> NullCheck:
    return NullCheck(column, negate=True)


def and_(*specs: Spec) -> And:
    return And(specs)


def or_(*specs: Spec) -> Or:
    return Or(specs)


def not_(spec: Spec) -> Not:
    return Not(spec)


def raw(sql: str, *args: Any) -> Raw:
    return Raw(sql, args)
