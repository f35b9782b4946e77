"""Specification AST and its SQL compiler."""

from __future__ import annotations

from .ast import (
    And,
    Comparison,
    ComparisonOperator,
    Membership,
    Not,
    NullCheck,
    Or,
    Pattern,
    Range,
    Raw,
    Spec,
    and_,
    between,
    eq,
    ge,
    gt,
    ilike,
    in_,
    is_not_null,
    is_null,
    le,
    like,
    lt,
    ne,
    not_,
    not_in,
    or_,
    raw,
)
from .compiler import CompiledSQL, compile_spec

__all__ = [
    # Nodes
    "Spec",
    "Comparison",
    "ComparisonOperator",
    "Membership",
    "Pattern",
    "Range",
    "NullCheck",
    "And",
    "Or",
    "Not",
    "Raw",
    # Constructors
    "eq",
    "ne",
    "gt",
    "ge",
    "lt",
    "le",
    "in_",
    "not_in",
    "like",
    "ilike",
    "between",
    "is_null",
    "is_not_null",
    "and_",
    "or_",
    "not_",
    "raw",
    # Compiler
    "CompiledSQL",
    "compile_spec",
]
