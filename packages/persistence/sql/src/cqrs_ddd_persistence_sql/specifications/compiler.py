"""
Compile a specification tree into parameterised SQL for one dialect.

The compiler is a pure fold over the tree: every node receives the index of
the next free placeholder and returns the index after the ones it used.
Combinators hand each child the offset left by its predecessor, so the
placeholders of a whole statement are numbered left to right without gaps
and ``args`` lines up positionally with them, at any nesting depth.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, NamedTuple

from .ast import (
    And,
    Comparison,
    Membership,
    Not,
    NullCheck,
    Or,
    Pattern,
    Range,
    Raw,
    Spec,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..dialects import Dialect

_RAW_PLACEHOLDER = re.compile(r"\$(\d+)")


class CompiledSQL(NamedTuple):
    sql: str
    args: list[Any]
    next_offset: int


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compile_spec(spec: Spec, dialect: Dialect, offset: int = 1) -> CompiledSQL:
    """
    Compile *spec* for *dialect*.

    Args:
        spec: Root of the specification tree.
        dialect: Target dialect (placeholder and ILIKE syntax).
        offset: 1-based index of the first placeholder to allocate.

    Returns:
        ``CompiledSQL(sql, args, next_offset)`` where
        ``next_offset == offset + len(args)``.
    """
    logical = _compile_logical_operator(spec, dialect, offset)
    if logical is not None:
        return logical
    return _compile_leaf_node(spec, dialect, offset)


# ---------------------------------------------------------------------------
# Internal compilation
# ---------------------------------------------------------------------------


def _compile_logical_operator(
    spec: Spec, dialect: Dialect, offset: int
) -> CompiledSQL | None:
    """Compile AND / OR / NOT. Returns None for leaf nodes."""
    if isinstance(spec, And):
        return _join(spec.specs, " AND ", "TRUE", dialect, offset)
    if isinstance(spec, Or):
        return _join(spec.specs, " OR ", "FALSE", dialect, offset)
    if isinstance(spec, Not):
        inner = compile_spec(spec.spec, dialect, offset)
        return CompiledSQL(f"NOT ({inner.sql})", inner.args, inner.next_offset)
    return None


def _compile_leaf_node(spec: Spec, dialect: Dialect, offset: int) -> CompiledSQL:
    ph = dialect.placeholder

    if isinstance(spec, Comparison):
        return CompiledSQL(
            f"{spec.column} {spec.op.value} {ph(offset)}", [spec.value], offset + 1
        )

    if isinstance(spec, Membership):
        if not spec.values:
            # x IN () is false for every x; x NOT IN () is true.
            return CompiledSQL("TRUE" if spec.negate else "FALSE", [], offset)
        placeholders = ", ".join(ph(offset + i) for i in range(len(spec.values)))
        op = "NOT IN" if spec.negate else "IN"
        return CompiledSQL(
            f"{spec.column} {op} ({placeholders})",
            list(spec.values),
            offset + len(spec.values),
        )

    if isinstance(spec, Pattern):
        op = dialect.ilike_op() if spec.case_insensitive else "LIKE"
        return CompiledSQL(
            f"{spec.column} {op} {ph(offset)}", [spec.pattern], offset + 1
        )

    if isinstance(spec, Range):
        return CompiledSQL(
            f"{spec.column} BETWEEN {ph(offset)} AND {ph(offset + 1)}",
            [spec.low, spec.high],
            offset + 2,
        )

    if isinstance(spec, NullCheck):
        suffix = "IS NOT NULL" if spec.negate else "IS NULL"
        return CompiledSQL(f"{spec.column} {suffix}", [], offset)

    if isinstance(spec, Raw):
        return _compile_raw(spec, dialect, offset)

    raise TypeError(f"Unsupported specification node: {type(spec).__name__}")


def _join(
    specs: Sequence[Spec],
    separator: str,
    empty: str,
    dialect: Dialect,
    offset: int,
) -> CompiledSQL:
    if not specs:
        return CompiledSQL(empty, [], offset)
    if len(specs) == 1:
        return compile_spec(specs[0], dialect, offset)

    parts: list[str] = []
    args: list[Any] = []
    current = offset
    for child in specs:
        sql, child_args, current = compile_spec(child, dialect, current)
        parts.append(f"({sql})")
        args.extend(child_args)
    return CompiledSQL(separator.join(parts), args, current)


def _compile_raw(spec: Raw, dialect: Dialect, offset: int) -> CompiledSQL:
    """
    Renumber ``$N`` tokens in two passes.

    The first pass swaps every ``$N`` (the whole digit run, so ``$10`` is never
    read as ``$1``) for a token that cannot occur in SQL; the second pass
    swaps each token for the dialect placeholder. A rewritten placeholder can
    therefore never be matched again, whatever numbers the dialect emits.
    """
    count = len(spec.args)

    def to_token(match: re.Match[str]) -> str:
        n = int(match.group(1))
        if 1 <= n <= count:
            return f"\x00RAW_{n}\x00"
        return match.group(0)

    sql = _RAW_PLACEHOLDER.sub(to_token, spec.sql)
    for n in range(1, count + 1):
        sql = sql.replace(f"\x00RAW_{n}\x00", dialect.placeholder(offset + n - 1))
    return CompiledSQL(sql, list(spec.args), offset + count)
