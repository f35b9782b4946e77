"""
Keyset (cursor-based) pagination.

A cursor carries the sort-column values of the last row of a page. The next
page is "every row whose sort tuple is strictly after that one", expressed
without a tuple comparison operator as an OR of prefixes::

    (c0 > v0)
    OR (c0 = v0 AND c1 > v1)
    OR (c0 = v0 AND c1 = v1 AND c2 > v2)

Wire format of a cursor: URL-safe, padded base64 of ``{"v": {column: value}}``.
Cursors are only meaningful for the ordering that produced them.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, NamedTuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import InvalidCursorError
from .specifications import Spec, and_, eq, gt, lt, or_

T = TypeVar("T")


class Direction(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    @property
    def reversed(self) -> Direction:
        return Direction.DESC if self is Direction.ASC else Direction.ASC


class OrderClause(NamedTuple):
    column: str
    direction: Direction = Direction.ASC

    def to_sql(self) -> str:
        return f"{self.column} {self.direction.value}"


class Cursor(BaseModel):
    """Last-row sort values of a page."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    values: dict[str, Any] = Field(alias="v")


@dataclass(frozen=True)
class Page(Generic[T]):
    """
    One page of a keyset-paginated query.

    Attributes:
        items: Rows of this page, in query order.
        next_cursor: Token for the following page; ``None`` when there is none.
        has_more: Whether at least one more row exists past this page.
    """

    items: list[T] = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"items": self.items, "has_more": self.has_more}
        if self.next_cursor:
            result["next_cursor"] = self.next_cursor
        return result


def encode_cursor(cursor: Cursor) -> str:
    payload = cursor.model_dump_json(by_alias=True)
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(token: str) -> Cursor:
    """
    Decode a token produced by :func:`encode_cursor`.

    Raises:
        InvalidCursorError: The token is not base64 or does not hold a
            ``{"v": {...}}`` JSON object.
    """
    try:
        raw = base64.b64decode(token, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidCursorError(f"Invalid cursor: {exc}") from exc
    try:
        return Cursor.model_validate_json(raw)
    except ValueError as exc:
        raise InvalidCursorError(f"Invalid cursor: {exc}") from exc


def build_keyset_spec(
    orders: Sequence[OrderClause],
    last_values: Mapping[str, Any],
    forward: bool = True,
) -> Spec | None:
    """
    Predicate selecting rows strictly after (``forward``) or before the cursor row.

    Alternative ``i`` pins columns ``0..i-1`` to the cursor values and
    compares column ``i`` with ``>`` when (ascending and forward) or
    (descending and backward), otherwise with ``<``.

    Returns None when there is no ordering.

    Raises:
        InvalidCursorError: *last_values* lacks one of the ordering columns.
    """
    missing = [o.column for o in orders if o.column not in last_values]
    if missing:
        raise InvalidCursorError(
            f"Cursor has no value for order column(s) {missing}; "
            "it was produced by a different ordering"
        )

    alternatives: list[Spec] = []
    for i, order in enumerate(orders):
        parts: list[Spec] = [eq(o.column, last_values[o.column]) for o in orders[:i]]
        value = last_values[order.column]
        ascending = order.direction is Direction.ASC
        if ascending == forward:
            parts.append(gt(order.column, value))
        else:
            parts.append(lt(order.column, value))
        alternatives.append(parts[0] if len(parts) == 1 else and_(*parts))

    if not alternatives:
        return None
    if len(alternatives) == 1:
        return alternatives[0]
    return or_(*alternatives)
