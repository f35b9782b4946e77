"""
Fluent query builder returned by :meth:`SQLRepository.query`.

Builder methods mutate and return the same instance; a builder belongs to
one caller and is not meant to be shared between tasks::

    page = await (
        repo.query()
        .where(eq("status", "open"))
        .order_by("created", Direction.DESC)
        .page_size(50)
        .after(token)
        .page(lambda o: {"created": o.created, "id": o.id})
    )
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..exceptions import NotFoundError
from ..pagination import (
    Cursor,
    Direction,
    OrderClause,
    Page,
    build_keyset_spec,
    decode_cursor,
    encode_cursor,
)
from ..specifications import Spec, and_, compile_spec
from .drivers import statement_phase

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..ports import Executor
    from ..schema import Table
    from .drivers import Driver

T = TypeVar("T")

CursorExtractor = Callable[[T], Mapping[str, Any]]

DEFAULT_PAGE_SIZE = 20


class Query(Generic[T]):
    """Accumulates filters, ordering and paging for one read."""

    def __init__(
        self,
        driver: Driver[T],
        executor: Executor,
        *,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._driver = driver
        self._executor = executor
        self._specs: list[Spec] = []
        self._orders: list[OrderClause] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._page_size = default_page_size
        self._cursor: str | None = None
        self._forward = True

    # -- builder ------------------------------------------------------------

    def where(self, spec: Spec) -> Query[T]:
        self._specs.append(spec)
        return self

    def order_by(self, column: str, direction: Direction = Direction.ASC) -> Query[T]:
        self._orders.append(OrderClause(column, Direction(direction)))
        return self

    def limit(self, n: int) -> Query[T]:
        self._limit = n
        return self

    def offset(self, n: int) -> Query[T]:
        self._offset = n
        return self

    def page_size(self, n: int) -> Query[T]:
        if n < 1:
            raise ValueError(f"page_size must be positive, got {n}")
        self._page_size = n
        return self

    def after(self, cursor: str) -> Query[T]:
        """Page forward from *cursor* (a ``Page.next_cursor`` token)."""
        self._cursor = cursor
        self._forward = True
        return self

    def before(self, cursor: str) -> Query[T]:
        """Page backward from *cursor*."""
        self._cursor = cursor
        self._forward = False
        return self

    # -- terminals ----------------------------------------------------------

    async def all(self) -> list[T]:
        sql, args = self._select(self._orders, self._limit, self._offset)
        return await self._driver.find_many(self._executor, sql, args)

    async def first(self) -> T:
        """
        First matching aggregate.

        Raises:
            NotFoundError: Nothing matched.
        """
        sql, args = self._select(self._orders, 1, self._offset)
        items = await self._driver.find_many(self._executor, sql, args)
        if not items:
            raise NotFoundError(self._table.name)
        return items[0]

    async def count(self) -> int:
        condition, args = self._condition()
        row = await self._scalar(self._table.count_sql(condition), args)
        return int(row[0]) if row is not None else 0

    async def exists(self) -> bool:
        condition, args = self._condition()
        row = await self._scalar(self._table.exists_sql(condition), args)
        return bool(row[0]) if row is not None else False

    async def page(self, extractor: CursorExtractor[T]) -> Page[T]:
        """
        Fetch one keyset page.

        *extractor* returns the ordering-column values of an aggregate; it
        is applied to the row the next cursor continues from.
        """
        orders = self._orders_with_primary_key()
        keyset: Spec | None = None
        if self._cursor:
            cursor = decode_cursor(self._cursor)
            keyset = build_keyset_spec(orders, cursor.values, self._forward)

        fetch_orders = (
            orders
            if self._forward
            else [OrderClause(o.column, o.direction.reversed) for o in orders]
        )
        sql, args = self._select(fetch_orders, self._page_size + 1, None, keyset)
        items = await self._driver.find_many(self._executor, sql, args)

        has_more = len(items) > self._page_size
        if has_more:
            items = items[: self._page_size]

        next_cursor = None
        if has_more and items:
            next_cursor = encode_cursor(Cursor(values=dict(extractor(items[-1]))))

        if not self._forward:
            items.reverse()
        return Page(items=items, next_cursor=next_cursor, has_more=has_more)

    # -- SQL assembly -------------------------------------------------------

    @property
    def _table(self) -> Table:
        return self._driver.table

    def _combined(self, extra: Spec | None = None) -> Spec | None:
        specs = [*self._specs]
        if extra is not None:
            specs.append(extra)
        if not specs:
            spec = None
        elif len(specs) == 1:
            spec = specs[0]
        else:
            spec = and_(*specs)
        return self._table.with_soft_delete(spec)

    def _condition(self, extra: Spec | None = None) -> tuple[str | None, list[Any]]:
        spec = self._combined(extra)
        if spec is None:
            return None, []
        sql, args, _ = compile_spec(spec, self._driver.dialect, 1)
        return sql, args

    def _select(
        self,
        orders: Sequence[OrderClause],
        limit: int | None,
        offset: int | None,
        extra: Spec | None = None,
    ) -> tuple[str, list[Any]]:
        condition, args = self._condition(extra)
        sql = (
            self._table.select_where(condition)
            if condition
            else self._table.select_from()
        )
        if orders:
            sql += " ORDER BY " + ", ".join(o.to_sql() for o in orders)

        dialect = self._driver.dialect
        ph = dialect.placeholder
        if limit is not None:
            args.append(limit)
            sql += f" LIMIT {ph(len(args))}"
        elif offset is not None and (unbounded := dialect.unbounded_limit()):
            sql += f" LIMIT {unbounded}"
        if offset is not None:
            args.append(offset)
            sql += f" OFFSET {ph(len(args))}"
        return sql, args

    def _orders_with_primary_key(self) -> list[OrderClause]:
        orders = list(self._orders)
        ordered = {o.column for o in orders}
        orders.extend(
            OrderClause(pk) for pk in self._table.primary_key if pk not in ordered
        )
        return orders

    async def _scalar(self, sql: str, args: Sequence[Any]) -> Sequence[Any] | None:
        with statement_phase("select", self._table.name):
            return await self._executor.query_row(sql, args)
