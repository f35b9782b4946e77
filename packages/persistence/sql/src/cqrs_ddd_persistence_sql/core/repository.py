from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..exceptions import ConfigurationError, NoRowsError, NotFoundError
from ..ports import TxBeginner
from .drivers import statement_phase
from .query import DEFAULT_PAGE_SIZE, Query

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..dialects import Dialect
    from ..ports import Executor
    from ..schema import Table
    from ..specifications import Spec
    from .drivers import Driver
    from .mapping import Mapping

T = TypeVar("T")


class SQLRepository(Generic[T]):
    """
    Repository over hand-written SQL for one aggregate type.

    The ``database`` is used for every statement. When it can also open
    transactions (a :class:`~cqrs_ddd_persistence_sql.ports.TxBeginner`, such
    as :class:`SQLAlchemyDatabase`), composite saves and deletes run in one;
    otherwise their statements run one by one and a failure part way
    leaves earlier statements applied.

    Supports two transaction patterns:

    1. **Repository-managed**:
       ``await repo.save(order)``

    2. **Caller-managed** (the caller commits):
       ``await repo.save_tx(SQLAlchemyExecutor(conn), order)``
    """

    def __init__(
        self,
        database: Executor,
        mapping: Mapping[T],
        dialect: Dialect | None = None,
        *,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if dialect is None:
            dialect = getattr(database, "dialect", None)
        if dialect is None:
            raise ConfigurationError(
                "No dialect given and none can be derived from the database"
            )
        if default_page_size < 1:
            raise ConfigurationError(
                f"default_page_size must be positive, got {default_page_size}"
            )
        self._database = database
        self._dialect = dialect
        self._driver: Driver[T] = mapping.configure(dialect)
        self._default_page_size = default_page_size

    @property
    def table(self) -> Table:
        return self._driver.table

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    def _tx_beginner(self) -> TxBeginner | None:
        if isinstance(self._database, TxBeginner):
            return self._database
        return None

    def _where(self, spec: Spec | None) -> tuple[str | None, list[Any]]:
        guarded = self.table.with_soft_delete(spec)
        if guarded is None:
            return None, []
        sql, args, _ = guarded.to_sql(self._dialect)
        return sql, args

    # -- reads --------------------------------------------------------------

    async def find(self, *ids: Any) -> T:
        """
        Load the aggregate with primary key *ids* (one value per key column).

        Raises:
            NotFoundError: No (live) row has that key.
        """
        spec = self.table.primary_key_spec(ids)
        condition, args, _ = (self.table.with_soft_delete(spec) or spec).to_sql(
            self._dialect
        )
        try:
            return await self._driver.find_one(
                self._database, self.table.select_where(condition), args
            )
        except NoRowsError as exc:
            raise NotFoundError(self.table.name, ids) from exc

    async def find_by(self, spec: Spec | None = None) -> list[T]:
        condition, args = self._where(spec)
        sql = (
            self.table.select_where(condition)
            if condition
            else self.table.select_from()
        )
        return await self._driver.find_many(self._database, sql, args)

    async def exists_by(self, spec: Spec | None = None) -> bool:
        condition, args = self._where(spec)
        row = await self._scalar(self.table.exists_sql(condition), args)
        return bool(row[0]) if row is not None else False

    async def count_by(self, spec: Spec | None = None) -> int:
        condition, args = self._where(spec)
        row = await self._scalar(self.table.count_sql(condition), args)
        return int(row[0]) if row is not None else 0

    def query(self) -> Query[T]:
        return Query(
            self._driver,
            self._database,
            default_page_size=self._default_page_size,
        )

    async def _scalar(self, sql: str, args: Sequence[Any]) -> Sequence[Any] | None:
        with statement_phase("select", self.table.name):
            return await self._database.query_row(sql, args)

    # -- writes -------------------------------------------------------------

    async def save(self, aggregate: T) -> None:
        await self._driver.save(self._tx_beginner(), self._database, aggregate)

    async def save_tx(self, tx: Executor, aggregate: T) -> None:
        """Save inside the caller's open transaction; nothing is committed."""
        await self._driver.save(None, tx, aggregate)

    async def delete(self, *ids: Any) -> None:
        self._check_ids(ids)
        await self._driver.delete(self._tx_beginner(), self._database, ids)

    async def delete_tx(self, tx: Executor, *ids: Any) -> None:
        self._check_ids(ids)
        await self._driver.delete(None, tx, ids)

    def _check_ids(self, ids: Sequence[Any]) -> None:
        expected = len(self.table.primary_key)
        if len(ids) != expected:
            raise ConfigurationError(
                f"Table {self.table.name!r} has a {expected}-column primary key "
                f"{list(self.table.primary_key)}, got {len(ids)} value(s)"
            )
