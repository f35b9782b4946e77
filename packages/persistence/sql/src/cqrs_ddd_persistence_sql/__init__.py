"""Hand-written SQL persistence for DDD aggregates."""

from __future__ import annotations

from .core.drivers import CompositeDriver, Driver, SimpleDriver
from .core.executor import (
    BufferedRows,
    SQLAlchemyDatabase,
    SQLAlchemyExecutor,
    SQLAlchemyTransaction,
)
from .core.mapping import CompositeMapping, Mapping, SimpleMapping
from .core.query import CursorExtractor, Query
from .core.repository import SQLRepository
from .dialects import (
    Dialect,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
    UpsertOptions,
    get_dialect,
)
from .exceptions import (
    ConfigurationError,
    InvalidCursorError,
    NoRowsError,
    NotFoundError,
    OptimisticConcurrencyError,
    SQLPersistenceError,
    StatementError,
)
from .pagination import (
    Cursor,
    Direction,
    OrderClause,
    Page,
    build_keyset_spec,
    decode_cursor,
    encode_cursor,
)
from .ports import (
    ExecResult,
    Executor,
    Row,
    RowSet,
    Transaction,
    TxBeginner,
    run_in_transaction,
)
from .schema import CompositeValues, Relation, SaveStrategy, Table
from .specifications import (
    CompiledSQL,
    Spec,
    and_,
    between,
    compile_spec,
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

__all__ = [
    # Repository
    "SQLRepository",
    "Query",
    "CursorExtractor",
    "SimpleMapping",
    "CompositeMapping",
    "Mapping",
    "Driver",
    "SimpleDriver",
    "CompositeDriver",
    # Schema
    "Table",
    "Relation",
    "SaveStrategy",
    "CompositeValues",
    # Dialects
    "Dialect",
    "PostgresDialect",
    "MySQLDialect",
    "SQLiteDialect",
    "UpsertOptions",
    "get_dialect",
    # Specifications
    "Spec",
    "CompiledSQL",
    "compile_spec",
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
    # Pagination
    "Cursor",
    "Direction",
    "OrderClause",
    "Page",
    "encode_cursor",
    "decode_cursor",
    "build_keyset_spec",
    # Ports
    "Row",
    "RowSet",
    "ExecResult",
    "Executor",
    "Transaction",
    "TxBeginner",
    "run_in_transaction",
    # SQLAlchemy adapters
    "SQLAlchemyDatabase",
    "SQLAlchemyExecutor",
    "SQLAlchemyTransaction",
    "BufferedRows",
    # Exceptions
    "SQLPersistenceError",
    "NotFoundError",
    "NoRowsError",
    "OptimisticConcurrencyError",
    "InvalidCursorError",
    "ConfigurationError",
    "StatementError",
]
