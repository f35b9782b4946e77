from __future__ import annotations

from .drivers import CompositeDriver, Driver, SimpleDriver
from .executor import (
    BufferedRows,
    SQLAlchemyDatabase,
    SQLAlchemyExecutor,
    SQLAlchemyTransaction,
    WriteResult,
)
from .mapping import CompositeMapping, Mapping, SimpleMapping
from .query import DEFAULT_PAGE_SIZE, CursorExtractor, Query
from .repository import SQLRepository

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "BufferedRows",
    "CompositeDriver",
    "CompositeMapping",
    "CursorExtractor",
    "Driver",
    "Mapping",
    "Query",
    "SQLAlchemyDatabase",
    "SQLAlchemyExecutor",
    "SQLAlchemyTransaction",
    "SQLRepository",
    "SimpleDriver",
    "SimpleMapping",
    "WriteResult",
]
