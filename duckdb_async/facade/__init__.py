"""
Async facade over the callback-style engine.

Public API:

    from duckdb_async import Database

    db = await Database.create(":memory:")
    rows = await db.all("SELECT 42 AS answer")

    async with await db.connect() as conn:
        stmt = await conn.prepare("SELECT ?::INTEGER AS n")
        print(await stmt.all(7))
        await stmt.finalize()

    await db.close()
"""

from .database import Database, create_database
from .connection import Connection
from .statement import Statement
from .base import HandleBase, QueryInterface
from .types import (
    HandleState,
    NativeCallback,
    RowData,
    TableData,
    ArrowArray,
)

__all__ = [
    # Main entry points
    "Database",
    "create_database",
    "Connection",
    "Statement",

    # Extension points
    "HandleBase",
    "QueryInterface",

    # Typing helpers
    "HandleState",
    "NativeCallback",
    "RowData",
    "TableData",
    "ArrowArray",
]
