"""Storage subpackage for the summary hierarchy.

Every repository implements the async ``SummaryRepository`` ABC.  The
SQLite repository guards its ``aiosqlite`` import so the rest of the
package imports without it.

Public surface
--------------
- SummaryRepository          — abstract base class
- InMemorySummaryRepository  — ephemeral dict-backed repository
- SQLiteSummaryRepository    — SQLite file (requires ``aiosqlite``)
- SummaryNotFoundError       — unknown summary id
- CollectionNotFoundError    — unknown collection id
"""
from __future__ import annotations

from summary_hierarchy.storage.base import (
    CollectionNotFoundError,
    SummaryNotFoundError,
    SummaryRepository,
)
from summary_hierarchy.storage.memory import InMemorySummaryRepository
from summary_hierarchy.storage.sqlite import SQLiteSummaryRepository

__all__ = [
    "CollectionNotFoundError",
    "InMemorySummaryRepository",
    "SQLiteSummaryRepository",
    "SummaryNotFoundError",
    "SummaryRepository",
]
