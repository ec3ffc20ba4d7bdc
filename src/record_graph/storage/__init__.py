"""Storage backend for record-graph."""

from record_graph.storage.sqlite_staging import ConflictPolicy
from record_graph.storage.sqlite_store import SQLiteStore, open_store

__all__ = [
    "ConflictPolicy",
    "SQLiteStore",
    "open_store",
]
