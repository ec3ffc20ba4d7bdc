"""SQLite storage for the record graph.

One ``SQLiteStore`` owns one aiosqlite connection and is passed explicitly to
every component that needs the database.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from record_graph.core.predicate import PREDICATES
from record_graph.storage.schema import SCHEMA, SCHEMA_VERSION
from record_graph.storage.sqlite_links import SQLiteLinkMixin
from record_graph.storage.sqlite_merges import SQLiteMergeMixin
from record_graph.storage.sqlite_records import SQLiteRecordMixin
from record_graph.storage.sqlite_runs import SQLiteRunMixin
from record_graph.storage.sqlite_staging import SQLiteStagingMixin

logger = logging.getLogger(__name__)


class SQLiteStore(
    SQLiteRunMixin,
    SQLiteRecordMixin,
    SQLiteLinkMixin,
    SQLiteStagingMixin,
    SQLiteMergeMixin,
):
    """aiosqlite-backed store composed from per-table mixins."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._in_transaction = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Open the connection, create the schema and seed the predicate vocabulary."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.execute("PRAGMA journal_mode = WAL")
        await self._conn.executescript(SCHEMA)
        await self._conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )
        await self._conn.executemany(
            """INSERT OR IGNORE INTO predicates
               (slug, name, type, role, inverse_slug, canonical)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (p.slug, p.name, p.type.value, p.role, p.inverse_slug, int(p.canonical))
                for p in PREDICATES.values()
            ],
        )
        await self._conn.commit()
        logger.debug("Initialized store at %s (schema v%d)", self._db_path, SCHEMA_VERSION)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Store not initialized. Call initialize() first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Commit on success, roll back on any exception.

        A block opened inside another joins the outer one, and the single
        store methods called inside it leave the commit to the outermost block.
        """
        conn = self._ensure_conn()
        if self._in_transaction:
            yield conn
            return
        self._in_transaction = True
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        else:
            await conn.commit()
        finally:
            self._in_transaction = False

    async def _commit(self) -> None:
        if not self._in_transaction:
            await self._ensure_conn().commit()

    async def get_schema_version(self) -> int | None:
        conn = self._ensure_conn()
        async with conn.execute("SELECT MAX(version) AS v FROM schema_version") as cursor:
            row = await cursor.fetchone()
            return row["v"] if row else None


@asynccontextmanager
async def open_store(db_path: str | Path) -> AsyncIterator[SQLiteStore]:
    """Open an initialized store and close it on exit."""
    store = SQLiteStore(db_path)
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()
