"""SQLite link and predicate operations mixin."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from record_graph.core.link import Link
from record_graph.storage.row_mappers import row_to_link
from record_graph.utils.timeutils import to_db_timestamp, utcnow

if TYPE_CHECKING:
    import aiosqlite


class SQLiteLinkMixin:
    """Mixin providing link persistence.

    Validation of predicates and endpoints happens in the link graph engine;
    these methods only read and write rows.
    """

    def _ensure_conn(self) -> aiosqlite.Connection: ...

    async def _commit(self) -> None: ...

    async def upsert_link_row(
        self,
        source_id: int,
        target_id: int,
        predicate: str,
        notes: str | None = None,
    ) -> Link:
        conn = self._ensure_conn()
        now = to_db_timestamp(utcnow())
        await conn.execute(
            """INSERT INTO links (source_id, target_id, predicate, notes, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(source_id, target_id, predicate)
               DO UPDATE SET notes = excluded.notes, updated_at = excluded.updated_at""",
            (source_id, target_id, predicate, notes, now, now),
        )
        await self._commit()

        async with conn.execute(
            "SELECT * FROM links WHERE source_id = ? AND target_id = ? AND predicate = ?",
            (source_id, target_id, predicate),
        ) as cursor:
            row = await cursor.fetchone()
            return row_to_link(row)

    async def get_link(self, link_id: int) -> Link | None:
        conn = self._ensure_conn()
        async with conn.execute("SELECT * FROM links WHERE id = ?", (link_id,)) as cursor:
            row = await cursor.fetchone()
            return row_to_link(row) if row else None

    async def delete_link_rows(self, link_ids: Sequence[int]) -> list[Link]:
        """Delete links by ID and return the rows that existed."""
        if not link_ids:
            return []
        conn = self._ensure_conn()
        placeholders = ",".join("?" for _ in link_ids)
        async with conn.execute(
            f"SELECT * FROM links WHERE id IN ({placeholders}) ORDER BY id", list(link_ids)
        ) as cursor:
            deleted = [row_to_link(row) for row in await cursor.fetchall()]

        await conn.execute(f"DELETE FROM links WHERE id IN ({placeholders})", list(link_ids))
        await self._commit()
        return deleted

    async def get_outgoing_links(self, record_id: int) -> list[Link]:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM links WHERE source_id = ? ORDER BY id", (record_id,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [row_to_link(row) for row in rows]

    async def get_incoming_links(self, record_id: int) -> list[Link]:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM links WHERE target_id = ? ORDER BY id", (record_id,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [row_to_link(row) for row in rows]

    async def get_links_touching(self, record_ids: Sequence[int]) -> list[Link]:
        """Every link with either endpoint in ``record_ids``, one query."""
        if not record_ids:
            return []
        conn = self._ensure_conn()
        placeholders = ",".join("?" for _ in record_ids)
        params: list[Any] = [*record_ids, *record_ids]
        async with conn.execute(
            f"""SELECT * FROM links
                WHERE source_id IN ({placeholders}) OR target_id IN ({placeholders})
                ORDER BY id""",
            params,
        ) as cursor:
            rows = await cursor.fetchall()
            return [row_to_link(row) for row in rows]

    async def list_predicate_rows(self) -> list[dict[str, Any]]:
        """Predicates as seeded into the database."""
        conn = self._ensure_conn()
        async with conn.execute("SELECT * FROM predicates ORDER BY type, slug") as cursor:
            rows = await cursor.fetchall()
            return [
                {
                    "slug": row["slug"],
                    "name": row["name"],
                    "type": row["type"],
                    "role": row["role"],
                    "inverse_slug": row["inverse_slug"],
                    "canonical": bool(row["canonical"]),
                }
                for row in rows
            ]
