"""SQLite record and media operations mixin."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from record_graph.core.record import Media, Record, RecordType
from record_graph.storage.row_mappers import row_to_media, row_to_record
from record_graph.utils.timeutils import to_db_timestamp, utcnow

if TYPE_CHECKING:
    import aiosqlite

_RECORD_COLUMNS = (
    "type",
    "title",
    "url",
    "summary",
    "content",
    "notes",
    "rating",
    "is_curated",
    "is_private",
    "sources",
    "created_at",
    "updated_at",
    "merged_into_id",
    "deleted_at",
)


def record_values(record: Record) -> tuple[Any, ...]:
    """Column values for a record, in ``_RECORD_COLUMNS`` order."""
    return (
        record.type.value,
        record.title,
        record.url,
        record.summary,
        record.content,
        record.notes,
        record.rating,
        int(record.is_curated),
        int(record.is_private),
        json.dumps(list(record.sources)),
        to_db_timestamp(record.created_at),
        to_db_timestamp(record.updated_at),
        record.merged_into_id,
        to_db_timestamp(record.deleted_at),
    )


async def write_record_row(conn: aiosqlite.Connection, record: Record) -> int:
    """Overwrite every column of an existing record. Does not commit."""
    assignments = ", ".join(f"{col} = ?" for col in _RECORD_COLUMNS)
    cursor = await conn.execute(
        f"UPDATE records SET {assignments} WHERE id = ?",
        (*record_values(record), record.id),
    )
    return cursor.rowcount


class SQLiteRecordMixin:
    """Mixin providing record and media CRUD operations."""

    def _ensure_conn(self) -> aiosqlite.Connection: ...

    async def _commit(self) -> None: ...

    # ========== Record Operations ==========

    async def add_record(
        self,
        type: RecordType = RecordType.ARTIFACT,
        title: str | None = None,
        url: str | None = None,
        summary: str | None = None,
        content: str | None = None,
        notes: str | None = None,
        rating: int = 0,
        is_curated: bool = False,
        is_private: bool = False,
        sources: Sequence[str] = (),
    ) -> Record:
        conn = self._ensure_conn()
        now = utcnow()
        draft = Record(
            id=0,
            type=type,
            title=title,
            url=url,
            summary=summary,
            content=content,
            notes=notes,
            rating=rating,
            is_curated=is_curated,
            is_private=is_private,
            sources=tuple(dict.fromkeys(sources)),
            created_at=now,
            updated_at=now,
        )
        cursor = await conn.execute(
            f"""INSERT INTO records ({", ".join(_RECORD_COLUMNS)})
                VALUES ({", ".join("?" for _ in _RECORD_COLUMNS)})""",
            record_values(draft),
        )
        await self._commit()
        return draft.with_updates(id=cursor.lastrowid)

    async def get_record(self, record_id: int) -> Record | None:
        """Get a record by ID, including records that were merged away."""
        conn = self._ensure_conn()
        async with conn.execute("SELECT * FROM records WHERE id = ?", (record_id,)) as cursor:
            row = await cursor.fetchone()
            return row_to_record(row) if row else None

    async def get_records(self, record_ids: Sequence[int]) -> dict[int, Record]:
        if not record_ids:
            return {}
        conn = self._ensure_conn()
        placeholders = ",".join("?" for _ in record_ids)
        async with conn.execute(
            f"SELECT * FROM records WHERE id IN ({placeholders})", list(record_ids)
        ) as cursor:
            rows = await cursor.fetchall()
            return {row["id"]: row_to_record(row) for row in rows}

    async def list_records(
        self,
        type: RecordType | None = None,
        title_contains: str | None = None,
        include_private: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Record]:
        """List active records. Merged (soft-deleted) records are never returned."""
        conn = self._ensure_conn()
        query = "SELECT * FROM records WHERE deleted_at IS NULL"
        params: list[Any] = []

        if type is not None:
            query += " AND type = ?"
            params.append(type.value)

        if title_contains is not None:
            query += " AND title LIKE ?"
            params.append(f"%{title_contains}%")

        if not include_private:
            query += " AND is_private = 0"

        query += " ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([min(limit, 1000), offset])

        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [row_to_record(row) for row in rows]

    async def find_record(
        self,
        type: RecordType,
        title: str | None = None,
        url: str | None = None,
    ) -> Record | None:
        """Oldest active record of ``type`` matching the given title and/or URL."""
        if title is None and url is None:
            raise ValueError("find_record needs a title or a url")
        conn = self._ensure_conn()
        query = "SELECT * FROM records WHERE deleted_at IS NULL AND type = ?"
        params: list[Any] = [type.value]
        if title is not None:
            query += " AND title = ?"
            params.append(title)
        if url is not None:
            query += " AND url = ?"
            params.append(url)
        query += " ORDER BY id LIMIT 1"

        async with conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
            return row_to_record(row) if row else None

    async def update_record(self, record: Record) -> None:
        conn = self._ensure_conn()
        if await write_record_row(conn, record) == 0:
            raise ValueError(f"Record {record.id} does not exist")
        await self._commit()

    async def delete_record(self, record_id: int) -> bool:
        """Hard-delete a record. Links cascade; media are detached."""
        conn = self._ensure_conn()
        cursor = await conn.execute("DELETE FROM records WHERE id = ?", (record_id,))
        await self._commit()
        return cursor.rowcount > 0

    async def count_records(self, include_merged: bool = False) -> int:
        conn = self._ensure_conn()
        query = "SELECT COUNT(*) AS n FROM records"
        if not include_merged:
            query += " WHERE deleted_at IS NULL"
        async with conn.execute(query) as cursor:
            row = await cursor.fetchone()
            return row["n"] if row else 0

    # ========== Media Operations ==========

    async def add_media(
        self,
        url: str,
        kind: str = "image",
        record_id: int | None = None,
        alt_text: str | None = None,
    ) -> Media:
        """Insert a media row, or return the existing row for the same URL."""
        conn = self._ensure_conn()
        now = to_db_timestamp(utcnow())
        await conn.execute(
            """INSERT INTO media (url, kind, alt_text, record_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(url) DO NOTHING""",
            (url, kind, alt_text, record_id, now, now),
        )
        await self._commit()
        async with conn.execute("SELECT * FROM media WHERE url = ?", (url,)) as cursor:
            row = await cursor.fetchone()
            return row_to_media(row)

    async def get_media(self, media_id: int) -> Media | None:
        conn = self._ensure_conn()
        async with conn.execute("SELECT * FROM media WHERE id = ?", (media_id,)) as cursor:
            row = await cursor.fetchone()
            return row_to_media(row) if row else None

    async def get_media_for_record(self, record_id: int) -> list[Media]:
        conn = self._ensure_conn()
        async with conn.execute(
            "SELECT * FROM media WHERE record_id = ? ORDER BY id", (record_id,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [row_to_media(row) for row in rows]
