"""SQLite merge and undo operations mixin."""

from __future__ import annotations

import json
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import TYPE_CHECKING

from record_graph.core.record import Record
from record_graph.core.snapshot import MergeSnapshot
from record_graph.storage.schema import RECORD_STAGING_TABLES
from record_graph.storage.sqlite_records import write_record_row
from record_graph.utils.timeutils import to_db_timestamp

if TYPE_CHECKING:
    import aiosqlite


class SQLiteMergeMixin:
    """Mixin applying and reversing record merges.

    Both operations run in a single transaction. Precondition checks belong
    to the merge engine.
    """

    def _ensure_conn(self) -> aiosqlite.Connection: ...

    def transaction(self) -> AbstractAsyncContextManager[aiosqlite.Connection]: ...

    async def apply_merge(
        self,
        merged_target: Record,
        snapshot: MergeSnapshot,
        merged_at: datetime,
    ) -> int:
        """Fold the snapshot's source record into ``merged_target``.

        Returns the ID of the merge journal entry.
        """
        source_id = snapshot.source_id
        target_id = merged_target.id
        now = to_db_timestamp(merged_at)

        async with self.transaction() as conn:
            await write_record_row(conn, merged_target)

            await conn.execute(
                "UPDATE media SET record_id = ?, updated_at = ? WHERE record_id = ?",
                (target_id, now, source_id),
            )
            for table in RECORD_STAGING_TABLES:
                await conn.execute(
                    f"UPDATE {table} SET record_id = ?, updated_at = ? WHERE record_id = ?",
                    (target_id, now, source_id),
                )

            # Edges between the two records would become self links
            await conn.execute(
                """DELETE FROM links
                   WHERE (source_id = ? AND target_id = ?) OR (source_id = ? AND target_id = ?)""",
                (source_id, target_id, target_id, source_id),
            )
            await conn.execute(
                "UPDATE OR IGNORE links SET source_id = ?, updated_at = ? WHERE source_id = ?",
                (target_id, now, source_id),
            )
            await conn.execute(
                "UPDATE OR IGNORE links SET target_id = ?, updated_at = ? WHERE target_id = ?",
                (target_id, now, source_id),
            )
            # Whatever is left duplicated an edge the target already had
            await conn.execute(
                "DELETE FROM links WHERE source_id = ? OR target_id = ?",
                (source_id, source_id),
            )

            await conn.execute(
                """UPDATE records SET merged_into_id = ?, deleted_at = ?, updated_at = ?
                   WHERE id = ?""",
                (target_id, now, now, source_id),
            )
            cursor = await conn.execute(
                """INSERT INTO merges (source_id, target_id, snapshot, created_at)
                   VALUES (?, ?, ?, ?)""",
                (source_id, target_id, json.dumps(snapshot.to_dict()), now),
            )
            merge_id = cursor.lastrowid

        if merge_id is None:
            raise RuntimeError("Failed to record merge")
        return merge_id

    async def restore_merge(self, snapshot: MergeSnapshot, restored_at: datetime) -> None:
        """Put both records, their assignments and their links back as captured."""
        source_id = snapshot.source_id
        target_id = snapshot.target_id

        async with self.transaction() as conn:
            await write_record_row(conn, snapshot.source_record)
            await write_record_row(conn, snapshot.target_record)

            for media in snapshot.media:
                await conn.execute(
                    "UPDATE media SET record_id = ?, updated_at = ? WHERE id = ?",
                    (media.record_id, media.updated_at, media.media_id),
                )
            for staged in snapshot.staging:
                if staged.table not in RECORD_STAGING_TABLES:
                    raise ValueError(f"Unknown staging table in snapshot: {staged.table!r}")
                await conn.execute(
                    f"UPDATE {staged.table} SET record_id = ?, updated_at = ? WHERE id = ?",
                    (staged.record_id, staged.updated_at, staged.row_id),
                )

            await conn.execute(
                """DELETE FROM links
                   WHERE source_id IN (?, ?) OR target_id IN (?, ?)""",
                (source_id, target_id, source_id, target_id),
            )
            await conn.executemany(
                """INSERT INTO links
                   (id, source_id, target_id, predicate, notes, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        link.id,
                        link.source_id,
                        link.target_id,
                        link.predicate,
                        link.notes,
                        to_db_timestamp(link.created_at),
                        to_db_timestamp(link.updated_at),
                    )
                    for link in snapshot.links
                ],
            )

            await conn.execute(
                """UPDATE merges SET undone_at = ?
                   WHERE source_id = ? AND target_id = ? AND undone_at IS NULL""",
                (to_db_timestamp(restored_at), source_id, target_id),
            )

    async def get_latest_merge(self, source_id: int) -> MergeSnapshot | None:
        """Snapshot of the most recent merge of ``source_id`` that was not undone."""
        conn = self._ensure_conn()
        async with conn.execute(
            """SELECT snapshot FROM merges
               WHERE source_id = ? AND undone_at IS NULL
               ORDER BY id DESC LIMIT 1""",
            (source_id,),
        ) as cursor:
            row = await cursor.fetchone()
            return MergeSnapshot.from_dict(json.loads(row["snapshot"])) if row else None
