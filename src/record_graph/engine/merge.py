"""Record merge engine.

Merging folds a duplicate record (the source) into the record that survives
(the target): fields are coalesced toward the target, media, staging rows and
links are re-pointed, and the source is soft-deleted with a tombstone that
points at the target. A snapshot of the pre-merge state is returned and
journaled, and ``undo_merge`` replays it to restore both records exactly.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from record_graph.core.record import Record
from record_graph.core.snapshot import MediaAssignment, MergeSnapshot
from record_graph.errors import MergeUndoError, RecordNotFoundError, SameRecordError
from record_graph.utils.timeutils import to_db_timestamp, utcnow

if TYPE_CHECKING:
    from record_graph.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

TEXT_SEPARATOR = "\n---\n"


@dataclass(frozen=True)
class MergeResult:
    """Outcome of a merge.

    Attributes:
        updated_record: The target record after the merge
        deleted_record_id: The source record, now soft-deleted
        touched_ids: Every record whose links changed, including both parties
        snapshot: Pre-merge state, sufficient for ``undo_merge``
        merge_id: Journal entry of this merge
    """

    updated_record: Record
    deleted_record_id: int
    touched_ids: tuple[int, ...]
    snapshot: MergeSnapshot
    merge_id: int


def _present(value: object) -> bool:
    return value is not None and value != ""


def merge_text_fields(source_text: str | None, target_text: str | None) -> str | None:
    """Concatenate long-form text, target first, when both sides have some."""
    if _present(source_text) and _present(target_text):
        return f"{target_text}{TEXT_SEPARATOR}{source_text}"
    if _present(target_text):
        return target_text
    if _present(source_text):
        return source_text
    return None


def merge_record_fields(source: Record, target: Record, now: datetime | None = None) -> Record:
    """Field-level merge of ``source`` into ``target``.

    Scalar fields keep the target's value unless it is null or empty.
    Long-form text is concatenated, sources are unioned (source first),
    the higher rating wins and the privacy and curation flags are OR-ed.
    """
    return target.with_updates(
        title=target.title if _present(target.title) else source.title,
        url=target.url if _present(target.url) else source.url,
        summary=merge_text_fields(source.summary, target.summary),
        content=merge_text_fields(source.content, target.content),
        notes=merge_text_fields(source.notes, target.notes),
        sources=tuple(dict.fromkeys((*source.sources, *target.sources))),
        rating=max(source.rating, target.rating),
        is_private=source.is_private or target.is_private,
        is_curated=source.is_curated or target.is_curated,
        updated_at=now or utcnow(),
        merged_into_id=None,
        deleted_at=None,
    )


class MergeEngine:
    """Merges duplicate records and reverses merges from snapshots."""

    def __init__(self, store: SQLiteStore) -> None:
        self._store = store

    async def merge(self, source_id: int, target_id: int) -> MergeResult:
        """Merge ``source_id`` into ``target_id``.

        Raises:
            SameRecordError: If both IDs are equal. Nothing is read or written.
            RecordNotFoundError: If either record is missing or already merged.
        """
        if source_id == target_id:
            raise SameRecordError(source_id)

        records = await self._store.get_records([source_id, target_id])
        source = self._require_active(records, source_id)
        target = self._require_active(records, target_id)

        snapshot = MergeSnapshot(
            source_record=source,
            target_record=target,
            links=tuple(await self._store.get_links_touching([source_id, target_id])),
            media=tuple(
                MediaAssignment(
                    media_id=media.id,
                    record_id=source_id,
                    updated_at=to_db_timestamp(media.updated_at) or "",
                )
                for media in await self._store.get_media_for_record(source_id)
            ),
            staging=tuple(await self._store.get_staging_assignments(source_id)),
        )

        now = utcnow()
        merged = merge_record_fields(source, target, now)
        merge_id = await self._store.apply_merge(merged, snapshot, now)

        touched = {source_id, target_id}
        for link in snapshot.links:
            touched.update((link.source_id, link.target_id))

        updated = await self._store.get_record(target_id)
        if updated is None:
            raise RecordNotFoundError(target_id, "vanished during merge")

        logger.info(
            "Merged record %d into %d (%d links, %d media, %d staged rows)",
            source_id,
            target_id,
            len(snapshot.links),
            len(snapshot.media),
            len(snapshot.staging),
        )
        return MergeResult(
            updated_record=updated,
            deleted_record_id=source_id,
            touched_ids=tuple(sorted(touched)),
            snapshot=snapshot,
            merge_id=merge_id,
        )

    async def undo_merge(self, snapshot: MergeSnapshot) -> tuple[Record, Record]:
        """Restore the pre-merge graph captured in ``snapshot``.

        Returns:
            ``(source_record, target_record)`` as restored.

        Raises:
            MergeUndoError: If the source is no longer merged into the target.
        """
        source_id, target_id = snapshot.source_id, snapshot.target_id
        records = await self._store.get_records([source_id, target_id])
        source = records.get(source_id)
        target = records.get(target_id)

        if source is None or source.merged_into_id != target_id or source.is_active:
            raise MergeUndoError(f"Record {source_id} is not currently merged into {target_id}")
        if target is None or not target.is_active:
            raise MergeUndoError(f"Merge target {target_id} is no longer active")

        try:
            await self._store.restore_merge(snapshot, utcnow())
        except sqlite3.IntegrityError as e:
            raise MergeUndoError(f"Cannot restore merge of {source_id} into {target_id}: {e}") from e

        restored = await self._store.get_records([source_id, target_id])
        logger.info("Undid merge of record %d into %d", source_id, target_id)
        return restored[source_id], restored[target_id]

    async def undo_latest(self, source_id: int) -> tuple[Record, Record]:
        """Undo the most recent merge that removed ``source_id``."""
        snapshot = await self._store.get_latest_merge(source_id)
        if snapshot is None:
            raise MergeUndoError(f"No merge to undo for record {source_id}")
        return await self.undo_merge(snapshot)

    @staticmethod
    def _require_active(records: dict[int, Record], record_id: int) -> Record:
        record = records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        if not record.is_active:
            raise RecordNotFoundError(record_id, f"was already merged into {record.merged_into_id}")
        return record
