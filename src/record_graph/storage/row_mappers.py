"""Row -> model conversion for SQLite storage."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from record_graph.core.link import Link
from record_graph.core.record import Media, Record, RecordType
from record_graph.core.run import IntegrationRun, RunKind, RunStatus
from record_graph.utils.timeutils import parse_timestamp

if TYPE_CHECKING:
    import sqlite3


def row_to_run(row: sqlite3.Row) -> IntegrationRun:
    return IntegrationRun(
        id=row["id"],
        source_type=row["source_type"],
        run_kind=RunKind(row["run_kind"]),
        status=RunStatus(row["status"]),
        message=row["message"],
        started_at=parse_timestamp(row["started_at"]),  # type: ignore[arg-type]
        ended_at=parse_timestamp(row["ended_at"]),
        entries_created=row["entries_created"] or 0,
    )


def row_to_record(row: sqlite3.Row) -> Record:
    return Record(
        id=row["id"],
        type=RecordType(row["type"]),
        title=row["title"],
        url=row["url"],
        summary=row["summary"],
        content=row["content"],
        notes=row["notes"],
        rating=row["rating"],
        is_curated=bool(row["is_curated"]),
        is_private=bool(row["is_private"]),
        sources=tuple(json.loads(row["sources"] or "[]")),
        created_at=parse_timestamp(row["created_at"]),  # type: ignore[arg-type]
        updated_at=parse_timestamp(row["updated_at"]),  # type: ignore[arg-type]
        merged_into_id=row["merged_into_id"],
        deleted_at=parse_timestamp(row["deleted_at"]),
    )


def row_to_media(row: sqlite3.Row) -> Media:
    return Media(
        id=row["id"],
        url=row["url"],
        kind=row["kind"],
        alt_text=row["alt_text"],
        record_id=row["record_id"],
        created_at=parse_timestamp(row["created_at"]),  # type: ignore[arg-type]
        updated_at=parse_timestamp(row["updated_at"]),  # type: ignore[arg-type]
    )


def row_to_link(row: sqlite3.Row) -> Link:
    return Link(
        id=row["id"],
        source_id=row["source_id"],
        target_id=row["target_id"],
        predicate=row["predicate"],
        notes=row["notes"],
        created_at=parse_timestamp(row["created_at"]),  # type: ignore[arg-type]
        updated_at=parse_timestamp(row["updated_at"]),  # type: ignore[arg-type]
    )
