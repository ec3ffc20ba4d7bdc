"""Merge snapshot - everything needed to reverse one merge exactly."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from record_graph.core.link import Link
from record_graph.core.record import Record
from record_graph.utils.timeutils import parse_timestamp, to_db_timestamp, utcnow


@dataclass(frozen=True)
class MediaAssignment:
    """A media row that pointed at the merged-away record."""

    media_id: int
    record_id: int
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"media_id": self.media_id, "record_id": self.record_id, "updated_at": self.updated_at}


@dataclass(frozen=True)
class StagingAssignment:
    """A staging row that pointed at the merged-away record."""

    table: str
    row_id: int
    record_id: int
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "row_id": self.row_id,
            "record_id": self.record_id,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class MergeSnapshot:
    """
    Pre-merge state of both records.

    Attributes:
        source_record: The record that was merged away, as it was before
        target_record: The surviving record, as it was before
        links: Every link touching either record, with original IDs
        media: Media rows that pointed at the source record
        staging: Staging rows that pointed at the source record
        taken_at: When the snapshot was taken
    """

    source_record: Record
    target_record: Record
    links: tuple[Link, ...] = ()
    media: tuple[MediaAssignment, ...] = ()
    staging: tuple[StagingAssignment, ...] = ()
    taken_at: datetime = field(default_factory=utcnow)

    @property
    def source_id(self) -> int:
        return self.source_record.id

    @property
    def target_id(self) -> int:
        return self.target_record.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_record": self.source_record.to_dict(),
            "target_record": self.target_record.to_dict(),
            "links": [link.to_dict() for link in self.links],
            "media": [m.to_dict() for m in self.media],
            "staging": [s.to_dict() for s in self.staging],
            "taken_at": to_db_timestamp(self.taken_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MergeSnapshot:
        return cls(
            source_record=Record.from_dict(data["source_record"]),
            target_record=Record.from_dict(data["target_record"]),
            links=tuple(Link.from_dict(item) for item in data.get("links", [])),
            media=tuple(
                MediaAssignment(
                    media_id=int(item["media_id"]),
                    record_id=int(item["record_id"]),
                    updated_at=str(item["updated_at"]),
                )
                for item in data.get("media", [])
            ),
            staging=tuple(
                StagingAssignment(
                    table=str(item["table"]),
                    row_id=int(item["row_id"]),
                    record_id=int(item["record_id"]),
                    updated_at=str(item["updated_at"]),
                )
                for item in data.get("staging", [])
            ),
            taken_at=parse_timestamp(data.get("taken_at")) or utcnow(),
        )
