"""Link data structures - typed, directed edges between records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from record_graph.utils.timeutils import parse_timestamp, to_db_timestamp, utcnow


class Direction(StrEnum):
    """Which side of a stored link a record sits on."""

    OUTGOING = "outgoing"  # record is link.source_id
    INCOMING = "incoming"  # record is link.target_id


@dataclass(frozen=True)
class Link:
    """
    A stored edge. ``predicate`` is always a canonical slug.

    Attributes:
        id: Auto-increment ID
        source_id: Record the edge starts from
        target_id: Record the edge points to
        predicate: Canonical predicate slug
        notes: Optional free text
        created_at: When the link was created
        updated_at: Last modification time
    """

    id: int
    source_id: int
    target_id: int
    predicate: str
    notes: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "predicate": self.predicate,
            "notes": self.notes,
            "created_at": to_db_timestamp(self.created_at),
            "updated_at": to_db_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Link:
        return cls(
            id=int(data["id"]),
            source_id=int(data["source_id"]),
            target_id=int(data["target_id"]),
            predicate=str(data["predicate"]),
            notes=data.get("notes"),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            updated_at=parse_timestamp(data.get("updated_at")) or utcnow(),
        )


@dataclass(frozen=True)
class LinkView:
    """A link seen from one of its endpoints, labeled for display.

    Incoming links carry the inverse predicate's name, since the inverse
    direction is never stored.
    """

    link: Link
    direction: Direction
    record_id: int
    other_id: int
    label: str
    label_slug: str
