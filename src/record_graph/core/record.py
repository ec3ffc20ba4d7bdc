"""Record and media data structures - the nodes of the graph."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from record_graph.utils.timeutils import parse_timestamp, to_db_timestamp, utcnow


class RecordType(StrEnum):
    """Kinds of records produced by adapters or manual curation."""

    ENTITY = "entity"  # People, organizations, accounts
    CONCEPT = "concept"  # Topics, tags
    ARTIFACT = "artifact"  # Documents, articles, repositories, bookmarks


@dataclass(frozen=True)
class Record:
    """
    A node in the record graph.

    Records are referenced by integer ID everywhere; traversal is always an
    ID lookup against the store.

    Attributes:
        id: Auto-increment ID
        type: Record category
        title: Display title
        url: Canonical URL, if any
        summary: Short description
        content: Long-form text
        notes: Curator notes
        rating: Curator rating (higher is better)
        is_curated: Whether a human has reviewed this record
        is_private: Hidden from public listings
        sources: Integrations that contributed to this record
        created_at: When the record was created
        updated_at: Last modification time
        merged_into_id: Surviving record, set when merged away
        deleted_at: Soft-delete timestamp, set together with merged_into_id
    """

    id: int
    type: RecordType = RecordType.ARTIFACT
    title: str | None = None
    url: str | None = None
    summary: str | None = None
    content: str | None = None
    notes: str | None = None
    rating: int = 0
    is_curated: bool = False
    is_private: bool = False
    sources: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    merged_into_id: int | None = None
    deleted_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def with_updates(self, **kwargs: Any) -> Record:
        return replace(self, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "url": self.url,
            "summary": self.summary,
            "content": self.content,
            "notes": self.notes,
            "rating": self.rating,
            "is_curated": self.is_curated,
            "is_private": self.is_private,
            "sources": list(self.sources),
            "created_at": to_db_timestamp(self.created_at),
            "updated_at": to_db_timestamp(self.updated_at),
            "merged_into_id": self.merged_into_id,
            "deleted_at": to_db_timestamp(self.deleted_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        return cls(
            id=int(data["id"]),
            type=RecordType(data.get("type", RecordType.ARTIFACT)),
            title=data.get("title"),
            url=data.get("url"),
            summary=data.get("summary"),
            content=data.get("content"),
            notes=data.get("notes"),
            rating=int(data.get("rating", 0)),
            is_curated=bool(data.get("is_curated", False)),
            is_private=bool(data.get("is_private", False)),
            sources=tuple(data.get("sources") or ()),
            created_at=parse_timestamp(data.get("created_at")) or utcnow(),
            updated_at=parse_timestamp(data.get("updated_at")) or utcnow(),
            merged_into_id=data.get("merged_into_id"),
            deleted_at=parse_timestamp(data.get("deleted_at")),
        )


@dataclass(frozen=True)
class Media:
    """
    A binary or URL attachment, optionally owned by a record.

    Attributes:
        id: Auto-increment ID
        url: Location of the asset (unique)
        kind: Asset kind, e.g. "image"
        alt_text: Accessibility description
        record_id: Owning record, if any
        created_at: When the media row was created
        updated_at: Last modification time
    """

    id: int
    url: str
    kind: str = "image"
    alt_text: str | None = None
    record_id: int | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "kind": self.kind,
            "alt_text": self.alt_text,
            "record_id": self.record_id,
            "created_at": to_db_timestamp(self.created_at),
            "updated_at": to_db_timestamp(self.updated_at),
        }
