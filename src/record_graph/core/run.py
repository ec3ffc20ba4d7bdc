"""Integration run data structures - one row per sync attempt."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class RunKind(StrEnum):
    """How much of a source a run covers."""

    FULL = "full"  # Backfill, no cursor
    INCREMENTAL = "incremental"  # Resume from the last known marker


class RunStatus(StrEnum):
    """Lifecycle of an integration run. Terminal states are set exactly once."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAIL = "fail"


@dataclass(frozen=True)
class IntegrationRun:
    """
    Audit record for one sync attempt of one source.

    Attributes:
        id: Auto-increment run ID, referenced by staged rows
        source_type: Source that was synced (see SourceType)
        run_kind: Full backfill or incremental
        status: in_progress until finalized by complete() or fail()
        message: Error message for failed runs
        started_at: When the run began
        ended_at: When the run was finalized
        entries_created: Count returned by the adapter on success
    """

    id: int
    source_type: str
    run_kind: RunKind
    status: RunStatus
    started_at: datetime
    message: str | None = None
    ended_at: datetime | None = None
    entries_created: int = 0

    @property
    def duration_seconds(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "source_type": self.source_type,
            "run_kind": self.run_kind.value,
            "status": self.status.value,
            "message": self.message,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "entries_created": self.entries_created,
        }
