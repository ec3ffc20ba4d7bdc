"""Registry of sources: one ``SourceSpec`` per ``SourceType`` member."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from record_graph.integration import browser_history, github_stars, raindrop
from record_graph.integration.adapter import SourceAdapter
from record_graph.integration.models import SourceType, SyncContext
from record_graph.storage.sqlite_staging import ConflictPolicy


@dataclass(frozen=True)
class SourceSpec:
    """
    Everything the orchestrator needs to know about a source.

    Attributes:
        source_type: Which source this describes
        table: Staging table the adapter writes
        natural_key: Conflict key of the staging table
        policy: Upsert for re-fetchable sources, ignore for append-only ones
        marker_column: Column the incremental cursor takes the max of
        factory: Builds the adapter for one run
    """

    source_type: SourceType
    table: str
    natural_key: tuple[str, ...]
    policy: ConflictPolicy
    marker_column: str
    factory: Callable[[SyncContext], SourceAdapter]


SOURCE_SPECS: Mapping[SourceType, SourceSpec] = MappingProxyType(
    {
        SourceType.BROWSING: SourceSpec(
            SourceType.BROWSING,
            table=browser_history.TABLE,
            natural_key=browser_history.NATURAL_KEY,
            policy=browser_history.POLICY,
            marker_column=browser_history.MARKER_COLUMN,
            factory=browser_history.create_adapter,
        ),
        SourceType.GITHUB: SourceSpec(
            SourceType.GITHUB,
            table=github_stars.TABLE,
            natural_key=github_stars.NATURAL_KEY,
            policy=github_stars.POLICY,
            marker_column=github_stars.MARKER_COLUMN,
            factory=github_stars.create_adapter,
        ),
        SourceType.RAINDROP: SourceSpec(
            SourceType.RAINDROP,
            table=raindrop.TABLE,
            natural_key=raindrop.NATURAL_KEY,
            policy=raindrop.POLICY,
            marker_column=raindrop.MARKER_COLUMN,
            factory=raindrop.create_adapter,
        ),
    }
)

_missing = [member.value for member in SourceType if member not in SOURCE_SPECS]
if _missing:
    raise RuntimeError(f"Sources without a SourceSpec: {', '.join(_missing)}")


def get_source_spec(source: str | SourceType) -> SourceSpec:
    """Look up a source by name.

    Raises:
        ValueError: If ``source`` is not a known source type.
    """
    try:
        return SOURCE_SPECS[SourceType(source)]
    except ValueError:
        valid = ", ".join(member.value for member in SourceType)
        raise ValueError(f"Unknown source '{source}'. Valid sources: {valid}") from None
