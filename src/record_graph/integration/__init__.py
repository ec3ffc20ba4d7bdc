"""Source integrations: adapters that pull external data into the record graph."""

from record_graph.integration.adapter import SourceAdapter
from record_graph.integration.models import SourceType, SyncContext
from record_graph.integration.sources import SOURCE_SPECS, SourceSpec, get_source_spec

__all__ = [
    "SOURCE_SPECS",
    "SourceAdapter",
    "SourceSpec",
    "SourceType",
    "SyncContext",
    "get_source_spec",
]
