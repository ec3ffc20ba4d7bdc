"""Sync and graph engines.

``record_graph.engine.orchestrator`` depends on the integration adapters and
is imported from its module directly.
"""

from record_graph.engine.collapse import VisitEvent, collapse_sequential_events
from record_graph.engine.cursor import fetch_incremental, last_known_marker
from record_graph.engine.ledger import IntegrationLedger
from record_graph.engine.links import LinkGraph, RecordLinks
from record_graph.engine.merge import MergeEngine, MergeResult, merge_record_fields, merge_text_fields
from record_graph.engine.writer import ChunkedWriter, ConflictPolicy, WriteResult

__all__ = [
    # Ingestion
    "ChunkedWriter",
    "ConflictPolicy",
    "IntegrationLedger",
    "VisitEvent",
    "WriteResult",
    "collapse_sequential_events",
    "fetch_incremental",
    "last_known_marker",
    # Graph
    "LinkGraph",
    "MergeEngine",
    "MergeResult",
    "RecordLinks",
    "merge_record_fields",
    "merge_text_fields",
]
