"""Core data models for record-graph."""

from record_graph.core.link import Direction, Link, LinkView
from record_graph.core.predicate import (
    CANONICAL_SLUGS,
    PREDICATES,
    Predicate,
    PredicateType,
    canonical_predicates,
    canonicalize,
    get_inverse,
    get_predicate,
    is_canonical,
    validate_vocabulary,
)
from record_graph.core.record import Media, Record, RecordType
from record_graph.core.run import IntegrationRun, RunKind, RunStatus
from record_graph.core.snapshot import MediaAssignment, MergeSnapshot, StagingAssignment

__all__ = [
    # Runs
    "IntegrationRun",
    "RunKind",
    "RunStatus",
    # Graph nodes
    "Media",
    "Record",
    "RecordType",
    # Graph edges
    "Direction",
    "Link",
    "LinkView",
    # Predicate vocabulary
    "CANONICAL_SLUGS",
    "PREDICATES",
    "Predicate",
    "PredicateType",
    "canonical_predicates",
    "canonicalize",
    "get_inverse",
    "get_predicate",
    "is_canonical",
    "validate_vocabulary",
    # Merge snapshots
    "MediaAssignment",
    "MergeSnapshot",
    "StagingAssignment",
]
