"""Exception hierarchy for record-graph.

Adapter and writer errors propagate to the integration ledger, which records
the message on the run and re-raises. Link graph and merge errors are raised
before any write happens.
"""

from __future__ import annotations


class RecordGraphError(Exception):
    """Base class for all record-graph errors."""


# ========== Ingestion ==========


class AdapterFetchError(RecordGraphError):
    """A source adapter could not fetch data from its external system.

    Pages already written remain valid; a fresh incremental run resumes from
    the last committed marker.
    """

    def __init__(self, source: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"[{source}] {message}")
        self.source = source
        self.status_code = status_code


class AdapterConfigError(AdapterFetchError):
    """A source adapter is missing required configuration (e.g. an API token)."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(source, message)


class ConflictResolutionError(RecordGraphError):
    """A batch write violated a constraint that the conflict policy cannot absorb.

    Not retried: identical input would fail identically.
    """

    def __init__(self, table: str, batch_index: int, cause: Exception) -> None:
        super().__init__(f"Batch {batch_index} for table '{table}' failed: {cause}")
        self.table = table
        self.batch_index = batch_index
        self.cause = cause


# ========== Ledger ==========


class LedgerError(RecordGraphError):
    """Invalid integration-run lifecycle transition."""


class RunInProgressError(LedgerError):
    """Another run of the same source is still in progress and not yet stale."""

    def __init__(self, source: str, run_id: int) -> None:
        super().__init__(f"Integration '{source}' already in progress (run {run_id})")
        self.source = source
        self.run_id = run_id


# ========== Link graph ==========


class LinkGraphError(RecordGraphError):
    """Base class for link graph caller errors."""


class UnknownPredicateError(LinkGraphError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Unknown predicate: '{slug}'")
        self.slug = slug


class NonCanonicalPredicateError(LinkGraphError):
    """A non-canonical predicate was passed where only stored directions are allowed."""

    def __init__(self, slug: str, canonical_slug: str) -> None:
        super().__init__(
            f"Predicate '{slug}' is not canonical; swap source and target "
            f"and use '{canonical_slug}' instead"
        )
        self.slug = slug
        self.canonical_slug = canonical_slug


class InvalidLinkError(LinkGraphError):
    """The link is structurally invalid (e.g. source equals target)."""


# ========== Merge ==========


class MergeError(RecordGraphError):
    """Base class for merge engine errors."""


class SameRecordError(MergeError):
    def __init__(self, record_id: int) -> None:
        super().__init__(f"Cannot merge record {record_id} into itself")
        self.record_id = record_id


class RecordNotFoundError(MergeError):
    def __init__(self, record_id: int, reason: str = "not found") -> None:
        super().__init__(f"Record {record_id} {reason}")
        self.record_id = record_id


class MergeUndoError(MergeError):
    """The graph no longer matches the post-merge state recorded in a snapshot."""
