"""Protocol definition for source adapters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from record_graph.integration.models import SourceType


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol defining the interface for source adapters.

    Each adapter pulls from one external system, writes normalized rows to
    its staging table and maps them into records. The integration ledger
    calls ``sync`` with the ID of the open run.
    """

    @property
    def source_type(self) -> SourceType:
        """Which source this adapter syncs."""
        ...

    async def sync(self, run_id: int) -> int:
        """Run one sync.

        Args:
            run_id: Open integration run; written to every staged row

        Returns:
            Number of entries created or updated

        Raises:
            AdapterFetchError: If the external system cannot be read.
            ConflictResolutionError: If a batch cannot be written.
        """
        ...
