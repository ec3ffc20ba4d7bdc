"""Chunked idempotent writer.

Rows are written in fixed-size batches, each in its own transaction, with a
conflict policy on the table's natural key. A failed batch is rolled back and
reported; batches committed before it stay committed, so a re-run of the same
input is safe.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from record_graph.errors import ConflictResolutionError
from record_graph.storage.sqlite_staging import ConflictPolicy

if TYPE_CHECKING:
    from record_graph.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

__all__ = ["DEFAULT_BATCH_SIZE", "ChunkedWriter", "ConflictPolicy", "WriteResult"]


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one ``ChunkedWriter.write`` call.

    Attributes:
        rows: Rows handed to the writer
        written: Rows inserted or updated (ignored conflicts excluded)
        batches: Transactions committed
    """

    rows: int
    written: int
    batches: int

    @property
    def skipped(self) -> int:
        return self.rows - self.written


class ChunkedWriter:
    """Batch writer over a store's staging tables."""

    def __init__(self, store: SQLiteStore, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._store = store
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def write(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        key: Sequence[str],
        policy: ConflictPolicy,
    ) -> WriteResult:
        """Write ``rows`` in batches.

        Raises:
            ConflictResolutionError: If a batch violates a constraint the
                policy does not cover. Earlier batches remain committed.
        """
        total_batches = (len(rows) + self._batch_size - 1) // self._batch_size
        written = 0

        for index, start in enumerate(range(0, len(rows), self._batch_size)):
            batch = rows[start : start + self._batch_size]
            try:
                count = await self._store.write_rows(table, batch, key, policy)
            except sqlite3.IntegrityError as e:
                logger.error("Batch %d/%d for %s failed: %s", index + 1, total_batches, table, e)
                raise ConflictResolutionError(table, index, e) from e

            written += count
            logger.info(
                "Wrote batch %d of %d to %s (%d/%d rows)",
                index + 1,
                total_batches,
                table,
                count,
                len(batch),
            )

        if len(rows) > written:
            logger.info("Skipped %d existing rows in %s", len(rows) - written, table)
        return WriteResult(rows=len(rows), written=written, batches=total_batches)
