"""Data models for source integrations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from record_graph.config import SyncConfig
from record_graph.core.run import RunKind

if TYPE_CHECKING:
    import httpx

    from record_graph.storage.sqlite_store import SQLiteStore


class SourceType(StrEnum):
    """Every source the ledger can run. Each member needs a ``SourceSpec``."""

    BROWSING = "browsing"
    GITHUB = "github"
    RAINDROP = "raindrop"


@dataclass(frozen=True)
class SyncContext:
    """Dependencies handed to an adapter for one run.

    Attributes:
        store: Open store for the record graph
        config: Runtime configuration (tokens, page and batch sizes)
        run_kind: Full backfill or incremental
        transport: Optional httpx transport, used instead of the network
    """

    store: SQLiteStore
    config: SyncConfig
    run_kind: RunKind = RunKind.INCREMENTAL
    transport: httpx.AsyncBaseTransport | None = None
