"""Runs source adapters through the integration ledger."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from record_graph.config import SyncConfig
from record_graph.core.run import RunKind
from record_graph.engine.ledger import IntegrationLedger
from record_graph.errors import RecordGraphError, RunInProgressError
from record_graph.integration.models import SyncContext
from record_graph.integration.sources import get_source_spec

if TYPE_CHECKING:
    import httpx

    from record_graph.core.run import IntegrationRun
    from record_graph.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """Result of syncing one source as part of a batch.

    Attributes:
        source: Source name
        success: Whether the run completed
        run_id: Ledger run, None when the run never started
        entries_created: Count reported by the adapter
        error: Error message for failed or skipped sources
    """

    source: str
    success: bool
    run_id: int | None = None
    entries_created: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "success": self.success,
            "run_id": self.run_id,
            "entries_created": self.entries_created,
            "error": self.error,
        }


class SyncOrchestrator:
    """Resolves sources to adapters and runs them one at a time."""

    def __init__(
        self,
        store: SQLiteStore,
        config: SyncConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._transport = transport
        self._ledger = IntegrationLedger(store, config)

    @property
    def ledger(self) -> IntegrationLedger:
        return self._ledger

    async def sync(self, source: str, run_kind: RunKind = RunKind.INCREMENTAL) -> IntegrationRun:
        """Run one source through the ledger.

        Raises:
            ValueError: If ``source`` is unknown.
            RecordGraphError: Whatever the adapter or ledger raised; the run
                is already marked failed when this propagates.
        """
        spec = get_source_spec(source)
        context = SyncContext(
            store=self._store,
            config=self._config,
            run_kind=run_kind,
            transport=self._transport,
        )
        adapter = spec.factory(context)
        return await self._ledger.run(spec.source_type, adapter.sync, run_kind)

    async def sync_daily(self, sources: Sequence[str] | None = None) -> list[SyncOutcome]:
        """Sync each source in order. A failing source does not stop the batch."""
        outcomes: list[SyncOutcome] = []

        for source in sources if sources is not None else self._config.daily_sources:
            logger.info("Syncing %s", source)
            try:
                run = await self.sync(source)
            except RunInProgressError as e:
                outcomes.append(SyncOutcome(source, success=False, run_id=e.run_id, error=str(e)))
            except Exception as e:
                logger.error(
                    "Sync of %s failed: %s",
                    source,
                    e,
                    exc_info=not isinstance(e, (RecordGraphError, ValueError)),
                )
                latest = await self._store.list_runs(source_type=source, limit=1)
                run_id = latest[0].id if latest else None
                outcomes.append(SyncOutcome(source, success=False, run_id=run_id, error=str(e)))
            else:
                outcomes.append(
                    SyncOutcome(
                        source,
                        success=True,
                        run_id=run.id,
                        entries_created=run.entries_created,
                    )
                )

        failed = [o.source for o in outcomes if not o.success]
        if failed:
            logger.warning("Daily sync finished with failures: %s", ", ".join(failed))
        else:
            logger.info("Daily sync finished: %d sources succeeded", len(outcomes))
        return outcomes
