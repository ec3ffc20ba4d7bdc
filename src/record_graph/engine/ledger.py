"""Integration-run ledger.

Every sync attempt becomes one ``integration_runs`` row that moves from
``in_progress`` to exactly one of ``success`` or ``fail``. The ledger also
refuses to start a run while a recent run of the same source is still open;
runs left open for longer than ``stale_run_after_hours`` (a killed process)
are closed as abandoned instead.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TYPE_CHECKING

from record_graph.config import SyncConfig
from record_graph.core.run import IntegrationRun, RunKind, RunStatus
from record_graph.errors import LedgerError, RunInProgressError
from record_graph.utils.timeutils import utcnow

if TYPE_CHECKING:
    from record_graph.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

IntegrationFunction = Callable[[int], Awaitable[int]]


class IntegrationLedger:
    """Lifecycle bookkeeping for integration runs."""

    def __init__(self, store: SQLiteStore, config: SyncConfig | None = None) -> None:
        self._store = store
        self._config = config or SyncConfig()

    @property
    def stale_after(self) -> timedelta:
        return timedelta(hours=self._config.stale_run_after_hours)

    async def begin(self, source_type: str, run_kind: RunKind = RunKind.INCREMENTAL) -> int:
        """Open a new run for ``source_type``.

        Raises:
            RunInProgressError: If a non-stale run of the same source is open.
        """
        await self._close_stale(source_type, refuse_recent=True)
        run_id = await self._store.insert_run(source_type, run_kind, utcnow())
        logger.info("Started %s %s run %d", run_kind.value, source_type, run_id)
        return run_id

    async def complete(self, run_id: int, entries_created: int = 0) -> None:
        if not await self._store.finish_run(
            run_id, RunStatus.SUCCESS, utcnow(), entries_created=entries_created
        ):
            raise LedgerError(f"Run {run_id} does not exist or is already finalized")
        logger.info("Run %d succeeded (%d entries)", run_id, entries_created)

    async def fail(self, run_id: int, error: BaseException | str) -> None:
        message = str(error) or type(error).__name__
        if not await self._store.finish_run(run_id, RunStatus.FAIL, utcnow(), message=message):
            raise LedgerError(f"Run {run_id} does not exist or is already finalized")
        logger.error("Run %d failed: %s", run_id, message)

    async def run(
        self,
        source_type: str,
        fn: IntegrationFunction,
        run_kind: RunKind = RunKind.INCREMENTAL,
    ) -> IntegrationRun:
        """Execute ``fn`` inside a run.

        The run is completed with the count ``fn`` returns, or failed with the
        exception's message, which is then re-raised.
        """
        run_id = await self.begin(source_type, run_kind)
        try:
            entries_created = await fn(run_id)
        except Exception as e:
            logger.debug("Integration %s raised", source_type, exc_info=True)
            await self.fail(run_id, e)
            raise
        await self.complete(run_id, entries_created)

        run = await self._store.get_run(run_id)
        if run is None:
            raise LedgerError(f"Run {run_id} vanished after completion")
        return run

    async def sweep_stale(self) -> list[IntegrationRun]:
        """Close every open run older than the stale threshold, for all sources."""
        return await self._close_stale(None, refuse_recent=False)

    async def _close_stale(
        self, source_type: str | None, *, refuse_recent: bool
    ) -> list[IntegrationRun]:
        cutoff = utcnow() - self.stale_after
        abandoned: list[IntegrationRun] = []

        for open_run in await self._store.get_in_progress_runs(source_type):
            if open_run.started_at > cutoff:
                if refuse_recent:
                    logger.info(
                        "Integration %s already in progress (run %d), skipping",
                        open_run.source_type,
                        open_run.id,
                    )
                    raise RunInProgressError(open_run.source_type, open_run.id)
                continue

            message = f"abandoned: no result after {self._config.stale_run_after_hours:g}h"
            if await self._store.finish_run(open_run.id, RunStatus.FAIL, utcnow(), message=message):
                logger.warning(
                    "Marked stale %s run %d as failed", open_run.source_type, open_run.id
                )
                abandoned.append(open_run)

        return abandoned

    # ========== Read side ==========

    async def get_run(self, run_id: int) -> IntegrationRun | None:
        return await self._store.get_run(run_id)

    async def list_runs(
        self,
        source_type: str | None = None,
        status: RunStatus | None = None,
        limit: int = 50,
    ) -> list[IntegrationRun]:
        return await self._store.list_runs(source_type=source_type, status=status, limit=limit)

    async def latest_runs(self) -> list[IntegrationRun]:
        return await self._store.get_latest_runs()
