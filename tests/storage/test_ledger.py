"""Tests for the integration-run ledger."""

from __future__ import annotations

from datetime import timedelta

import pytest

from record_graph.config import SyncConfig
from record_graph.core.run import RunKind, RunStatus
from record_graph.engine.ledger import IntegrationLedger
from record_graph.errors import AdapterFetchError, LedgerError, RunInProgressError
from record_graph.storage.sqlite_store import SQLiteStore
from record_graph.utils.timeutils import utcnow


@pytest.fixture
def ledger(store: SQLiteStore) -> IntegrationLedger:
    return IntegrationLedger(store, SyncConfig(stale_run_after_hours=6))


class TestRunLifecycle:
    @pytest.mark.asyncio
    async def test_successful_run(self, ledger: IntegrationLedger) -> None:
        seen: list[int] = []

        async def integration(run_id: int) -> int:
            seen.append(run_id)
            return 12

        run = await ledger.run("github", integration)

        assert seen == [run.id]
        assert run.status == RunStatus.SUCCESS
        assert run.entries_created == 12
        assert run.run_kind == RunKind.INCREMENTAL
        assert run.ended_at is not None
        assert run.message is None

    @pytest.mark.asyncio
    async def test_failed_run_records_message_and_reraises(self, ledger: IntegrationLedger) -> None:
        async def integration(run_id: int) -> int:
            raise AdapterFetchError("github", "HTTP 500")

        with pytest.raises(AdapterFetchError):
            await ledger.run("github", integration, RunKind.FULL)

        (run,) = await ledger.list_runs(source_type="github")
        assert run.status == RunStatus.FAIL
        assert run.run_kind == RunKind.FULL
        assert run.message == "[github] HTTP 500"
        assert run.ended_at is not None

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_recorded(self, ledger: IntegrationLedger) -> None:
        async def integration(run_id: int) -> int:
            raise KeyError("id")

        with pytest.raises(KeyError):
            await ledger.run("raindrop", integration)

        (run,) = await ledger.list_runs(source_type="raindrop")
        assert run.status == RunStatus.FAIL
        assert run.message

    @pytest.mark.asyncio
    async def test_terminal_status_is_set_once(self, ledger: IntegrationLedger) -> None:
        run_id = await ledger.begin("github")
        await ledger.complete(run_id, 3)

        with pytest.raises(LedgerError):
            await ledger.fail(run_id, "late failure")
        with pytest.raises(LedgerError):
            await ledger.complete(run_id, 5)

        run = await ledger.get_run(run_id)
        assert run is not None
        assert run.status == RunStatus.SUCCESS
        assert run.entries_created == 3

    @pytest.mark.asyncio
    async def test_unknown_run(self, ledger: IntegrationLedger) -> None:
        with pytest.raises(LedgerError, match="does not exist"):
            await ledger.complete(999)


class TestConcurrentRuns:
    @pytest.mark.asyncio
    async def test_recent_open_run_blocks_a_new_one(self, ledger: IntegrationLedger) -> None:
        run_id = await ledger.begin("github")

        with pytest.raises(RunInProgressError) as exc_info:
            await ledger.begin("github")

        assert exc_info.value.run_id == run_id
        assert len(await ledger.list_runs(source_type="github")) == 1

    @pytest.mark.asyncio
    async def test_other_sources_are_not_blocked(self, ledger: IntegrationLedger) -> None:
        await ledger.begin("github")
        assert await ledger.begin("raindrop") > 0

    @pytest.mark.asyncio
    async def test_stale_run_is_abandoned(
        self, store: SQLiteStore, ledger: IntegrationLedger
    ) -> None:
        stale_id = await store.insert_run(
            "github", RunKind.INCREMENTAL, utcnow() - timedelta(hours=7)
        )

        new_id = await ledger.begin("github")

        stale = await ledger.get_run(stale_id)
        assert stale is not None
        assert stale.status == RunStatus.FAIL
        assert stale.message == "abandoned: no result after 6h"
        assert new_id != stale_id

    @pytest.mark.asyncio
    async def test_sweep_only_closes_stale_runs(
        self, store: SQLiteStore, ledger: IntegrationLedger
    ) -> None:
        stale_id = await store.insert_run(
            "browsing", RunKind.INCREMENTAL, utcnow() - timedelta(hours=30)
        )
        fresh_id = await ledger.begin("github")

        swept = await ledger.sweep_stale()

        assert [run.id for run in swept] == [stale_id]
        fresh = await ledger.get_run(fresh_id)
        assert fresh is not None
        assert fresh.status == RunStatus.IN_PROGRESS


class TestReadSide:
    @pytest.mark.asyncio
    async def test_latest_runs_per_source(self, ledger: IntegrationLedger) -> None:
        async def ok(run_id: int) -> int:
            return 1

        await ledger.run("github", ok)
        second = await ledger.run("github", ok)
        raindrop = await ledger.run("raindrop", ok)

        latest = await ledger.latest_runs()

        assert {run.source_type: run.id for run in latest} == {
            "github": second.id,
            "raindrop": raindrop.id,
        }

    @pytest.mark.asyncio
    async def test_list_runs_filters_by_status(self, ledger: IntegrationLedger) -> None:
        async def ok(run_id: int) -> int:
            return 0

        async def broken(run_id: int) -> int:
            raise AdapterFetchError("github", "nope")

        await ledger.run("github", ok)
        with pytest.raises(AdapterFetchError):
            await ledger.run("github", broken)

        failed = await ledger.list_runs(status=RunStatus.FAIL)
        assert [run.message for run in failed] == ["[github] nope"]
