"""Tests for the chunked idempotent writer and staging reads."""

from __future__ import annotations

from typing import Any

import pytest

from record_graph.core.run import RunKind
from record_graph.engine.cursor import last_known_marker
from record_graph.engine.writer import ChunkedWriter, ConflictPolicy
from record_graph.errors import ConflictResolutionError
from record_graph.storage.sqlite_store import SQLiteStore
from record_graph.utils.timeutils import utcnow

HISTORY_KEY = ("hostname", "view_epoch_micros", "url")


def history_row(run_id: int, micros: int, url: str, browser: str = "chrome") -> dict[str, Any]:
    return {
        "browser": browser,
        "hostname": "test-host",
        "view_epoch_micros": micros,
        "last_view_epoch_micros": micros,
        "view_time": "2024-01-01T00:00:00.000000",
        "view_duration": 1,
        "duration_since_last_view": 0,
        "url": url,
        "page_title": url,
        "search_terms": None,
        "related_searches": None,
        "integration_run_id": run_id,
    }


def repo_row(run_id: int, repo_id: int, description: str, full_name: str | None = None) -> dict[str, Any]:
    return {
        "id": repo_id,
        "full_name": full_name if full_name is not None else f"octo/repo-{repo_id}",
        "owner_login": "octo",
        "html_url": f"https://github.com/octo/repo-{repo_id}",
        "homepage_url": None,
        "description": description,
        "language": None,
        "topics": None,
        "starred_at": f"2024-01-0{repo_id}T00:00:00.000000",
        "integration_run_id": run_id,
        "created_at": "2024-02-01T00:00:00.000000",
        "updated_at": "2024-02-01T00:00:00.000000",
    }


async def new_run(store: SQLiteStore, source: str) -> int:
    return await store.insert_run(source, RunKind.INCREMENTAL, utcnow())


class TestIgnorePolicy:
    @pytest.mark.asyncio
    async def test_rewrite_is_a_no_op(self, store: SQLiteStore) -> None:
        run_id = await new_run(store, "browsing")
        rows = [history_row(run_id, 100 + i, f"https://site/{i}") for i in range(5)]
        writer = ChunkedWriter(store, batch_size=2)

        first = await writer.write("browsing_history", rows, HISTORY_KEY, ConflictPolicy.IGNORE)
        second = await writer.write("browsing_history", rows, HISTORY_KEY, ConflictPolicy.IGNORE)

        assert (first.rows, first.written, first.batches) == (5, 5, 3)
        assert second.written == 0
        assert second.skipped == 5
        assert await store.count_rows("browsing_history") == 5


class TestUpsertPolicy:
    @pytest.mark.asyncio
    async def test_existing_rows_are_updated_in_place(
        self, store: SQLiteStore, make_record: Any
    ) -> None:
        run_id = await new_run(store, "github")
        writer = ChunkedWriter(store, batch_size=10)
        await writer.write(
            "github_repositories",
            [repo_row(run_id, 1, "old"), repo_row(run_id, 2, "old")],
            ("id",),
            ConflictPolicy.UPSERT,
        )
        record = await make_record("repo-1")
        await store.set_record_id("github_repositories", 1, record.id)

        rerun_id = await new_run(store, "github")
        updated = repo_row(rerun_id, 1, "new")
        updated["created_at"] = "2030-01-01T00:00:00.000000"
        result = await writer.write("github_repositories", [updated], ("id",), ConflictPolicy.UPSERT)

        assert result.written == 1
        assert await store.count_rows("github_repositories") == 2
        rows = {row["id"]: row for row in await store.get_unmapped_rows("github_repositories")}
        assert list(rows) == [2]

        conn = store._ensure_conn()
        async with conn.execute("SELECT * FROM github_repositories WHERE id = 1") as cursor:
            row = await cursor.fetchone()
        assert row["description"] == "new"
        assert row["record_id"] == record.id
        assert row["created_at"] == "2024-02-01T00:00:00.000000"
        assert row["integration_run_id"] == rerun_id


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_batch_keeps_earlier_batches(self, store: SQLiteStore) -> None:
        run_id = await new_run(store, "github")
        rows = [
            repo_row(run_id, 1, "a"),
            repo_row(run_id, 2, "b"),
            repo_row(run_id, 3, "c"),
            {**repo_row(run_id, 4, "d"), "html_url": None},
        ]

        with pytest.raises(ConflictResolutionError) as exc_info:
            await ChunkedWriter(store, batch_size=2).write(
                "github_repositories", rows, ("id",), ConflictPolicy.UPSERT
            )

        assert exc_info.value.batch_index == 1
        assert exc_info.value.table == "github_repositories"
        assert await store.count_rows("github_repositories") == 2

    @pytest.mark.asyncio
    async def test_rows_must_share_columns(self, store: SQLiteStore) -> None:
        run_id = await new_run(store, "browsing")
        rows = [history_row(run_id, 1, "https://a"), {"url": "https://b"}]

        with pytest.raises(ValueError, match="same columns"):
            await store.write_rows("browsing_history", rows, HISTORY_KEY, ConflictPolicy.IGNORE)

    def test_batch_size_must_be_positive(self, store: SQLiteStore) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            ChunkedWriter(store, batch_size=0)

    @pytest.mark.asyncio
    async def test_empty_input(self, store: SQLiteStore) -> None:
        result = await ChunkedWriter(store).write(
            "browsing_history", [], HISTORY_KEY, ConflictPolicy.IGNORE
        )
        assert (result.rows, result.written, result.batches) == (0, 0, 0)


class TestMarkers:
    @pytest.mark.asyncio
    async def test_marker_is_max_over_runs_of_the_source(self, store: SQLiteStore) -> None:
        run_id = await new_run(store, "browsing")
        rows = [history_row(run_id, micros, f"https://site/{micros}") for micros in (30, 10, 20)]
        await store.write_rows("browsing_history", rows, HISTORY_KEY, ConflictPolicy.IGNORE)

        marker = await last_known_marker(
            store,
            table="browsing_history",
            marker_column="view_epoch_micros",
            source_type="browsing",
        )

        assert marker == 30

    @pytest.mark.asyncio
    async def test_marker_respects_filters(self, store: SQLiteStore) -> None:
        run_id = await new_run(store, "browsing")
        await store.write_rows(
            "browsing_history",
            [
                history_row(run_id, 50, "https://a", browser="chrome"),
                history_row(run_id, 90, "https://b", browser="brave"),
            ],
            HISTORY_KEY,
            ConflictPolicy.IGNORE,
        )

        marker = await store.get_last_marker(
            "browsing_history", "view_epoch_micros", "browsing", {"browser": "chrome"}
        )

        assert marker == 50

    @pytest.mark.asyncio
    async def test_full_runs_have_no_marker(self, store: SQLiteStore) -> None:
        run_id = await new_run(store, "browsing")
        await store.write_rows(
            "browsing_history", [history_row(run_id, 5, "https://a")], HISTORY_KEY, ConflictPolicy.IGNORE
        )

        marker = await last_known_marker(
            store,
            table="browsing_history",
            marker_column="view_epoch_micros",
            source_type="browsing",
            run_kind=RunKind.FULL,
        )

        assert marker is None

    @pytest.mark.asyncio
    async def test_first_run_has_no_marker(self, store: SQLiteStore) -> None:
        assert await store.get_last_marker("github_repositories", "starred_at", "github") is None
