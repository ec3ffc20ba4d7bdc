"""Shared fixtures: a real SQLite store per test and a test configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from record_graph.config import SyncConfig
from record_graph.core.record import Record, RecordType
from record_graph.storage.sqlite_store import SQLiteStore


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> AsyncIterator[SQLiteStore]:
    """Initialized store backed by a temporary database file."""
    store = SQLiteStore(tmp_path / "graph.db")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def config(tmp_path: Path) -> SyncConfig:
    """Small pages and batches so paging and batching paths are exercised."""
    return SyncConfig(
        db_path=tmp_path / "graph.db",
        batch_size=2,
        page_size=2,
        max_retries=2,
        browser="chrome",
        hostname="test-host",
        browser_history_path=tmp_path / "History",
        github_token="gh-test-token",
        raindrop_token="rd-test-token",
    )


@pytest.fixture
def make_record(store: SQLiteStore) -> Callable[..., Awaitable[Record]]:
    """Factory for records with sensible defaults."""

    async def _make(
        title: str | None = "record",
        type: RecordType = RecordType.ARTIFACT,
        **kwargs: Any,
    ) -> Record:
        return await store.add_record(type=type, title=title, **kwargs)

    return _make
