"""Fixtures for adapter tests: fake HTTP APIs and a fake browser history file."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from record_graph.integration import http

HISTORY_SCHEMA = """
CREATE TABLE urls (id INTEGER PRIMARY KEY, url TEXT, title TEXT);
CREATE TABLE visits (
    id INTEGER PRIMARY KEY,
    url INTEGER NOT NULL,
    visit_time INTEGER NOT NULL,
    visit_duration INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE content_annotations (
    visit_id INTEGER PRIMARY KEY,
    search_terms TEXT,
    related_searches TEXT
);
CREATE TABLE context_annotations (
    visit_id INTEGER PRIMARY KEY,
    duration_since_last_visit INTEGER
);
"""

# 2024-01-01T00:00:00 in Chromium epoch microseconds
BASE_MICROS = 13_348_540_800_000_000


class FakeHistory:
    """A Chromium-style ``History`` database that tests append visits to."""

    def __init__(self, path: Path) -> None:
        self.path = path
        with sqlite3.connect(path) as conn:
            conn.executescript(HISTORY_SCHEMA)
        conn.close()

    def add_visit(
        self,
        url: str,
        title: str,
        offset_seconds: int,
        duration_seconds: int = 0,
        search_terms: str | None = None,
    ) -> int:
        with sqlite3.connect(self.path) as conn:
            row = conn.execute("SELECT id FROM urls WHERE url = ?", (url,)).fetchone()
            url_id = row[0] if row else conn.execute(
                "INSERT INTO urls (url, title) VALUES (?, ?)", (url, title)
            ).lastrowid
            visit_time = BASE_MICROS + offset_seconds * 1_000_000
            visit_id = conn.execute(
                "INSERT INTO visits (url, visit_time, visit_duration) VALUES (?, ?, ?)",
                (url_id, visit_time, duration_seconds * 1_000_000),
            ).lastrowid
            if search_terms is not None:
                conn.execute(
                    "INSERT INTO content_annotations (visit_id, search_terms) VALUES (?, ?)",
                    (visit_id, search_terms),
                )
        conn.close()
        return visit_time


@pytest.fixture
def history(tmp_path: Path) -> FakeHistory:
    return FakeHistory(tmp_path / "History")


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Adapters never actually wait on a retry in tests."""
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr(http, "_sleep", fake_sleep)
    return delays


class FakeApi:
    """Routes requests to a handler and records them."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def paged(items: list[dict[str, Any]], page_param: str, size_param: str, first_page: int):
    """Serve ``items`` in pages the way a paginated API would."""

    def slice_for(request: httpx.Request) -> list[dict[str, Any]]:
        page = int(request.url.params[page_param]) - first_page
        size = int(request.url.params[size_param])
        return items[page * size : (page + 1) * size]

    return slice_for
