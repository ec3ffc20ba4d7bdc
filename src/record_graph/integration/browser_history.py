"""Browser history adapter for Chromium-family browsers.

Reads the browser's ``History`` SQLite database, collapses bursts of
sequential visits and appends them to ``browsing_history``. Rows are never
updated once written, so the write policy is ``IGNORE`` on
``(hostname, view_epoch_micros, url)``. The marker is the newest raw visit
already folded into a stored row for this browser on this machine
(``last_view_epoch_micros``), so visits absorbed into a group are never
read again.
"""

from __future__ import annotations

import logging
import shutil
import sqlite3
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import aiosqlite

from record_graph.engine.collapse import VisitEvent, collapse_sequential_events
from record_graph.engine.cursor import last_known_marker
from record_graph.engine.writer import ChunkedWriter
from record_graph.errors import AdapterConfigError, AdapterFetchError
from record_graph.integration.models import SourceType, SyncContext
from record_graph.storage.sqlite_staging import ConflictPolicy
from record_graph.utils.timeutils import chrome_micros_to_datetime, to_db_timestamp

logger = logging.getLogger(__name__)

TABLE = "browsing_history"
NATURAL_KEY: tuple[str, ...] = ("hostname", "view_epoch_micros", "url")
POLICY = ConflictPolicy.IGNORE
MARKER_COLUMN = "last_view_epoch_micros"

MAX_URL_LENGTH = 1000

# Query parameters dropped from over-long URLs (mostly auth and redirect noise)
REMOVABLE_QUERY_PARAMS = frozenset(
    {
        "access_token",
        "as",
        "audience",
        "client_id",
        "code",
        "code_challenge",
        "code_challenge_method",
        "connection",
        "consent_verifier",
        "continue",
        "cst",
        "k",
        "login_challenge",
        "login_verifier",
        "nonce",
        "redirect_uri",
        "refresh_token",
        "response_type",
        "scope",
        "sidt",
        "state",
        "TL",
        "upn",
    }
)

_APP_SUPPORT = Path.home() / "Library" / "Application Support"

DEFAULT_HISTORY_PATHS: dict[str, Path] = {
    "arc": _APP_SUPPORT / "Arc" / "User Data" / "Default" / "History",
    "chrome": _APP_SUPPORT / "Google" / "Chrome" / "Default" / "History",
    "dia": _APP_SUPPORT / "Dia" / "User Data" / "Default" / "History",
    "brave": _APP_SUPPORT / "BraveSoftware" / "Brave-Browser" / "Default" / "History",
    "edge": _APP_SUPPORT / "Microsoft Edge" / "Default" / "History",
}

VISITS_QUERY = """
SELECT
    v.visit_time AS view_time,
    v.visit_duration AS view_duration,
    ctx.duration_since_last_visit AS duration_since_last_view,
    u.url AS url,
    u.title AS page_title,
    ca.search_terms AS search_terms,
    ca.related_searches AS related_searches
FROM visits v
JOIN urls u ON v.url = u.id
LEFT JOIN content_annotations ca ON ca.visit_id = v.id
LEFT JOIN context_annotations ctx ON ctx.visit_id = v.id
WHERE u.url IS NOT NULL AND u.url != ''
  AND u.title IS NOT NULL AND u.title != ''
  AND u.url NOT LIKE 'chrome-extension://%'
  AND u.url NOT LIKE 'chrome://%'
  AND u.url NOT LIKE 'about:%'
  AND v.visit_time > ?
ORDER BY v.visit_time ASC, u.url ASC
"""


def sanitize_url(url: str) -> str | None:
    """Shorten an over-long URL by dropping non-essential query parameters.

    Returns the URL unchanged when it is short enough, the shortened URL when
    that fits, and None when it cannot be made to fit.
    """
    if len(url) <= MAX_URL_LENGTH:
        return url
    try:
        parts = urlsplit(url)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in REMOVABLE_QUERY_PARAMS
        ]
        sanitized = urlunsplit(parts._replace(query=urlencode(query)))
    except ValueError:
        logger.warning("Failed to parse URL, excluding visit: %.200s", url)
        return None
    return sanitized if len(sanitized) <= MAX_URL_LENGTH else None


def _micros_to_seconds(value: int | None) -> int:
    return round(value / 1_000_000) if value else 0


def visit_row(
    visit: VisitEvent,
    *,
    browser: str,
    hostname: str,
    run_id: int,
) -> dict[str, Any] | None:
    """Convert a collapsed visit into a staging row, or None if its URL is unusable."""
    url = sanitize_url(visit.url)
    if url is None:
        return None
    return {
        "browser": browser,
        "hostname": hostname,
        "view_epoch_micros": visit.view_time,
        "last_view_epoch_micros": visit.latest_view_time,
        "view_time": to_db_timestamp(chrome_micros_to_datetime(visit.view_time)),
        "view_duration": _micros_to_seconds(visit.view_duration),
        "duration_since_last_view": _micros_to_seconds(visit.duration_since_last_view),
        "url": url,
        "page_title": visit.page_title,
        "search_terms": visit.search_terms,
        "related_searches": visit.related_searches,
        "integration_run_id": run_id,
    }


async def read_visits(history_path: Path, after_micros: int) -> list[VisitEvent]:
    """Read visits newer than ``after_micros`` from a ``History`` database.

    The browser keeps its database locked while running, so a copy (with its
    write-ahead log) is read.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        snapshot = Path(tmpdir) / "History"
        shutil.copy2(history_path, snapshot)
        wal = history_path.with_name(history_path.name + "-wal")
        if wal.exists():
            shutil.copy2(wal, snapshot.with_name("History-wal"))
        try:
            async with aiosqlite.connect(f"{snapshot.as_uri()}?mode=ro", uri=True) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(VISITS_QUERY, (after_micros,)) as cursor:
                    rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise AdapterFetchError(SourceType.BROWSING, f"Cannot read {history_path}: {e}") from e

    return [
        VisitEvent(
            view_time=int(row["view_time"]),
            url=row["url"],
            page_title=row["page_title"],
            view_duration=row["view_duration"],
            duration_since_last_view=row["duration_since_last_view"],
            search_terms=row["search_terms"],
            related_searches=row["related_searches"],
        )
        for row in rows
    ]


class BrowserHistoryAdapter:
    """Syncs one browser's local history for this machine."""

    def __init__(self, context: SyncContext) -> None:
        self._context = context
        self._store = context.store
        self._config = context.config

    @property
    def source_type(self) -> SourceType:
        return SourceType.BROWSING

    @property
    def history_path(self) -> Path:
        return self._config.browser_history_path or DEFAULT_HISTORY_PATHS[self._config.browser]

    async def sync(self, run_id: int) -> int:
        path = self.history_path
        if not path.exists():
            raise AdapterConfigError(
                SourceType.BROWSING, f"{self._config.browser} history not found at {path}"
            )

        browser = self._config.browser
        hostname = self._config.hostname
        marker = await last_known_marker(
            self._store,
            table=TABLE,
            marker_column=MARKER_COLUMN,
            source_type=SourceType.BROWSING,
            run_kind=self._context.run_kind,
            filters={"browser": browser, "hostname": hostname},
        )
        if marker is not None:
            logger.info(
                "Last known visit time: %s", chrome_micros_to_datetime(int(marker)).isoformat()
            )
        else:
            logger.info("Last known visit time: none")

        visits = await read_visits(path, int(marker) if marker is not None else 0)
        logger.info("Retrieved %d new history entries", len(visits))

        collapsed = collapse_sequential_events(visits)
        logger.info("Collapsed into %d entries", len(collapsed))

        rows = []
        for visit in collapsed:
            row = visit_row(visit, browser=browser, hostname=hostname, run_id=run_id)
            if row is None:
                logger.warning("Skipping visit with over-long URL: %.120s...", visit.url)
                continue
            rows.append(row)

        if not rows:
            logger.info("No new history entries to insert")
            return 0

        result = await ChunkedWriter(self._store, self._config.batch_size).write(
            TABLE, rows, NATURAL_KEY, POLICY
        )
        if result.skipped:
            logger.info("Skipped %d duplicate entries", result.skipped)
        return result.written


def create_adapter(context: SyncContext) -> BrowserHistoryAdapter:
    return BrowserHistoryAdapter(context)
