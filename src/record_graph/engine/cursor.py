"""Incremental cursor synchronization.

API sources return items newest first. An incremental run pages through them
until it reaches the marker stored by an earlier run, so only items strictly
newer than that marker are written.

Paging stops at the first page holding nothing newer than the boundary.
Otherwise it continues while a page comes back full (``len(page) ==
page_size``). This is a heuristic: the page that crosses the boundary costs
one extra request, and a source that shrinks its pages can end the loop early.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from record_graph.core.run import RunKind

if TYPE_CHECKING:
    from record_graph.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M")

FetchPage = Callable[[int], Awaitable[list[T]]]


async def last_known_marker(
    store: SQLiteStore,
    *,
    table: str,
    marker_column: str,
    source_type: str,
    run_kind: RunKind = RunKind.INCREMENTAL,
    filters: Mapping[str, Any] | None = None,
) -> Any:
    """Boundary for the next run: None for full runs and first runs."""
    if run_kind == RunKind.FULL:
        return None
    marker = await store.get_last_marker(table, marker_column, source_type, filters)
    logger.debug("Last %s marker for %s: %s", marker_column, source_type, marker)
    return marker


async def fetch_incremental(
    fetch_page: FetchPage[T],
    *,
    marker_of: Callable[[T], M],
    last_marker: M | None,
    page_size: int,
    start_page: int = 0,
) -> list[T]:
    """Collect items newer than ``last_marker`` across pages.

    Args:
        fetch_page: Coroutine returning the items of page ``n``
        marker_of: Extracts the comparable marker of an item
        last_marker: Boundary from an earlier run, or None to fetch everything
        page_size: Requested page size, used to detect the last page
        start_page: Index of the first page (0 or 1 depending on the API)

    Returns:
        Items in the order the source returned them.
    """
    collected: list[T] = []
    page = start_page

    while True:
        items = await fetch_page(page)
        if not items:
            break

        if last_marker is None:
            newer = items
        else:
            newer = [item for item in items if marker_of(item) > last_marker]
            if not newer:
                logger.debug("Page %d holds nothing newer than %s, stopping", page, last_marker)
                break

        collected.extend(newer)
        logger.info("Page %d: %d new items (%d total)", page, len(newer), len(collected))

        if len(items) < page_size:
            break
        page += 1

    return collected
