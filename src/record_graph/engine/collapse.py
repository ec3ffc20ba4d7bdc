"""Sequential-event collapsing for visit streams.

Browsers log one visit per navigation, so a page reloaded or revisited in a
row shows up as a burst of near-identical rows. Consecutive visits to the
same URL with the same non-empty title are folded into one.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class VisitEvent:
    """
    One raw visit as read from a browser history database.

    Times and durations stay in microseconds until the write step.

    Attributes:
        view_time: Visit time, microseconds since the Chromium epoch
        last_view_time: Newest raw visit folded into this event (None until
            something is absorbed)
        view_duration: Time spent on the page, microseconds
        duration_since_last_view: Gap since the previous visit to the URL
        url: Visited URL
        page_title: Page title at visit time
        search_terms: Search terms when the page is a search result
        related_searches: Related searches offered by the browser
    """

    view_time: int
    url: str
    last_view_time: int | None = None
    page_title: str | None = None
    view_duration: int | None = None
    duration_since_last_view: int | None = None
    search_terms: str | None = None
    related_searches: str | None = None

    @property
    def latest_view_time(self) -> int:
        return self.view_time if self.last_view_time is None else self.last_view_time


def is_same_view(current: VisitEvent, visit: VisitEvent) -> bool:
    """Same URL and the same title, with both titles non-empty."""
    return (
        current.url == visit.url
        and bool(current.page_title)
        and bool(visit.page_title)
        and current.page_title == visit.page_title
    )


def _absorb(current: VisitEvent, visit: VisitEvent) -> VisitEvent:
    view_duration = current.view_duration
    if visit.view_duration and visit.view_duration > 0:
        view_duration = (view_duration or 0) + visit.view_duration

    return replace(
        current,
        view_duration=view_duration,
        view_time=min(current.view_time, visit.view_time),
        last_view_time=max(current.latest_view_time, visit.latest_view_time),
        duration_since_last_view=max(
            current.duration_since_last_view or 0,
            visit.duration_since_last_view or 0,
        ),
    )


def collapse_sequential_events(events: Iterable[VisitEvent]) -> list[VisitEvent]:
    """Fold runs of consecutive same-view events into one event each.

    Positive durations are summed, the earliest view time is kept and the
    largest ``duration_since_last_view`` wins. The newest absorbed visit is
    kept in ``last_view_time`` so incremental reads can resume after it.
    Only adjacent events are compared; the same page visited again later
    starts a new group.
    """
    collapsed: list[VisitEvent] = []
    current: VisitEvent | None = None

    for visit in events:
        if current is None:
            current = visit
        elif is_same_view(current, visit):
            current = _absorb(current, visit)
        else:
            collapsed.append(current)
            current = visit

    if current is not None:
        collapsed.append(current)
    return collapsed
