"""Timezone-safe datetime utilities.

All datetimes handled by record-graph are **naive** UTC.  Values coming from
external APIs are normalized with ``parse_timestamp`` at the adapter boundary,
and everything written to SQLite goes through ``to_db_timestamp`` so that
``MAX()`` over a text column is chronological.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

# Chromium stores visit times as microseconds since 1601-01-01 UTC.
CHROME_EPOCH = datetime(1601, 1, 1)


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into a naive UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def to_db_timestamp(value: datetime | None) -> str | None:
    """Serialize a datetime as fixed-width ISO-8601 (always with microseconds)."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value.isoformat(timespec="microseconds")


def chrome_micros_to_datetime(micros: int) -> datetime:
    """Convert Chromium epoch microseconds into a naive UTC datetime."""
    return CHROME_EPOCH + timedelta(microseconds=micros)


def datetime_to_chrome_micros(value: datetime) -> int:
    """Convert a naive UTC datetime into Chromium epoch microseconds."""
    delta = value - CHROME_EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
