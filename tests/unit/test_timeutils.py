"""Tests for timezone-safe datetime helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from record_graph.utils.timeutils import (
    CHROME_EPOCH,
    chrome_micros_to_datetime,
    datetime_to_chrome_micros,
    parse_timestamp,
    to_db_timestamp,
    utcnow,
)


class TestTimeutils:
    def test_utcnow_is_naive(self) -> None:
        assert utcnow().tzinfo is None

    def test_parse_z_suffix(self) -> None:
        assert parse_timestamp("2024-05-01T10:00:00Z") == datetime(2024, 5, 1, 10, 0, 0)

    def test_parse_offset_is_normalized_to_utc(self) -> None:
        assert parse_timestamp("2024-05-01T12:00:00+02:00") == datetime(2024, 5, 1, 10, 0, 0)

    def test_parse_empty(self) -> None:
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_db_timestamp_is_fixed_width(self) -> None:
        whole = to_db_timestamp(datetime(2024, 1, 1))
        fractional = to_db_timestamp(datetime(2024, 1, 1, 0, 0, 0, 5))
        assert whole == "2024-01-01T00:00:00.000000"
        assert len(whole or "") == len(fractional or "")
        assert (whole or "") < (fractional or "")

    def test_db_timestamp_converts_aware_values(self) -> None:
        aware = datetime(2024, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=1)))
        assert to_db_timestamp(aware) == "2024-01-01T00:00:00.000000"
        assert to_db_timestamp(datetime(2024, 1, 1, tzinfo=UTC)) == "2024-01-01T00:00:00.000000"

    def test_chrome_epoch_round_trip(self) -> None:
        value = datetime(2024, 3, 15, 8, 30, 0, 123456)
        assert chrome_micros_to_datetime(datetime_to_chrome_micros(value)) == value
        assert chrome_micros_to_datetime(0) == CHROME_EPOCH
