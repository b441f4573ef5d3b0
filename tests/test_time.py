"""
Tests for `domain/time.py`.

Covers:
- UTC enforcement on domain timestamps.
- ISO-8601 parsing into UTC.
- Calendar month arithmetic with end-of-month clamping.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from domain.time import add_months, parse_utc_datetime, require_utc_timestamp


def test_require_utc_rejects_naive_and_offset_timestamps() -> None:
    with pytest.raises(ValueError):
        require_utc_timestamp("at", datetime(2025, 1, 1))

    with pytest.raises(ValueError):
        require_utc_timestamp("at", datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=2))))

    require_utc_timestamp("at", datetime(2025, 1, 1, tzinfo=timezone.utc))


def test_parse_utc_datetime_accepts_dates_and_offsets() -> None:
    assert parse_utc_datetime("2025-01-15") == datetime(2025, 1, 15, tzinfo=timezone.utc)
    assert parse_utc_datetime("2025-01-15T10:00:00Z") == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)
    assert parse_utc_datetime("2025-01-15T12:00:00+02:00") == datetime(2025, 1, 15, 10, tzinfo=timezone.utc)
    assert parse_utc_datetime(date(2025, 3, 1)) == datetime(2025, 3, 1, tzinfo=timezone.utc)


def test_parse_utc_datetime_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_utc_datetime("not a date")

    with pytest.raises(TypeError):
        parse_utc_datetime(20250115)


@pytest.mark.parametrize(
    "start, months, expected",
    [
        (datetime(2025, 1, 15, 12, tzinfo=timezone.utc), 1, datetime(2025, 2, 15, 12, tzinfo=timezone.utc)),
        (datetime(2025, 1, 31, tzinfo=timezone.utc), 1, datetime(2025, 2, 28, tzinfo=timezone.utc)),
        (datetime(2024, 1, 31, tzinfo=timezone.utc), 1, datetime(2024, 2, 29, tzinfo=timezone.utc)),
        (datetime(2025, 11, 15, tzinfo=timezone.utc), 3, datetime(2026, 2, 15, tzinfo=timezone.utc)),
        (datetime(2025, 12, 1, tzinfo=timezone.utc), 12, datetime(2026, 12, 1, tzinfo=timezone.utc)),
    ],
)
def test_add_months_is_calendar_based(start: datetime, months: int, expected: datetime) -> None:
    assert add_months(start, months) == expected
