from __future__ import annotations

from datetime import UTC, date, datetime, time
from types import SimpleNamespace

import pytest

from chorecoins.utils.dt_utils import (
    as_utc,
    local_day_window,
    parse_clock,
    start_of_local_day,
    to_datetime,
    weekday_name,
)


def test_naive_datetime_is_taken_as_utc() -> None:
    assert as_utc(datetime(2026, 3, 2, 9, 0)) == datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "value",
    [
        datetime(2026, 3, 2, 9, 0, tzinfo=UTC),
        "2026-03-02T09:00:00Z",
        "2026-03-02T10:00:00+01:00",
        1772442000,
        1772442000000,
        {"seconds": 1772442000, "nanoseconds": 0},
        {"_seconds": 1772442000, "_nanoseconds": 0},
        SimpleNamespace(seconds=1772442000, nanoseconds=0),
    ],
)
def test_to_datetime_normalizes_every_shape(value) -> None:
    assert to_datetime(value) == datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def test_to_datetime_date_is_local_midnight() -> None:
    assert to_datetime(date(2026, 3, 2)) == datetime(2026, 3, 2, tzinfo=UTC)


def test_to_datetime_empty_values() -> None:
    assert to_datetime(None) is None
    assert to_datetime("  ") is None


@pytest.mark.parametrize("value", ["not a date", True, {"nanoseconds": 5}, object()])
def test_to_datetime_rejects_garbage(value) -> None:
    with pytest.raises(ValueError):
        to_datetime(value)


def test_day_window_covers_one_local_day() -> None:
    start, end = local_day_window(datetime(2026, 3, 2, 17, 30, tzinfo=UTC))
    assert start == datetime(2026, 3, 2, tzinfo=UTC)
    assert end == datetime(2026, 3, 3, tzinfo=UTC)
    assert start_of_local_day(datetime(2026, 3, 2, 23, 59, tzinfo=UTC)) == start


def test_parse_clock() -> None:
    assert parse_clock("07:30") == time(7, 30)
    assert parse_clock("") is None
    assert parse_clock("25:00") is None
    assert parse_clock("seven") is None


def test_weekday_name() -> None:
    assert weekday_name(date(2026, 3, 2)) == "monday"
    assert weekday_name(datetime(2026, 3, 5, 12, tzinfo=UTC)) == "thursday"
