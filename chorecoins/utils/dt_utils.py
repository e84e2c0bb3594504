"""Clock and timestamp helpers.

Every timestamp entering the engine passes through ``to_datetime`` so the
rest of the code only ever sees timezone-aware UTC ``datetime`` values.
Calendar questions ("is this a Monday?", "what is today?") are answered in
the configured local zone via ``as_local``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo

from dateutil import parser as dt_parser

from ..core.config import settings

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# epoch values above this are treated as milliseconds
_EPOCH_MS_THRESHOLD = 100_000_000_000


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_zone() -> ZoneInfo:
    return _zone(settings.TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(dt_obj: datetime) -> datetime:
    """Return ``dt_obj`` in UTC, treating naive values as already UTC."""
    if dt_obj.tzinfo is None:
        return dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime) -> datetime:
    return as_utc(dt_obj).astimezone(local_zone())


def local_date(dt_obj: datetime) -> date:
    return as_local(dt_obj).date()


def start_of_local_day(dt_obj: datetime) -> datetime:
    """Midnight of the local calendar day containing ``dt_obj``, in UTC."""
    local = as_local(dt_obj)
    midnight = datetime.combine(local.date(), time.min, tzinfo=local_zone())
    return midnight.astimezone(UTC)


def local_day_window(dt_obj: datetime) -> tuple[datetime, datetime]:
    start = start_of_local_day(dt_obj)
    end = start_of_local_day(as_local(start) + timedelta(days=1, hours=1))
    return start, end


def at_local_time(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock, tzinfo=local_zone()).astimezone(UTC)


def hours_between(earlier: datetime, later: datetime) -> float:
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 3600


def weekday_name(dt_obj: datetime | date) -> str:
    if isinstance(dt_obj, datetime):
        return WEEKDAYS[as_local(dt_obj).weekday()]
    return WEEKDAYS[dt_obj.weekday()]


def parse_clock(value: str | None) -> time | None:
    """Parse ``HH:MM`` (24h). Returns None for empty or malformed input."""
    if not value or not value.strip():
        return None
    try:
        hours, minutes = value.strip().split(":", 1)
        return time(int(hours), int(minutes))
    except ValueError:
        return None


def _from_epoch(value: float) -> datetime:
    if abs(value) > _EPOCH_MS_THRESHOLD:
        value = value / 1000
    return datetime.fromtimestamp(value, tz=UTC)


def _from_seconds_pair(seconds: Any, nanoseconds: Any) -> datetime:
    return _from_epoch(float(seconds) + float(nanoseconds or 0) / 1_000_000_000)


def to_datetime(value: Any) -> datetime | None:
    """Normalize any supported timestamp shape to an aware UTC datetime.

    Accepted inputs:
        - ``datetime`` (naive values are taken as UTC)
        - ``date`` (local midnight of that day)
        - ISO-8601 strings
        - epoch seconds or milliseconds (int / float)
        - mappings with ``seconds``/``_seconds`` and optional ``nanoseconds``
        - objects exposing ``seconds`` and ``nanoseconds`` attributes

    Returns None for None or empty strings. Raises ValueError for anything
    else that cannot be interpreted.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=local_zone()).astimezone(UTC)
    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if isinstance(value, (int, float)):
        return _from_epoch(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return as_utc(dt_parser.isoparse(value.strip()))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Unparseable timestamp string: {value!r}") from e
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            raise ValueError(f"Timestamp mapping without seconds: {value!r}")
        return _from_seconds_pair(seconds, value.get("nanoseconds", value.get("_nanoseconds")))
    if hasattr(value, "seconds") and hasattr(value, "nanoseconds"):
        return _from_seconds_pair(value.seconds, value.nanoseconds)
    raise ValueError(f"Unsupported timestamp value: {value!r}")
