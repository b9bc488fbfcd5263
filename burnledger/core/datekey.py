"""
Canonical calendar-day keys.

Every subsystem that buckets data by day (burned ledger, body metrics, WHOOP sync)
must go through normalize_day_key so that day boundaries agree for the same
physical instant.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from burnledger.core.config import settings


def local_tz(tz: str | None = None) -> ZoneInfo:
    return ZoneInfo(tz or settings.LOCAL_TIMEZONE)


def now_local(tz: str | None = None) -> datetime:
    return datetime.now(local_tz(tz))


def today_key(tz: str | None = None) -> date:
    return now_local(tz).date()


def _parse_iso8601(text: str) -> datetime | date:
    text = text.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def normalize_day_key(value=None, tz: str | None = None) -> date:
    """
    Map a date-like value onto the local calendar day it falls in.

    - None -> today
    - date -> itself
    - datetime -> aware values are converted into the local zone; naive values
      are taken as already local
    - str -> "YYYY-MM-DD" verbatim, otherwise parsed as an ISO-8601 timestamp
    - int/float -> Unix epoch milliseconds, as sent by the app clients

    Raises ValueError for strings that are not ISO dates/timestamps.
    """
    zone = local_tz(tz)

    if value is None:
        return now_local(tz).date()

    if isinstance(value, str):
        value = _parse_iso8601(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(zone)
        return value.date()

    if isinstance(value, date):
        return value

    raise ValueError(f"Unsupported date value: {value!r}")


def start_of_local_day(day: date, tz: str | None = None) -> datetime:
    return datetime.combine(day, time.min, tzinfo=local_tz(tz))


def end_of_local_day(day: date, tz: str | None = None) -> datetime:
    return datetime.combine(day, time.max, tzinfo=local_tz(tz))


def add_days(day: date, n: int) -> date:
    return day + timedelta(days=n)


def to_utc_naive(dt: datetime) -> datetime:
    """Timestamps are stored as naive UTC, matching datetime.utcnow defaults."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
