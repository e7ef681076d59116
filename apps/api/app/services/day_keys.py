# apps/api/app/services/day_keys.py

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class InvalidTimezoneError(ValueError):
    pass


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name. Unknown names fail fast."""
    name = (tz_name or "").strip()
    if not name:
        raise InvalidTimezoneError("timezone is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(f"unknown timezone: {tz_name!r}") from e


def as_utc(ts: datetime) -> datetime:
    # naive timestamps are treated as UTC (what the store hands back on sqlite)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def day_key_from_date(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def compute_day_key(ts: datetime, tz_name: str) -> datetime:
    """
    Returns a datetime at UTC midnight of the LOCAL calendar day of `ts` in `tz_name`.
    Example: 2026-02-05T03:00Z in America/Toronto is 2026-02-04 locally,
    so the day key is 2026-02-04T00:00Z.

    Day keys are dates in disguise: they never carry the local offset, which keeps
    grouping stable across DST changes and server timezones.
    """
    zone = get_zone(tz_name)
    local = as_utc(ts).astimezone(zone)
    return day_key_from_date(local.date())


def add_days(day_key: datetime, days: int) -> datetime:
    return day_key + timedelta(days=days)


def day_key_to_str(day_key: datetime) -> str:
    return day_key.strftime("%Y-%m-%d")


def weekday_of(day_key: datetime) -> int:
    """0..6 = Sun..Sat."""
    return (day_key.weekday() + 1) % 7


def iter_day_keys(start_day_key: datetime, end_day_key_exclusive: datetime) -> Iterator[datetime]:
    cursor = start_day_key
    while cursor < end_day_key_exclusive:
        yield cursor
        cursor = add_days(cursor, 1)


def local_midnight_utc(day_key: datetime, tz_name: str) -> datetime:
    """
    The real instant at which the local day `day_key` starts in `tz_name`.
    Used to turn a day-key range into a created_at range for store queries.
    """
    zone = get_zone(tz_name)
    local = datetime(day_key.year, day_key.month, day_key.day, tzinfo=zone)
    return local.astimezone(timezone.utc)


def day_range_ending_today(
    days: int,
    tz_name: str,
    now: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """[today - (days-1), today + 1) in the couple's timezone, as day keys."""
    now = now or datetime.now(timezone.utc)
    today = compute_day_key(now, tz_name)
    return add_days(today, -(days - 1)), add_days(today, 1)
