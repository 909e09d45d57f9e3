from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


# =============================================================================
# BUSINESS DATES
# =============================================================================
# A business date is a plain calendar day (YYYY-MM-DD) attributed in the
# operator's timezone, never derived from UTC or the server clock's zone.

def business_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone: {name!r}") from exc


def business_now(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Aware 'now' in the business timezone. `now` may be injected (aware or UTC-naive)."""
    zone = business_zone(tz_name)
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(zone)


def business_today(tz_name: str, now: Optional[datetime] = None) -> date:
    return business_now(tz_name, now).date()


def business_day_bounds(tz_name: str, day: date) -> tuple[datetime, datetime]:
    """UTC-naive [start, end) instants covering one business date."""
    zone = business_zone(tz_name)
    start = datetime(day.year, day.month, day.day, tzinfo=zone)
    end = start + timedelta(days=1)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def recent_business_dates(tz_name: str, days: int, now: Optional[datetime] = None) -> list[date]:
    """The `days` calendar dates before today (today excluded), oldest first."""
    today = business_today(tz_name, now)
    return [today - timedelta(days=i) for i in range(days, 0, -1)]


def parse_business_date(value) -> Optional[date]:
    """
    Parse a YYYY-MM-DD business date.

    - None / "" -> None
    - date instances pass through (datetimes are truncated)
    Raises ValueError on malformed input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    # Accept full ISO datetimes; only the calendar part is kept
    if "T" in s:
        s = s.split("T", 1)[0]
    return date.fromisoformat(s)


def to_iso_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def iter_dates(start: date, end: date):
    """Inclusive day range."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def week_bounds(today: date) -> tuple[date, date]:
    """Monday..Sunday week containing `today`."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)
