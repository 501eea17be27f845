"""
Time helpers.

The service works in timezone-aware UTC. Databases that drop the offset
(SQLite) hand back naive values, which are UTC by construction.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from evfleet.app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime (naive input is taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_zone(tz_name: Optional[str] = None) -> ZoneInfo:
    """Look up an IANA zone, falling back to the configured default."""
    name = tz_name or settings.default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {name}") from exc


def day_bounds(day: Optional[date] = None, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """
    UTC bounds ``[start_of_day, end_of_day)`` of a calendar day in a zone.

    When ``day`` is omitted the current date in that zone is used. DST days
    are 23 or 25 hours long; the bounds follow the wall clock.
    """
    zone = resolve_zone(tz_name)
    if day is None:
        day = datetime.now(zone).date()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
