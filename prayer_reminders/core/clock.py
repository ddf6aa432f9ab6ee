"""
Clock and zone helpers. All instants handed around the app are aware datetimes.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class Clock:
    """Wall clock. Tests substitute a FixedClock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def now_in(self, zone: str) -> datetime:
        return to_zone(self.now(), zone)


class FixedClock(Clock):
    """Clock frozen at a given instant; advance() moves it forward."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            raise ValueError("FixedClock needs an aware datetime")
        self.instant = instant

    def now(self) -> datetime:
        return self.instant.astimezone(timezone.utc)

    def advance(self, **kwargs) -> None:
        self.instant = self.instant + timedelta(**kwargs)


def get_zone(zone: str) -> ZoneInfo:
    """Resolve an IANA zone id, falling back to UTC for unknown ids."""
    try:
        return ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown time zone {zone!r}, using UTC")
        return ZoneInfo("UTC")


def to_zone(instant: datetime, zone: str) -> datetime:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(get_zone(zone))


def to_naive_utc(instant: datetime) -> datetime:
    """UTC as naive datetime for DateTime(timezone=False) columns."""
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def from_naive_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def parse_hhmm(time_str: str, default: Tuple[int, int] = (0, 0)) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute); malformed values give default."""
    try:
        parts = str(time_str).strip().split(":")
        hour = int(parts[0]) if parts else default[0]
        minute = int(parts[1]) if len(parts) > 1 else 0
    except (ValueError, IndexError):
        return default
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return default
    return hour, minute


def next_daily_run(now: datetime, zone: str, time_str: str = "23:00", last_run: Optional[datetime] = None) -> datetime:
    """Next occurrence of local time_str in zone strictly after now (or last_run), as aware UTC."""
    hour, minute = parse_hhmm(time_str, default=(23, 0))
    reference = to_zone(last_run or now, zone)
    candidate = reference.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= reference:
        # Rebuild from the calendar date so a DST change keeps the wall-clock time
        next_day = reference.date() + timedelta(days=1)
        candidate = datetime(next_day.year, next_day.month, next_day.day, hour, minute, tzinfo=get_zone(zone))
    return candidate.astimezone(timezone.utc)
