"""
Value types for the reminder scheduler. Tuples, not dicts, so they stay immutable.
"""
from collections import namedtuple
from datetime import datetime
from typing import FrozenSet, NamedTuple, Optional

from prayer_reminders.core.clock import to_zone

PRAYER_NAMES = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

REMINDER_KIND = "prayer_reminder"
REFRESH_KIND = "prayer_reminders_refresh"
DAILY_REFRESH_ID = "prayer_reminders_daily_refresh"


class PrayerInstant(NamedTuple):
    """One prayer time from a feed, anchored to the location's zone."""

    prayer_name: str
    datetime_utc: datetime
    zone: str

    @property
    def local(self) -> datetime:
        return to_zone(self.datetime_utc, self.zone)

    @property
    def local_date(self) -> str:
        return self.local.strftime("%Y-%m-%d")


class ReminderSettings(NamedTuple):
    enabled_prayers: FrozenSet[str]
    lead_minutes: int
    location_id: str
    sound_id: str


class ScheduledReminder(NamedTuple):
    identifier: str
    fire_at_utc: datetime
    payload: dict
    title: str
    body: str
    sound: Optional[str] = None


# Raw feed row before parsing: local date string, 24h time string, free-text label
FeedEntry = namedtuple("FeedEntry", ["date", "time", "label"])

Location = namedtuple(
    "Location",
    [
        "id",
        "label",
        "backend",   # "json_feed" | "aladhan"
        "timezone",  # IANA zone id
        "options",   # backend-specific config (url, lat, lon, method, timeout, ...)
    ],
)

SoundOption = namedtuple("SoundOption", ["id", "name", "filename"])


def reminder_identifier(prayer_name: str, local_date: str) -> str:
    return f"prayer_{prayer_name}_{local_date}"
