"""
Turn a location's raw feed into canonical prayer instants for one calendar date.
Never raises: any failure gives an empty (or partial) mapping.
"""
import logging
import re
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional, Union

from prayer_reminders.core.clock import get_zone
from prayer_reminders.feeds.base import FeedError
from prayer_reminders.feeds.feed_factory import create_backend
from prayer_reminders.reminders.catalog import Catalog
from prayer_reminders.reminders.models import FeedEntry, PrayerInstant
from prayer_reminders.reminders.names import normalize_prayer_name

# "0512", "512", "05:12", "05:12 (BST)"
_TIME_RE = re.compile(r"^\s*(\d{1,2}):?(\d{2})\s*(?:\([^)]*\))?\s*$")


def parse_feed_instant(date_str: str, time_str: str, zone: str) -> Optional[datetime]:
    """Local date + 24h time in zone -> aware UTC instant, or None if unparseable."""
    if not isinstance(date_str, str) or time_str is None:
        return None
    match = _TIME_RE.match(str(time_str))
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    try:
        day = datetime.strptime(date_str.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None
    local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=get_zone(zone))
    return local.astimezone(timezone.utc)


class TimeSourceAdapter:
    def __init__(
        self,
        catalog: Catalog,
        backend_factory: Callable = create_backend,
        normalizer: Callable[[str], Optional[str]] = normalize_prayer_name,
    ):
        self.catalog = catalog
        self.backend_factory = backend_factory
        self.normalizer = normalizer
        self.logger = logging.getLogger(self.__class__.__name__)

    def fetch_prayer_times_for_date(self, target_date: Union[date, str], location_id: str) -> Dict[str, PrayerInstant]:
        """Map of canonical prayer name -> PrayerInstant for target_date (a local calendar date)."""
        date_key = target_date if isinstance(target_date, str) else target_date.isoformat()
        location = self.catalog.get_location(location_id)

        try:
            backend = self.backend_factory(location)
            if backend is None:
                return {}
            entries = backend.fetch_entries(
                target_date if isinstance(target_date, date) else datetime.strptime(date_key, "%Y-%m-%d").date()
            )
        except FeedError as e:
            self.logger.error(f"Error fetching prayer times for {date_key}: {e}")
            return {}
        except Exception as e:
            self.logger.exception(f"Unexpected error fetching prayer times for {location.id} {date_key}: {e}")
            return {}

        prayers: Dict[str, PrayerInstant] = {}
        for entry in entries:
            instant = self._parse_entry(entry, location.timezone)
            if instant is None:
                continue
            # Compare on the feed's own date string so zone shifts near midnight can't move an entry
            if str(entry.date).strip() != date_key:
                continue
            if instant.prayer_name in prayers:
                self.logger.debug(f"Duplicate {instant.prayer_name} for {date_key}, keeping the first")
                continue
            prayers[instant.prayer_name] = instant

        self.logger.info(
            f"{location.id} {date_key}: "
            + (", ".join(f"{name} {p.local.strftime('%H:%M')}" for name, p in prayers.items()) or "no prayers")
        )
        return prayers

    def _parse_entry(self, entry: FeedEntry, zone: str) -> Optional[PrayerInstant]:
        name = self.normalizer(entry.label)
        if name is None:
            self.logger.debug(f"Dropping non-prayer label {entry.label!r}")
            return None
        instant = parse_feed_instant(entry.date, entry.time, zone)
        if instant is None:
            self.logger.warning(f"Discarding unparseable feed entry {tuple(entry)}")
            return None
        return PrayerInstant(prayer_name=name, datetime_utc=instant, zone=zone)
