from datetime import date
from typing import List

from prayer_reminders.feeds.base import FeedBackend, FeedError
from prayer_reminders.reminders.models import FeedEntry


class JsonFeedBackend(FeedBackend):
    """Feed published as a JSON array of {date, time, label}; the whole feed is returned every time."""

    def fetch_entries(self, target_date: date) -> List[FeedEntry]:
        url = self.config.get("url")
        if not url:
            raise FeedError(f"{self.location.id}: no feed url configured")
        data = self._get_json(url)
        if not isinstance(data, list):
            raise FeedError(f"{self.location.id}: expected a JSON array, got {type(data).__name__}")

        entries = []
        for item in data:
            if not isinstance(item, dict):
                self.logger.warning(f"Skipping non-object feed item: {item!r}")
                continue
            entries.append(FeedEntry(
                date=item.get("date"),
                time=item.get("time"),
                label=item.get("label", item.get("prayer")),
            ))
        return entries
