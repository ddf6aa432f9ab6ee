from datetime import date, datetime
from typing import List

from prayer_reminders.feeds.base import FeedBackend, FeedError
from prayer_reminders.reminders.models import FeedEntry


class AladhanBackend(FeedBackend):
    """Prayer times from api.aladhan.com, one request per date"""

    BASE_URL = "https://api.aladhan.com/v1/timings"

    def fetch_entries(self, target_date: date) -> List[FeedEntry]:
        lat = self.config.get("lat")
        lon = self.config.get("lon")
        if lat is None or lon is None:
            raise FeedError(f"{self.location.id}: lat and lon must be configured")

        url = f"{self.config.get('url', self.BASE_URL)}/{target_date.strftime('%d-%m-%Y')}"
        params = {
            "latitude": lat,
            "longitude": lon,
            "method": self.config.get("method", 2),
        }
        data = self._get_json(url, params=params)

        try:
            timings = data["data"]["timings"]
            feed_date = datetime.strptime(data["data"]["date"]["gregorian"]["date"], "%d-%m-%Y").date()
        except (KeyError, TypeError, ValueError) as e:
            raise FeedError(f"{self.location.id}: unexpected response shape: {e}") from e

        # Includes Sunrise, Imsak, Midnight...; the adapter drops non-prayers
        return [
            FeedEntry(date=feed_date.isoformat(), time=value, label=label)
            for label, value in timings.items()
        ]
