"""
Base type and interface for prayer-time feed backends.
Backends return raw FeedEntry rows; parsing and filtering happen in the adapter.
"""
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from prayer_reminders.reminders.models import FeedEntry, Location


class FeedError(Exception):
    """Feed could not be fetched or had an unexpected shape."""


class FeedBackend(ABC):
    """One location's source of prayer times."""

    def __init__(self, location: Location):
        self.location = location
        self.config: Dict[str, Any] = dict(location.options or {})
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def fetch_entries(self, target_date: date) -> List[FeedEntry]:
        """Return raw entries. May include other dates; raise FeedError on failure."""
        pass

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        # No timeout unless the location sets one; requests' own behaviour applies otherwise
        timeout = self.config.get("timeout")
        self.logger.info(f"Fetching {url} params={params}")
        try:
            response = requests.get(url, params=params, headers={"Accept": "application/json"}, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise FeedError(f"{self.location.id}: {e}") from e
