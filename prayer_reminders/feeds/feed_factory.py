from typing import Optional
import logging

from .base import FeedBackend
from .aladhan import AladhanBackend
from .json_feed import JsonFeedBackend
from prayer_reminders.reminders.models import Location

logger = logging.getLogger(__name__)

FEED_TYPES = {
    "aladhan": AladhanBackend,
    "json_feed": JsonFeedBackend,
}


def create_backend(location: Location) -> Optional[FeedBackend]:
    """Create the feed backend for a location based on its backend type"""
    backend_class = FEED_TYPES.get((location.backend or "").lower())
    if backend_class is None:
        logger.error(f"Unknown feed backend {location.backend!r} for location {location.id}")
        return None
    return backend_class(location)
