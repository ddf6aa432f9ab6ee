from .base import FeedBackend, FeedError
from .aladhan import AladhanBackend
from .json_feed import JsonFeedBackend
from .feed_factory import FEED_TYPES, create_backend
from .adapter import TimeSourceAdapter, parse_feed_instant

__all__ = [
    "FeedBackend",
    "FeedError",
    "AladhanBackend",
    "JsonFeedBackend",
    "FEED_TYPES",
    "create_backend",
    "TimeSourceAdapter",
    "parse_feed_instant",
]
