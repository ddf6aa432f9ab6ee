"""
Map free-text prayer labels from feeds onto the canonical prayer names.
"""
import re
from typing import Optional

from prayer_reminders.reminders.models import PRAYER_NAMES

_APOSTROPHES = re.compile(r"['‘’`ʼ]")

# Spellings seen in mosque and API feeds, keyed after lowercasing and apostrophe removal
PRAYER_ALIASES = {
    "fajr": "Fajr",
    "fajar": "Fajr",
    "fajir": "Fajr",
    "subh": "Fajr",
    "subuh": "Fajr",
    "dhuhr": "Dhuhr",
    "dhur": "Dhuhr",
    "duhr": "Dhuhr",
    "zuhr": "Dhuhr",
    "zuhur": "Dhuhr",
    "zohr": "Dhuhr",
    "thuhr": "Dhuhr",
    "asr": "Asr",
    "asar": "Asr",
    "maghrib": "Maghrib",
    "magrib": "Maghrib",
    "maghreb": "Maghrib",
    "isha": "Isha",
    "ishaa": "Isha",
    "esha": "Isha",
    "ishā": "Isha",
}


def normalize_prayer_name(label: Optional[str]) -> Optional[str]:
    """Return the canonical name for label, or None when it is not one of the five prayers."""
    if not label or not isinstance(label, str):
        return None
    cleaned = label.strip()
    if not cleaned:
        return None
    key = _APOSTROPHES.sub("", cleaned).lower()
    if key in PRAYER_ALIASES:
        return PRAYER_ALIASES[key]
    # Unknown spelling: capitalize and accept only if that lands on a canonical name
    guess = cleaned[0].upper() + cleaned[1:].lower()
    return guess if guess in PRAYER_NAMES else None
