"""
Reminder preferences: enabled prayers, lead minutes, location and adhan sound.
Every getter falls back to its default when unset or unreadable.
"""
import json
import logging
from typing import Dict, Iterable, Optional, Union

from prayer_reminders.core.store import KeyValueStore
from prayer_reminders.reminders.catalog import Catalog
from prayer_reminders.reminders.models import PRAYER_NAMES, ReminderSettings

STORAGE_KEYS = {
    "enabled": "prayer_reminders.enabled",
    "minutes_before": "prayer_reminders.minutes_before",
    "location": "prayer_reminders.location",
    "adhan_sound": "prayer_reminders.adhan_sound",
}

DEFAULT_LEAD_MINUTES = 0


class SettingsStore:
    def __init__(self, store: KeyValueStore, catalog: Catalog):
        self.store = store
        self.catalog = catalog
        self.logger = logging.getLogger(self.__class__.__name__)

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.store.get(key)
        except Exception as e:
            self.logger.warning(f"Error reading setting {key}: {e}")
            return None

    def _write(self, key: str, value: str) -> bool:
        try:
            self.store.set(key, value)
            return True
        except Exception as e:
            self.logger.error(f"Error writing setting {key}: {e}")
            return False

    # Enabled prayers

    def get_prayer_toggles(self) -> Dict[str, bool]:
        """Map of every canonical prayer to whether its reminder is enabled (default: all on)."""
        toggles = {name: True for name in PRAYER_NAMES}
        raw = self._read(STORAGE_KEYS["enabled"])
        if raw is None:
            return toggles
        try:
            stored = json.loads(raw)
        except ValueError as e:
            self.logger.warning(f"Ignoring unreadable prayer toggles {raw!r}: {e}")
            return toggles
        if not isinstance(stored, dict):
            return toggles
        for name in PRAYER_NAMES:
            if name in stored:
                toggles[name] = bool(stored[name])
        return toggles

    def set_prayer_toggles(self, toggles: Dict[str, bool]) -> bool:
        return self._write(STORAGE_KEYS["enabled"], json.dumps({k: bool(v) for k, v in toggles.items()}))

    def get_enabled_prayers(self) -> frozenset:
        return frozenset(name for name, on in self.get_prayer_toggles().items() if on)

    def set_enabled_prayers(self, prayers: Iterable[str]) -> bool:
        enabled = set(prayers)
        return self.set_prayer_toggles({name: name in enabled for name in PRAYER_NAMES})

    # Lead minutes

    def get_lead_minutes(self) -> int:
        raw = self._read(STORAGE_KEYS["minutes_before"])
        if raw is None:
            return DEFAULT_LEAD_MINUTES
        try:
            return int(raw)
        except ValueError:
            self.logger.warning(f"Ignoring unreadable lead minutes {raw!r}")
            return DEFAULT_LEAD_MINUTES

    def set_lead_minutes(self, minutes: Union[int, str]) -> bool:
        return self._write(STORAGE_KEYS["minutes_before"], str(int(minutes)))

    # Location

    def get_location_id(self) -> str:
        return self._read(STORAGE_KEYS["location"]) or self.catalog.default_location_id

    def set_location_id(self, location_id: str) -> bool:
        return self._write(STORAGE_KEYS["location"], str(location_id))

    # Adhan sound

    def get_sound_id(self) -> Optional[str]:
        return self._read(STORAGE_KEYS["adhan_sound"]) or self.catalog.default_sound_id

    def set_sound_id(self, sound_id: str) -> bool:
        return self._write(STORAGE_KEYS["adhan_sound"], str(sound_id))

    def get_sound_filename(self) -> Optional[str]:
        sound = self.catalog.get_sound(self.get_sound_id())
        return sound.filename if sound else None

    def get_settings(self) -> ReminderSettings:
        """Snapshot of all four settings, read independently."""
        return ReminderSettings(
            enabled_prayers=self.get_enabled_prayers(),
            lead_minutes=self.get_lead_minutes(),
            location_id=self.get_location_id(),
            sound_id=self.get_sound_id(),
        )
