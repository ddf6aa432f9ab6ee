"""
Location, sound and lead-time catalogs built from the `reminders` config section.
"""
import logging
from typing import Any, Dict, List, Optional

from prayer_reminders.core.config import DEFAULT_CONFIG
from prayer_reminders.reminders.models import Location, SoundOption

logger = logging.getLogger(__name__)

_LOCATION_KEYS = ("id", "label", "backend", "timezone")


class Catalog:
    """Fixed option sets the settings store and scheduler choose from."""

    def __init__(
        self,
        locations: List[Location],
        sounds: List[SoundOption],
        lead_minutes_options: List[int],
        refresh_time: str = "23:00",
        days_ahead: int = 2,
    ):
        if not locations:
            raise ValueError("At least one location must be configured")
        self.locations = locations
        self.sounds = sounds
        self.lead_minutes_options = lead_minutes_options
        self.refresh_time = refresh_time
        self.days_ahead = days_ahead
        self._by_id = {loc.id: loc for loc in locations}

    @classmethod
    def from_config(cls, reminders_config: Optional[Dict[str, Any]]) -> "Catalog":
        cfg = reminders_config or {}
        defaults = DEFAULT_CONFIG["reminders"]
        locations = [
            loc for loc in (_parse_location(item) for item in cfg.get("locations") or defaults["locations"])
            if loc is not None
        ]
        if not locations:
            logger.warning("No valid locations configured, using built-in defaults")
            locations = [_parse_location(item) for item in defaults["locations"]]
        sounds = [
            SoundOption(str(s["id"]), s.get("name", s["id"]), s.get("filename"))
            for s in cfg.get("sounds") or defaults["sounds"]
            if isinstance(s, dict) and s.get("id")
        ]
        return cls(
            locations=locations,
            sounds=sounds,
            lead_minutes_options=[int(m) for m in cfg.get("lead_minutes_options") or defaults["lead_minutes_options"]],
            refresh_time=str(cfg.get("refresh_time", defaults["refresh_time"])),
            days_ahead=int(cfg.get("days_ahead", defaults["days_ahead"])),
        )

    @property
    def default_location_id(self) -> str:
        return self.locations[0].id

    @property
    def default_sound_id(self) -> Optional[str]:
        return self.sounds[0].id if self.sounds else None

    def get_location(self, location_id: Optional[str]) -> Location:
        """Location for id; unknown ids (e.g. removed from config) fall back to the first one."""
        location = self._by_id.get(location_id)
        if location is None:
            logger.warning(f"Unknown location {location_id!r}, using {self.default_location_id}")
            return self.locations[0]
        return location

    def get_sound(self, sound_id: Optional[str]) -> Optional[SoundOption]:
        return next((s for s in self.sounds if s.id == sound_id), None)


def _parse_location(item: Any) -> Optional[Location]:
    if not isinstance(item, dict) or not item.get("id") or not item.get("timezone"):
        logger.warning(f"Skipping location config without id/timezone: {item}")
        return None
    options = {k: v for k, v in item.items() if k not in _LOCATION_KEYS}
    return Location(
        id=str(item["id"]),
        label=item.get("label", item["id"]),
        backend=item.get("backend", "json_feed"),
        timezone=item["timezone"],
        options=options,
    )
