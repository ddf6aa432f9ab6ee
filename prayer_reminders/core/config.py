import copy
import yaml
from pathlib import Path
import os
from typing import Any, Dict, Optional, List, Callable
import logging
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
import threading
import time
import re

DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {
        "level": "INFO",
        "file": "~/.prayer_reminders/reminders.log",
    },
    "database": {
        "path": "~/.prayer_reminders/reminders.db",
    },
    "reminders": {
        "refresh_time": "23:00",
        "days_ahead": 2,
        "lead_minutes_options": [0, 5, 10, 15, 20, 30],
        "locations": [
            {
                "id": "uk",
                "label": "UK (Slough)",
                "backend": "aladhan",
                "timezone": "Europe/London",
                "lat": 51.5105,
                "lon": -0.5950,
                "method": 15,
            },
            {
                "id": "lk",
                "label": "Sri Lanka (Colombo)",
                "backend": "aladhan",
                "timezone": "Asia/Colombo",
                "lat": 6.9271,
                "lon": 79.8612,
                "method": 1,
            },
        ],
        "sounds": [
            {"id": "sound1", "name": "Adhan 1", "filename": "sound1.wav"},
            {"id": "sound2", "name": "Adhan 2", "filename": "sound2.wav"},
        ],
    },
    "notifications": {
        "platform": "desktop",
        "poll_interval": 30,
    },
    "api": {
        "enabled": False,
        "host": "127.0.0.1",
        "port": 8765,
    },
}


def config_diff(old: Dict[str, Any], new: Dict[str, Any], prefix: str = "") -> List[str]:
    """Dotted keys added, removed or changed between two config dicts"""
    changed = []
    for key in sorted(set(old) | set(new), key=str):
        path = f"{prefix}{key}"
        before, after = old.get(key), new.get(key)
        if isinstance(before, dict) and isinstance(after, dict):
            changed.extend(config_diff(before, after, f"{path}."))
        elif key not in old or key not in new or before != after:
            changed.append(path)
    return changed


class ConfigFileWatcher(FileSystemEventHandler):
    """Reloads the config when its file is written or saved over by rename.
    Events within `settle` seconds of a reload are treated as the same save."""

    def __init__(self, config: "Config", settle: float = 1.0):
        self.config = config
        self.settle = settle
        self._last_reload = 0.0

    def _is_config_file(self, path: Any) -> bool:
        return Path(os.fsdecode(path)).resolve() == self.config.config_file

    def on_modified(self, event):
        if not event.is_directory and self._is_config_file(event.src_path):
            self._reload_once()

    def on_moved(self, event):
        if not event.is_directory and self._is_config_file(event.dest_path):
            self._reload_once()

    def _reload_once(self) -> None:
        now = time.monotonic()
        if now - self._last_reload < self.settle:
            return
        self._last_reload = now
        time.sleep(0.1)  # let the writer finish
        self.config.reload()


class Config:
    """YAML configuration with env substitution and live reload."""

    def __init__(self, config_path: Optional[str] = None, watch: bool = True):
        self.change_callbacks: List[Callable[[Dict[str, Any]], None]] = []
        self._reload_lock = threading.Lock()
        self.observer = None

        if config_path:
            self.config_file = Path(config_path).expanduser().resolve()
            self.config_dir = self.config_file.parent
        else:
            self.config_dir = Path.home() / ".prayer_reminders"
            self.config_file = self.config_dir / "config.yaml"

        logging.debug(f"Using config file: {self.config_file}")

        self._load_env_file()
        self._ensure_config_exists()
        self._load_config()

        if watch:
            self.observer = Observer()
            self.observer.schedule(ConfigFileWatcher(self), str(self.config_dir), recursive=False)
            self.observer.start()
            logging.info(f"Watching {self.config_file} for changes")

    def register_change_callback(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Register a callback to be called with the new data when config changes"""
        self.change_callbacks.append(callback)

    def reload(self) -> bool:
        """Re-read the file. Callbacks run only when something changed; returns True if they did."""
        with self._reload_lock:
            previous = copy.deepcopy(self.data)
            self._load_config()
            changed = config_diff(previous, self.data)
            if not changed:
                logging.debug("Config file saved without changes")
                return False
            logging.info(f"Config reloaded, changed: {', '.join(changed)}")
            data = self.data

        for callback in list(self.change_callbacks):
            try:
                callback(data)
            except Exception as e:
                logging.exception(f"Error in config change callback: {e}")
        return True

    def cleanup(self) -> None:
        """Stop the file observer"""
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    def _ensure_config_exists(self) -> None:
        """Create default config if it doesn't exist"""
        if not self.config_dir.exists():
            logging.info(f"Creating config directory: {self.config_dir}")
            self.config_dir.mkdir(parents=True)

        if not self.config_file.exists():
            logging.info(f"Creating default config file: {self.config_file}")
            self.config_file.write_text(yaml.safe_dump(self._get_default_config(), sort_keys=False))

    def _get_default_config(self) -> Dict[str, Any]:
        return copy.deepcopy(DEFAULT_CONFIG)

    def _load_env_file(self) -> None:
        """Load environment variables from a .env file next to the config or in cwd"""
        env_file = next(
            (p for p in (self.config_dir / ".env", Path.cwd() / ".env") if p.exists()),
            None,
        )
        if not env_file:
            logging.debug("No .env file found, skipping environment variable loading")
            return

        logging.info(f"Loading environment variables from: {env_file}")
        try:
            with open(env_file, 'r') as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith('#'):
                        continue
                    match = re.match(r'^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$', line)
                    if match:
                        key, value = match.groups()
                        value = value.strip('"').strip("'")
                        # Real environment wins over .env
                        if key not in os.environ:
                            os.environ[key] = value
        except Exception as e:
            logging.warning(f"Error loading .env file: {e}")

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively substitute ${VAR} / $VAR references in config data"""
        if isinstance(data, dict):
            return {key: self._substitute_env_vars(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [self._substitute_env_vars(item) for item in data]
        elif isinstance(data, str):
            if data.startswith('${') and data.endswith('}'):
                return os.environ.get(data[2:-1], data)
            elif data.startswith('$') and len(data) > 1:
                return os.environ.get(data[1:], data)
            return data
        return data

    def _load_config(self) -> None:
        """Load configuration from file, filling missing top-level sections from defaults"""
        try:
            logging.debug(f"Loading config from: {self.config_file}")
            with open(self.config_file) as f:
                new_data = yaml.safe_load(f)

            if not isinstance(new_data, dict):
                raise ValueError("Invalid config format: root must be a dictionary")

            new_data = self._substitute_env_vars(new_data)
            for section, defaults in self._get_default_config().items():
                if section not in new_data:
                    new_data[section] = defaults

            if new_data.get("logging", {}).get("file"):
                new_data["logging"]["file"] = os.path.expanduser(new_data["logging"]["file"])

            self.data = new_data
            logging.debug(f"Loaded config data: {self.data}")

        except Exception as e:
            logging.error(f"Error loading config: {e}")
            if hasattr(self, 'data'):
                logging.info("Keeping previous configuration")
            else:
                logging.info("Using default configuration")
                self.data = self._get_default_config()

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return a top-level config section ({} when missing)"""
        return self.data.get(name) or {}
