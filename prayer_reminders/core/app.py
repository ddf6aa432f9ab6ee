import logging
import os
import threading
from typing import Any, Callable, Dict, Optional

from .clock import Clock
from .config import Config
from .db import close_db, init_db
from .store import DatabaseKeyValueStore
from .task_manager import TaskManager


class ReminderApp:
    """
    Long-running host: owns config, database, notification dispatch and the API,
    and funnels every event (app-state reports, notification fires, settings
    edits, config reloads) through one lock so scheduling passes never overlap.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        watch_config: bool = True,
        clock: Optional[Clock] = None,
        backend_factory: Optional[Callable] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path, watch=watch_config)
        self.config.register_change_callback(self.handle_config_change)
        self._setup_logging()

        init_db(self.config.data)

        self.clock = clock or Clock()
        self.backend_factory = backend_factory
        self._event_lock = threading.RLock()
        self._stop_event = threading.Event()

        from prayer_reminders.reminders.lifecycle import AppStateEvents, LifecycleMonitor
        from prayer_reminders.reminders.notifier import NotificationDispatcher

        self._build_services()
        self.events = AppStateEvents()
        self.monitor = LifecycleMonitor(self.scheduler)
        self.task_manager = TaskManager()
        notifications = self.config.get_section("notifications")
        self.dispatcher = NotificationDispatcher(
            self.runtime,
            self.task_manager,
            clock=self.clock,
            poll_interval=float(notifications.get("poll_interval", 30)),
        )
        self.dispatcher.add_handler(self.handle_notification)

    def _setup_logging(self) -> None:
        """Add a file handler and apply the configured level; stdout logging is set up by main"""
        log_config = self.config.get_section("logging")
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, str(log_config.get("level", "INFO")).upper(), logging.INFO))

        log_file = log_config.get("file")
        if log_file:
            log_file = os.path.expanduser(log_file)
            try:
                os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(logging.Formatter(
                    '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
                ))
                root_logger.addHandler(file_handler)
                self._file_handler = file_handler
            except OSError as e:
                self.logger.warning(f"File logging disabled: {e}")

        logging.info("Prayer reminders starting...")

    def _build_services(self) -> None:
        """(Re)create catalog-dependent services from the current config."""
        from prayer_reminders.feeds.adapter import TimeSourceAdapter
        from prayer_reminders.reminders.catalog import Catalog
        from prayer_reminders.reminders.notifier import DatabaseNotificationRuntime
        from prayer_reminders.reminders.scheduler import ReminderScheduler
        from prayer_reminders.reminders.settings import SettingsStore

        self.catalog = Catalog.from_config(self.config.get_section("reminders"))
        self.settings = SettingsStore(DatabaseKeyValueStore(), self.catalog)
        adapter_kwargs = {"backend_factory": self.backend_factory} if self.backend_factory else {}
        self.adapter = TimeSourceAdapter(self.catalog, **adapter_kwargs)
        platform = self.config.get_section("notifications").get("platform", "desktop")
        if hasattr(self, "runtime") and self.runtime.platform == platform:
            runtime = self.runtime
        else:
            runtime = DatabaseNotificationRuntime(platform)
        self.runtime = runtime
        self.scheduler = ReminderScheduler(self.settings, self.adapter, self.runtime, self.catalog, clock=self.clock)

    # Events. Each one holds the lock for its whole scheduling pass.

    def report_app_state(self, state: str) -> None:
        with self._event_lock:
            self.events.emit(state)

    def handle_notification(self, notification) -> None:
        from prayer_reminders.reminders.models import REFRESH_KIND

        if (notification.payload or {}).get("kind") == REFRESH_KIND:
            self.logger.info("Daily refresh fired, rescheduling prayer reminders")
            with self._event_lock:
                self.scheduler.on_daily_refresh()

    def reschedule(self, arm_refresh: bool = False) -> int:
        with self._event_lock:
            count = self.scheduler.schedule_reminders()
            if arm_refresh:
                self.scheduler.arm_daily_refresh()
            return count

    def update_settings(self, changes: Dict[str, Any]) -> int:
        """Apply setting changes, rebuild reminders and re-arm the daily refresh. Returns scheduled count."""
        setters = {
            "enabled_prayers": self.settings.set_prayer_toggles,
            "lead_minutes": self.settings.set_lead_minutes,
            "location_id": self.settings.set_location_id,
            "sound_id": self.settings.set_sound_id,
        }
        with self._event_lock:
            for key, value in changes.items():
                if key in setters and value is not None:
                    setters[key](value)
            return self.reschedule(arm_refresh=True)

    def handle_config_change(self, new_config: Dict[str, Any]) -> None:
        """Rebuild services from reloaded config and reschedule"""
        self.logger.info("Handling config change")
        with self._event_lock:
            try:
                self._build_services()
                self.monitor.scheduler = self.scheduler
                self.scheduler.schedule_reminders()
                self.scheduler.arm_daily_refresh()
            except Exception as e:
                self.logger.error(f"Error handling config change: {e}", exc_info=True)

    def run(self) -> None:
        try:
            with self._event_lock:
                self.scheduler.initialize()
            self.monitor.start(self.events)
            self.dispatcher.start()
            try:
                from prayer_reminders.api import run_api_server
                run_api_server(self)
            except Exception as e:
                self.logger.warning(f"API server not started: {e}")
            while not self._stop_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.stop()

    def stop(self) -> None:
        self._stop_event.set()
        self.monitor.stop()
        self.dispatcher.stop()
        self.task_manager.stop()
        self.config.cleanup()
        handler = getattr(self, "_file_handler", None)
        if handler is not None:
            logging.getLogger().removeHandler(handler)
            handler.close()
            self._file_handler = None
        close_db()
