"""
App lifecycle: foreground transitions re-check today's reminders.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from prayer_reminders.core.clock import to_zone
from prayer_reminders.reminders.scheduler import ReminderScheduler

ACTIVE = "active"
BACKGROUND = "background"
APP_STATES = (ACTIVE, "inactive", BACKGROUND)

# Local hours considered close enough to midnight to roll the window forward
LATE_NIGHT_START = 23
EARLY_MORNING_END = 1


class Subscription:
    """Handle returned by AppStateEvents.add_listener(); remove() only detaches this handle and is idempotent."""

    def __init__(self, events: "AppStateEvents", callback: Callable[[str], None]):
        self._events = events
        self.callback = callback
        self._removed = False

    @property
    def active(self) -> bool:
        return not self._removed and any(s is self for s in self._events.subscriptions)

    def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        self._events.subscriptions = [s for s in self._events.subscriptions if s is not self]


class AppStateEvents:
    """App-state transitions reported by the host (startup, API, CLI)."""

    def __init__(self):
        self.subscriptions: List[Subscription] = []
        self.state: Optional[str] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def add_listener(self, callback: Callable[[str], None]) -> Subscription:
        subscription = Subscription(self, callback)
        self.subscriptions.append(subscription)
        return subscription

    def emit(self, state: str) -> None:
        if state not in APP_STATES:
            raise ValueError(f"Unknown app state {state!r}")
        self.logger.debug(f"App state {self.state} -> {state}")
        self.state = state
        for subscription in list(self.subscriptions):
            try:
                subscription.callback(state)
            except Exception as e:
                self.logger.exception(f"App state listener failed: {e}")


def is_near_midnight(local_now: datetime) -> bool:
    return local_now.hour >= LATE_NIGHT_START or local_now.hour < EARLY_MORNING_END


class LifecycleMonitor:
    def __init__(self, scheduler: ReminderScheduler):
        self.scheduler = scheduler
        self.subscription: Optional[Subscription] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def start(self, events: AppStateEvents) -> Subscription:
        """Listen for foreground transitions. Calling start() again returns the existing subscription."""
        if self.subscription is not None and self.subscription.active:
            return self.subscription
        self.subscription = events.add_listener(self._on_state_change)
        return self.subscription

    def stop(self) -> None:
        if self.subscription is not None:
            self.subscription.remove()
            self.subscription = None

    def _on_state_change(self, state: str) -> None:
        if state == ACTIVE:
            self.on_app_foreground()

    def check_today_reminders(self) -> bool:
        """True when at least as many of today's reminders are pending as today's feed has enabled prayers."""
        try:
            settings = self.scheduler.settings.get_settings()
            zone = self.scheduler.active_zone(settings.location_id)
            today = to_zone(self.scheduler.clock.now(), zone).date()

            pending_today = 0
            for notification in self.scheduler.get_scheduled_reminders():
                prayer_time = (notification.payload or {}).get("prayer_time")
                try:
                    if prayer_time and to_zone(datetime.fromisoformat(prayer_time), zone).date() == today:
                        pending_today += 1
                except ValueError:
                    self.logger.debug(f"Ignoring reminder with bad prayer_time {prayer_time!r}")

            todays_prayers = self.scheduler.adapter.fetch_prayer_times_for_date(today, settings.location_id)
            expected = len(set(todays_prayers) & settings.enabled_prayers)
        except Exception as e:
            self.logger.error(f"Error checking today's prayer reminders: {e}")
            return False

        self.logger.info(f"Today's reminders: {pending_today}/{expected} scheduled")
        return pending_today >= expected

    def on_app_foreground(self) -> bool:
        """Reschedule when today's reminders are incomplete or it is around midnight. Returns True if rescheduled."""
        try:
            local_now = self.scheduler.clock.now_in(self.scheduler.active_zone())
        except Exception as e:
            self.logger.error(f"Error resolving local time: {e}")
            return False

        if not self.check_today_reminders():
            self.logger.info("Today's reminders missing, scheduling now")
            self.scheduler.schedule_reminders()
            return True
        if is_near_midnight(local_now):
            self.logger.info("Late night/early morning, rescheduling reminders")
            self.scheduler.schedule_reminders()
            return True
        return False
