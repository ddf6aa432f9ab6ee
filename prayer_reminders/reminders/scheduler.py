"""
Prayer reminder scheduler.

Every pass cancels all pending prayer reminders and rebuilds the rolling window
(today and tomorrow in the location's zone) from the feed and current settings.
Nothing is diffed or cached between passes, so the live set can't drift from
the settings. The daily-refresh trigger has its own fixed identifier and is
only touched by arm_daily_refresh().
"""
import logging
from datetime import timedelta
from typing import List, Optional

from prayer_reminders.core.clock import Clock, next_daily_run, to_zone
from prayer_reminders.feeds.adapter import TimeSourceAdapter
from prayer_reminders.reminders.catalog import Catalog
from prayer_reminders.reminders.models import (
    DAILY_REFRESH_ID,
    PRAYER_NAMES,
    REFRESH_KIND,
    REMINDER_KIND,
    PrayerInstant,
    ScheduledReminder,
    reminder_identifier,
)
from prayer_reminders.reminders.notifier import NotificationRuntime, ScheduledNotification
from prayer_reminders.reminders.settings import SettingsStore


def reminder_body(prayer_name: str, lead_minutes: int) -> str:
    if lead_minutes == 0:
        return f"It's time for {prayer_name} prayer"
    return f"{prayer_name} prayer is in {lead_minutes} minute{'s' if lead_minutes != 1 else ''}"


def build_reminder(prayer: PrayerInstant, lead_minutes: int, sound: Optional[str] = None) -> ScheduledReminder:
    """Reminder for one prayer instant; fires lead_minutes before it."""
    local = prayer.local
    return ScheduledReminder(
        identifier=reminder_identifier(prayer.prayer_name, prayer.local_date),
        fire_at_utc=prayer.datetime_utc - timedelta(minutes=lead_minutes),
        payload={
            "prayer_name": prayer.prayer_name,
            "prayer_time": local.isoformat(),
            "kind": REMINDER_KIND,
        },
        title=f"{prayer.prayer_name} Prayer Reminder",
        body=reminder_body(prayer.prayer_name, lead_minutes),
        sound=sound,
    )


class ReminderScheduler:
    def __init__(
        self,
        settings: SettingsStore,
        adapter: TimeSourceAdapter,
        runtime: NotificationRuntime,
        catalog: Catalog,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings
        self.adapter = adapter
        self.runtime = runtime
        self.catalog = catalog
        self.clock = clock or Clock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def active_zone(self, location_id: Optional[str] = None) -> str:
        return self.catalog.get_location(location_id or self.settings.get_location_id()).timezone

    def get_scheduled_reminders(self) -> List[ScheduledNotification]:
        """Pending prayer reminders (the daily-refresh trigger excluded)."""
        return [
            n for n in self.runtime.list_scheduled()
            if (n.payload or {}).get("kind") == REMINDER_KIND and n.identifier != DAILY_REFRESH_ID
        ]

    def cancel_all_reminders(self) -> int:
        """Cancel every pending prayer reminder, keeping the daily refresh. Returns how many were cancelled."""
        try:
            pending = self.get_scheduled_reminders()
        except Exception as e:
            self.logger.error(f"Error listing scheduled reminders: {e}")
            return 0
        cancelled = 0
        for notification in pending:
            try:
                self.runtime.cancel(notification.identifier)
                cancelled += 1
            except Exception as e:
                self.logger.error(f"Error cancelling {notification.identifier}: {e}")
        self.logger.info(f"Cancelled {cancelled} prayer reminder(s)")
        return cancelled

    def schedule_reminders(self) -> int:
        """Cancel and rebuild the reminder window. Returns the number of reminders scheduled."""
        self.cancel_all_reminders()

        settings = self.settings.get_settings()
        sound = self.settings.get_sound_filename()
        zone = self.active_zone(settings.location_id)
        now = self.clock.now()
        today = to_zone(now, zone).date()
        self.logger.info(
            f"Scheduling reminders for {sorted(settings.enabled_prayers)} at {settings.location_id} ({zone}), "
            f"{settings.lead_minutes} min before, sound {sound or 'default'}"
        )

        scheduled = 0
        days_scheduled = set()
        for day_offset in range(self.catalog.days_ahead):
            target_date = today + timedelta(days=day_offset)
            prayers = self.adapter.fetch_prayer_times_for_date(target_date, settings.location_id)

            for name in PRAYER_NAMES:
                if name not in prayers or name not in settings.enabled_prayers:
                    continue
                reminder = build_reminder(prayers[name], settings.lead_minutes, sound)
                if reminder.fire_at_utc <= now:
                    self.logger.debug(f"Skipping {reminder.identifier}: notification time has passed")
                    continue
                try:
                    self.runtime.schedule_at(
                        reminder.identifier,
                        reminder.fire_at_utc,
                        reminder.payload,
                        title=reminder.title,
                        body=reminder.body,
                        sound=reminder.sound,
                    )
                except Exception as e:
                    self.logger.error(f"Error scheduling {reminder.identifier}: {e}")
                    continue
                scheduled += 1
                days_scheduled.add(target_date)
                self.logger.debug(
                    f"Scheduled {reminder.identifier} for {to_zone(reminder.fire_at_utc, zone).strftime('%Y-%m-%d %H:%M')}"
                )

        self.logger.info(
            f"Scheduled {scheduled} prayer reminder(s) over {len(days_scheduled)} day(s)"
            + ("" if today in days_scheduled else ", none left for today")
        )
        return scheduled

    def arm_daily_refresh(self) -> Optional[ScheduledNotification]:
        """Cancel and recreate the single daily-refresh trigger at the next refresh time in the location zone."""
        try:
            zone = self.active_zone()
            fire_at = next_daily_run(self.clock.now(), zone, self.catalog.refresh_time)
            self.runtime.cancel(DAILY_REFRESH_ID)
            payload = {"kind": REFRESH_KIND}
            self.runtime.schedule_at(
                DAILY_REFRESH_ID,
                fire_at,
                payload,
                title="Prayer Reminders",
                body="Updating prayer reminders for tomorrow",
            )
        except Exception as e:
            self.logger.error(f"Error scheduling daily refresh: {e}")
            return None
        self.logger.info(f"Daily refresh armed for {to_zone(fire_at, zone).strftime('%Y-%m-%d %H:%M')} {zone}")
        return ScheduledNotification(DAILY_REFRESH_ID, fire_at, payload)

    def on_daily_refresh(self) -> int:
        """Handler for the daily-refresh trigger firing."""
        count = self.schedule_reminders()
        self.arm_daily_refresh()
        return count

    def initialize(self) -> int:
        """Startup pass: schedule the window and arm the refresh. Returns pending reminder count."""
        self.logger.info("Initializing prayer reminders")
        self.schedule_reminders()
        self.arm_daily_refresh()
        try:
            total = len(self.get_scheduled_reminders())
        except Exception as e:
            self.logger.error(f"Error counting scheduled reminders: {e}")
            return 0
        self.logger.info(f"Prayer reminders initialized: {total} reminder(s) total")
        return total
