"""
Local notification runtime: a persisted store of pending notifications plus a
dispatcher that fires the due ones to registered handlers.
"""
import logging
import os
from abc import ABC, abstractmethod
from collections import namedtuple
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import delete, select

from prayer_reminders.core.clock import Clock, from_naive_utc, to_naive_utc
from prayer_reminders.core.db import session_scope
from prayer_reminders.core.models import NotificationRecord
from prayer_reminders.core.task_manager import TaskManager

ScheduledNotification = namedtuple(
    "ScheduledNotification",
    ["identifier", "fire_at_utc", "payload", "title", "body", "sound"],
    defaults=(None, None, None),
)

PLATFORMS = ("ios", "android", "desktop")


class NotificationRuntime(ABC):
    """Schedule/cancel/list contract the scheduler depends on."""

    def __init__(self, platform: str = "desktop"):
        if platform not in PLATFORMS:
            raise ValueError(f"Unknown notification platform {platform!r}")
        self.platform = platform

    @abstractmethod
    def schedule_at(
        self,
        identifier: str,
        fire_at_utc: datetime,
        payload: Dict,
        title: Optional[str] = None,
        body: Optional[str] = None,
        sound: Optional[str] = None,
    ) -> None:
        """Schedule a notification, replacing any existing one with the same identifier."""
        pass

    @abstractmethod
    def cancel(self, identifier: str) -> None:
        pass

    @abstractmethod
    def list_scheduled(self) -> List[ScheduledNotification]:
        pass

    def sound_reference(self, filename: Optional[str]) -> Optional[str]:
        """Platform sound reference for a catalog filename; None means the default sound.
        iOS plays bundled files by full filename, Android channels name the sound without extension."""
        if not filename:
            return None
        if self.platform == "android":
            return os.path.splitext(filename)[0]
        return filename


class DatabaseNotificationRuntime(NotificationRuntime):
    """Notification store backed by the scheduled_notifications table."""

    def __init__(self, platform: str = "desktop"):
        super().__init__(platform)
        self.logger = logging.getLogger(self.__class__.__name__)

    def schedule_at(self, identifier, fire_at_utc, payload, title=None, body=None, sound=None) -> None:
        if fire_at_utc.tzinfo is None:
            raise ValueError("fire_at_utc must be timezone-aware")
        with session_scope() as session:
            session.merge(NotificationRecord(
                identifier=identifier,
                fire_at=to_naive_utc(fire_at_utc),
                payload=dict(payload),
                title=title,
                body=body,
                sound=self.sound_reference(sound),
            ))

    def cancel(self, identifier: str) -> None:
        with session_scope() as session:
            session.execute(delete(NotificationRecord).where(NotificationRecord.identifier == identifier))

    def list_scheduled(self) -> List[ScheduledNotification]:
        with session_scope() as session:
            rows = session.execute(
                select(NotificationRecord).order_by(NotificationRecord.fire_at, NotificationRecord.identifier)
            ).scalars().all()
            return [_to_notification(r) for r in rows]

    def pop_due(self, now: datetime) -> List[ScheduledNotification]:
        """Remove and return notifications whose fire time has been reached."""
        with session_scope() as session:
            rows = session.execute(
                select(NotificationRecord)
                .where(NotificationRecord.fire_at <= to_naive_utc(now))
                .order_by(NotificationRecord.fire_at)
            ).scalars().all()
            due = [_to_notification(r) for r in rows]
            for r in rows:
                session.delete(r)
            return due


def _to_notification(row: NotificationRecord) -> ScheduledNotification:
    return ScheduledNotification(
        identifier=row.identifier,
        fire_at_utc=from_naive_utc(row.fire_at),
        payload=row.payload or {},
        title=row.title,
        body=row.body,
        sound=row.sound,
    )


class NotificationDispatcher:
    """Polls the runtime on a timer and hands due notifications to handlers."""

    TIMER_NAME = "notification_dispatch"

    def __init__(
        self,
        runtime: DatabaseNotificationRuntime,
        task_manager: TaskManager,
        clock: Optional[Clock] = None,
        poll_interval: float = 30,
    ):
        self.runtime = runtime
        self.task_manager = task_manager
        self.clock = clock or Clock()
        self.poll_interval = poll_interval
        self.handlers: List[Callable[[ScheduledNotification], None]] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def add_handler(self, handler: Callable[[ScheduledNotification], None]) -> None:
        self.handlers.append(handler)

    def start(self) -> None:
        self.logger.info(f"Dispatching notifications every {self.poll_interval}s")
        self.task_manager.schedule_task(self.TIMER_NAME, self.fire_due, self.poll_interval, one_time=False)

    def stop(self) -> None:
        self.task_manager.cancel_task(self.TIMER_NAME)

    def fire_due(self) -> int:
        """Deliver every due notification; a failing handler does not stop the others."""
        try:
            due = self.runtime.pop_due(self.clock.now())
        except Exception as e:
            self.logger.error(f"Error reading due notifications: {e}")
            return 0
        for notification in due:
            self.logger.info(f"Notification {notification.identifier}: {notification.title} - {notification.body}")
            for handler in self.handlers:
                try:
                    handler(notification)
                except Exception as e:
                    self.logger.exception(f"Notification handler failed for {notification.identifier}: {e}")
        return len(due)
