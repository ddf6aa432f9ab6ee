"""
Core DB models: key-value settings and the local notification store.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text, JSON

from prayer_reminders.core.db import Base


def _utc_now() -> datetime:
    """UTC now as naive datetime for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SettingRecord(Base):
    """One persisted preference. Each key is written independently (no multi-key transactions)."""
    __tablename__ = "settings"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, onupdate=_utc_now, nullable=False)


class NotificationRecord(Base):
    """A pending local notification. Removed when cancelled or when it fires."""
    __tablename__ = "scheduled_notifications"

    identifier = Column(String(255), primary_key=True)
    fire_at = Column(DateTime(timezone=False), nullable=False, index=True)  # naive UTC
    title = Column(String(255), nullable=True)
    body = Column(Text, nullable=True)
    sound = Column(String(255), nullable=True)  # platform sound reference, null = default
    payload = Column(JSON, nullable=False)  # e.g. {"kind": "prayer_reminder", "prayer_name": ..., "prayer_time": ...}
    created_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False)
