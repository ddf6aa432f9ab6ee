"""
Durable key-value store over the settings table. Each set() is its own transaction.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import select

from prayer_reminders.core.db import session_scope
from prayer_reminders.core.models import SettingRecord


class KeyValueStore(ABC):
    """String keys to string values, durable across restarts, no transactions."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass


class DatabaseKeyValueStore(KeyValueStore):

    def get(self, key: str) -> Optional[str]:
        with session_scope() as session:
            row = session.execute(
                select(SettingRecord).where(SettingRecord.key == key)
            ).scalars().first()
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        with session_scope() as session:
            row = session.get(SettingRecord, key)
            if row:
                row.value = value
                row.updated_at = now
            else:
                session.add(SettingRecord(key=key, value=value, updated_at=now))


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for code paths that run without a database, such as unit tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value
