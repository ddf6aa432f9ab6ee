from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from prayer_reminders.core.clock import FixedClock
from prayer_reminders.core.db import close_db, init_db
from prayer_reminders.core.store import DatabaseKeyValueStore
from prayer_reminders.feeds.adapter import TimeSourceAdapter
from prayer_reminders.reminders.catalog import Catalog
from prayer_reminders.reminders.models import FeedEntry, Location, SoundOption
from prayer_reminders.reminders.notifier import DatabaseNotificationRuntime
from prayer_reminders.reminders.scheduler import ReminderScheduler
from prayer_reminders.reminders.settings import SettingsStore

LONDON = ZoneInfo("Europe/London")


def london(*args) -> datetime:
    return datetime(*args, tzinfo=LONDON)


def day_entries(date_str, times=("0512", "1215", "1530", "1810", "1945"), labels=("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")):
    return [FeedEntry(date_str, t, label) for t, label in zip(times, labels)]


class FakeBackend:
    """Feed backend returning canned entries for every date, or raising."""

    def __init__(self, entries=None, error=None):
        self.entries = list(entries or [])
        self.error = error
        self.calls = []

    def fetch_entries(self, target_date):
        self.calls.append(target_date)
        if self.error:
            raise self.error
        return list(self.entries)


class FakeBackendFactory:
    def __init__(self, backend):
        self.backend = backend

    def __call__(self, location):
        return self.backend


@pytest.fixture
def db(tmp_path):
    init_db(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    yield
    close_db()


@pytest.fixture
def catalog():
    return Catalog(
        locations=[
            Location("uk", "UK (Slough)", "json_feed", "Europe/London", {"url": "https://feeds.example/uk.json"}),
            Location("lk", "Sri Lanka (Colombo)", "json_feed", "Asia/Colombo", {"url": "https://feeds.example/lk.json"}),
        ],
        sounds=[SoundOption("sound1", "Adhan 1", "sound1.wav"), SoundOption("sound2", "Adhan 2", "sound2.wav")],
        lead_minutes_options=[0, 5, 10, 15, 20, 30],
    )


@pytest.fixture
def backend():
    return FakeBackend(day_entries("2024-03-15") + day_entries("2024-03-16"))


@pytest.fixture
def clock():
    return FixedClock(london(2024, 3, 15, 4, 0))


@pytest.fixture
def settings(db, catalog):
    return SettingsStore(DatabaseKeyValueStore(), catalog)


@pytest.fixture
def runtime(db):
    return DatabaseNotificationRuntime("desktop")


@pytest.fixture
def scheduler(settings, catalog, backend, runtime, clock):
    adapter = TimeSourceAdapter(catalog, backend_factory=FakeBackendFactory(backend))
    return ReminderScheduler(settings, adapter, runtime, catalog, clock=clock)


