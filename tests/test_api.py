import pytest
import yaml
from fastapi.testclient import TestClient

from conftest import FakeBackendFactory, london
from prayer_reminders.api import create_app
from prayer_reminders.core.app import ReminderApp
from prayer_reminders.reminders.models import DAILY_REFRESH_ID, REFRESH_KIND
from prayer_reminders.reminders.notifier import ScheduledNotification


@pytest.fixture
def reminder_app(tmp_path, backend, clock):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({
        "logging": {"level": "INFO", "file": str(tmp_path / "reminders.log")},
        "database": {"path": str(tmp_path / "reminders.db")},
        "reminders": {
            "locations": [
                {"id": "uk", "label": "UK (Slough)", "backend": "json_feed", "timezone": "Europe/London",
                 "url": "https://feeds.example/uk.json"},
                {"id": "lk", "label": "Sri Lanka (Colombo)", "backend": "json_feed", "timezone": "Asia/Colombo",
                 "url": "https://feeds.example/lk.json"},
            ],
        },
        "notifications": {"platform": "ios"},
        "api": {"enabled": False},
    }))
    app = ReminderApp(
        config_path=str(config_path),
        watch_config=False,
        clock=clock,
        backend_factory=FakeBackendFactory(backend),
    )
    app.monitor.start(app.events)
    yield app
    app.stop()


@pytest.fixture
def client(reminder_app):
    return TestClient(create_app(reminder_app))


def test_get_default_settings(client):
    response = client.get("/api/reminders/settings")

    assert response.status_code == 200
    assert response.json() == {
        "enabled_prayers": {"Fajr": True, "Dhuhr": True, "Asr": True, "Maghrib": True, "Isha": True},
        "lead_minutes": 0,
        "location_id": "uk",
        "sound_id": "sound1",
    }


def test_put_settings_reschedules_and_arms_refresh(client):
    response = client.put("/api/reminders/settings", json={"lead_minutes": 10, "enabled_prayers": {"Dhuhr": False}})

    assert response.status_code == 200
    body = response.json()
    assert body["lead_minutes"] == 10
    assert body["enabled_prayers"]["Dhuhr"] is False
    assert body["enabled_prayers"]["Fajr"] is True

    scheduled = client.get("/api/reminders/scheduled").json()
    assert len(scheduled) == 8
    assert all(r["prayer_name"] != "Dhuhr" for r in scheduled)
    assert scheduled[0]["identifier"] == "prayer_Fajr_2024-03-15"
    assert scheduled[0]["body"] == "Fajr prayer is in 10 minutes"

    tasks = client.get("/api/tasks").json()
    assert DAILY_REFRESH_ID in {n["identifier"] for n in tasks["notifications"]}


@pytest.mark.parametrize("payload", [
    {"location_id": "atlantis"},
    {"sound_id": "sound9"},
    {"enabled_prayers": {"Taraweeh": True}},
])
def test_put_settings_rejects_unknown_choices(client, payload):
    assert client.put("/api/reminders/settings", json=payload).status_code == 400


def test_put_settings_rejects_negative_lead(client):
    assert client.put("/api/reminders/settings", json={"lead_minutes": -5}).status_code == 422


def test_app_state_active_triggers_foreground_check(client, reminder_app):
    response = client.post("/api/reminders/app-state", json={"state": "active"})

    assert response.status_code == 200
    assert len(reminder_app.scheduler.get_scheduled_reminders()) == 10


def test_app_state_unknown(client):
    assert client.post("/api/reminders/app-state", json={"state": "asleep"}).status_code == 400


def test_schedule_now(client):
    assert client.post("/api/reminders/schedule").json() == {"scheduled": 10}


def test_catalog_endpoints(client):
    assert [loc["id"] for loc in client.get("/api/locations").json()] == ["uk", "lk"]
    sounds = client.get("/api/sounds").json()
    assert sounds["sounds"][0] == {"id": "sound1", "name": "Adhan 1", "filename": "sound1.wav"}
    assert sounds["lead_minutes_options"] == [0, 5, 10, 15, 20, 30]


def test_daily_refresh_notification_reschedules(reminder_app, clock):
    clock.instant = london(2024, 3, 15, 23, 0)

    reminder_app.handle_notification(
        ScheduledNotification(DAILY_REFRESH_ID, clock.now(), {"kind": REFRESH_KIND})
    )

    identifiers = {n.identifier for n in reminder_app.runtime.list_scheduled()}
    assert DAILY_REFRESH_ID in identifiers
    assert "prayer_Isha_2024-03-16" in identifiers
    # iOS keeps the bundled file name
    assert {n.sound for n in reminder_app.scheduler.get_scheduled_reminders()} == {"sound1.wav"}
