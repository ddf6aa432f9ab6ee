from datetime import date, datetime, timezone

from conftest import FakeBackend, FakeBackendFactory, london
from prayer_reminders.feeds.adapter import TimeSourceAdapter
from prayer_reminders.feeds.base import FeedError
from prayer_reminders.reminders.models import DAILY_REFRESH_ID, FeedEntry, PrayerInstant, REMINDER_KIND
from prayer_reminders.reminders.notifier import DatabaseNotificationRuntime
from prayer_reminders.reminders.scheduler import ReminderScheduler, build_reminder, reminder_body


def identifiers(runtime):
    return sorted(n.identifier for n in runtime.list_scheduled())


def test_fire_time_is_prayer_minus_lead(scheduler, settings, backend, runtime):
    backend.entries = [FeedEntry("2024-03-15", "0512", "Fajr")]
    settings.set_lead_minutes(10)

    assert scheduler.schedule_reminders() == 1

    [reminder] = runtime.list_scheduled()
    assert reminder.identifier == "prayer_Fajr_2024-03-15"
    assert reminder.fire_at_utc == london(2024, 3, 15, 5, 2).astimezone(timezone.utc)
    assert reminder.payload == {
        "prayer_name": "Fajr",
        "prayer_time": "2024-03-15T05:12:00+00:00",
        "kind": REMINDER_KIND,
    }
    assert reminder.title == "Fajr Prayer Reminder"
    assert reminder.body == "Fajr prayer is in 10 minutes"
    assert reminder.sound == "sound1.wav"


def test_passed_reminders_are_skipped(scheduler, settings, backend, runtime, clock):
    backend.entries = [FeedEntry("2024-03-15", "0512", "Fajr")]
    settings.set_lead_minutes(10)
    clock.instant = london(2024, 3, 15, 6, 0)

    assert scheduler.schedule_reminders() == 0
    assert runtime.list_scheduled() == []


def test_fire_time_equal_to_now_is_not_scheduled(scheduler, settings, runtime, clock):
    settings.set_lead_minutes(10)
    clock.instant = london(2024, 3, 15, 5, 2)

    # Fajr today is exactly now; the other four today and all five tomorrow remain
    assert scheduler.schedule_reminders() == 9
    assert "prayer_Fajr_2024-03-15" not in identifiers(runtime)
    assert "prayer_Fajr_2024-03-16" in identifiers(runtime)


def test_three_prayers_over_two_days(scheduler, settings, runtime):
    settings.set_enabled_prayers(["Fajr", "Asr", "Isha"])
    scheduler.arm_daily_refresh()

    assert scheduler.schedule_reminders() == 6
    assert identifiers(runtime) == sorted([
        "prayer_Fajr_2024-03-15", "prayer_Asr_2024-03-15", "prayer_Isha_2024-03-15",
        "prayer_Fajr_2024-03-16", "prayer_Asr_2024-03-16", "prayer_Isha_2024-03-16",
        DAILY_REFRESH_ID,
    ])


def test_disabled_prayers_are_never_scheduled(scheduler, settings, runtime):
    settings.set_enabled_prayers(["Maghrib"])
    scheduler.schedule_reminders()

    names = {n.payload["prayer_name"] for n in scheduler.get_scheduled_reminders()}
    assert names == {"Maghrib"}


def test_scheduling_twice_gives_the_same_live_set(scheduler, runtime):
    scheduler.arm_daily_refresh()
    first_count = scheduler.schedule_reminders()
    first = runtime.list_scheduled()

    second_count = scheduler.schedule_reminders()
    second = runtime.list_scheduled()

    assert first_count == second_count == 10
    assert [(n.identifier, n.fire_at_utc) for n in first] == [(n.identifier, n.fire_at_utc) for n in second]
    assert len({n.identifier for n in second}) == len(second)


def test_stale_reminders_are_cancelled_other_notifications_kept(scheduler, runtime, backend):
    stale_at = london(2024, 3, 20, 12, 0)
    runtime.schedule_at("prayer_Asr_2024-03-20", stale_at, {"kind": REMINDER_KIND, "prayer_name": "Asr"})
    runtime.schedule_at("news_digest", stale_at, {"kind": "news"})
    scheduler.arm_daily_refresh()
    backend.entries = []

    assert scheduler.schedule_reminders() == 0
    assert identifiers(runtime) == sorted(["news_digest", DAILY_REFRESH_ID])


def test_changing_settings_drops_old_reminders(scheduler, settings, runtime):
    scheduler.schedule_reminders()
    settings.set_enabled_prayers(["Fajr"])

    scheduler.schedule_reminders()

    assert identifiers(runtime) == ["prayer_Fajr_2024-03-15", "prayer_Fajr_2024-03-16"]


def test_one_failing_reminder_does_not_stop_the_pass(settings, catalog, backend, clock, db, caplog):
    class FlakyRuntime(DatabaseNotificationRuntime):
        def schedule_at(self, identifier, *args, **kwargs):
            if identifier.startswith("prayer_Dhuhr"):
                raise RuntimeError("notification store full")
            super().schedule_at(identifier, *args, **kwargs)

    runtime = FlakyRuntime()
    adapter = TimeSourceAdapter(catalog, backend_factory=FakeBackendFactory(backend))
    scheduler = ReminderScheduler(settings, adapter, runtime, catalog, clock=clock)

    assert scheduler.schedule_reminders() == 8
    assert not any("Dhuhr" in i for i in identifiers(runtime))
    assert "notification store full" in caplog.text


def test_feed_failure_schedules_nothing(settings, catalog, runtime, clock):
    adapter = TimeSourceAdapter(catalog, backend_factory=FakeBackendFactory(FakeBackend(error=FeedError("timeout"))))
    scheduler = ReminderScheduler(settings, adapter, runtime, catalog, clock=clock)

    assert scheduler.schedule_reminders() == 0


def test_today_and_tomorrow_follow_location_zone(scheduler, settings, backend, runtime, clock):
    # 20:00 London on the 15th is already 01:30 on the 16th in Colombo
    clock.instant = london(2024, 3, 15, 20, 0)
    settings.set_location_id("lk")
    backend.entries = [FeedEntry(d, "0500", "Fajr") for d in ("2024-03-15", "2024-03-16", "2024-03-17")]

    scheduler.schedule_reminders()

    assert backend.calls[-2:] == [date(2024, 3, 16), date(2024, 3, 17)]
    assert identifiers(runtime) == ["prayer_Fajr_2024-03-16", "prayer_Fajr_2024-03-17"]


def test_android_runtime_strips_sound_extension(settings, catalog, backend, clock, db):
    runtime = DatabaseNotificationRuntime("android")
    adapter = TimeSourceAdapter(catalog, backend_factory=FakeBackendFactory(backend))
    settings.set_sound_id("sound2")

    ReminderScheduler(settings, adapter, runtime, catalog, clock=clock).schedule_reminders()

    assert {n.sound for n in runtime.list_scheduled()} == {"sound2"}


def test_daily_refresh_is_a_singleton_at_23_local(scheduler, runtime, clock):
    scheduler.arm_daily_refresh()
    scheduler.arm_daily_refresh()

    [refresh] = runtime.list_scheduled()
    assert refresh.identifier == DAILY_REFRESH_ID
    assert refresh.fire_at_utc == london(2024, 3, 15, 23, 0).astimezone(timezone.utc)

    clock.instant = london(2024, 3, 15, 23, 30)
    scheduler.arm_daily_refresh()
    [refresh] = runtime.list_scheduled()
    assert refresh.fire_at_utc == london(2024, 3, 16, 23, 0).astimezone(timezone.utc)


def test_on_daily_refresh_reschedules_and_rearms(scheduler, runtime, clock):
    clock.instant = london(2024, 3, 15, 23, 0)

    assert scheduler.on_daily_refresh() == 5
    assert DAILY_REFRESH_ID in identifiers(runtime)
    assert all(n.identifier.endswith("2024-03-16") for n in scheduler.get_scheduled_reminders())


def test_initialize_counts_pending_reminders(scheduler, runtime):
    assert scheduler.initialize() == 10
    assert len(runtime.list_scheduled()) == 11


def test_reminder_body():
    assert reminder_body("Asr", 0) == "It's time for Asr prayer"
    assert reminder_body("Asr", 1) == "Asr prayer is in 1 minute"
    assert reminder_body("Asr", 20) == "Asr prayer is in 20 minutes"


def test_identifier_uses_the_local_date_of_the_prayer():
    # 19:00 UTC on the 15th is 00:30 on the 16th in Colombo
    prayer = PrayerInstant("Isha", datetime(2024, 3, 15, 19, 0, tzinfo=timezone.utc), "Asia/Colombo")

    reminder = build_reminder(prayer, 10, "sound1.wav")

    assert reminder.identifier == "prayer_Isha_2024-03-16"
    assert reminder.fire_at_utc == datetime(2024, 3, 15, 18, 50, tzinfo=timezone.utc)
    assert reminder.payload["prayer_time"] == "2024-03-16T00:30:00+05:30"
