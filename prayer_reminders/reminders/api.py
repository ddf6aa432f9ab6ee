"""
Reminder API. Mounted at /api/reminders/.
"""
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from prayer_reminders.reminders.lifecycle import APP_STATES
from prayer_reminders.reminders.models import PRAYER_NAMES


class SettingsResponse(BaseModel):
    enabled_prayers: Dict[str, bool]
    lead_minutes: int
    location_id: str
    sound_id: Optional[str] = None


class SettingsUpdate(BaseModel):
    enabled_prayers: Optional[Dict[str, bool]] = None
    lead_minutes: Optional[int] = Field(default=None, ge=0)
    location_id: Optional[str] = None
    sound_id: Optional[str] = None


class ReminderResponse(BaseModel):
    identifier: str
    prayer_name: Optional[str] = None
    prayer_time: Optional[str] = None
    fire_at: datetime
    title: Optional[str] = None
    body: Optional[str] = None
    sound: Optional[str] = None


class ScheduleResult(BaseModel):
    scheduled: int


class AppStateReport(BaseModel):
    state: str


def _settings_response(app) -> SettingsResponse:
    settings = app.settings
    return SettingsResponse(
        enabled_prayers=settings.get_prayer_toggles(),
        lead_minutes=settings.get_lead_minutes(),
        location_id=settings.get_location_id(),
        sound_id=settings.get_sound_id(),
    )


def get_router(reminder_app) -> APIRouter:
    router = APIRouter(tags=["Prayer Reminders"])

    @router.get("/settings", response_model=SettingsResponse)
    def get_settings() -> SettingsResponse:
        return _settings_response(reminder_app)

    @router.put("/settings", response_model=SettingsResponse)
    def put_settings(update: SettingsUpdate) -> SettingsResponse:
        """Persist the given settings, then rebuild reminders."""
        catalog = reminder_app.catalog
        if update.location_id is not None and update.location_id not in {loc.id for loc in catalog.locations}:
            raise HTTPException(status_code=400, detail=f"Unknown location: {update.location_id}")
        if update.sound_id is not None and catalog.get_sound(update.sound_id) is None:
            raise HTTPException(status_code=400, detail=f"Unknown sound: {update.sound_id}")
        if update.enabled_prayers is not None:
            unknown = set(update.enabled_prayers) - set(PRAYER_NAMES)
            if unknown:
                raise HTTPException(status_code=400, detail=f"Unknown prayers: {sorted(unknown)}")
            update.enabled_prayers = {**reminder_app.settings.get_prayer_toggles(), **update.enabled_prayers}
        reminder_app.update_settings(update.model_dump(exclude_none=True))
        return _settings_response(reminder_app)

    @router.get("/scheduled", response_model=List[ReminderResponse])
    def list_scheduled() -> List[ReminderResponse]:
        return [
            ReminderResponse(
                identifier=n.identifier,
                prayer_name=n.payload.get("prayer_name"),
                prayer_time=n.payload.get("prayer_time"),
                fire_at=n.fire_at_utc,
                title=n.title,
                body=n.body,
                sound=n.sound,
            )
            for n in reminder_app.scheduler.get_scheduled_reminders()
        ]

    @router.post("/schedule", response_model=ScheduleResult)
    def schedule_now() -> ScheduleResult:
        return ScheduleResult(scheduled=reminder_app.reschedule())

    @router.post("/app-state", response_model=AppStateReport)
    def report_app_state(report: AppStateReport) -> AppStateReport:
        """Client reports foreground/background transitions."""
        if report.state not in APP_STATES:
            raise HTTPException(status_code=400, detail=f"Unknown app state: {report.state}")
        reminder_app.report_app_state(report.state)
        return report

    return router
