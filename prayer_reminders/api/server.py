"""
FastAPI server for the reminder API. Run with run_api_server(app) in a background thread.
Central endpoints: GET /api/locations, GET /api/sounds, GET /api/tasks. Reminder routes
are mounted from prayer_reminders.reminders.api under /api/reminders/.
Docs when enabled: http://<host>:<port>/docs
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI

from prayer_reminders.reminders.api import get_router

logger = logging.getLogger(__name__)


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO string (UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def create_app(reminder_app: Any) -> FastAPI:
    """Create FastAPI app with routes that use the given ReminderApp instance."""
    app = FastAPI(title="Prayer Reminders API", description="Reminder settings, schedule and app-state reports")

    @app.get("/api/locations")
    def list_locations() -> List[Dict[str, Any]]:
        """Configured locations (feed options omitted)."""
        return [
            {"id": loc.id, "label": loc.label, "backend": loc.backend, "timezone": loc.timezone}
            for loc in reminder_app.catalog.locations
        ]

    @app.get("/api/sounds")
    def list_sounds() -> Dict[str, Any]:
        return {
            "sounds": [s._asdict() for s in reminder_app.catalog.sounds],
            "lead_minutes_options": reminder_app.catalog.lead_minutes_options,
        }

    @app.get("/api/tasks")
    def list_tasks() -> Dict[str, Any]:
        """Pending notifications (reminders and daily refresh) and active in-memory timers."""
        pending = [
            {
                "identifier": n.identifier,
                "kind": (n.payload or {}).get("kind"),
                "fire_at": _serialize_datetime(n.fire_at_utc),
            }
            for n in reminder_app.runtime.list_scheduled()
        ]
        timers = [
            {"name": t["name"], "next_run_at": _serialize_datetime(t["next_run_at"])}
            for t in reminder_app.task_manager.get_active_timers()
        ]
        return {"notifications": pending, "active_timers": timers}

    app.include_router(get_router(reminder_app), prefix="/api/reminders")
    return app


def run_api_server(reminder_app: Any) -> None:
    """
    Start the API server in a daemon thread if api.enabled is true.
    Reads api.host (default 127.0.0.1) and api.port (default 8765) from config.
    """
    api_config = reminder_app.config.get_section("api")
    if not api_config.get("enabled", False):
        logger.info("API server not started: set api.enabled to true in your config file to enable.")
        return
    host = api_config.get("host", "127.0.0.1")
    port = int(api_config.get("port", 8765))
    fastapi_app = create_app(reminder_app)

    def run_uvicorn():
        try:
            import uvicorn
            logger.info(f"API server listening at http://{host}:{port} (docs at /docs)")
            uvicorn.run(fastapi_app, host=host, port=port)
        except Exception as e:
            logger.exception(f"API server thread failed: {e}")

    thread = threading.Thread(target=run_uvicorn, daemon=True)
    thread.start()
    logger.info("API server thread started.")
