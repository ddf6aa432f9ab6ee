"""
In-memory timers for recurring background work (notification polling).
"""
import logging
import threading
from datetime import datetime, timezone
from threading import Timer
from typing import Any, Callable, Dict, List


class TaskManager:
    def __init__(self):
        self.tasks: Dict[str, Timer] = {}
        self.logger = logging.getLogger("TaskManager")
        self._stopped = False
        # Guards _stopped and tasks so a re-arming timer can't outlive stop()
        self._lock = threading.Lock()

    def schedule_task(self, name: str, callback: Callable, delay: float, one_time: bool = True) -> None:
        """Run callback after delay seconds; repeat every delay seconds unless one_time."""
        with self._lock:
            if self._stopped:
                return
            try:
                if name in self.tasks:
                    self.tasks[name].cancel()

                scheduled_time = datetime.now(timezone.utc).timestamp() + delay
                timer = Timer(delay, self._run_task, args=(name, callback, delay, one_time))
                timer.daemon = True
                timer.scheduled_time = scheduled_time

                self.tasks[name] = timer
                timer.start()
                self.logger.debug(f"Timer {name} scheduled for {datetime.fromtimestamp(scheduled_time, tz=timezone.utc)}")
            except Exception as e:
                self.logger.error(f"Error scheduling task {name}: {e}")

    def _run_task(self, name: str, callback: Callable, delay: float, one_time: bool) -> None:
        try:
            callback()
        except Exception as e:
            self.logger.exception(f"Error running task {name}: {e}")
        if one_time:
            with self._lock:
                if self.tasks.get(name) is threading.current_thread():
                    del self.tasks[name]
        else:
            self.schedule_task(name, callback, delay, one_time)

    def cancel_task(self, name: str) -> None:
        with self._lock:
            timer = self.tasks.pop(name, None)
        if timer:
            timer.cancel()

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Active timer names and their next run time (for API)."""
        with self._lock:
            timers = list(self.tasks.items())
        return [
            {"name": name, "next_run_at": datetime.fromtimestamp(timer.scheduled_time, tz=timezone.utc)}
            for name, timer in timers
            if getattr(timer, "scheduled_time", None) is not None
        ]

    def stop(self) -> None:
        """Stop all scheduled tasks; later schedule_task() calls, including re-arms, are ignored."""
        with self._lock:
            self._stopped = True
            timers = list(self.tasks.values())
            self.tasks.clear()
        for task in timers:
            task.cancel()
