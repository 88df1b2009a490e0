"""
Reminder scheduler

Related classes:
  - notifications.service.NotificationService: the dispatch run
  - server.app: starts / stops the scheduler with the web app
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

from src.notifications.service import DispatchResult, NotificationService


class ReminderScheduler:
    """Runs the due-reminder dispatch on a background thread"""

    def __init__(self, service: NotificationService, interval_seconds: int = 60):
        """
        Args:
            service: notification service that performs the dispatch
            interval_seconds: seconds between runs
        """
        self.service = service
        self.interval_seconds = interval_seconds
        self.logger = logging.getLogger(__name__)

        self._running = False
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

        self._runs = 0
        self._last_run_at: Optional[float] = None
        self._last_result: Optional[DispatchResult] = None
        self._last_error: Optional[str] = None

    def start(self) -> None:
        """Start the background thread"""
        with self._lock:
            if self._running:
                self.logger.warning("Reminder scheduler is already running")
                return

            self._running = True
            self._thread = threading.Thread(target=self._run_loop, daemon=True)
            self._thread.start()
            self.logger.info("Reminder scheduler started (interval=%ss)", self.interval_seconds)

    def stop(self) -> None:
        """Stop the background thread"""
        with self._lock:
            if not self._running:
                self.logger.warning("Reminder scheduler is not running")
                return

            self._running = False
            self.logger.info("Stopping reminder scheduler...")

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            self.logger.info("Reminder scheduler stopped")

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def get_status(self) -> Dict[str, Any]:
        """Current state of the scheduler"""
        with self._lock:
            return {
                "running": self._running,
                "interval_seconds": self.interval_seconds,
                "runs": self._runs,
                "last_run_at": self._last_run_at,
                "last_result": self._last_result.to_dict() if self._last_result else None,
                "last_error": self._last_error,
            }

    def set_interval(self, interval_seconds: int) -> None:
        if interval_seconds < 1:
            raise ValueError("Interval must be at least 1 second")

        with self._lock:
            self.interval_seconds = interval_seconds
            self.logger.info("Interval changed to %s seconds", interval_seconds)

    def run_once(self) -> Optional[DispatchResult]:
        """
        One dispatch run

        Failures are logged and recorded in the status; they never propagate
        to the loop.
        """
        result: Optional[DispatchResult] = None
        error: Optional[str] = None
        try:
            result = self.service.process()
        except Exception as exc:
            self.logger.error("Reminder run failed: %s", exc, exc_info=True)
            error = str(exc)

        with self._lock:
            self._runs += 1
            self._last_run_at = time.time()
            self._last_result = result
            self._last_error = error
        return result

    def _run_loop(self) -> None:
        """Main loop: sleep in one-second steps, then dispatch"""
        self.logger.info("Reminder scheduler loop started")

        while True:
            for _ in range(self.interval_seconds):
                with self._lock:
                    if not self._running:
                        self.logger.info("Reminder scheduler loop exited")
                        return
                time.sleep(1)

            self.run_once()
