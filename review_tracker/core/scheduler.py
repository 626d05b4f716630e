"""Background thread that runs review checks on a fixed interval."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from review_tracker.core.monitor import CheckInProgressError, CheckResult, ReviewMonitor

logger = logging.getLogger(__name__)


class ReviewScheduler:
    """Runs a check at start-up and then every ``interval_seconds``.

    A failing cycle is followed by ``cooldown_seconds`` of waiting before the
    regular interval resumes. Waits observe ``stop()`` immediately.
    """

    def __init__(self, monitor: ReviewMonitor, *, interval_seconds: float, cooldown_seconds: float) -> None:
        self.monitor = monitor
        self.interval_seconds = interval_seconds
        self.cooldown_seconds = cooldown_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="review-scheduler", daemon=True)
        self._thread.start()
        logger.info("Review scheduler started; checking every %s seconds", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        logger.info("Review scheduler is stopping")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Review scheduler stopped")

    def run_now(self) -> CheckResult:
        return self.monitor.run_check()

    def _run_cycle_safe(self) -> bool:
        try:
            self.monitor.run_check()
        except CheckInProgressError:
            logger.info("Skipping scheduled check; an on-demand check is running")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error during scheduled review check: %s", exc)
            return False
        return True

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            if not self._run_cycle_safe():
                logger.warning("Backing off %s seconds before resuming the schedule", self.cooldown_seconds)
                if self._stop_event.wait(self.cooldown_seconds):
                    break
            if self._stop_event.wait(self.interval_seconds):
                break
