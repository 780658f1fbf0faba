"""Periodic scheduling for the background sync.

Honours the retry contract of the sync tracker: a retryable failure is
re-run after an exponential backoff (10, 20, 40 ... minutes by default)
until the cycle succeeds or fails terminally. Cycles run on a daemon
thread so callers are never blocked.
"""

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

from realitycheck.core.models import SyncResult
from realitycheck.core.sync import SyncTracker

logger = logging.getLogger(__name__)

MIN_INTERVAL_MINUTES = 15
DEFAULT_BACKOFF_MINUTES = 10


class SyncScheduler:
    """Runs :class:`SyncTracker` cycles periodically or on demand."""

    def __init__(
        self,
        tracker: SyncTracker,
        interval_minutes: int = MIN_INTERVAL_MINUTES,
        backoff_minutes: int = DEFAULT_BACKOFF_MINUTES,
        sleep: Optional[Callable[[float], object]] = None,
    ) -> None:
        self.tracker = tracker
        if interval_minutes < MIN_INTERVAL_MINUTES:
            logger.warning(
                "Sync interval %d min is below the %d min minimum; clamping",
                interval_minutes, MIN_INTERVAL_MINUTES,
            )
            interval_minutes = MIN_INTERVAL_MINUTES
        self.interval = timedelta(minutes=interval_minutes)
        self.backoff = timedelta(minutes=backoff_minutes)
        self._stop_event = threading.Event()
        self._sleep = sleep or self._stop_event.wait
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_backoff(self, attempt: int) -> timedelta:
        """Return the delay before retrying after failed *attempt* (1-based)."""
        return self.backoff * (2 ** (attempt - 1))

    def run_with_retries(self) -> SyncResult:
        """Run one cycle, retrying with backoff while it is retryable."""
        result = self.tracker.run_cycle()
        while result.should_retry and not self._stop_event.is_set():
            delay = self.next_backoff(result.attempt)
            logger.info(
                "Retrying sync in %s (attempt %d failed)", delay, result.attempt
            )
            self._sleep(delay.total_seconds())
            if self._stop_event.is_set():
                break
            result = self.tracker.run_cycle()
        return result

    def start(self) -> None:
        """Start periodic syncing. A second call while running is a no-op."""
        if self.running:
            logger.debug("Sync scheduler already running; keeping existing schedule")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="usage-sync", daemon=True
        )
        self._thread.start()
        logger.info("Periodic sync started (interval=%s)", self.interval)

    def trigger_once(self) -> threading.Thread:
        """Run a single sync (with retries) in the background."""
        thread = threading.Thread(
            target=self.run_with_retries, name="usage-sync-once", daemon=True
        )
        thread.start()
        return thread

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the periodic loop to stop and wait briefly for it."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_with_retries()
            except Exception:
                logger.exception("Unexpected error in sync loop")
            self._stop_event.wait(self.interval.total_seconds())
