"""Incremental background sync for RealityCheck.

Each cycle collects usage for ``[last_sync_at, now)``, stores the
classified summaries for the UI layer, and only then advances the
watermark. Failed cycles leave the watermark where it was. A successful
batch is also handed to the optional ``on_synced`` listener.

State machine::

    IDLE -> RUNNING -> SUCCEEDED
                    -> FAILED_RETRYABLE   (attempt < max_attempts)
                    -> FAILED_TERMINAL    (attempt == max_attempts,
                                           or permission missing)
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from realitycheck.core.aggregator import UsageAggregator
from realitycheck.core.models import AppSummary, SyncResult, SyncStatus
from realitycheck.core.windows import start_of_day, to_epoch_ms
from realitycheck.persistence.store import UsageStore
from realitycheck.platform.base import UsageStatsProvider

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class SyncTracker:
    """Runs sync cycles and owns the ``last_sync_at`` watermark.

    The attempt counter plays the role of the host scheduler's run-attempt
    count: it grows with each consecutive failure of the same window and
    resets after a success or once the window is abandoned.
    """

    def __init__(
        self,
        provider: UsageStatsProvider,
        store: UsageStore,
        aggregator: Optional[UsageAggregator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_attempts: int = MAX_ATTEMPTS,
        on_synced: Optional[Callable[[list[AppSummary]], Any]] = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.aggregator = aggregator or UsageAggregator()
        self.clock = clock or _local_now
        self.max_attempts = max_attempts
        self.on_synced = on_synced
        self.status = SyncStatus.IDLE
        self.failed_attempts = 0
        self._lock = threading.Lock()

    def run_cycle(self) -> SyncResult:
        """Execute one sync cycle. Never raises; the outcome is in the result."""
        with self._lock:
            now = self.clock()
            now_ms = to_epoch_ms(now)
            attempt = self.failed_attempts + 1

            try:
                granted = self.provider.has_usage_permission()
            except Exception:
                logger.exception(
                    "Permission check failed on attempt %d/%d", attempt, self.max_attempts
                )
                return self._fail(attempt, None, now_ms)

            # A denied permission does not count as an attempt
            if not granted:
                logger.warning("Usage access not granted; abandoning sync cycle")
                self.status = SyncStatus.FAILED_TERMINAL
                return SyncResult(status=self.status, attempt=0)

            self.status = SyncStatus.RUNNING
            window_start: Optional[int] = None
            try:
                window_start = self._load_watermark(now)
                records = self.provider.query_usage_records(window_start, now_ms)
                summaries = self.aggregator.aggregate(
                    records, self.provider.resolve_display_name, sync_time=now_ms
                )
                stored = self.store.save_pending(summaries)
                if now_ms > window_start:
                    self.store.store_sync_watermark(now_ms)
            except Exception:
                logger.exception(
                    "Sync attempt %d/%d failed", attempt, self.max_attempts
                )
                return self._fail(attempt, window_start, now_ms)

            self.failed_attempts = 0
            self.status = SyncStatus.SUCCEEDED
            logger.info(
                "Synced %d apps for window [%d, %d)", stored, window_start, now_ms
            )
            self._publish(summaries)
            return SyncResult(
                status=self.status,
                attempt=attempt,
                window_start=window_start,
                window_end=now_ms,
                summaries_stored=stored,
            )

    def _publish(self, summaries: list[AppSummary]) -> None:
        if self.on_synced is None:
            return
        try:
            self.on_synced(summaries)
        except Exception:
            # Listener errors do not fail a cycle whose batch is already stored
            logger.exception("Usage update listener failed")

    def _load_watermark(self, now: datetime) -> int:
        watermark = self.store.load_sync_watermark()
        if watermark is None:
            return to_epoch_ms(start_of_day(now))
        return watermark

    def _fail(self, attempt: int, window_start: Optional[int], now_ms: int) -> SyncResult:
        if attempt < self.max_attempts:
            self.failed_attempts = attempt
            self.status = SyncStatus.FAILED_RETRYABLE
        else:
            # Window abandoned; the watermark stays put for the next scheduled run
            self.failed_attempts = 0
            self.status = SyncStatus.FAILED_TERMINAL
            logger.error("Giving up on sync window after %d attempts", attempt)
        return SyncResult(
            status=self.status,
            attempt=attempt,
            window_start=window_start,
            window_end=now_ms,
        )


def _local_now() -> datetime:
    return datetime.now().astimezone()
