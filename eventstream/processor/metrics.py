# ==============================================================================
# Processing Metrics
# ==============================================================================
"""
Throughput accounting for the event processor.

The processor hands every BatchResult to a ProcessingMetrics instance, which
provides:

- Cumulative stats over the worker lifetime
- Periodic throughput summary (configurable interval, default 30s)
- Final summary on shutdown

Usage:
    metrics = ProcessingMetrics(summary_interval_seconds=30)
    processor = EventProcessor(event_store, session_store, enricher, metrics=metrics)
    ...
    metrics.log_final_summary()
"""

import logging
import time
from collections.abc import Callable

from eventstream.core.models import BatchResult

logger = logging.getLogger(__name__)


class ProcessingMetrics:
    """
    Accumulates BatchResults and logs throughput summaries.

    Has no effect on processing: it never raises into the handler path.
    """

    def __init__(
        self,
        summary_interval_seconds: float = 30.0,
        on_summary: Callable[[], None] | None = None,
    ):
        """
        Args:
            summary_interval_seconds: How often to log throughput summaries
            on_summary: Optional callback invoked during periodic summaries
                        (e.g., for queue depth logging from the caller)
        """
        self._summary_interval = summary_interval_seconds
        self._on_summary = on_summary

        # Cumulative stats
        self.total_messages = 0
        self.total_inserted = 0
        self.total_duplicates = 0
        self.total_sessions = 0
        self.total_session_failures = 0
        self.total_batches = 0
        self._cum_ms = 0.0
        self._start_time = time.monotonic()

        # Period stats (reset each summary interval)
        self._period_messages = 0
        self._period_inserted = 0
        self._period_batches = 0
        self._period_ms = 0.0
        self._last_summary_time = time.monotonic()

    def record_batch(self, result: BatchResult) -> None:
        """Add one batch outcome and log a summary when the interval elapsed."""
        self.total_messages += result.messages_received
        self.total_inserted += result.events_inserted
        self.total_duplicates += result.duplicates_skipped
        self.total_sessions += result.sessions_updated
        self.total_session_failures += result.sessions_failed
        self.total_batches += 1
        self._cum_ms += result.elapsed_ms

        self._period_messages += result.messages_received
        self._period_inserted += result.events_inserted
        self._period_batches += 1
        self._period_ms += result.elapsed_ms

        now = time.monotonic()
        if now - self._last_summary_time >= self._summary_interval:
            self._log_summary(now)

    def _log_summary(self, now: float) -> None:
        """Log periodic throughput summary and reset period counters."""
        elapsed = now - self._last_summary_time
        if elapsed <= 0 or self._period_batches == 0:
            return

        events_per_sec = self._period_inserted / elapsed
        avg_batch_ms = self._period_ms / self._period_batches

        logger.info(
            "Throughput (%.1fs): %s events/sec | messages=%s inserted=%s batches=%d | "
            "avg_batch=%.*fms",
            elapsed,
            f"{events_per_sec:,.0f}",
            f"{self._period_messages:,}",
            f"{self._period_inserted:,}",
            self._period_batches,
            _precision(avg_batch_ms),
            avg_batch_ms,
        )

        if self.total_session_failures:
            logger.warning(
                "%d session aggregations failed since start", self.total_session_failures
            )

        if self._on_summary:
            try:
                self._on_summary()
            except Exception as e:
                logger.debug("on_summary callback error: %s", e)

        self._period_messages = 0
        self._period_inserted = 0
        self._period_batches = 0
        self._period_ms = 0.0
        self._last_summary_time = now

    def log_final_summary(self) -> None:
        """Log final summary on shutdown."""
        total_elapsed = time.monotonic() - self._start_time
        if self.total_batches == 0:
            logger.info("Final: no batches processed (%.1fs elapsed)", total_elapsed)
            return

        overall_eps = self.total_inserted / total_elapsed if total_elapsed > 0 else 0
        avg_batch_ms = self._cum_ms / self.total_batches

        logger.info(
            "Final: %s messages, %s events inserted, %s duplicates, %s sessions "
            "in %d batches over %.1fs (%s events/sec) | avg_batch=%.*fms",
            f"{self.total_messages:,}",
            f"{self.total_inserted:,}",
            f"{self.total_duplicates:,}",
            f"{self.total_sessions:,}",
            self.total_batches,
            total_elapsed,
            f"{overall_eps:,.0f}",
            _precision(avg_batch_ms),
            avg_batch_ms,
        )


def _precision(ms: float) -> int:
    """Return decimal precision for millisecond values.

    >= 10ms  → 0 decimals (e.g., 85ms)
    >= 1ms   → 1 decimal  (e.g., 3.2ms)
    < 1ms    → 2 decimals (e.g., 0.45ms)
    """
    if ms >= 10:
        return 0
    elif ms >= 1:
        return 1
    else:
        return 2
