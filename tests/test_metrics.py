# ==============================================================================
# Tests for ProcessingMetrics — metrics.py
# ==============================================================================
"""
Tests for throughput accounting, periodic summaries and the final summary.
"""

import logging
from unittest.mock import MagicMock

from eventstream.core.models import BatchResult
from eventstream.processor.metrics import ProcessingMetrics, _precision

# ==============================================================================
# Helpers
# ==============================================================================


def _result(messages=10, inserted=8, duplicates=2, sessions=3, failed=0, ms=12.5) -> BatchResult:
    return BatchResult(
        messages_received=messages,
        events_inserted=inserted,
        duplicates_skipped=duplicates,
        sessions_updated=sessions,
        sessions_failed=failed,
        elapsed_ms=ms,
    )


# ==============================================================================
# _precision helper
# ==============================================================================


class TestPrecision:
    """Tests for the _precision helper function."""

    def test_large_values_zero_decimals(self):
        assert _precision(10.0) == 0
        assert _precision(85.3) == 0

    def test_medium_values_one_decimal(self):
        assert _precision(1.0) == 1
        assert _precision(3.2) == 1

    def test_small_values_two_decimals(self):
        assert _precision(0.5) == 2


# ==============================================================================
# record_batch
# ==============================================================================


class TestRecordBatch:
    """Tests for cumulative and period accumulation."""

    def test_accumulates_totals(self):
        metrics = ProcessingMetrics(summary_interval_seconds=3600)
        metrics.record_batch(_result())
        metrics.record_batch(_result(messages=5, inserted=5, duplicates=0, failed=1))

        assert metrics.total_batches == 2
        assert metrics.total_messages == 15
        assert metrics.total_inserted == 13
        assert metrics.total_duplicates == 2
        assert metrics.total_sessions == 6
        assert metrics.total_session_failures == 1

    def test_summary_logged_when_interval_elapsed(self, caplog):
        on_summary = MagicMock()
        metrics = ProcessingMetrics(summary_interval_seconds=0, on_summary=on_summary)
        metrics._last_summary_time -= 1.0

        with caplog.at_level(logging.INFO):
            metrics.record_batch(_result())

        assert "Throughput" in caplog.text
        on_summary.assert_called_once()
        # Period counters reset after a summary
        assert metrics._period_batches == 0
        assert metrics.total_batches == 1

    def test_no_summary_before_interval(self, caplog):
        metrics = ProcessingMetrics(summary_interval_seconds=3600)

        with caplog.at_level(logging.INFO):
            metrics.record_batch(_result())

        assert "Throughput" not in caplog.text

    def test_summary_callback_errors_swallowed(self):
        metrics = ProcessingMetrics(
            summary_interval_seconds=0, on_summary=MagicMock(side_effect=RuntimeError("boom"))
        )
        metrics._last_summary_time -= 1.0
        metrics.record_batch(_result())  # does not raise

    def test_session_failures_warned_in_summary(self, caplog):
        metrics = ProcessingMetrics(summary_interval_seconds=0)
        metrics._last_summary_time -= 1.0

        with caplog.at_level(logging.WARNING):
            metrics.record_batch(_result(failed=2))

        assert "2 session aggregations failed" in caplog.text


# ==============================================================================
# log_final_summary
# ==============================================================================


class TestFinalSummary:
    """Tests for the shutdown summary."""

    def test_no_batches(self, caplog):
        with caplog.at_level(logging.INFO):
            ProcessingMetrics().log_final_summary()
        assert "no batches processed" in caplog.text

    def test_with_batches(self, caplog):
        metrics = ProcessingMetrics(summary_interval_seconds=3600)
        metrics.record_batch(_result())

        with caplog.at_level(logging.INFO):
            metrics.log_final_summary()

        assert "Final: 10 messages, 8 events inserted, 2 duplicates" in caplog.text
