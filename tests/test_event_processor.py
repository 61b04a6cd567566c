# ==============================================================================
# Tests for EventProcessor — event_processor.py
# ==============================================================================
"""
Tests for the batch handler: dedup, channel-conditioned enrichment, batch
persistence, session aggregation, and end-to-end redelivery through the
consumer.
"""

import logging
from unittest.mock import MagicMock

import pytest

from conftest import GROUP, STREAM, make_event
from eventstream.core.models import StreamMessage
from eventstream.errors import HandlerError, PersistenceError
from eventstream.processor import EventProcessor, ProcessingMetrics, resolve_external_id
from eventstream.queue import EventConsumer, EventProducer

# ==============================================================================
# Helpers
# ==============================================================================


def _messages(*events) -> list[StreamMessage]:
    return [StreamMessage(f"{i}-0", event) for i, event in enumerate(events, start=1)]


def _whatsapp_event(message_id="w1", event_name="message.received", properties=None, context=None):
    context = context or {"channel": "whatsapp", "userAgent": "WhatsApp/2.23"}
    return make_event(
        message_id,
        event_name=event_name,
        event_type="track",
        context=context,
        properties=properties or {"from": "+15550001", "to": "+15550002"},
    )


@pytest.fixture()
def processor(event_store, session_store, enrichment):
    return EventProcessor(event_store, session_store, enrichment)


# ==============================================================================
# Dedup
# ==============================================================================


class TestDedup:
    """Tests for message-id deduplication."""

    def test_redelivered_batch_stored_once(self, processor, event_store):
        batch = _messages(make_event("m1"), make_event("m2"))
        processor(batch)
        result = processor(batch)

        assert sorted(event_store.rows) == ["m1", "m2"]
        assert result.events_inserted == 0
        assert result.duplicates_skipped == 2

    def test_duplicates_within_batch_collapse(self, processor, event_store):
        result = processor(_messages(make_event("m1"), make_event("m1"), make_event("m1")))

        assert list(event_store.rows) == ["m1"]
        assert result.events_inserted == 1
        assert result.duplicates_skipped == 2

    def test_all_duplicates_skips_write(self, processor, event_store):
        processor(_messages(make_event("m1")))
        processor(_messages(make_event("m1")))
        assert event_store.save_calls == 1

    def test_lookup_failure_becomes_persistence_error(self, session_store, enrichment):
        store = MagicMock()
        store.message_id_exists.side_effect = OSError("connection reset")
        processor = EventProcessor(store, session_store, enrichment)

        with pytest.raises(PersistenceError):
            processor(_messages(make_event("m1")))

    def test_retried_publish_yields_one_row(self, transport, event_store, session_store, enrichment):
        """Three publishes of m1 across two calls leave exactly one stored row."""
        producer = EventProducer(transport, STREAM)
        producer.publish(make_event("m1"))
        producer.publish_batch([make_event("m1"), make_event("m1")])

        processor = EventProcessor(event_store, session_store, enrichment)
        consumer = EventConsumer(transport, processor, STREAM, GROUP, consumer_name="c1")
        consumer.setup()
        consumer.consume_once(batch_size=2, block_ms=0)
        consumer.consume_once(batch_size=2, block_ms=0)

        assert list(event_store.rows) == ["m1"]
        assert session_store.records["s1"].event_count == 1


# ==============================================================================
# Batch Persistence
# ==============================================================================


class TestBatchPersistence:
    """Tests for all-or-nothing batch writes."""

    def test_failed_insert_stores_nothing_and_raises(self, processor, event_store, session_store):
        event_store.fail_on_save = True

        with pytest.raises(PersistenceError):
            processor(_messages(make_event("m1"), make_event("m2")))

        assert event_store.rows == {}
        assert session_store.records == {}

    def test_failed_insert_leaves_messages_unacked(
        self, transport, fake_redis, event_store, session_store, enrichment
    ):
        EventProducer(transport, STREAM).publish_batch([make_event("m1"), make_event("m2")])
        event_store.fail_on_save = True
        processor = EventProcessor(event_store, session_store, enrichment)
        consumer = EventConsumer(transport, processor, STREAM, GROUP, consumer_name="c1")
        consumer.setup()

        with pytest.raises(HandlerError):
            consumer.consume_once(batch_size=10, block_ms=0)

        assert event_store.rows == {}
        assert fake_redis.xpending(STREAM, GROUP)["pending"] == 2

        # Redelivery after the store recovers persists the full batch
        event_store.fail_on_save = False
        assert consumer.reclaim_stale(batch_size=10) == 2
        assert sorted(event_store.rows) == ["m1", "m2"]
        assert fake_redis.xpending(STREAM, GROUP)["pending"] == 0

    def test_rows_skipped_by_store_not_aggregated(self, processor, event_store, session_store):
        """A row another worker stored first counts as a duplicate, not a session event."""
        event_store.preexisting = {"m1"}

        result = processor(_messages(make_event("m1")))

        assert event_store.rows == {}
        assert "s1" not in session_store.records
        assert result.events_inserted == 0
        assert result.duplicates_skipped == 1
        assert result.sessions_updated == 0

    def test_partial_insert_aggregates_written_rows_only(
        self, processor, event_store, session_store
    ):
        event_store.preexisting = {"m2"}

        result = processor(
            _messages(make_event("m1"), make_event("m2", offset_seconds=30), make_event("m3"))
        )

        assert sorted(event_store.rows) == ["m1", "m3"]
        assert result.events_inserted == 2
        assert result.duplicates_skipped == 1
        record = session_store.records["s1"]
        assert record.event_count == 2
        assert record.duration_seconds == 0

    def test_unexpected_store_error_wrapped(self, session_store, enrichment):
        store = MagicMock()
        store.message_id_exists.return_value = False
        store.save_batch.side_effect = ValueError("bad row")
        processor = EventProcessor(store, session_store, enrichment)

        with pytest.raises(PersistenceError, match="bad row"):
            processor(_messages(make_event("m1")))


# ==============================================================================
# Enrichment and Channel Conditioning
# ==============================================================================


class TestEnrichment:
    """Tests for enrich_event."""

    def test_web_event_enriched(self, processor, enrichment):
        enriched = processor.enrich_event(make_event("m1", page_path="/pricing"))

        assert enrichment.geo_calls == ["203.0.113.7"]
        assert enrichment.device_calls[0].startswith("Mozilla/5.0 (iPhone")
        assert enriched.channel_type == "web"
        assert enriched.country_code == "US"
        assert enriched.city == "Austin"
        assert enriched.device_type == "mobile"
        assert enriched.os_name == "iOS"
        assert enriched.page_path == "/pricing"
        assert enriched.page_url == "https://example.com/pricing"
        assert enriched.page_title == "Example"
        assert enriched.page_referrer == "https://google.com/"
        assert enriched.ip_address == "203.0.113.7"
        assert enriched.sdk_version == "1.4.0"

    def test_whatsapp_event_never_enriched(self, processor, enrichment):
        context = {
            "channel": "whatsapp",
            "userAgent": "Mozilla/5.0 (iPhone)",
            "page": {"path": "/chat"},
        }
        enriched = processor.enrich_event(_whatsapp_event(context=context))

        assert enrichment.geo_calls == []
        assert enrichment.device_calls == []
        assert enriched.channel_type == "whatsapp"
        assert enriched.country_code is None
        assert enriched.city is None
        assert enriched.device_type is None
        assert enriched.os_name is None
        assert enriched.browser_name is None
        assert enriched.ip_address is None
        assert enriched.user_agent is None
        assert enriched.page_path is None

    def test_whatsapp_stored_record_has_no_enrichment(self, processor, event_store):
        processor(_messages(_whatsapp_event()))

        row = event_store.rows["w1"]
        assert row.country_code is None
        assert row.device_type is None
        assert row.ip_address is None
        assert row.properties == {"from": "+15550001", "to": "+15550002"}

    def test_missing_channel_defaults_to_web(self, processor):
        assert processor.enrich_event(make_event("m1")).channel_type == "web"


class TestExternalId:
    """Tests for resolve_external_id."""

    def test_explicit_context_value_wins(self):
        event = _whatsapp_event(context={"channel": "whatsapp", "externalId": "contact-9"})
        assert resolve_external_id(event) == "contact-9"

    def test_whatsapp_inbound_uses_sender(self):
        assert resolve_external_id(_whatsapp_event(event_name="message.received")) == "+15550001"

    def test_whatsapp_outbound_uses_recipient(self):
        assert resolve_external_id(_whatsapp_event(event_name="message.sent")) == "+15550002"

    def test_whatsapp_other_events_unset(self):
        assert resolve_external_id(_whatsapp_event(event_name="message.read")) is None

    def test_web_without_context_value_unset(self):
        assert resolve_external_id(make_event("m1")) is None


# ==============================================================================
# Session Aggregation Trigger
# ==============================================================================


class TestSessions:
    """Tests for session grouping and failure isolation."""

    def test_events_grouped_by_session(self, processor, session_store):
        result = processor(
            _messages(
                make_event("m1", session_id="s1"),
                make_event("m2", session_id="s2"),
                make_event("m3", session_id="s1", offset_seconds=30),
            )
        )

        assert result.sessions_updated == 2
        assert session_store.records["s1"].event_count == 2
        assert session_store.records["s1"].duration_seconds == 30
        assert session_store.records["s2"].event_count == 1

    def test_events_without_session_excluded(self, processor, event_store, session_store):
        result = processor(_messages(make_event("m1", session_id=None)))

        assert "m1" in event_store.rows
        assert session_store.records == {}
        assert result.sessions_updated == 0

    def test_duplicates_do_not_inflate_counts(self, processor, session_store):
        processor(_messages(make_event("m1"), make_event("m2")))
        processor(_messages(make_event("m1"), make_event("m2")))
        assert session_store.records["s1"].event_count == 2

    def test_session_failure_isolated(self, processor, event_store, session_store, caplog):
        session_store.fail_on = {"s1"}

        with caplog.at_level(logging.ERROR):
            result = processor(
                _messages(make_event("m1", session_id="s1"), make_event("m2", session_id="s2"))
            )

        assert sorted(event_store.rows) == ["m1", "m2"]
        assert "s2" in session_store.records
        assert result.sessions_failed == 1
        assert result.sessions_updated == 1
        assert "Failed to update session s1" in caplog.text

    def test_scenario_first_touch_attribution(self, processor, session_store):
        """Earliest of five events sets entry page and UTM source."""
        events = [
            make_event(f"e{i}", offset_seconds=10 * i, page_path=f"/page-{i}") for i in range(1, 5)
        ]
        events.append(
            make_event(
                "e0",
                offset_seconds=0,
                page_path="/pricing",
                properties={"utm_source": "newsletter"},
            )
        )
        processor(_messages(*events))

        record = session_store.records["s1"]
        assert record.entry_page == "/pricing"
        assert record.utm_source == "newsletter"
        assert record.event_count == 5


# ==============================================================================
# Logging and Metrics
# ==============================================================================


class TestObservability:
    """Tests for the per-batch log line and metrics hand-off."""

    def test_batch_log_line(self, processor, caplog):
        with caplog.at_level(logging.INFO, logger="eventstream.processor.event_processor"):
            processor(_messages(make_event("m1"), make_event("m2"), make_event("m1")))

        assert "Processed 3 messages, inserted 2 events in" in caplog.text

    def test_metrics_receive_result(self, event_store, session_store, enrichment):
        metrics = ProcessingMetrics(summary_interval_seconds=3600)
        processor = EventProcessor(event_store, session_store, enrichment, metrics=metrics)

        processor(_messages(make_event("m1"), make_event("m1")))

        assert metrics.total_batches == 1
        assert metrics.total_messages == 2
        assert metrics.total_inserted == 1
        assert metrics.total_duplicates == 1
