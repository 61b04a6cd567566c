# ==============================================================================
# Event Processor
# ==============================================================================
"""
Batch handler registered with the EventConsumer.

Steps per batch, in order:

    1. Dedup     - skip messages whose message_id is already stored, or was
                   already seen earlier in the same batch
    2. Enrich    - web events get geo/device enrichment; other channels get
                   those fields explicitly left empty
    3. Persist   - one all-or-nothing batch insert to the EventStore, which
                   reports the message ids it actually wrote
    4. Sessions  - fold those persisted events, grouped by session_id, into
                   SessionRecords (best-effort per session)

A persistence failure in step 3 propagates, so the consumer leaves the whole
batch unacknowledged and it is redelivered. Step 4 failures are logged per
session and never fail the batch: the events are already stored.
"""

import logging
import time

from eventstream.base.enrichment import EnrichmentStage
from eventstream.base.repositories import EventStore, SessionStore
from eventstream.core.event_names import Channel, WhatsAppEventNames
from eventstream.core.models import (
    BatchResult,
    DeviceData,
    EnrichedEvent,
    GeoData,
    QueuedEvent,
    StreamMessage,
)
from eventstream.core.session_aggregator import SessionAggregator
from eventstream.errors import PersistenceError
from eventstream.processor.metrics import ProcessingMetrics

logger = logging.getLogger(__name__)


def resolve_external_id(event: QueuedEvent) -> str | None:
    """
    External contact id for the event.

    An explicit context.externalId wins. WhatsApp events without one fall back
    to the counterpart phone number: sender for inbound messages, recipient
    for outbound ones.
    """
    external_id = event.context.get("externalId")
    if external_id or event.channel != Channel.WHATSAPP.value:
        return external_id or None

    props = event.properties or {}
    if event.event_name == WhatsAppEventNames.MESSAGE_RECEIVED:
        return props.get("from") or None
    if event.event_name == WhatsAppEventNames.MESSAGE_SENT:
        return props.get("to") or None
    return None


def _sdk_version(event: QueuedEvent) -> str | None:
    library = event.context.get("library")
    if isinstance(library, dict):
        return library.get("version") or None
    return None


class EventProcessor:
    """
    Dedup, enrich, persist and aggregate one consumer batch.

    Instances are callable, so one can be passed straight to EventConsumer
    as its handler.
    """

    def __init__(
        self,
        event_store: EventStore,
        session_store: SessionStore,
        enrichment: EnrichmentStage,
        aggregator: SessionAggregator | None = None,
        metrics: ProcessingMetrics | None = None,
    ):
        self._event_store = event_store
        self._session_store = session_store
        self._enrichment = enrichment
        self._aggregator = aggregator or SessionAggregator()
        self._metrics = metrics

    def __call__(self, messages: list[StreamMessage]) -> BatchResult:
        return self.handle_messages(messages)

    def handle_messages(self, messages: list[StreamMessage]) -> BatchResult:
        """
        Process one batch.

        Raises:
            PersistenceError: If the dedup lookup or batch insert fails
        """
        start = time.monotonic()
        result = BatchResult(messages_received=len(messages))

        to_insert: list[EnrichedEvent] = []
        seen: set[str] = set()
        for message in messages:
            event = message.event
            if event.message_id in seen or self._exists(event.message_id):
                logger.debug("Skipping duplicate message %s", event.message_id)
                result.duplicates_skipped += 1
                continue
            seen.add(event.message_id)
            to_insert.append(self.enrich_event(event))

        if to_insert:
            inserted_ids = set(self._save_batch(to_insert))
            persisted = [e for e in to_insert if e.message_id in inserted_ids]
            skipped = len(to_insert) - len(persisted)
            if skipped:
                logger.debug("%d events already stored by another worker", skipped)
            result.events_inserted = len(persisted)
            result.duplicates_skipped += skipped
            if persisted:
                self._process_sessions(persisted, result)

        result.elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Processed %d messages, inserted %d events in %dms",
            result.messages_received,
            result.events_inserted,
            result.elapsed_ms,
        )

        if self._metrics is not None:
            self._metrics.record_batch(result)
        return result

    def enrich_event(self, event: QueuedEvent) -> EnrichedEvent:
        """Build the stored record for one event, conditioned on its channel."""
        channel = event.channel
        is_web = channel == Channel.WEB.value
        page = event.page if is_web else {}

        if is_web:
            geo = self._enrichment.enrich_geo(event.ip_address)
            device = self._enrichment.enrich_device(event.user_agent)
            device_fields = device.model_dump()
        else:
            geo = GeoData()
            device_fields = dict.fromkeys(DeviceData.model_fields)

        return EnrichedEvent(
            event_id=event.event_id,
            message_id=event.message_id,
            tenant_id=event.tenant_id,
            project_id=event.project_id,
            event_name=event.event_name,
            event_type=event.event_type,
            timestamp=event.timestamp,
            received_at=event.received_at,
            anonymous_id=event.anonymous_id,
            user_id=event.user_id,
            session_id=event.session_id,
            channel_type=channel,
            external_id=resolve_external_id(event),
            page_path=page.get("path"),
            page_url=page.get("url"),
            page_title=page.get("title"),
            page_referrer=page.get("referrer"),
            user_agent=event.user_agent if is_web else None,
            ip_address=event.ip_address if is_web else None,
            country_code=geo.country_code,
            city=geo.city,
            properties=event.properties,
            sdk_version=_sdk_version(event),
            **device_fields,
        )

    # ==========================================================================
    # Store Access
    # ==========================================================================

    def _exists(self, message_id: str) -> bool:
        try:
            return self._event_store.message_id_exists(message_id)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Dedup lookup failed for {message_id}: {e}") from e

    def _save_batch(self, events: list[EnrichedEvent]) -> list[str]:
        try:
            return self._event_store.save_batch(events)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save batch of {len(events)} events: {e}") from e

    def _process_sessions(self, events: list[EnrichedEvent], result: BatchResult) -> None:
        """Group persisted events by session id and upsert each session."""
        by_session: dict[str, list[EnrichedEvent]] = {}
        for event in events:
            if event.session_id:
                by_session.setdefault(event.session_id, []).append(event)

        for session_id, session_events in by_session.items():
            try:
                existing = self._session_store.find_by_id(session_id)
                record = self._aggregator.aggregate(existing, session_events)
                self._session_store.save(record)
                result.sessions_updated += 1
            except Exception as e:
                logger.error("Failed to update session %s: %s", session_id, e)
                result.sessions_failed += 1
