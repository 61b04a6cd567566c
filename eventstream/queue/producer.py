# ==============================================================================
# Event Producer
# ==============================================================================
"""
Appends serialized events to the event stream.

Called by the ingestion edge once a request is authenticated. Publishing is
not retried here: a TransportError reaches the caller, which decides whether
to retry. Re-publication is safe because the processor deduplicates on
message id.
"""

import logging

from eventstream.base.transport import QueueTransport
from eventstream.core.models import QueuedEvent
from eventstream.errors import TransportError

logger = logging.getLogger(__name__)


class EventProducer:
    """Publishes QueuedEvents to one stream."""

    def __init__(self, transport: QueueTransport, stream_key: str):
        """
        Args:
            transport: Queue transport (lifetime owned by the caller)
            stream_key: Stream to append to
        """
        self._transport = transport
        self._stream_key = stream_key

    @property
    def stream_key(self) -> str:
        return self._stream_key

    def publish(self, event: QueuedEvent) -> str:
        """
        Serialize and append one event.

        Returns:
            Transport-assigned entry id

        Raises:
            TransportError: If the append fails
        """
        try:
            return self._transport.append(self._stream_key, event.to_stream_fields())
        except TransportError as e:
            logger.error("Failed to publish event %s: %s", event.message_id, e)
            raise

    def publish_batch(self, events: list[QueuedEvent]) -> list[str]:
        """
        Append several events in a single round trip.

        Partial success is possible: entries before the failing one may
        already be on the stream when the first error is raised.

        Returns:
            Entry ids in input order

        Raises:
            TransportError: On the first failed append
        """
        if not events:
            return []
        try:
            return self._transport.append_many(
                self._stream_key, [event.to_stream_fields() for event in events]
            )
        except TransportError as e:
            logger.error("Failed to publish batch of %d events: %s", len(events), e)
            raise

    def depth(self) -> int:
        """
        Current stream length, for monitoring dashboards.

        Not used for admission control: ingestion is always accepted.
        """
        return self._transport.length(self._stream_key)
