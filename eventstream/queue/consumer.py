# ==============================================================================
# Event Consumer
# ==============================================================================
"""
Consumer-group reader that dispatches event batches to a handler.

Each worker process joins a shared group under a process-unique name, so
several workers share the backlog without receiving the same undelivered
entry concurrently.

Loop (sequential, one batch in flight):
    1. Reclaim stale pending entries when due (optional)
    2. Group-read up to batch_size entries, blocking at most block_ms
    3. Decode and dispatch the batch to the handler
    4. Acknowledge the batch only after the handler returns

Handler failures never crash the loop: they are logged, the batch stays
pending, and the loop backs off before the next iteration. stop() is
cooperative; the in-flight batch always finishes first.
"""

import logging
import os
import socket
import threading
import time
from collections.abc import Callable
from enum import Enum

from pydantic import ValidationError

from eventstream.base.transport import Fields, QueueTransport, next_entry_id
from eventstream.core.models import QueuedEvent, StreamMessage
from eventstream.errors import HandlerError

logger = logging.getLogger(__name__)

EventHandler = Callable[[list[StreamMessage]], object]

# Pause between empty reads when the caller asked for non-blocking reads
IDLE_POLL_SECONDS = 0.1


class ConsumerState(str, Enum):
    """Consumer lifecycle: IDLE -> RUNNING -> STOPPING -> IDLE."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


def make_consumer_name() -> str:
    """Process-unique consumer name: host, pid and start time."""
    return f"consumer-{socket.gethostname()}-{os.getpid()}-{int(time.time() * 1000)}"


class EventConsumer:
    """
    Reads a stream as a member of a consumer group.

    The handler is a required constructor argument, so a consumer can never
    be started without one.
    """

    def __init__(
        self,
        transport: QueueTransport,
        handler: EventHandler,
        stream_key: str,
        group_name: str,
        consumer_name: str | None = None,
        error_backoff_ms: int = 1000,
        reclaim_idle_ms: int = 0,
        max_deliveries: int = 0,
        dead_letter_stream: str | None = None,
    ):
        """
        Initialize the consumer.

        Args:
            transport: Queue transport (lifetime owned by the caller)
            handler: Called with each decoded batch; raising leaves the batch
                     unacknowledged
            stream_key: Stream to read
            group_name: Consumer group shared by all workers
            consumer_name: Unique member name. Defaults to host+pid+time.
            error_backoff_ms: Pause after a failed iteration
            reclaim_idle_ms: Claim pending entries idle this long (0 disables)
            max_deliveries: Dead-letter entries delivered this many times
                            (0 disables; needs dead_letter_stream)
            dead_letter_stream: Stream receiving poison and undecodable entries
        """
        if not callable(handler):
            raise TypeError("handler must be callable")

        self._transport = transport
        self._handler = handler
        self._stream_key = stream_key
        self._group_name = group_name
        self._name = consumer_name or make_consumer_name()
        self._error_backoff = error_backoff_ms / 1000.0
        self._reclaim_idle_ms = reclaim_idle_ms
        self._max_deliveries = max_deliveries
        self._dead_letter_stream = dead_letter_stream

        self._stop_event = threading.Event()
        self._state = ConsumerState.IDLE
        self._state_lock = threading.Lock()
        self._last_reclaim = float("-inf")
        # Where the next pending-list page starts; "-" is the head
        self._reclaim_cursor = "-"

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> ConsumerState:
        return self._state

    def setup(self) -> None:
        """Ensure the consumer group exists."""
        self._transport.ensure_group(self._stream_key, self._group_name)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def start(self, batch_size: int = 10, block_ms: int = 5000) -> None:
        """
        Run the consume loop until stop() is called.

        Blocks the calling thread.

        Raises:
            RuntimeError: If the consumer is already running
        """
        with self._state_lock:
            if self._state is not ConsumerState.IDLE:
                raise RuntimeError(f"Consumer {self._name} is already {self._state.value}")
            self._state = ConsumerState.RUNNING
            self._stop_event.clear()

        logger.info(
            "Starting consumer %s (group=%s, stream=%s, batch_size=%d, block_ms=%d)",
            self._name,
            self._group_name,
            self._stream_key,
            batch_size,
            block_ms,
        )

        try:
            while not self._stop_event.is_set():
                try:
                    if self._reclaim_due():
                        self.reclaim_stale(batch_size)
                    handled = self.consume_once(batch_size, block_ms)
                    if handled == 0 and block_ms <= 0:
                        self._stop_event.wait(IDLE_POLL_SECONDS)
                except Exception as e:
                    logger.exception("Consumer error: %s", e)
                    self._stop_event.wait(self._error_backoff)
        finally:
            with self._state_lock:
                self._state = ConsumerState.IDLE
            logger.info("Consumer %s stopped", self._name)

    def stop(self) -> None:
        """
        Request a cooperative stop.

        Checked at the top of each loop iteration; never interrupts an
        in-flight handler call.
        """
        with self._state_lock:
            if self._state is ConsumerState.RUNNING:
                self._state = ConsumerState.STOPPING
                logger.info("Stopping consumer %s", self._name)
        self._stop_event.set()

    # ==========================================================================
    # Loop Steps
    # ==========================================================================

    def consume_once(self, batch_size: int, block_ms: int) -> int:
        """
        Read one batch of undelivered entries and dispatch it.

        Returns:
            Count of messages handled and acknowledged

        Raises:
            TransportError: If the read or ack fails
            HandlerError: If the handler fails (batch left pending)
        """
        entries = self._transport.read_group(
            self._stream_key,
            self._group_name,
            self._name,
            batch_size,
            block_ms,
        )
        if not entries:
            return 0
        return self._dispatch(entries)

    def reclaim_stale(self, batch_size: int) -> int:
        """
        Claim pending entries idle longer than reclaim_idle_ms and redeliver.

        Recovers batches left behind by crashed workers and this worker's own
        failed batches. Entries at or above max_deliveries are dead-lettered
        instead of redelivered.

        Each call inspects one page of the pending list and the next call
        continues after it, wrapping to the head after a short page. Entries
        that stay pending (no dead-letter stream configured) therefore never
        hide newer stale entries behind them.

        Returns:
            Count of reclaimed messages handled and acknowledged
        """
        self._last_reclaim = time.monotonic()

        pending = self._transport.pending(
            self._stream_key,
            self._group_name,
            self._reclaim_idle_ms,
            batch_size,
            start=self._reclaim_cursor,
        )
        if len(pending) < batch_size:
            self._reclaim_cursor = "-"
        else:
            self._reclaim_cursor = next_entry_id(pending[-1].message_id)
        if not pending:
            return 0

        exhausted = {
            entry.message_id
            for entry in pending
            if self._max_deliveries and entry.deliveries >= self._max_deliveries
        }
        claimed = self._transport.claim(
            self._stream_key,
            self._group_name,
            self._name,
            self._reclaim_idle_ms,
            [entry.message_id for entry in pending],
        )
        if not claimed:
            return 0

        poison = [
            (message_id, fields, f"exceeded {self._max_deliveries} deliveries")
            for message_id, fields in claimed
            if message_id in exhausted
        ]
        retry = [(message_id, fields) for message_id, fields in claimed if message_id not in exhausted]

        logger.warning(
            "Reclaimed %d stale messages (%d over delivery limit)", len(claimed), len(poison)
        )
        if poison:
            self._dead_letter(poison)
        if not retry:
            return 0
        return self._dispatch(retry)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _reclaim_due(self) -> bool:
        if self._reclaim_idle_ms <= 0:
            return False
        return time.monotonic() - self._last_reclaim >= self._reclaim_idle_ms / 1000.0

    def _dispatch(self, entries: list[tuple[str, Fields]]) -> int:
        messages: list[StreamMessage] = []
        undecodable: list[tuple[str, Fields, str]] = []
        for message_id, fields in entries:
            try:
                messages.append(StreamMessage(message_id, QueuedEvent.from_stream_fields(fields)))
            except (KeyError, ValidationError) as e:
                undecodable.append((message_id, fields, f"undecodable payload: {e}"))

        if undecodable:
            self._dead_letter(undecodable)
        if not messages:
            return 0

        try:
            self._handler(messages)
        except Exception as e:
            raise HandlerError(f"Handler failed for batch of {len(messages)} messages: {e}") from e

        self._transport.ack(self._stream_key, self._group_name, *(m.id for m in messages))
        return len(messages)

    def _dead_letter(self, entries: list[tuple[str, Fields, str]]) -> None:
        """Move entries to the dead-letter stream and acknowledge them."""
        if not self._dead_letter_stream:
            for message_id, _, reason in entries:
                logger.error("Message %s left pending (%s)", message_id, reason)
            return

        for message_id, fields, reason in entries:
            self._transport.append(
                self._dead_letter_stream,
                {**fields, "source_id": message_id, "error": reason, "consumer": self._name},
            )
            self._transport.ack(self._stream_key, self._group_name, message_id)
            logger.error("Dead-lettered message %s: %s", message_id, reason)
