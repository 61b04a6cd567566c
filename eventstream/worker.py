# ==============================================================================
# Worker Runner
# ==============================================================================
"""
Worker process: one consumer loop feeding the event processor.

Started by 'eventstream worker run'. Run several worker processes to share the
backlog; each joins the same consumer group under its own name.

Resources are opened at start and closed at shutdown in reverse order:
    transport -> event store -> session store -> enricher

SIGTERM/SIGINT request a cooperative stop: the in-flight batch finishes,
then the loop exits.
"""

import logging

from eventstream import __version__
from eventstream.base.runner import BaseRunner
from eventstream.base.transport import QueueTransport
from eventstream.enrichers import EventEnricher
from eventstream.infrastructure.redis_streams import RedisStreamTransport
from eventstream.infrastructure.repositories.postgresql import (
    PostgreSQLEventStore,
    PostgreSQLSessionStore,
)
from eventstream.processor import EventProcessor, ProcessingMetrics
from eventstream.queue import EventConsumer
from eventstream.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Headroom kept between a blocking group read and the client socket timeout
SOCKET_TIMEOUT_MARGIN_MS = 1000


def clamp_block_ms(block_ms: int, socket_timeout_seconds: int) -> int:
    """
    Bound a group-read block time so it ends before the socket times out.

    A blocking XREADGROUP that outlives the client's socket timeout fails with
    a timeout error instead of returning an empty read.
    """
    limit = max(socket_timeout_seconds * 1000 - SOCKET_TIMEOUT_MARGIN_MS, 0)
    if block_ms > limit:
        logger.warning(
            "block_ms=%d exceeds Redis socket timeout (%ds), using %dms",
            block_ms,
            socket_timeout_seconds,
            limit,
        )
        return limit
    return block_ms


class WorkerRunner(BaseRunner):
    """Runs one EventConsumer until a shutdown signal arrives."""

    quiet_loggers = BaseRunner.quiet_loggers + ("geoip2",)

    def __init__(
        self,
        settings: Settings | None = None,
        batch_size: int | None = None,
        block_ms: int | None = None,
        group_name: str | None = None,
        consumer_name: str | None = None,
    ):
        self._settings = settings or get_settings()
        super().__init__(log_level=self._settings.log_level)

        consumer_settings = self._settings.consumer
        self._batch_size = batch_size or consumer_settings.batch_size
        self._block_ms = clamp_block_ms(
            block_ms if block_ms is not None else consumer_settings.block_ms,
            self._settings.redis.socket_timeout,
        )
        self._group_name = group_name or consumer_settings.group_name
        self._consumer_name = consumer_name
        self._consumer: EventConsumer | None = None
        self._metrics: ProcessingMetrics | None = None

    def _log_queue_depth(self, transport: QueueTransport) -> None:
        """Log stream backlog alongside the periodic throughput summary."""
        stream_key = self._settings.redis.stream_key
        dead_letter = self._settings.consumer.dead_letter_stream
        if dead_letter:
            logger.info(
                "Queue depth: %s=%d %s=%d",
                stream_key,
                transport.length(stream_key),
                dead_letter,
                transport.length(dead_letter),
            )
        else:
            logger.info("Queue depth: %s=%d", stream_key, transport.length(stream_key))

    def _run(self) -> None:
        settings = self._settings

        with (
            RedisStreamTransport() as transport,
            PostgreSQLEventStore(settings) as event_store,
            PostgreSQLSessionStore(settings) as session_store,
        ):
            self._metrics = ProcessingMetrics(
                summary_interval_seconds=settings.consumer.summary_interval_seconds,
                on_summary=lambda: self._log_queue_depth(transport),
            )
            enricher = EventEnricher.from_settings(settings.enrichment)
            try:
                processor = EventProcessor(
                    event_store, session_store, enricher, metrics=self._metrics
                )
                self._consumer = EventConsumer(
                    transport,
                    processor,
                    stream_key=settings.redis.stream_key,
                    group_name=self._group_name,
                    consumer_name=self._consumer_name,
                    error_backoff_ms=settings.consumer.error_backoff_ms,
                    reclaim_idle_ms=settings.consumer.reclaim_idle_ms,
                    max_deliveries=settings.consumer.max_deliveries,
                    dead_letter_stream=settings.consumer.dead_letter_stream,
                )
                self._consumer.setup()

                logger.info(
                    "Worker started | consumer=%s | eventstream v%s",
                    self._consumer.name,
                    __version__,
                )
                if self.shutdown_requested:
                    return
                self._consumer.start(self._batch_size, self._block_ms)
            finally:
                enricher.close()

    def _on_shutdown_requested(self) -> None:
        if self._consumer is not None:
            self._consumer.stop()

    def _cleanup(self) -> None:
        if self._metrics is not None:
            self._metrics.log_final_summary()
        logger.info("Worker shutdown complete")
