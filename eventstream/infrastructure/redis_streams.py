# ==============================================================================
# Redis Streams Transport Implementation
# ==============================================================================
"""
Redis Streams implementation of the QueueTransport interface.

Maps the transport contract onto stream commands:
- append / append_many   -> XADD (pipelined for batches)
- ensure_group           -> XGROUP CREATE ... MKSTREAM (BUSYGROUP is success)
- read_group             -> XREADGROUP ... STREAMS key >
- ack                    -> XACK
- length                 -> XLEN
- pending / claim        -> XPENDING (extended form) / XCLAIM

All redis-py errors are wrapped in TransportError.
"""

import logging

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError, ResponseError
from redis.retry import Retry

from eventstream.base.transport import Fields, PendingEntry, QueueTransport
from eventstream.errors import TransportError
from eventstream.utils.config import RedisSettings, get_settings
from eventstream.utils.retry import REDIS_RETRIES, REDIS_RETRY_EXCEPTIONS

logger = logging.getLogger(__name__)


def get_redis_client(
    settings: RedisSettings | None = None,
    retries: int | None = None,
) -> redis.Redis:
    """
    Get a Redis client connection.

    Configured with:
    - Socket timeouts from settings for fast failure detection. Keep this
      above the consumer's block_ms, or blocking reads will time out.
    - Connection-level retries with exponential backoff
    - Health check interval to keep connections alive

    Returns:
        redis.Redis client instance
    """
    settings = settings or get_settings().redis
    retry_count = retries if retries is not None else REDIS_RETRIES
    retry = Retry(ExponentialBackoff(cap=8, base=0.5), retries=retry_count)

    return redis.from_url(
        settings.url,
        decode_responses=True,
        socket_timeout=settings.socket_timeout,
        socket_connect_timeout=settings.socket_timeout,
        retry=retry,
        retry_on_error=list(REDIS_RETRY_EXCEPTIONS),
        health_check_interval=30,
    )


class RedisStreamTransport(QueueTransport):
    """
    Redis Streams implementation of QueueTransport.

    The client is injected (or created from settings) and owned by this
    transport: close() closes it. Use as a context manager to scope its
    lifetime to the process.
    """

    def __init__(self, client: redis.Redis | None = None):
        """
        Initialize the transport.

        Args:
            client: Redis client instance. If None, creates one from settings.
        """
        self._client = client or get_redis_client()

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client for advanced operations."""
        return self._client

    # ==========================================================================
    # Producing
    # ==========================================================================

    def append(self, stream_key: str, fields: Fields) -> str:
        try:
            message_id = self._client.xadd(stream_key, fields)
        except RedisError as e:
            raise TransportError(f"XADD to {stream_key} failed: {e}") from e
        if not message_id:
            raise TransportError(f"XADD to {stream_key} returned no id")
        return message_id

    def append_many(self, stream_key: str, field_sets: list[Fields]) -> list[str]:
        if not field_sets:
            return []

        pipe = self._client.pipeline(transaction=False)
        for fields in field_sets:
            pipe.xadd(stream_key, fields)
        try:
            results = pipe.execute(raise_on_error=False)
        except RedisError as e:
            raise TransportError(f"Pipelined XADD to {stream_key} failed: {e}") from e

        for result in results:
            if isinstance(result, Exception):
                raise TransportError(f"Pipelined XADD to {stream_key} failed: {result}") from result
        return list(results)

    # ==========================================================================
    # Consumer Groups
    # ==========================================================================

    def ensure_group(self, stream_key: str, group_name: str) -> None:
        try:
            self._client.xgroup_create(stream_key, group_name, id="0", mkstream=True)
            logger.info("Created consumer group %s on %s", group_name, stream_key)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise TransportError(f"XGROUP CREATE {group_name} failed: {e}") from e
            logger.debug("Consumer group %s already exists", group_name)
        except RedisError as e:
            raise TransportError(f"XGROUP CREATE {group_name} failed: {e}") from e

    def read_group(
        self,
        stream_key: str,
        group_name: str,
        consumer_name: str,
        count: int,
        block_ms: int,
    ) -> list[tuple[str, Fields]]:
        # BLOCK 0 means "forever" to Redis; never block past the caller's bound
        block = block_ms if block_ms > 0 else None
        try:
            response = self._client.xreadgroup(
                group_name,
                consumer_name,
                {stream_key: ">"},
                count=count,
                block=block,
            )
        except RedisError as e:
            raise TransportError(f"XREADGROUP on {stream_key} failed: {e}") from e

        if not response:
            return []

        # RESP2 returns [[stream, entries]], RESP3 returns {stream: [entries]}
        if isinstance(response, dict):
            entries = response.get(stream_key, [[]])[0]
        else:
            entries = response[0][1]
        return [(message_id, fields) for message_id, fields in entries if fields]

    def ack(self, stream_key: str, group_name: str, *message_ids: str) -> int:
        if not message_ids:
            return 0
        try:
            return self._client.xack(stream_key, group_name, *message_ids)
        except RedisError as e:
            raise TransportError(f"XACK on {stream_key} failed: {e}") from e

    def length(self, stream_key: str) -> int:
        try:
            return self._client.xlen(stream_key)
        except RedisError as e:
            raise TransportError(f"XLEN on {stream_key} failed: {e}") from e

    # ==========================================================================
    # Pending Entry Recovery
    # ==========================================================================

    def pending(
        self,
        stream_key: str,
        group_name: str,
        min_idle_ms: int,
        count: int,
        start: str = "-",
    ) -> list[PendingEntry]:
        try:
            rows = self._client.xpending_range(
                stream_key,
                group_name,
                min=start,
                max="+",
                count=count,
                idle=min_idle_ms if min_idle_ms > 0 else None,
            )
        except RedisError as e:
            raise TransportError(f"XPENDING on {stream_key} failed: {e}") from e

        return [
            PendingEntry(
                message_id=row["message_id"],
                consumer=row["consumer"],
                idle_ms=int(row["time_since_delivered"]),
                deliveries=int(row["times_delivered"]),
            )
            for row in rows
        ]

    def claim(
        self,
        stream_key: str,
        group_name: str,
        consumer_name: str,
        min_idle_ms: int,
        message_ids: list[str],
    ) -> list[tuple[str, Fields]]:
        if not message_ids:
            return []
        try:
            entries = self._client.xclaim(
                stream_key,
                group_name,
                consumer_name,
                min_idle_ms,
                message_ids,
            )
        except RedisError as e:
            raise TransportError(f"XCLAIM on {stream_key} failed: {e}") from e
        # Entries trimmed from the stream come back without fields
        return [(message_id, fields) for message_id, fields in entries if fields]

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def ping(self) -> bool:
        """
        Check if Redis is reachable.

        Returns:
            True if ping succeeds, False otherwise
        """
        try:
            return bool(self._client.ping())
        except RedisError:
            return False

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
