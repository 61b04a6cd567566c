# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

- redis_streams.py - Queue transport over Redis Streams
- repositories/ - Event and session stores (PostgreSQL)
"""

from eventstream.infrastructure.redis_streams import RedisStreamTransport, get_redis_client
from eventstream.infrastructure.repositories import (
    PostgreSQLEventStore,
    PostgreSQLSessionStore,
)

__all__ = [
    # Transport
    "RedisStreamTransport",
    "get_redis_client",
    # Repositories
    "PostgreSQLEventStore",
    "PostgreSQLSessionStore",
]
