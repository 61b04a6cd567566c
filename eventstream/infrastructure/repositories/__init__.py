# ==============================================================================
# Store Adapters
# ==============================================================================
"""
Database adapters implementing the store interfaces from base/repositories.py.

Currently supported:
- PostgreSQL (postgresql.py)
"""

from eventstream.infrastructure.repositories.postgresql import (
    PostgreSQLEventStore,
    PostgreSQLSessionStore,
)

__all__ = [
    "PostgreSQLEventStore",
    "PostgreSQLSessionStore",
]
