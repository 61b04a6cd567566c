# ==============================================================================
# Repository Abstract Base Classes
# ==============================================================================
"""
Store ABCs for event and session persistence.

These define the "what" (check, save, find) not the "how" (insert vs upsert).
Concrete implementations in infrastructure/ handle the specifics.

Includes:
- EventStore: enriched event persistence with message-id dedup lookups
- SessionStore: session record lookup and upsert

Both are assumed to tolerate concurrent writers from several worker
processes.
"""

from abc import ABC, abstractmethod

from eventstream.core.models import EnrichedEvent, SessionRecord


class EventStore(ABC):
    """Store for enriched events."""

    @abstractmethod
    def message_id_exists(self, message_id: str) -> bool:
        """Check whether an event with this message id was already stored."""
        ...

    @abstractmethod
    def save_batch(self, events: list[EnrichedEvent]) -> list[str]:
        """
        Persist events as one all-or-nothing write.

        Implementations must also ignore rows whose message id already exists
        (unique constraint), since the existence check is only an optimization.

        Returns:
            Message ids of the rows actually written. Rows skipped because
            the message id was already stored are not included.

        Raises:
            PersistenceError: If the write fails. Nothing from the batch is
                visible afterwards.
        """
        ...

    def connect(self) -> None:
        """Establish connection to the data store."""

    def close(self) -> None:
        """Close connection and release resources."""

    def __enter__(self) -> "EventStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SessionStore(ABC):
    """Store for session records."""

    @abstractmethod
    def find_by_id(self, session_id: str) -> SessionRecord | None:
        """Get a session record, or None if never seen."""
        ...

    @abstractmethod
    def save(self, record: SessionRecord) -> None:
        """
        Upsert a session record.

        Raises:
            PersistenceError: If the write fails
        """
        ...

    def connect(self) -> None:
        """Establish connection to the data store."""

    def close(self) -> None:
        """Close connection and release resources."""

    def __enter__(self) -> "SessionStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
