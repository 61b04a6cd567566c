# ==============================================================================
# Queue Transport Abstract Base Class
# ==============================================================================
"""
Abstract interface for an append-only log with competing-consumer groups.

Within a group, each entry is delivered to one consumer at a time. Entries
that are never acknowledged stay pending and can be claimed by another
consumer (at-least-once delivery). Ordering is only guaranteed as append
order within the log, not across consumers.

Implementations wrap their store's errors in TransportError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

# Field set as stored in a stream entry
Fields = dict[str, str]


@dataclass(frozen=True)
class PendingEntry:
    """A delivered but unacknowledged entry."""

    message_id: str
    consumer: str
    idle_ms: int
    deliveries: int


def next_entry_id(message_id: str) -> str:
    """Smallest entry id strictly greater than message_id ('<ms>-<seq>')."""
    ms, _, seq = message_id.partition("-")
    return f"{ms}-{int(seq or 0) + 1}"


class QueueTransport(ABC):
    """Append-only log supporting consumer groups."""

    @abstractmethod
    def append(self, stream_key: str, fields: Fields) -> str:
        """
        Append one entry.

        Returns:
            The transport-assigned entry id (monotonic within the stream)
        """
        ...

    @abstractmethod
    def append_many(self, stream_key: str, field_sets: list[Fields]) -> list[str]:
        """
        Append several entries in a single round trip.

        Not atomic: entries before a failing one may already be appended.
        The first failure is raised.

        Returns:
            Entry ids in input order
        """
        ...

    @abstractmethod
    def ensure_group(self, stream_key: str, group_name: str) -> None:
        """
        Create the consumer group (and the stream) if absent.

        Idempotent: an existing group is success, not an error.
        """
        ...

    @abstractmethod
    def read_group(
        self,
        stream_key: str,
        group_name: str,
        consumer_name: str,
        count: int,
        block_ms: int,
    ) -> list[tuple[str, Fields]]:
        """
        Read undelivered entries as a group member.

        Blocks at most block_ms waiting for new data. Returns an empty list on
        timeout. Never re-reads this consumer's own pending entries.
        """
        ...

    @abstractmethod
    def ack(self, stream_key: str, group_name: str, *message_ids: str) -> int:
        """
        Acknowledge entries, removing them from the pending list.

        Returns:
            Count of entries acknowledged
        """
        ...

    @abstractmethod
    def length(self, stream_key: str) -> int:
        """Number of entries currently held in the stream."""
        ...

    @abstractmethod
    def pending(
        self,
        stream_key: str,
        group_name: str,
        min_idle_ms: int,
        count: int,
        start: str = "-",
    ) -> list[PendingEntry]:
        """
        List up to count pending entries idle for at least min_idle_ms.

        Entries are returned in id order, beginning at start (inclusive).
        """
        ...

    @abstractmethod
    def claim(
        self,
        stream_key: str,
        group_name: str,
        consumer_name: str,
        min_idle_ms: int,
        message_ids: list[str],
    ) -> list[tuple[str, Fields]]:
        """
        Transfer ownership of pending entries to consumer_name.

        Entries no longer idle for min_idle_ms (or already acknowledged) are
        skipped. Each claim counts as a delivery.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the connection and release resources."""
        ...

    def __enter__(self) -> "QueueTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
