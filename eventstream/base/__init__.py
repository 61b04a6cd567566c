# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the collaborator contracts of the pipeline.

The consumer, producer and event processor depend only on these interfaces;
concrete adapters live in infrastructure/ and enrichers/.
"""

from eventstream.base.enrichment import EnrichmentStage
from eventstream.base.repositories import EventStore, SessionStore
from eventstream.base.runner import BaseRunner
from eventstream.base.transport import Fields, PendingEntry, QueueTransport

__all__ = [
    "BaseRunner",
    "EnrichmentStage",
    "EventStore",
    "Fields",
    "PendingEntry",
    "QueueTransport",
    "SessionStore",
]
