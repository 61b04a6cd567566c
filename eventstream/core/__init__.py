# ==============================================================================
# Core Domain Layer
# ==============================================================================
"""
Domain models and pure aggregation logic with no infrastructure dependencies.
"""

from eventstream.core.models import (
    BatchResult,
    DeviceData,
    DeviceType,
    EnrichedEvent,
    GeoData,
    QueuedEvent,
    SessionRecord,
    StreamMessage,
)
from eventstream.core.session_aggregator import SessionAggregator

__all__ = [
    "BatchResult",
    "DeviceData",
    "DeviceType",
    "EnrichedEvent",
    "GeoData",
    "QueuedEvent",
    "SessionAggregator",
    "SessionRecord",
    "StreamMessage",
]
