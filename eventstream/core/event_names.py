# ==============================================================================
# Event Vocabulary
# ==============================================================================
"""
Well-known event names, types, and channels.
"""

from enum import Enum


class EventType(str, Enum):
    """Event types emitted by the client SDKs."""

    PAGE = "page"
    TRACK = "track"
    IDENTIFY = "identify"


class Channel(str, Enum):
    """Channels events can originate from."""

    WEB = "web"
    WHATSAPP = "whatsapp"


class WhatsAppEventNames:
    """Event names emitted by the WhatsApp channel."""

    MESSAGE_RECEIVED = "message.received"
    MESSAGE_SENT = "message.sent"
    MESSAGE_DELIVERED = "message.delivered"
    MESSAGE_READ = "message.read"


PAGE_VIEW_EVENT = "page_view"

CONVERSION_EVENTS = frozenset({"conversion", "purchase", "form_submit"})


def is_page_view(event_type: str | None, event_name: str) -> bool:
    """True for events that count toward a session's page count."""
    return event_type == EventType.PAGE.value or event_name == PAGE_VIEW_EVENT


def is_conversion(event_name: str) -> bool:
    """True for event names that mark a session as converted."""
    return event_name in CONVERSION_EVENTS
