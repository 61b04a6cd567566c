# ==============================================================================
# Event Pipeline Domain Models
# ==============================================================================
"""
Pydantic models for queued events, enriched events, and sessions.

These models are used for:
- Serializing/deserializing stream messages (camelCase on the wire)
- Carrying enrichment output to the event store
- Type safety throughout the pipeline

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from eventstream.core.event_names import Channel


def _as_utc(value: datetime) -> datetime:
    """Interpret naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DeviceType(str, Enum):
    """Normalized device classes."""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class QueuedEvent(BaseModel):
    """
    Wire record placed on the stream by the ingestion edge.

    Attributes use snake_case; the JSON payload uses camelCase aliases
    (``messageId``, ``tenantId``, ...). Both spellings are accepted on input.

    ``message_id`` is the idempotency key. ``event_id`` is carried through
    but never used for deduplication.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event_id: str
    message_id: str
    tenant_id: str
    project_id: str
    event_name: str
    event_type: str = Field(..., description="page, track or identify")
    timestamp: datetime = Field(..., description="Client clock, ISO-8601")
    anonymous_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)
    properties: Optional[dict[str, Any]] = None
    received_at: Optional[datetime] = Field(None, description="Server ingestion time")
    ip_address: Optional[str] = None

    @field_validator("timestamp", "received_at")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None

    @property
    def channel(self) -> str:
        """Channel tag from the context, defaulting to web."""
        return self.context.get("channel") or Channel.WEB.value

    @property
    def user_agent(self) -> Optional[str]:
        """User-agent string captured by the client library."""
        return self.context.get("userAgent")

    @property
    def page(self) -> dict[str, Any]:
        """Page info captured by the client library (may be empty)."""
        page = self.context.get("page")
        return page if isinstance(page, dict) else {}

    def to_stream_fields(self) -> dict[str, str]:
        """Serialize event for the stream entry field set."""
        return {"data": self.model_dump_json(by_alias=True, exclude_none=True)}

    @classmethod
    def from_stream_fields(cls, fields: dict[str, str]) -> "QueuedEvent":
        """Deserialize event from a stream entry field set."""
        return cls.model_validate_json(fields["data"])


@dataclass(frozen=True)
class StreamMessage:
    """A stream entry: transport-assigned id plus the decoded event."""

    id: str
    event: QueuedEvent


class GeoData(BaseModel):
    """Geographic enrichment output. Empty when the IP is missing or unknown."""

    country_code: Optional[str] = None
    city: Optional[str] = None


class DeviceData(BaseModel):
    """Device/browser enrichment output."""

    device_type: DeviceType = DeviceType.DESKTOP
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    browser_name: Optional[str] = None
    browser_version: Optional[str] = None


class EnrichedEvent(BaseModel):
    """
    Event record persisted to the event store.

    A superset of QueuedEvent plus enrichment output. For non-web channels the
    page, user-agent, IP and enrichment fields are left empty.
    """

    model_config = ConfigDict(use_enum_values=True)

    event_id: str
    message_id: str
    tenant_id: str
    project_id: str
    event_name: str
    event_type: Optional[str] = None
    timestamp: datetime
    received_at: Optional[datetime] = None
    anonymous_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    channel_type: str = Channel.WEB.value
    external_id: Optional[str] = None

    page_path: Optional[str] = None
    page_url: Optional[str] = None
    page_title: Optional[str] = None
    page_referrer: Optional[str] = None

    user_agent: Optional[str] = None
    device_type: Optional[DeviceType] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    browser_name: Optional[str] = None
    browser_version: Optional[str] = None

    ip_address: Optional[str] = None
    country_code: Optional[str] = None
    city: Optional[str] = None

    properties: Optional[dict[str, Any]] = None
    sdk_version: Optional[str] = None

    def to_db_record(self) -> dict:
        """Convert event to database record format."""
        return self.model_dump()


class SessionRecord(BaseModel):
    """
    Rolling aggregate of all events sharing a session id.

    First-touch fields (entry_page, referrer, device_type, country_code, utm_*)
    are set once at creation. ``converted`` is a one-way latch.
    """

    session_id: str
    tenant_id: str
    anonymous_id: str
    user_id: Optional[str] = None
    started_at: datetime
    ended_at: datetime
    event_count: int = 0
    page_count: int = 0
    duration_seconds: int = 0

    entry_page: Optional[str] = None
    referrer: Optional[str] = None
    device_type: Optional[str] = None
    country_code: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

    converted: bool = False
    conversion_event: Optional[str] = None

    @field_validator("started_at", "ended_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def to_db_record(self) -> dict:
        """Convert session to database record format."""
        return self.model_dump()


@dataclass
class BatchResult:
    """Outcome of one handler invocation."""

    messages_received: int = 0
    events_inserted: int = 0
    duplicates_skipped: int = 0
    sessions_updated: int = 0
    sessions_failed: int = 0
    elapsed_ms: float = 0.0
