# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis-backed RedisStreamTransport
- In-memory EventStore / SessionStore fakes
- QueuedEvent factory
"""

import copy
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from eventstream.base.enrichment import EnrichmentStage
from eventstream.base.repositories import EventStore, SessionStore
from eventstream.core.models import (
    DeviceData,
    EnrichedEvent,
    GeoData,
    QueuedEvent,
    SessionRecord,
)
from eventstream.errors import PersistenceError
from eventstream.infrastructure.redis_streams import RedisStreamTransport

STREAM = "test:events"
GROUP = "test-group"
BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


# ==============================================================================
# In-Memory Fakes
# ==============================================================================


class InMemoryEventStore(EventStore):
    """EventStore keeping rows in a dict keyed by message id.

    Set fail_on_save to make the next save_batch raise without writing.
    Message ids in preexisting are treated as written by another worker:
    message_id_exists misses them but save_batch skips them.
    """

    def __init__(self):
        self.rows: dict[str, EnrichedEvent] = {}
        self.fail_on_save = False
        self.save_calls = 0
        self.preexisting: set[str] = set()

    def message_id_exists(self, message_id: str) -> bool:
        return message_id in self.rows

    def save_batch(self, events: list[EnrichedEvent]) -> list[str]:
        self.save_calls += 1
        if self.fail_on_save:
            raise PersistenceError("simulated insert failure")
        inserted = []
        for event in events:
            if event.message_id in self.rows or event.message_id in self.preexisting:
                continue
            self.rows[event.message_id] = event
            inserted.append(event.message_id)
        return inserted


class InMemorySessionStore(SessionStore):
    """SessionStore keeping deep copies of records.

    Session ids listed in fail_on are rejected on save.
    """

    def __init__(self):
        self.records: dict[str, SessionRecord] = {}
        self.fail_on: set[str] = set()

    def find_by_id(self, session_id: str) -> SessionRecord | None:
        record = self.records.get(session_id)
        return copy.deepcopy(record) if record else None

    def save(self, record: SessionRecord) -> None:
        if record.session_id in self.fail_on:
            raise PersistenceError(f"simulated upsert failure for {record.session_id}")
        self.records[record.session_id] = copy.deepcopy(record)


class StaticEnrichment(EnrichmentStage):
    """Enrichment stage returning fixed results and recording its inputs."""

    def __init__(self, geo: GeoData | None = None, device: DeviceData | None = None):
        self.geo = geo or GeoData(country_code="US", city="Austin")
        self.device = device or DeviceData(
            device_type="mobile", os_name="iOS", browser_name="Mobile Safari"
        )
        self.geo_calls: list[str | None] = []
        self.device_calls: list[str | None] = []

    def enrich_geo(self, ip_address):
        self.geo_calls.append(ip_address)
        return self.geo

    def enrich_device(self, user_agent):
        self.device_calls.append(user_agent)
        return self.device


# ==============================================================================
# Factories
# ==============================================================================


def make_event(
    message_id: str = "m1",
    session_id: str | None = "s1",
    offset_seconds: int = 0,
    event_name: str = "page_view",
    event_type: str = "page",
    channel: str | None = None,
    page_path: str | None = "/",
    properties: dict | None = None,
    user_id: str | None = None,
    ip_address: str | None = "203.0.113.7",
    user_agent: str | None = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)",
    context: dict | None = None,
) -> QueuedEvent:
    """Build a QueuedEvent with sensible web-channel defaults."""
    if context is None:
        context = {"library": {"name": "analytics-js", "version": "1.4.0"}}
        if user_agent:
            context["userAgent"] = user_agent
        if page_path:
            context["page"] = {
                "path": page_path,
                "url": f"https://example.com{page_path}",
                "title": "Example",
                "referrer": "https://google.com/",
            }
        if channel:
            context["channel"] = channel

    return QueuedEvent(
        event_id=f"evt-{message_id}",
        message_id=message_id,
        tenant_id="tenant-1",
        project_id="project-1",
        event_name=event_name,
        event_type=event_type,
        timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
        anonymous_id="anon-1",
        user_id=user_id,
        session_id=session_id,
        context=context,
        properties=properties,
        received_at=BASE_TIME + timedelta(seconds=offset_seconds, milliseconds=150),
        ip_address=ip_address,
    )


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real client configuration.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def transport(fake_redis):
    """A RedisStreamTransport backed by fakeredis."""
    return RedisStreamTransport(client=fake_redis)


@pytest.fixture()
def event_store():
    return InMemoryEventStore()


@pytest.fixture()
def session_store():
    return InMemorySessionStore()


@pytest.fixture()
def enrichment():
    return StaticEnrichment()
