# ==============================================================================
# PostgreSQL Store Implementations
# ==============================================================================
"""
PostgreSQL implementations of the store interfaces.

Provides:
- PostgreSQLEventStore: all-or-nothing bulk insert with message-id dedup
- PostgreSQLSessionStore: session lookup and upsert
"""

import logging

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values

from eventstream.base.repositories import EventStore, SessionStore
from eventstream.core.models import EnrichedEvent, SessionRecord
from eventstream.errors import PersistenceError
from eventstream.utils.config import Settings, get_settings
from eventstream.utils.retry import POSTGRES_RETRY_EXCEPTIONS, retry_standard

logger = logging.getLogger(__name__)

# Rows per INSERT statement for execute_values
PAGE_SIZE = 1000

# Connection timeout
CONNECT_TIMEOUT = 10

EVENT_COLUMNS = (
    "event_id",
    "message_id",
    "tenant_id",
    "project_id",
    "event_name",
    "event_type",
    "timestamp",
    "received_at",
    "anonymous_id",
    "user_id",
    "session_id",
    "channel_type",
    "external_id",
    "page_path",
    "page_url",
    "page_title",
    "page_referrer",
    "user_agent",
    "device_type",
    "os_name",
    "os_version",
    "browser_name",
    "browser_version",
    "ip_address",
    "country_code",
    "city",
    "properties",
    "sdk_version",
)

SESSION_COLUMNS = tuple(SessionRecord.model_fields)

# Update set for the session upsert. First-touch attribution columns are
# written on insert only. The time range and conversion latch are merged with
# the stored row so a concurrent writer can never narrow or reset them, and
# duration is recomputed from the merged range.
SESSION_UPDATES = {
    "user_id": "COALESCE(sessions.user_id, EXCLUDED.user_id)",
    "started_at": "LEAST(sessions.started_at, EXCLUDED.started_at)",
    "ended_at": "GREATEST(sessions.ended_at, EXCLUDED.ended_at)",
    "duration_seconds": (
        "ROUND(EXTRACT(EPOCH FROM GREATEST(sessions.ended_at, EXCLUDED.ended_at)"
        " - LEAST(sessions.started_at, EXCLUDED.started_at)))::int"
    ),
    "event_count": "EXCLUDED.event_count",
    "page_count": "EXCLUDED.page_count",
    "converted": "sessions.converted OR EXCLUDED.converted",
    "conversion_event": "COALESCE(sessions.conversion_event, EXCLUDED.conversion_event)",
}


def _add_connect_timeout(conn_string: str) -> str:
    """Add connect_timeout to connection string if not present."""
    if "connect_timeout" not in conn_string:
        separator = "&" if "?" in conn_string else "?"
        return f"{conn_string}{separator}connect_timeout={CONNECT_TIMEOUT}"
    return conn_string


class _PostgreSQLConnection:
    """Connection lifecycle shared by both stores."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._conn: psycopg2.extensions.connection | None = None
        self._schema = self._settings.postgres.schema_name

    @property
    def schema(self) -> str:
        """Get the database schema name."""
        return self._schema

    @retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
    def connect(self) -> None:
        """Establish connection to PostgreSQL."""
        conn_string = _add_connect_timeout(self._settings.postgres.connection_string)
        self._conn = psycopg2.connect(conn_string)
        logger.info("%s connected (schema=%s)", type(self).__name__, self._schema)

    def _require_connection(self) -> "psycopg2.extensions.connection":
        if self._conn is None:
            raise PersistenceError("PostgreSQL connection not established. Call connect() first.")
        return self._conn

    def rollback(self) -> None:
        """Rollback current transaction."""
        if self._conn is None:
            return
        try:
            self._conn.rollback()
        except psycopg2.Error as e:
            logger.warning("Rollback failed: %s", e)

    def close(self) -> None:
        """Close connection and release resources."""
        if self._conn:
            try:
                self._conn.close()
                logger.info("%s connection closed", type(self).__name__)
            except psycopg2.Error as e:
                logger.warning("Error closing connection: %s", e)
            finally:
                self._conn = None


class PostgreSQLEventStore(_PostgreSQLConnection, EventStore):
    """
    PostgreSQL implementation of EventStore.

    Uses psycopg2.extras.execute_values() inside a single transaction, so a
    failed batch leaves no rows behind. The events table has a unique
    constraint on message_id; ON CONFLICT DO NOTHING makes inserts idempotent
    when two workers race on genuine resubmissions, and RETURNING reports
    which rows this worker actually wrote.
    """

    def message_id_exists(self, message_id: str) -> bool:
        conn = self._require_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT 1 FROM {self._schema}.events WHERE message_id = %s LIMIT 1",
                    (message_id,),
                )
                found = cur.fetchone() is not None
            conn.commit()
            return found
        except psycopg2.Error as e:
            self.rollback()
            raise PersistenceError(f"Lookup of message {message_id} failed: {e}") from e

    def save_batch(self, events: list[EnrichedEvent]) -> list[str]:
        """
        Persist events to PostgreSQL in one transaction.

        Returns:
            Message ids actually inserted. Rows skipped by the unique
            constraint (a concurrent worker stored them first) are left out.
        """
        if not events:
            return []
        conn = self._require_connection()

        rows = []
        for event in events:
            record = event.to_db_record()
            record["properties"] = Json(record["properties"]) if record["properties"] else None
            rows.append({column: record[column] for column in EVENT_COLUMNS})

        columns = ", ".join(f'"{c}"' if c == "timestamp" else c for c in EVENT_COLUMNS)
        template = "(" + ", ".join(f"%({c})s" for c in EVENT_COLUMNS) + ")"
        try:
            with conn.cursor() as cur:
                returned = execute_values(
                    cur,
                    f"""
                    INSERT INTO {self._schema}.events ({columns})
                    VALUES %s
                    ON CONFLICT (message_id) DO NOTHING
                    RETURNING message_id
                    """,
                    rows,
                    template=template,
                    page_size=PAGE_SIZE,
                    fetch=True,
                )
            conn.commit()
        except psycopg2.Error as e:
            self.rollback()
            raise PersistenceError(f"Batch insert of {len(rows)} events failed: {e}") from e

        inserted = [row[0] for row in returned]
        if len(inserted) < len(rows):
            logger.info(
                "Inserted %d of %d events (%d already stored)",
                len(inserted),
                len(rows),
                len(rows) - len(inserted),
            )
        else:
            logger.debug("Inserted %d events", len(inserted))
        return inserted


class PostgreSQLSessionStore(_PostgreSQLConnection, SessionStore):
    """
    PostgreSQL implementation of SessionStore.

    Sessions are upserted using ON CONFLICT ... DO UPDATE. First-touch
    attribution columns are excluded from the update set so a late writer
    can never overwrite them.
    """

    def find_by_id(self, session_id: str) -> SessionRecord | None:
        conn = self._require_connection()
        columns = ", ".join(SESSION_COLUMNS)
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {columns} FROM {self._schema}.sessions WHERE session_id = %s",
                    (session_id,),
                )
                row = cur.fetchone()
            conn.commit()
        except psycopg2.Error as e:
            self.rollback()
            raise PersistenceError(f"Lookup of session {session_id} failed: {e}") from e

        return SessionRecord.model_validate(dict(row)) if row else None

    def save(self, record: SessionRecord) -> None:
        conn = self._require_connection()
        columns = ", ".join(SESSION_COLUMNS)
        values = ", ".join(f"%({c})s" for c in SESSION_COLUMNS)
        updates = ", ".join(f"{c} = {expr}" for c, expr in SESSION_UPDATES.items())
        try:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {self._schema}.sessions ({columns})
                    VALUES ({values})
                    ON CONFLICT (session_id) DO UPDATE SET
                        {updates},
                        updated_at = now()
                    """,
                    record.to_db_record(),
                )
            conn.commit()
        except psycopg2.Error as e:
            self.rollback()
            raise PersistenceError(f"Upsert of session {record.session_id} failed: {e}") from e

        logger.debug("Upserted session %s", record.session_id)

