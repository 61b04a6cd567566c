# ==============================================================================
# Session Aggregator - Pure Domain Logic
# ==============================================================================
"""
Pure session aggregation logic with no external dependencies.

Folds a batch of newly persisted events for one session id into a
SessionRecord:
- First sight of a session id creates the record, taking first-touch
  attribution from the chronologically first event of that batch
- Later batches widen started_at/ended_at, never narrow them
- user_id is backfilled once and never overwritten
- converted is a one-way latch

No store access happens here, so the logic can be unit tested without mocks
and reused by any persistence backend.
"""

from eventstream.core.event_names import is_conversion, is_page_view
from eventstream.core.models import EnrichedEvent, SessionRecord

UTM_FIELDS = ("utm_source", "utm_medium", "utm_campaign")


class SessionAggregator:
    """
    Folds event batches into session records.

    Usage:
        record = aggregator.aggregate(session_store.find_by_id(sid), events)
        session_store.save(record)
    """

    def create_session(self, session_id: str, first_event: EnrichedEvent) -> SessionRecord:
        """
        Create a new, empty session record from the first event seen.

        Counters start at zero; aggregate() adds the batch on top.
        """
        props = first_event.properties or {}
        utm = {name: _str_or_none(props.get(name)) for name in UTM_FIELDS}

        return SessionRecord(
            session_id=session_id,
            tenant_id=first_event.tenant_id,
            anonymous_id=first_event.anonymous_id,
            user_id=first_event.user_id,
            started_at=first_event.timestamp,
            ended_at=first_event.timestamp,
            entry_page=first_event.page_path,
            referrer=first_event.page_referrer,
            device_type=first_event.device_type,
            country_code=first_event.country_code,
            **utm,
        )

    def aggregate(
        self,
        session: SessionRecord | None,
        events: list[EnrichedEvent],
    ) -> SessionRecord:
        """
        Fold a batch of events for one session into its record.

        Args:
            session: Existing record, or None on first sight of the session id
            events: Newly persisted events sharing the session id (any order)

        Returns:
            The updated record (a new object when session was None)

        Raises:
            ValueError: If events is empty or lacks a session id
        """
        if not events:
            raise ValueError("Cannot aggregate an empty event batch")

        ordered = sorted(events, key=lambda e: e.timestamp)
        first, last = ordered[0], ordered[-1]
        session_id = first.session_id
        if not session_id:
            raise ValueError("Events without a session id cannot be aggregated")

        if session is None:
            session = self.create_session(session_id, first)
            session.ended_at = last.timestamp
        else:
            session = session.model_copy(deep=True)
            if first.timestamp < session.started_at:
                session.started_at = first.timestamp
            if last.timestamp > session.ended_at:
                session.ended_at = last.timestamp

        if session.user_id is None:
            session.user_id = next((e.user_id for e in ordered if e.user_id), None)

        session.event_count += len(ordered)
        session.page_count += sum(1 for e in ordered if is_page_view(e.event_type, e.event_name))
        session.duration_seconds = round((session.ended_at - session.started_at).total_seconds())

        if not session.converted:
            conversion = next((e for e in ordered if is_conversion(e.event_name)), None)
            if conversion is not None:
                session.converted = True
                session.conversion_event = conversion.event_name

        return session


def _str_or_none(value) -> str | None:
    """Keep non-empty string attribution values only."""
    if isinstance(value, str) and value:
        return value
    return None
