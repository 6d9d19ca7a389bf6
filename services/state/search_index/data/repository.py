"""SQL repositories backing the outbox and the read-only source views."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import and_, desc, insert, or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres import transactional_session
from services.state.search_index.data.mappers import (
    row_to_outbox_event,
    row_to_source_chunk,
    row_to_source_document,
)
from services.state.search_index.data.schema import (
    chunks,
    documents,
    group_memberships,
    outbox_events,
)
from services.state.search_index.domain import OutboxEvent, SourceChunk, SourceDocument
from services.state.search_index.errors import OutboxEventNotFoundError


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SqlOutboxStore:
    """Outbox store over the ``search_index_outbox`` table.

    Every method runs in its own short transaction unless a caller session is
    supplied to :meth:`enqueue`, so one event's state change never rides on
    another's commit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._sessions = session_factory
        self._clock = clock

    def enqueue(
        self,
        *,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
        action: str,
        max_retries: int,
        payload: str = "{}",
        session: Session | None = None,
    ) -> OutboxEvent:
        """Insert one pending event, joining ``session`` when provided."""
        values = {
            "id": str(uuid4()),
            "tenant_id": tenant_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "payload": payload,
            "retry_count": 0,
            "max_retries": max_retries,
            "next_retry_at": None,
            "dead_lettered": False,
            "created_at": self._clock(),
            "processed_at": None,
        }
        statement = insert(outbox_events).values(**values)
        if session is not None:
            session.execute(statement)
        else:
            with transactional_session(self._sessions) as owned:
                owned.execute(statement)
        return row_to_outbox_event(values)

    def list_pending(self, *, due_at: datetime | None = None) -> list[OutboxEvent]:
        """Return unprocessed, live events oldest first.

        With ``due_at`` only events whose ``next_retry_at`` is unset or not
        after ``due_at`` are returned.
        """
        conditions = [
            outbox_events.c.processed_at.is_(None),
            outbox_events.c.dead_lettered.is_(False),
        ]
        if due_at is not None:
            conditions.append(
                or_(
                    outbox_events.c.next_retry_at.is_(None),
                    outbox_events.c.next_retry_at <= due_at,
                )
            )
        statement = (
            select(outbox_events)
            .where(and_(*conditions))
            .order_by(outbox_events.c.created_at, outbox_events.c.id)
        )
        with transactional_session(self._sessions) as session:
            rows = session.execute(statement).mappings().all()
            return [row_to_outbox_event(row) for row in rows]

    def list_dead_lettered(self) -> list[OutboxEvent]:
        """Return dead-lettered events newest first."""
        statement = (
            select(outbox_events)
            .where(outbox_events.c.dead_lettered.is_(True))
            .order_by(desc(outbox_events.c.created_at), desc(outbox_events.c.id))
        )
        with transactional_session(self._sessions) as session:
            rows = session.execute(statement).mappings().all()
            return [row_to_outbox_event(row) for row in rows]

    def get(self, event_id: str) -> OutboxEvent | None:
        """Return one event by id."""
        with transactional_session(self._sessions) as session:
            row = (
                session.execute(select(outbox_events).where(outbox_events.c.id == event_id))
                .mappings()
                .one_or_none()
            )
            return row_to_outbox_event(row) if row is not None else None

    def mark_processed(self, *, event_id: str, processed_at: datetime) -> None:
        """Stamp ``processed_at`` on one event."""
        with transactional_session(self._sessions) as session:
            session.execute(
                update(outbox_events)
                .where(outbox_events.c.id == event_id)
                .values(processed_at=processed_at)
            )

    def record_failure(
        self,
        *,
        event_id: str,
        retry_count: int,
        next_retry_at: datetime,
        dead_lettered: bool,
    ) -> None:
        """Persist one failed attempt's retry state."""
        with transactional_session(self._sessions) as session:
            session.execute(
                update(outbox_events)
                .where(outbox_events.c.id == event_id)
                .values(
                    retry_count=retry_count,
                    next_retry_at=next_retry_at,
                    dead_lettered=dead_lettered,
                )
            )

    def replay(self, *, event_id: str, now: datetime) -> OutboxEvent:
        """Reset retry state for one event and return the updated row."""
        with transactional_session(self._sessions) as session:
            result = session.execute(
                update(outbox_events)
                .where(outbox_events.c.id == event_id)
                .values(retry_count=0, dead_lettered=False, next_retry_at=now)
            )
            if result.rowcount == 0:
                raise OutboxEventNotFoundError(event_id)
            row = (
                session.execute(select(outbox_events).where(outbox_events.c.id == event_id))
                .mappings()
                .one()
            )
            return row_to_outbox_event(row)


class SqlChunkSource:
    """Read-only chunk and document queries against the system of record."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    def find_chunks_by_entity(self, entity_id: str) -> list[SourceChunk]:
        """Return one document's chunks ordered by ``chunk_order``."""
        statement = (
            select(chunks)
            .where(chunks.c.document_id == entity_id)
            .order_by(chunks.c.chunk_order, chunks.c.id)
        )
        with transactional_session(self._sessions) as session:
            return [
                row_to_source_chunk(row)
                for row in session.execute(statement).mappings().all()
            ]

    def find_chunks_by_tenant(self, tenant_id: str) -> list[SourceChunk]:
        """Return every chunk owned by ``tenant_id``."""
        statement = (
            select(chunks)
            .where(chunks.c.tenant_id == tenant_id)
            .order_by(chunks.c.document_id, chunks.c.chunk_order, chunks.c.id)
        )
        with transactional_session(self._sessions) as session:
            return [
                row_to_source_chunk(row)
                for row in session.execute(statement).mappings().all()
            ]

    def find_all_chunk_ids_by_tenant(self, tenant_id: str) -> set[str]:
        """Return the id of every chunk owned by ``tenant_id``."""
        statement = select(chunks.c.id).where(chunks.c.tenant_id == tenant_id)
        with transactional_session(self._sessions) as session:
            return {str(chunk_id) for chunk_id in session.execute(statement).scalars()}

    def find_document_by_id(
        self, document_id: str, *, tenant_id: str
    ) -> SourceDocument | None:
        """Return one document when it exists in ``tenant_id``."""
        statement = select(documents).where(
            documents.c.id == document_id, documents.c.tenant_id == tenant_id
        )
        with transactional_session(self._sessions) as session:
            row = session.execute(statement).mappings().one_or_none()
            return row_to_source_document(row) if row is not None else None

    def list_document_ids_by_tenant(self, tenant_id: str) -> list[str]:
        """Return ids of every non-deleted document in ``tenant_id``."""
        statement = (
            select(documents.c.id)
            .where(documents.c.tenant_id == tenant_id, documents.c.deleted_at.is_(None))
            .order_by(documents.c.created_at, documents.c.id)
        )
        with transactional_session(self._sessions) as session:
            return [str(document_id) for document_id in session.execute(statement).scalars()]


class SqlGroupResolver:
    """Resolve direct group memberships from ``group_memberships``."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    def effective_groups(self, *, tenant_id: str, principal: str) -> frozenset[str]:
        """Return the groups ``principal`` directly belongs to in ``tenant_id``."""
        statement = select(group_memberships.c.group_id).where(
            group_memberships.c.tenant_id == tenant_id,
            group_memberships.c.principal == principal,
        )
        with transactional_session(self._sessions) as session:
            return frozenset(str(group) for group in session.execute(statement).scalars())
