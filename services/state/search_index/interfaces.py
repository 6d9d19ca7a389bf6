"""Collaborator protocols consumed by the Search Index Service."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from services.state.search_index.domain import (
    IndexedChunk,
    OutboxEvent,
    SearchPage,
    SourceChunk,
    SourceDocument,
)


class ChunkSource(Protocol):
    """Read-only view of the system of record."""

    def find_chunks_by_entity(self, entity_id: str) -> list[SourceChunk]:
        """Return current chunks of one document ordered by chunk order."""

    def find_chunks_by_tenant(self, tenant_id: str) -> list[SourceChunk]:
        """Return every chunk owned by ``tenant_id`` in store order."""

    def find_all_chunk_ids_by_tenant(self, tenant_id: str) -> set[str]:
        """Return the ids of every chunk owned by ``tenant_id``."""

    def find_document_by_id(self, document_id: str, *, tenant_id: str) -> SourceDocument | None:
        """Return one tenant-scoped document or ``None``."""

    def list_document_ids_by_tenant(self, tenant_id: str) -> list[str]:
        """Return ids of every non-deleted document owned by ``tenant_id``."""


class OutboxStore(Protocol):
    """Durable queue of pending index mutations."""

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
        """Create one pending event, inside ``session`` when provided."""

    def list_pending(self, *, due_at: datetime | None = None) -> list[OutboxEvent]:
        """Return unprocessed, live events oldest first."""

    def list_dead_lettered(self) -> list[OutboxEvent]:
        """Return dead-lettered events newest first."""

    def get(self, event_id: str) -> OutboxEvent | None:
        """Return one event or ``None``."""

    def mark_processed(self, *, event_id: str, processed_at: datetime) -> None:
        """Record successful application of one event."""

    def record_failure(
        self,
        *,
        event_id: str,
        retry_count: int,
        next_retry_at: datetime,
        dead_lettered: bool,
    ) -> None:
        """Record one failed application attempt."""

    def replay(self, *, event_id: str, now: datetime) -> OutboxEvent:
        """Reset retries and dead-letter state so the event is pending again."""


class IndexClient(Protocol):
    """External search index boundary."""

    def upsert(self, chunk: IndexedChunk) -> None:
        """Insert or overwrite one chunk keyed by ``chunk_id``."""

    def delete_by_id(self, chunk_id: str) -> bool:
        """Remove one chunk; return True when it existed."""

    def query(self, term: str, limit: int, *, tenant_id: str | None = None) -> list[IndexedChunk]:
        """Return chunks containing ``term``, newest first."""

    def list_all(self, tenant_id: str) -> list[IndexedChunk]:
        """Return every chunk indexed for ``tenant_id``."""

    def ping(self) -> bool:
        """Return True when the index can serve requests."""


class GroupResolver(Protocol):
    """Resolves a principal's effective group membership."""

    def effective_groups(self, *, tenant_id: str, principal: str) -> frozenset[str]:
        """Return group ids the principal belongs to within ``tenant_id``."""


class DocumentAccessPolicy(Protocol):
    """Pure per-document access decision.

    Implementations must not raise; anything that can fail (lookups,
    membership resolution) happens before the decision is made.
    """

    def can_access_document(
        self, *, document: SourceDocument, tenant_id: str, groups: frozenset[str]
    ) -> bool:
        """Return True when ``groups`` in ``tenant_id`` may read ``document``."""


class SearchAuditor(Protocol):
    """Audit sink for executed searches."""

    def log_search(self, query: str, result_count: int) -> None:
        """Record one executed search."""


class SearchCache(Protocol):
    """Response cache shared by every search request."""

    def get(self, key: str) -> SearchPage | None:
        """Return a cached page or ``None``."""

    def set(self, key: str, page: SearchPage) -> None:
        """Store one page under ``key``."""

    def evict_all(self) -> int:
        """Drop every cached page; return how many were removed."""
