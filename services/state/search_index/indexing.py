"""Translate system-of-record chunks into index mutations."""

from __future__ import annotations

from sqlalchemy.orm import Session

from packages.dms_shared.logging import fields, get_logger, log_context
from services.state.search_index.context import RequestContextProvider
from services.state.search_index.domain import (
    IndexedChunk,
    OutboxAction,
    OutboxEvent,
    SearchType,
    SourceChunk,
)
from services.state.search_index.interfaces import ChunkSource, IndexClient, OutboxStore

_LOGGER = get_logger(__name__)

DOCUMENT_ENTITY_TYPE = "DOCUMENT"
FRESHLY_INDEXED_SCORE = 1.0


class IndexingService:
    """Apply chunk upserts/deletes to the index and enqueue outbox events."""

    def __init__(
        self,
        *,
        outbox: OutboxStore,
        chunk_source: ChunkSource,
        index_client: IndexClient,
        context: RequestContextProvider,
        max_retries: int,
    ) -> None:
        self._outbox = outbox
        self._chunks = chunk_source
        self._index = index_client
        self._context = context
        self._max_retries = max_retries

    def enqueue_entity_index(
        self,
        *,
        entity_id: str,
        action: OutboxAction | str,
        entity_type: str = DOCUMENT_ENTITY_TYPE,
        session: Session | None = None,
    ) -> OutboxEvent:
        """Record a pending index mutation for the current tenant.

        Write paths pass their own ``session`` so the event commits with the
        source mutation it describes.
        """
        tenant_id = self._context.current().tenant_id
        event = self._outbox.enqueue(
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=str(action).upper(),
            max_retries=self._max_retries,
            session=session,
        )
        with log_context(
            {
                fields.OUTBOX_EVENT_ID: event.id,
                fields.ENTITY_ID: entity_id,
                fields.ACTION: event.action,
            }
        ):
            _LOGGER.debug("Enqueued search index event")
        return event

    def index_chunk(self, chunk: SourceChunk) -> IndexedChunk:
        """Project one source chunk and upsert it into the index."""
        indexed = IndexedChunk(
            chunk_id=chunk.id,
            tenant_id=chunk.tenant_id,
            document_id=chunk.document_id,
            sequence_number=chunk.chunk_order,
            content=chunk.chunk_text,
            token_count=chunk.token_count,
            score=FRESHLY_INDEXED_SCORE,
            search_type=SearchType.INDEXED,
            created_at=chunk.created_at,
        )
        self._index.upsert(indexed)
        return indexed

    def index_entity(self, entity_id: str) -> int:
        """Upsert every current chunk of one entity; return how many."""
        entity_chunks = self._chunks.find_chunks_by_entity(entity_id)
        for chunk in entity_chunks:
            self.index_chunk(chunk)
        return len(entity_chunks)

    def delete_entity_from_index(self, entity_id: str) -> int:
        """Delete the entity's current source chunks from the index.

        Only chunks still present in the source store are found; index
        entries whose source rows are already gone stay behind as orphans.
        """
        deleted = 0
        for chunk in self._chunks.find_chunks_by_entity(entity_id):
            if self._index.delete_by_id(chunk.id):
                deleted += 1
        return deleted
