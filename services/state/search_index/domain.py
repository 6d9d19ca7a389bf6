"""Domain models for the Search Index Service.

These are transport-agnostic types shared by the outbox, indexing, drift and
search layers. All timestamps are timezone-aware UTC.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class OutboxAction(StrEnum):
    """Index mutation requested by a write path."""

    UPSERT = "UPSERT"
    DELETE = "DELETE"


class OutboxEventState(StrEnum):
    """Derived lifecycle state of one outbox event."""

    PENDING = "pending"
    PROCESSED = "processed"
    DEAD_LETTERED = "dead_lettered"


class SearchType(StrEnum):
    """Provenance tag carried by indexed chunks and search results."""

    INDEXED = "indexed"
    KEYWORD = "keyword"
    VECTOR = "vector"
    HYBRID = "hybrid"
    FALLBACK = "fallback"


class OutboxEvent(BaseModel):
    """Durable pending index mutation.

    ``action`` is kept as stored text: anything other than ``DELETE``
    (case-insensitive) is applied as an upsert.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    tenant_id: str
    entity_type: str
    entity_id: str
    action: str
    payload: str = "{}"
    retry_count: int = 0
    max_retries: int = 5
    next_retry_at: datetime | None = None
    dead_lettered: bool = False
    created_at: datetime
    processed_at: datetime | None = None

    @property
    def is_delete(self) -> bool:
        """Return True when this event removes the entity from the index."""
        return self.action.upper() == OutboxAction.DELETE

    @property
    def state(self) -> OutboxEventState:
        """Return the lifecycle state derived from stored flags."""
        if self.processed_at is not None:
            return OutboxEventState.PROCESSED
        if self.dead_lettered:
            return OutboxEventState.DEAD_LETTERED
        return OutboxEventState.PENDING


class SourceDocument(BaseModel):
    """System-of-record document fields needed for access decisions."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    tenant_id: str
    allowed_groups: frozenset[str] = frozenset()
    deleted: bool = False


class SourceChunk(BaseModel):
    """System-of-record chunk row."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    tenant_id: str
    document_id: str
    chunk_text: str
    token_count: int = 0
    chunk_order: int = 0
    created_at: datetime | None = None


class IndexedChunk(BaseModel):
    """Index-side projection of one source chunk."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    chunk_id: str
    tenant_id: str
    document_id: str
    sequence_number: int
    content: str
    token_count: int
    score: float = 1.0
    search_type: SearchType = SearchType.INDEXED
    created_at: datetime | None = None


class SearchResult(BaseModel):
    """One query-scoped ranked hit; never persisted."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    chunk_id: str | None
    document_id: str | None
    sequence_number: int
    content: str
    token_count: int
    score: float | None
    search_type: SearchType | None = None
    created_at: datetime | None = None


class DriftReport(BaseModel):
    """Per-tenant comparison of source chunk ids against indexed chunk ids."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tenant_id: str
    source_count: int
    indexed_count: int
    missing_in_index: int
    orphaned_in_index: int

    @property
    def in_sync(self) -> bool:
        """Return True when neither side holds ids the other lacks."""
        return self.missing_in_index == 0 and self.orphaned_in_index == 0


class PageRequest(BaseModel):
    """Zero-based page selector."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    page_number: int = Field(default=0, ge=0)
    page_size: int = Field(default=20, gt=0)

    @property
    def offset(self) -> int:
        """Return the index of the first element on this page."""
        return self.page_number * self.page_size


class SearchPage(BaseModel):
    """One page of search results plus totals over the secured result list."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    items: tuple[SearchResult, ...]
    page_number: int
    page_size: int
    total_elements: int

    @computed_field
    @property
    def total_pages(self) -> int:
        """Return the number of pages needed for ``total_elements``."""
        return math.ceil(self.total_elements / self.page_size)


class HealthStatus(BaseModel):
    """Search Index Service and dependency readiness."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    database_ready: bool
    index_ready: bool
    detail: str
