"""Search Index Service: outbox-driven index consistency and hybrid search."""

from services.state.search_index.component import SERVICE_COMPONENT_ID
from services.state.search_index.config import SearchIndexSettings
from services.state.search_index.context import RequestIdentity, request_identity
from services.state.search_index.domain import (
    DriftReport,
    IndexedChunk,
    OutboxAction,
    OutboxEvent,
    PageRequest,
    SearchPage,
    SearchResult,
    SearchType,
)
from services.state.search_index.errors import (
    DriftReconciliationError,
    IndexUnavailableError,
    OutboxEventNotFoundError,
    SearchIndexError,
    SearchValidationError,
)
from services.state.search_index.implementation import DefaultSearchIndexService
from services.state.search_index.service import SearchIndexService

__all__ = [
    "SERVICE_COMPONENT_ID",
    "DefaultSearchIndexService",
    "DriftReconciliationError",
    "DriftReport",
    "IndexUnavailableError",
    "IndexedChunk",
    "OutboxAction",
    "OutboxEvent",
    "OutboxEventNotFoundError",
    "PageRequest",
    "RequestIdentity",
    "SearchIndexError",
    "SearchIndexService",
    "SearchIndexSettings",
    "SearchPage",
    "SearchResult",
    "SearchType",
    "SearchValidationError",
    "request_identity",
]
