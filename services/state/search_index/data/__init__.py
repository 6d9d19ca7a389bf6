"""Persistence layer for the Search Index Service."""

from services.state.search_index.data.repository import (
    SqlChunkSource,
    SqlGroupResolver,
    SqlOutboxStore,
)
from services.state.search_index.data.runtime import (
    SearchIndexPostgresRuntime,
    upgrade_schema,
)
from services.state.search_index.data.unit_of_work import SearchIndexUnitOfWork

__all__ = [
    "SearchIndexPostgresRuntime",
    "SearchIndexUnitOfWork",
    "SqlChunkSource",
    "SqlGroupResolver",
    "SqlOutboxStore",
    "upgrade_schema",
]
