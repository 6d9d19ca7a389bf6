"""Index client implementations for the Search Index Service."""

from services.state.search_index.index.memory import InMemoryIndexClient
from services.state.search_index.index.qdrant import (
    HashingVectorizer,
    QdrantIndexClient,
)

__all__ = ["HashingVectorizer", "InMemoryIndexClient", "QdrantIndexClient"]
