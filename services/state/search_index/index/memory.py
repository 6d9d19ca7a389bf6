"""Thread-safe in-process index client for local runs and tests."""

from __future__ import annotations

from datetime import UTC, datetime
from threading import Lock

from services.state.search_index.domain import IndexedChunk

_OLDEST = datetime.min.replace(tzinfo=UTC)


class InMemoryIndexClient:
    """Index client keeping chunks in a dict guarded by one lock.

    Readers take a snapshot under the lock, so concurrent queries never see a
    half-applied write.
    """

    def __init__(self) -> None:
        self._chunks: dict[str, IndexedChunk] = {}
        self._lock = Lock()

    def upsert(self, chunk: IndexedChunk) -> None:
        with self._lock:
            self._chunks[chunk.chunk_id] = chunk

    def delete_by_id(self, chunk_id: str) -> bool:
        with self._lock:
            return self._chunks.pop(chunk_id, None) is not None

    def query(
        self, term: str, limit: int, *, tenant_id: str | None = None
    ) -> list[IndexedChunk]:
        """Case-insensitive substring match, newest first, undated last."""
        needle = term.lower()
        matches = [
            chunk
            for chunk in self._snapshot()
            if (tenant_id is None or chunk.tenant_id == tenant_id)
            and needle in chunk.content.lower()
        ]
        matches.sort(key=lambda chunk: chunk.created_at or _OLDEST, reverse=True)
        return matches[: max(1, limit)]

    def list_all(self, tenant_id: str) -> list[IndexedChunk]:
        return [chunk for chunk in self._snapshot() if chunk.tenant_id == tenant_id]

    def ping(self) -> bool:
        return True

    def _snapshot(self) -> list[IndexedChunk]:
        with self._lock:
            return list(self._chunks.values())
