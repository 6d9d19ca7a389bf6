"""Caches of rendered search pages: Redis for deployments, a dict for local runs."""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable
from threading import Lock

from redis import Redis

from packages.dms_shared.logging import get_logger
from services.state.search_index.domain import SearchPage

_LOGGER = get_logger(__name__)
_SCAN_BATCH = 100


def search_cache_key(
    *,
    prefix: str,
    tenant_id: str,
    principal: str,
    query: str,
    page_number: int,
    page_size: int,
) -> str:
    """Return the cache key for one caller's page of one query.

    Pages are security-trimmed, so the key is scoped by tenant and principal
    in addition to the hashed (query, page number, page size) triple.
    """
    digest = hashlib.sha256(
        f"{query}\x1f{page_number}\x1f{page_size}".encode("utf-8")
    ).hexdigest()
    return f"{prefix}:{tenant_id}:{principal}:{digest}"


class RedisSearchCache:
    """Store pages as JSON with a TTL; evict wholesale by key prefix."""

    def __init__(self, *, client: Redis, prefix: str, ttl_seconds: int) -> None:
        self._client = client
        self._prefix = prefix
        self._ttl_seconds = ttl_seconds

    def get(self, key: str) -> SearchPage | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        return SearchPage.model_validate_json(raw)

    def set(self, key: str, page: SearchPage) -> None:
        """Store ``page``; derived fields are recomputed on read."""
        payload = page.model_dump_json(exclude={"total_pages"})
        self._client.set(key, payload, ex=self._ttl_seconds)

    def evict_all(self) -> int:
        """Delete every key under the cache prefix; return how many."""
        deleted = 0
        batch: list[str] = []
        for key in self._client.scan_iter(match=f"{self._prefix}:*", count=_SCAN_BATCH):
            batch.append(key)
            if len(batch) >= _SCAN_BATCH:
                deleted += int(self._client.delete(*batch))
                batch = []
        if batch:
            deleted += int(self._client.delete(*batch))
        _LOGGER.info("Evicted %d cached search pages", deleted)
        return deleted


class InMemorySearchCache:
    """Process-local page cache with per-entry expiry."""

    def __init__(
        self,
        *,
        ttl_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, tuple[float, SearchPage]] = {}

    def get(self, key: str) -> SearchPage | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, page = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return page

    def set(self, key: str, page: SearchPage) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl_seconds, page)

    def evict_all(self) -> int:
        with self._lock:
            deleted = len(self._entries)
            self._entries.clear()
        _LOGGER.info("Evicted %d cached search pages", deleted)
        return deleted
