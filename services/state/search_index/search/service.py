"""Hybrid search orchestration: route, fuse, trim, fall back, page, cache."""

from __future__ import annotations

from collections.abc import Callable

from packages.dms_shared.logging import fields, get_logger, log_context
from services.state.search_index.config import SearchIndexSettings
from services.state.search_index.context import RequestContextProvider
from services.state.search_index.domain import PageRequest, SearchPage, SearchResult
from services.state.search_index.errors import SearchValidationError
from services.state.search_index.interfaces import SearchAuditor, SearchCache
from services.state.search_index.search.access import DocumentAccessGate
from services.state.search_index.search.cache import search_cache_key
from services.state.search_index.search.fallback import fallback
from services.state.search_index.search.merger import merge
from services.state.search_index.search.router import HybridSearchRouter
from services.state.search_index.search.trimmer import trim_by_allowed_documents

_LOGGER = get_logger(__name__)


class HybridSearchService:
    """Serve one page of fused, security-trimmed results for a query.

    Sub-search and cache failures degrade the response rather than failing
    it; only a blank query is rejected.
    """

    def __init__(
        self,
        *,
        router: HybridSearchRouter,
        access_gate: DocumentAccessGate,
        auditor: SearchAuditor,
        cache: SearchCache,
        context: RequestContextProvider,
        settings: SearchIndexSettings,
    ) -> None:
        self._router = router
        self._access = access_gate
        self._auditor = auditor
        self._cache = cache
        self._context = context
        self._settings = settings

    def hybrid_search(self, query: str, page: PageRequest) -> SearchPage:
        if query is None or query.strip() == "":
            raise SearchValidationError("Search query cannot be empty")

        identity = self._context.current()
        cache_key = search_cache_key(
            prefix=self._settings.cache_key_prefix,
            tenant_id=identity.tenant_id,
            principal=identity.principal,
            query=query,
            page_number=page.page_number,
            page_size=page.page_size,
        )
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        limit = self._settings.max_results
        keyword = self._sub_search(
            "keyword", self._router.keyword_search, query, identity.tenant_id, limit
        )
        vector = self._sub_search(
            "vector", self._router.vector_search, query, identity.tenant_id, limit
        )
        merged = merge(
            keyword,
            vector,
            self._settings.keyword_weight,
            self._settings.vector_weight,
            limit,
        )

        allowed = self._access.allowed_document_ids(merged, identity)
        secured = trim_by_allowed_documents(merged, allowed) or fallback(query)

        start = page.offset
        items = tuple(secured[start : start + page.page_size]) if start < len(secured) else ()
        result = SearchPage(
            items=items,
            page_number=page.page_number,
            page_size=page.page_size,
            total_elements=len(secured),
        )

        self._audit(query, len(items))
        with log_context({fields.QUERY: query, fields.RESULT_COUNT: len(items)}):
            _LOGGER.info("Hybrid search completed")
        self._cache_set(cache_key, result)
        return result

    def evict_cache(self) -> int:
        """Drop every cached page."""
        return self._cache.evict_all()

    def _sub_search(
        self,
        name: str,
        search: Callable[[str, str, int], list[SearchResult]],
        query: str,
        tenant_id: str,
        limit: int,
    ) -> list[SearchResult]:
        try:
            return search(query, tenant_id, limit)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("%s sub-search failed; continuing without it: %s", name, exc)
            return []

    def _cache_get(self, key: str) -> SearchPage | None:
        try:
            return self._cache.get(key)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Search cache read failed: %s", type(exc).__name__)
            return None

    def _cache_set(self, key: str, page: SearchPage) -> None:
        try:
            self._cache.set(key, page)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Search cache write failed: %s", type(exc).__name__)

    def _audit(self, query: str, result_count: int) -> None:
        try:
            self._auditor.log_search(query, result_count)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Search audit failed: %s", type(exc).__name__)
