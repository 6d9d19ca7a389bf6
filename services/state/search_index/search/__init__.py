"""Hybrid retrieval pipeline: routing, fusion, trimming and orchestration."""

from services.state.search_index.search.access import DocumentAccessGate, GroupAccessPolicy
from services.state.search_index.search.audit import LoggingSearchAuditor
from services.state.search_index.search.cache import (
    InMemorySearchCache,
    RedisSearchCache,
    search_cache_key,
)
from services.state.search_index.search.fallback import fallback
from services.state.search_index.search.merger import merge
from services.state.search_index.search.router import (
    HybridSearchRouter,
    RelevanceScorer,
    TermOverlapScorer,
)
from services.state.search_index.search.service import HybridSearchService
from services.state.search_index.search.trimmer import trim_by_allowed_documents

__all__ = [
    "DocumentAccessGate",
    "GroupAccessPolicy",
    "HybridSearchRouter",
    "HybridSearchService",
    "InMemorySearchCache",
    "LoggingSearchAuditor",
    "RedisSearchCache",
    "RelevanceScorer",
    "TermOverlapScorer",
    "fallback",
    "merge",
    "search_cache_key",
    "trim_by_allowed_documents",
]
