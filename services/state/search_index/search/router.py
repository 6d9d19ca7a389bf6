"""Lexical and term-overlap sub-searches over the system of record."""

from __future__ import annotations

from typing import Protocol, Sequence

from services.state.search_index.domain import SearchResult, SearchType, SourceChunk
from services.state.search_index.interfaces import ChunkSource

KEYWORD_MATCH_SCORE = 1.0


class RelevanceScorer(Protocol):
    """Scores one chunk text against lowercase query terms in ``[0, 1]``."""

    def score(self, terms: Sequence[str], text: str) -> float:
        """Return relevance; ``0`` excludes the chunk."""


class TermOverlapScorer:
    """Fraction of query terms that occur as substrings of the text."""

    def score(self, terms: Sequence[str], text: str) -> float:
        if not terms:
            return 0.0
        lowered = text.lower()
        hits = sum(1 for term in terms if term in lowered)
        return hits / len(terms)


class HybridSearchRouter:
    """Run the keyword and vector sub-searches for one tenant."""

    def __init__(
        self, *, chunk_source: ChunkSource, scorer: RelevanceScorer | None = None
    ) -> None:
        self._chunks = chunk_source
        self._scorer = scorer or TermOverlapScorer()

    def keyword_search(self, query: str, tenant_id: str, limit: int) -> list[SearchResult]:
        """Case-insensitive substring match in store order, capped at ``limit``."""
        needle = query.lower()
        cap = max(1, limit)
        results: list[SearchResult] = []
        for chunk in self._chunks.find_chunks_by_tenant(tenant_id):
            if needle not in chunk.chunk_text.lower():
                continue
            results.append(_to_result(chunk, KEYWORD_MATCH_SCORE, SearchType.KEYWORD))
            if len(results) >= cap:
                break
        return results

    def vector_search(self, query: str, tenant_id: str, limit: int) -> list[SearchResult]:
        """Rank chunks by term overlap, best first, excluding non-matches."""
        terms = query.lower().split()
        scored: list[SearchResult] = []
        for chunk in self._chunks.find_chunks_by_tenant(tenant_id):
            score = min(1.0, self._scorer.score(terms, chunk.chunk_text))
            if score > 0.0:
                scored.append(_to_result(chunk, score, SearchType.VECTOR))
        scored.sort(key=lambda result: result.score or 0.0, reverse=True)
        return scored[: max(1, limit)]


def _to_result(chunk: SourceChunk, score: float, search_type: SearchType) -> SearchResult:
    return SearchResult(
        chunk_id=chunk.id,
        document_id=chunk.document_id,
        sequence_number=chunk.chunk_order,
        content=chunk.chunk_text,
        token_count=chunk.token_count,
        score=score,
        search_type=search_type,
        created_at=chunk.created_at,
    )
