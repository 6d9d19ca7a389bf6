"""Router, merger, trimmer and fallback behavior of the retrieval pipeline."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from services.state.search_index.domain import SearchResult, SearchType, SourceChunk
from services.state.search_index.search import (
    HybridSearchRouter,
    TermOverlapScorer,
    fallback,
    merge,
    trim_by_allowed_documents,
)
from tests.helpers import TENANT_A, TENANT_B


class _FakeChunkSource:
    """Chunk source serving a fixed list of chunks per tenant."""

    def __init__(self, chunks: list[SourceChunk]) -> None:
        self._chunks = chunks

    def find_chunks_by_tenant(self, tenant_id: str) -> list[SourceChunk]:
        return [chunk for chunk in self._chunks if chunk.tenant_id == tenant_id]


def _chunk(chunk_id: str, text: str, *, tenant_id: str = TENANT_A) -> SourceChunk:
    return SourceChunk(
        id=chunk_id,
        tenant_id=tenant_id,
        document_id=f"doc-{chunk_id}",
        chunk_text=text,
        token_count=len(text.split()),
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
    )


def _result(chunk_id: str | None, score: float | None, document_id: str = "d1") -> SearchResult:
    return SearchResult(
        chunk_id=chunk_id,
        document_id=document_id,
        sequence_number=0,
        content=f"content {chunk_id}",
        token_count=2,
        score=score,
    )


def _router(*chunks: SourceChunk) -> HybridSearchRouter:
    return HybridSearchRouter(chunk_source=_FakeChunkSource(list(chunks)))


def test_keyword_search_matches_case_insensitive_substrings() -> None:
    """Keyword hits score 1.0, keep store order and stay in the tenant."""
    router = _router(
        _chunk("c1", "Quarterly REVENUE report"),
        _chunk("c2", "unrelated"),
        _chunk("c3", "revenue forecast"),
        _chunk("c4", "revenue", tenant_id=TENANT_B),
    )

    results = router.keyword_search("Revenue", TENANT_A, 10)

    assert [result.chunk_id for result in results] == ["c1", "c3"]
    assert {result.score for result in results} == {1.0}
    assert {result.search_type for result in results} == {SearchType.KEYWORD}


@pytest.mark.parametrize(("limit", "expected"), [(2, 2), (0, 1), (-5, 1)])
def test_keyword_search_caps_at_limit_of_at_least_one(limit, expected) -> None:
    """Non-positive limits are treated as one."""
    router = _router(*(_chunk(f"c{i}", "match") for i in range(5)))

    assert len(router.keyword_search("match", TENANT_A, limit)) == expected


def test_vector_search_ranks_by_term_overlap() -> None:
    """Vector hits are ordered by score and exclude zero-overlap chunks."""
    router = _router(
        _chunk("half", "annual budget"),
        _chunk("full", "annual revenue growth"),
        _chunk("none", "nothing relevant"),
    )

    results = router.vector_search("annual revenue", TENANT_A, 10)

    assert [(result.chunk_id, result.score) for result in results] == [
        ("full", 1.0),
        ("half", 0.5),
    ]
    assert {result.search_type for result in results} == {SearchType.VECTOR}


def test_vector_search_ignores_repeated_whitespace() -> None:
    """Blank terms never count toward overlap."""
    router = _router(_chunk("c1", "alpha beta"))

    results = router.vector_search("  alpha    gamma ", TENANT_A, 10)

    assert [result.score for result in results] == [0.5]


def test_term_overlap_scorer_handles_empty_terms() -> None:
    """No terms yields a zero score."""
    assert TermOverlapScorer().score([], "anything") == 0.0


def test_merge_fuses_overlapping_results_as_hybrid() -> None:
    """A chunk in both lists sums its weighted scores and is tagged hybrid."""
    merged = merge(
        [_result("a", 1.0), _result("b", 1.0)],
        [_result("a", 0.5), _result("c", 1.0)],
        0.4,
        0.6,
        10,
    )

    scores = {result.chunk_id: (result.score, result.search_type) for result in merged}
    assert scores["a"] == (pytest.approx(0.7), SearchType.HYBRID)
    assert scores["b"] == (pytest.approx(0.4), SearchType.KEYWORD)
    assert scores["c"] == (pytest.approx(0.6), SearchType.VECTOR)
    assert [result.chunk_id for result in merged] == ["a", "c", "b"]


def test_merge_output_has_distinct_chunks_and_respects_limit() -> None:
    """Fused output is deduplicated and capped."""
    keyword = [_result(f"k{i}", 1.0) for i in range(4)]
    vector = [_result(f"k{i}", 0.5) for i in range(2)] + [_result("v", 0.9)]

    merged = merge(keyword, vector, 0.4, 0.6, 3)

    ids = [result.chunk_id for result in merged]
    assert len(ids) == len(set(ids)) == 3
    scores = [result.score for result in merged]
    assert scores == sorted(scores, reverse=True)


def test_merge_with_empty_vector_list_scales_keyword_scores() -> None:
    """Keyword-only fusion scores are exactly the keyword weight."""
    merged = merge([_result("a", 1.0), _result("b", 1.0)], [], 0.4, 0.6, 10)

    assert [result.score for result in merged] == [pytest.approx(0.4)] * 2
    assert {result.search_type for result in merged} == {SearchType.KEYWORD}


def test_merge_treats_missing_scores_as_zero() -> None:
    """Results without a score never outrank scored ones."""
    merged = merge([_result("a", None)], [_result("b", 0.1)], 0.4, 0.6, 10)

    assert [result.chunk_id for result in merged] == ["b", "a"]
    assert merged[1].score == 0.0


def test_trim_keeps_only_allowed_documents() -> None:
    """Results are filtered by document id in their original order."""
    results = [_result("a", 1.0, "d1"), _result("b", 0.9, "d2"), _result("c", 0.8, "d1")]

    trimmed = trim_by_allowed_documents(results, {"d1"})

    assert [result.chunk_id for result in trimmed] == ["a", "c"]


@pytest.mark.parametrize("allowed", [None, set(), frozenset()])
def test_trim_with_no_allowed_set_returns_nothing(allowed) -> None:
    """A missing or empty allowed set denies everything."""
    assert trim_by_allowed_documents([_result("a", 1.0)], allowed) == []


def test_fallback_returns_single_zero_score_result() -> None:
    """The fallback result describes the empty query outcome."""
    results = fallback("tax forms")

    assert len(results) == 1
    assert results[0].score == 0.0
    assert results[0].search_type is SearchType.FALLBACK
    assert results[0].chunk_id is None
    assert "tax forms" in results[0].content
