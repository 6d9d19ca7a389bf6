"""Weighted fusion of keyword and vector result lists."""

from __future__ import annotations

from collections.abc import Iterable

from services.state.search_index.domain import SearchResult, SearchType


def merge(
    keyword_results: Iterable[SearchResult],
    vector_results: Iterable[SearchResult],
    keyword_weight: float,
    vector_weight: float,
    limit: int,
) -> list[SearchResult]:
    """Fuse two ranked lists by weighted score.

    A chunk found by both sub-searches is tagged ``hybrid`` and keeps the sum
    of both weighted scores. Missing scores weigh as zero and results without
    a score sort after every scored result.
    """
    merged: dict[str | None, SearchResult] = {}

    for result in keyword_results:
        merged[result.chunk_id] = result.model_copy(
            update={
                "score": (result.score or 0.0) * keyword_weight,
                "search_type": SearchType.KEYWORD,
            }
        )

    for result in vector_results:
        weighted = (result.score or 0.0) * vector_weight
        existing = merged.get(result.chunk_id)
        if existing is not None:
            merged[result.chunk_id] = existing.model_copy(
                update={
                    "score": (existing.score or 0.0) + weighted,
                    "search_type": SearchType.HYBRID,
                }
            )
        else:
            merged[result.chunk_id] = result.model_copy(
                update={"score": weighted, "search_type": SearchType.VECTOR}
            )

    ranked = sorted(
        merged.values(),
        key=lambda result: (result.score is None, -(result.score or 0.0)),
    )
    return ranked[: max(1, limit)]
