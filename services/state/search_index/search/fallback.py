"""Placeholder result returned when a search yields nothing visible."""

from __future__ import annotations

from services.state.search_index.domain import SearchResult, SearchType


def fallback(query: str) -> list[SearchResult]:
    """Return one zero-score result describing the empty outcome."""
    return [
        SearchResult(
            chunk_id=None,
            document_id=None,
            sequence_number=0,
            content=f"No indexed results found for query: {query}",
            token_count=0,
            score=0.0,
            search_type=SearchType.FALLBACK,
        )
    ]
