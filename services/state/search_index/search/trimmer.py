"""Post-ranking removal of results the caller may not read."""

from __future__ import annotations

from collections.abc import Collection, Iterable

from services.state.search_index.domain import SearchResult


def trim_by_allowed_documents(
    results: Iterable[SearchResult],
    allowed_document_ids: Collection[str] | None,
) -> list[SearchResult]:
    """Keep results whose document is allowed; no allowed set keeps nothing."""
    if not allowed_document_ids:
        return []
    return [result for result in results if result.document_id in allowed_document_ids]
