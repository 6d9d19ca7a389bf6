"""Mapping helpers between SQL rows and Search Index domain models."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from services.state.search_index.domain import OutboxEvent, SourceChunk, SourceDocument


def as_utc(value: object) -> datetime | None:
    """Return ``value`` as an aware UTC datetime; naive values are assumed UTC."""
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def row_to_outbox_event(row: Mapping[str, Any]) -> OutboxEvent:
    """Convert an outbox row mapping into an ``OutboxEvent``."""
    created_at = as_utc(row["created_at"])
    if created_at is None:
        raise ValueError(f"outbox event {row['id']} has no created_at")
    return OutboxEvent(
        id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        entity_type=str(row["entity_type"]),
        entity_id=str(row["entity_id"]),
        action=str(row["action"]),
        payload=str(row.get("payload") or "{}"),
        retry_count=int(row.get("retry_count") or 0),
        max_retries=int(row["max_retries"]),
        next_retry_at=as_utc(row.get("next_retry_at")),
        dead_lettered=bool(row.get("dead_lettered")),
        created_at=created_at,
        processed_at=as_utc(row.get("processed_at")),
    )


def row_to_source_chunk(row: Mapping[str, Any]) -> SourceChunk:
    """Convert a chunk row mapping into a ``SourceChunk``."""
    return SourceChunk(
        id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        document_id=str(row["document_id"]),
        chunk_text=str(row["chunk_text"]),
        token_count=int(row.get("token_count") or 0),
        chunk_order=int(row.get("chunk_order") or 0),
        created_at=as_utc(row.get("created_at")),
    )


def row_to_source_document(row: Mapping[str, Any]) -> SourceDocument:
    """Convert a document row mapping into a ``SourceDocument``."""
    groups = row.get("allowed_groups") or []
    return SourceDocument(
        id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        allowed_groups=frozenset(str(group) for group in groups),
        deleted=row.get("deleted_at") is not None,
    )
