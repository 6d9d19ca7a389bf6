"""Seed helpers and a controllable clock shared by search index tests."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from sqlalchemy import insert
from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres import transactional_session
from services.state.search_index.data.schema import chunks, documents, group_memberships

TENANT_A = "11111111-1111-1111-1111-111111111111"
TENANT_B = "22222222-2222-2222-2222-222222222222"


class FakeClock:
    """Deterministic UTC clock advanced explicitly by tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def seed_document(
    session_factory: sessionmaker[Session],
    *,
    document_id: str,
    tenant_id: str = TENANT_A,
    texts: Iterable[str] = (),
    allowed_groups: Iterable[str] = (),
    deleted: bool = False,
    chunk_ids: Iterable[str] | None = None,
) -> list[str]:
    """Insert one document and its chunks; return the chunk ids."""
    created = datetime(2026, 1, 1, tzinfo=UTC)
    texts = list(texts)
    ids = list(chunk_ids) if chunk_ids is not None else [
        f"{document_id}-c{order}" for order in range(len(texts))
    ]
    with transactional_session(session_factory) as session:
        session.execute(
            insert(documents).values(
                id=document_id,
                tenant_id=tenant_id,
                title=document_id,
                allowed_groups=list(allowed_groups),
                deleted_at=created if deleted else None,
                created_at=created,
            )
        )
        for order, (chunk_id, text) in enumerate(zip(ids, texts)):
            session.execute(
                insert(chunks).values(
                    id=chunk_id,
                    tenant_id=tenant_id,
                    document_id=document_id,
                    chunk_text=text,
                    token_count=len(text.split()),
                    chunk_order=order,
                    created_at=created + timedelta(minutes=order),
                )
            )
    return ids


def seed_membership(
    session_factory: sessionmaker[Session],
    *,
    principal: str,
    group_id: str,
    tenant_id: str = TENANT_A,
) -> None:
    """Insert one direct group membership."""
    with transactional_session(session_factory) as session:
        session.execute(
            insert(group_memberships).values(
                tenant_id=tenant_id, principal=principal, group_id=group_id
            )
        )
