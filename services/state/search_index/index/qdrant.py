"""Qdrant-backed index client.

Chunks are stored as points keyed by a UUID derived from the chunk id, with the
indexed fields in the payload. Term queries use a full-text payload index on
``content``, so they match whole tokens rather than arbitrary substrings.
"""

from __future__ import annotations

import hashlib
import math
import re
import uuid
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Callable, TypeVar

from qdrant_client import QdrantClient
from qdrant_client.http import models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from packages.dms_shared.logging import get_logger
from services.state.search_index.domain import IndexedChunk, SearchType
from services.state.search_index.errors import IndexUnavailableError

_LOGGER = get_logger(__name__)
_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)
_SCROLL_PAGE_SIZE = 256
_OLDEST = datetime.min.replace(tzinfo=UTC)
_QDRANT_ERRORS = (UnexpectedResponse, ResponseHandlingException)
_POINT_NAMESPACE = uuid.UUID("6f1c2a8e-3d4b-5e6f-8a9b-0c1d2e3f4a5b")

T = TypeVar("T")


class HashingVectorizer:
    """Deterministic feature-hashing embedding of chunk text.

    Each lowercase token is hashed into one signed bucket; the result is
    L2-normalized so cosine distance is meaningful without an external
    embedding provider.
    """

    def __init__(self, dimensions: int) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be > 0")
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for token in _TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimensions
            vector[bucket] += 1.0 if digest[4] & 1 else -1.0

        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            vector[0] = 1.0
            return vector
        return [value / norm for value in vector]


class QdrantIndexClient:
    """Index client over one Qdrant collection."""

    def __init__(
        self,
        *,
        client: QdrantClient,
        collection_name: str,
        vectorizer: HashingVectorizer,
    ) -> None:
        self._client = client
        self._collection = collection_name
        self._vectorizer = vectorizer
        self._lock = Lock()
        self._collection_ready = False

    def upsert(self, chunk: IndexedChunk) -> None:
        self._ensure_collection()
        point = models.PointStruct(
            id=point_id(chunk.chunk_id),
            vector=self._vectorizer.embed(chunk.content),
            payload=_chunk_payload(chunk),
        )
        self._call(
            "upsert",
            lambda: self._client.upsert(
                collection_name=self._collection, points=[point], wait=True
            ),
        )

    def delete_by_id(self, chunk_id: str) -> bool:
        self._ensure_collection()
        existing = self._call(
            "retrieve",
            lambda: self._client.retrieve(
                collection_name=self._collection,
                ids=[point_id(chunk_id)],
                with_payload=False,
                with_vectors=False,
            ),
        )
        if not existing:
            return False
        self._call(
            "delete",
            lambda: self._client.delete(
                collection_name=self._collection,
                points_selector=models.PointIdsList(points=[point_id(chunk_id)]),
                wait=True,
            ),
        )
        return True

    def query(
        self, term: str, limit: int, *, tenant_id: str | None = None
    ) -> list[IndexedChunk]:
        """Return chunks whose content contains ``term`` tokens, newest first."""
        self._ensure_collection()
        conditions = [
            models.FieldCondition(key="content", match=models.MatchText(text=term))
        ]
        if tenant_id is not None:
            conditions.append(_tenant_condition(tenant_id))
        matches = self._scroll_all(models.Filter(must=conditions))
        matches.sort(key=lambda chunk: chunk.created_at or _OLDEST, reverse=True)
        return matches[: max(1, limit)]

    def list_all(self, tenant_id: str) -> list[IndexedChunk]:
        self._ensure_collection()
        return self._scroll_all(models.Filter(must=[_tenant_condition(tenant_id)]))

    def ping(self) -> bool:
        try:
            self._client.get_collections()
        except _QDRANT_ERRORS as exc:
            _LOGGER.warning("Qdrant ping failed: %s", type(exc).__name__)
            return False
        return True

    def _scroll_all(self, scroll_filter: models.Filter) -> list[IndexedChunk]:
        chunks: list[IndexedChunk] = []
        offset: Any = None
        while True:
            points, offset = self._call(
                "scroll",
                lambda: self._client.scroll(
                    collection_name=self._collection,
                    scroll_filter=scroll_filter,
                    limit=_SCROLL_PAGE_SIZE,
                    offset=offset,
                    with_payload=True,
                    with_vectors=False,
                ),
            )
            chunks.extend(_payload_chunk(point.payload or {}) for point in points)
            if offset is None:
                return chunks

    def _ensure_collection(self) -> None:
        """Create the collection and payload indexes once per process."""
        if self._collection_ready:
            return
        with self._lock:
            if self._collection_ready:
                return
            exists = self._call(
                "collection_exists",
                lambda: self._client.collection_exists(self._collection),
            )
            if not exists:
                self._call("create_collection", self._create_collection)
            self._collection_ready = True

    def _create_collection(self) -> None:
        self._client.create_collection(
            collection_name=self._collection,
            vectors_config=models.VectorParams(
                size=self._vectorizer.dimensions,
                distance=models.Distance.COSINE,
            ),
        )
        self._client.create_payload_index(
            collection_name=self._collection,
            field_name="tenant_id",
            field_schema=models.PayloadSchemaType.KEYWORD,
        )
        self._client.create_payload_index(
            collection_name=self._collection,
            field_name="content",
            field_schema=models.TextIndexParams(
                type=models.TextIndexType.TEXT,
                tokenizer=models.TokenizerType.WORD,
                lowercase=True,
            ),
        )
        _LOGGER.info("Created Qdrant collection %s", self._collection)

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except _QDRANT_ERRORS as exc:
            raise IndexUnavailableError(operation, exc) from exc


def point_id(chunk_id: str) -> str:
    """Return the Qdrant point id for ``chunk_id``; non-UUID ids map via UUIDv5."""
    try:
        return str(uuid.UUID(chunk_id))
    except ValueError:
        return str(uuid.uuid5(_POINT_NAMESPACE, chunk_id))


def _tenant_condition(tenant_id: str) -> models.FieldCondition:
    return models.FieldCondition(key="tenant_id", match=models.MatchValue(value=tenant_id))


def _chunk_payload(chunk: IndexedChunk) -> dict[str, object]:
    return {
        "chunk_id": chunk.chunk_id,
        "tenant_id": chunk.tenant_id,
        "document_id": chunk.document_id,
        "sequence_number": chunk.sequence_number,
        "content": chunk.content,
        "token_count": chunk.token_count,
        "created_at": chunk.created_at.isoformat() if chunk.created_at else None,
    }


def _payload_chunk(payload: dict[str, Any]) -> IndexedChunk:
    created_at = payload.get("created_at")
    return IndexedChunk(
        chunk_id=str(payload["chunk_id"]),
        tenant_id=str(payload["tenant_id"]),
        document_id=str(payload["document_id"]),
        sequence_number=int(payload.get("sequence_number") or 0),
        content=str(payload.get("content", "")),
        token_count=int(payload.get("token_count") or 0),
        search_type=SearchType.INDEXED,
        created_at=datetime.fromisoformat(created_at) if created_at else None,
    )
