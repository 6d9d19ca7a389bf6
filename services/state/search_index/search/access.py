"""Per-request computation of the documents a caller may read.

Everything that can fail (membership resolution, document lookups) happens
here before any access decision. A failure denies the affected documents and
is logged; it is never surfaced to the search caller.
"""

from __future__ import annotations

from collections.abc import Iterable

from packages.dms_shared.logging import fields, get_logger, log_context
from services.state.search_index.context import RequestIdentity
from services.state.search_index.domain import SearchResult, SourceDocument
from services.state.search_index.interfaces import (
    ChunkSource,
    DocumentAccessPolicy,
    GroupResolver,
)

_LOGGER = get_logger(__name__)


class GroupAccessPolicy:
    """Allow live tenant documents whose allowed groups meet the caller's groups.

    A document with no allowed groups is open to everyone in its tenant.
    """

    def can_access_document(
        self, *, document: SourceDocument, tenant_id: str, groups: frozenset[str]
    ) -> bool:
        if document.deleted or document.tenant_id != tenant_id:
            return False
        if not document.allowed_groups:
            return True
        return not document.allowed_groups.isdisjoint(groups)


class DocumentAccessGate:
    """Compute the allowed document id set for one set of candidates."""

    def __init__(
        self,
        *,
        chunk_source: ChunkSource,
        group_resolver: GroupResolver,
        policy: DocumentAccessPolicy | None = None,
    ) -> None:
        self._chunks = chunk_source
        self._groups = group_resolver
        self._policy = policy or GroupAccessPolicy()

    def allowed_document_ids(
        self, results: Iterable[SearchResult], identity: RequestIdentity
    ) -> frozenset[str]:
        """Return the distinct candidate document ids ``identity`` may read."""
        document_ids = list(
            dict.fromkeys(
                result.document_id for result in results if result.document_id is not None
            )
        )
        if not document_ids:
            return frozenset()

        try:
            groups = self._groups.effective_groups(
                tenant_id=identity.tenant_id, principal=identity.principal
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Group resolution failed; denying all candidates: %s", type(exc).__name__
            )
            return frozenset()

        allowed: set[str] = set()
        for document_id in document_ids:
            document = self._lookup(document_id, identity.tenant_id)
            if document is None:
                continue
            if self._policy.can_access_document(
                document=document, tenant_id=identity.tenant_id, groups=groups
            ):
                allowed.add(document_id)
        return frozenset(allowed)

    def _lookup(self, document_id: str, tenant_id: str) -> SourceDocument | None:
        try:
            return self._chunks.find_document_by_id(document_id, tenant_id=tenant_id)
        except Exception as exc:  # noqa: BLE001
            with log_context({fields.DOCUMENT_ID: document_id}):
                _LOGGER.warning("Document lookup failed; denying: %s", type(exc).__name__)
            return None
