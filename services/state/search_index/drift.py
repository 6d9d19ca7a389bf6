"""Drift detection and reconciliation between source chunks and the index."""

from __future__ import annotations

from collections.abc import Callable

from packages.dms_shared.logging import fields, get_logger, log_context
from services.state.search_index.data.unit_of_work import SearchIndexUnitOfWork
from services.state.search_index.domain import DriftReport, OutboxAction
from services.state.search_index.errors import DriftReconciliationError
from services.state.search_index.indexing import DOCUMENT_ENTITY_TYPE, IndexingService
from services.state.search_index.interfaces import ChunkSource, IndexClient, OutboxStore

_LOGGER = get_logger(__name__)


class IndexDriftService:
    """Compare, repair and rebuild one tenant's slice of the index.

    Reconciliation only re-indexes source chunks. Index entries whose source
    rows no longer exist are counted as orphans and left in place.
    """

    def __init__(
        self,
        *,
        chunk_source: ChunkSource,
        index_client: IndexClient,
        indexing: IndexingService,
        outbox: OutboxStore,
        unit_of_work: SearchIndexUnitOfWork,
        evict_cache: Callable[[], int],
        max_retries: int,
    ) -> None:
        self._chunks = chunk_source
        self._index = index_client
        self._indexing = indexing
        self._outbox = outbox
        self._uow = unit_of_work
        self._evict_cache = evict_cache
        self._max_retries = max_retries

    def analyze_drift(self, tenant_id: str) -> DriftReport:
        """Return set-difference counts between source and indexed chunk ids."""
        source_ids = self._chunks.find_all_chunk_ids_by_tenant(tenant_id)
        indexed_ids = {chunk.chunk_id for chunk in self._index.list_all(tenant_id)}
        return DriftReport(
            tenant_id=tenant_id,
            source_count=len(source_ids),
            indexed_count=len(indexed_ids),
            missing_in_index=len(source_ids - indexed_ids),
            orphaned_in_index=len(indexed_ids - source_ids),
        )

    def reconcile_drift(self, tenant_id: str) -> DriftReport:
        """Re-index every tenant chunk, evict cached searches, re-analyze."""
        with log_context({fields.TENANT_ID: tenant_id}):
            try:
                tenant_chunks = self._chunks.find_chunks_by_tenant(tenant_id)
                for chunk in tenant_chunks:
                    self._indexing.index_chunk(chunk)
                evicted = self._evict_cache()
                report = self.analyze_drift(tenant_id)
            except Exception as exc:
                _LOGGER.error("Drift reconciliation failed: %s", exc)
                raise DriftReconciliationError(tenant_id, exc) from exc

            _LOGGER.info(
                "Drift reconciled: reindexed=%d evicted=%d missing=%d orphaned=%d",
                len(tenant_chunks),
                evicted,
                report.missing_in_index,
                report.orphaned_in_index,
            )
            return report

    def rebuild_tenant_index(self, tenant_id: str) -> int:
        """Enqueue an upsert for every live tenant document in one transaction."""
        document_ids = self._chunks.list_document_ids_by_tenant(tenant_id)

        def _enqueue_all(session) -> int:
            for document_id in document_ids:
                self._outbox.enqueue(
                    tenant_id=tenant_id,
                    entity_type=DOCUMENT_ENTITY_TYPE,
                    entity_id=document_id,
                    action=OutboxAction.UPSERT.value,
                    max_retries=self._max_retries,
                    session=session,
                )
            return len(document_ids)

        queued = self._uow.run(_enqueue_all)
        with log_context({fields.TENANT_ID: tenant_id}):
            _LOGGER.info("Queued tenant index rebuild for %d documents", queued)
        return queued
