"""Concrete Search Index Service composing outbox, drift and search layers."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from packages.dms_shared.config import DmsSettings
from packages.dms_shared.logging import get_logger, public_api_instrumented
from resources.substrates.postgres import resolve_postgres_settings
from resources.substrates.qdrant import create_qdrant_client, resolve_qdrant_settings
from resources.substrates.redis import create_redis_client, resolve_redis_settings
from services.state.search_index.component import SERVICE_COMPONENT_ID
from services.state.search_index.config import (
    SearchIndexSettings,
    resolve_search_index_settings,
)
from services.state.search_index.context import RequestContextProvider
from services.state.search_index.data import (
    SearchIndexPostgresRuntime,
    SearchIndexUnitOfWork,
    SqlChunkSource,
    SqlGroupResolver,
    SqlOutboxStore,
)
from services.state.search_index.domain import (
    DriftReport,
    HealthStatus,
    OutboxAction,
    OutboxEvent,
    PageRequest,
    SearchPage,
)
from services.state.search_index.drift import IndexDriftService
from services.state.search_index.index import (
    HashingVectorizer,
    InMemoryIndexClient,
    QdrantIndexClient,
)
from services.state.search_index.indexing import IndexingService
from services.state.search_index.interfaces import (
    ChunkSource,
    GroupResolver,
    IndexClient,
    OutboxStore,
    SearchAuditor,
    SearchCache,
)
from services.state.search_index.outbox import OutboxProcessor, OutboxTickResult
from services.state.search_index.search import (
    DocumentAccessGate,
    HybridSearchRouter,
    HybridSearchService,
    InMemorySearchCache,
    LoggingSearchAuditor,
    RedisSearchCache,
)
from services.state.search_index.service import SearchIndexService

_LOGGER = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DefaultSearchIndexService(SearchIndexService):
    """Default implementation wiring SQL stores, an index client and a cache."""

    def __init__(
        self,
        *,
        settings: SearchIndexSettings,
        runtime: SearchIndexPostgresRuntime,
        index_client: IndexClient,
        cache: SearchCache,
        outbox: OutboxStore | None = None,
        chunk_source: ChunkSource | None = None,
        group_resolver: GroupResolver | None = None,
        auditor: SearchAuditor | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._settings = settings
        self._runtime = runtime
        self._index = index_client
        self._clock = clock
        self._context = RequestContextProvider(
            default_tenant_id=settings.default_tenant_id,
            default_principal=settings.default_principal,
        )
        self._outbox = outbox or SqlOutboxStore(runtime.session_factory, clock=clock)
        chunks = chunk_source or SqlChunkSource(runtime.session_factory)

        self._indexing = IndexingService(
            outbox=self._outbox,
            chunk_source=chunks,
            index_client=index_client,
            context=self._context,
            max_retries=settings.outbox_max_retries,
        )
        self._processor = OutboxProcessor(
            store=self._outbox,
            indexing=self._indexing,
            settings=settings,
            clock=clock,
        )
        self._search = HybridSearchService(
            router=HybridSearchRouter(chunk_source=chunks),
            access_gate=DocumentAccessGate(
                chunk_source=chunks,
                group_resolver=group_resolver or SqlGroupResolver(runtime.session_factory),
            ),
            auditor=auditor or LoggingSearchAuditor(),
            cache=cache,
            context=self._context,
            settings=settings,
        )
        self._drift = IndexDriftService(
            chunk_source=chunks,
            index_client=index_client,
            indexing=self._indexing,
            outbox=self._outbox,
            unit_of_work=SearchIndexUnitOfWork(runtime.session_factory),
            evict_cache=self._search.evict_cache,
            max_retries=settings.outbox_max_retries,
        )

    @classmethod
    def from_settings(cls, settings: DmsSettings) -> "DefaultSearchIndexService":
        """Build the service and its substrate clients from root settings."""
        service_settings = resolve_search_index_settings(settings)
        runtime = SearchIndexPostgresRuntime.from_settings(
            resolve_postgres_settings(settings)
        )

        index_client: IndexClient
        if service_settings.index_backend == "memory":
            index_client = InMemoryIndexClient()
        else:
            index_client = QdrantIndexClient(
                client=create_qdrant_client(resolve_qdrant_settings(settings)),
                collection_name=service_settings.collection_name,
                vectorizer=HashingVectorizer(service_settings.vector_dimensions),
            )

        cache: SearchCache
        if service_settings.cache_backend == "memory":
            cache = InMemorySearchCache(ttl_seconds=service_settings.cache_ttl_seconds)
        else:
            cache = RedisSearchCache(
                client=create_redis_client(resolve_redis_settings(settings)),
                prefix=service_settings.cache_key_prefix,
                ttl_seconds=service_settings.cache_ttl_seconds,
            )
        return cls(
            settings=service_settings,
            runtime=runtime,
            index_client=index_client,
            cache=cache,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("entity_id", "action"),
    )
    def enqueue_entity_index(
        self,
        *,
        entity_id: str,
        action: OutboxAction | str,
        session: Session | None = None,
    ) -> OutboxEvent:
        """Record a pending index mutation, inside ``session`` when given."""
        return self._indexing.enqueue_entity_index(
            entity_id=entity_id, action=action, session=session
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def hybrid_search(self, *, query: str, page: PageRequest) -> SearchPage:
        """Return one page of fused, access-trimmed results."""
        return self._search.hybrid_search(query, page)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("tenant_id",)
    )
    def analyze_drift(self, *, tenant_id: str | None = None) -> DriftReport:
        """Compare source chunk ids with indexed chunk ids for one tenant."""
        return self._drift.analyze_drift(self._tenant(tenant_id))

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("tenant_id",)
    )
    def reconcile_drift(self, *, tenant_id: str | None = None) -> DriftReport:
        """Re-index one tenant, evict cached searches and re-analyze."""
        return self._drift.reconcile_drift(self._tenant(tenant_id))

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("tenant_id",)
    )
    def rebuild_tenant_index(self, *, tenant_id: str | None = None) -> int:
        """Queue an upsert for every live document of one tenant."""
        return self._drift.rebuild_tenant_index(self._tenant(tenant_id))

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def list_dead_lettered_events(self) -> list[OutboxEvent]:
        """Return dead-lettered outbox events, newest first."""
        return self._outbox.list_dead_lettered()

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("event_id",)
    )
    def replay_event(self, *, event_id: str) -> OutboxEvent:
        """Return one event to the pending queue with a fresh retry budget."""
        event = self._outbox.replay(event_id=event_id, now=self._clock())
        _LOGGER.info("Replayed search index outbox event %s", event_id)
        return event

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def process_outbox(self) -> OutboxTickResult:
        """Drain the pending outbox once in the calling thread."""
        return self._processor.run_once()

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def evict_search_cache(self) -> int:
        """Drop every cached search page."""
        return self._search.evict_cache()

    def start_worker(self) -> None:
        """Start the background outbox processor."""
        self._processor.start()

    def stop_worker(self) -> None:
        """Stop the background outbox processor."""
        self._processor.stop(timeout_seconds=self._settings.poll_interval_seconds)

    def health(self) -> HealthStatus:
        """Return service and dependency readiness."""
        database_ready = self._runtime.is_healthy()
        index_ready = self._index.ping()
        problems = [
            name
            for name, ready in (("database", database_ready), ("index", index_ready))
            if not ready
        ]
        return HealthStatus(
            service_ready=not problems,
            database_ready=database_ready,
            index_ready=index_ready,
            detail="ok" if not problems else f"unavailable: {', '.join(problems)}",
        )

    def _tenant(self, tenant_id: str | None) -> str:
        return tenant_id or self._context.current().tenant_id
