"""End-to-end Search Index Service behavior over SQLite and the memory index."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import func, insert, select

from packages.dms_shared.config import load_settings
from resources.substrates.postgres import transactional_session
from services.state.search_index import (
    DefaultSearchIndexService,
    OutboxEventNotFoundError,
    PageRequest,
    SearchIndexSettings,
    SearchType,
    request_identity,
)
from services.state.search_index import implementation
from services.state.search_index.data import SearchIndexPostgresRuntime
from services.state.search_index.data.schema import documents, outbox_events
from services.state.search_index.domain import IndexedChunk, SearchPage
from services.state.search_index.index import InMemoryIndexClient
from tests.helpers import TENANT_A, seed_document, seed_membership


class _DictCache:
    def __init__(self) -> None:
        self.pages: dict[str, SearchPage] = {}

    def get(self, key: str) -> SearchPage | None:
        return self.pages.get(key)

    def set(self, key: str, page: SearchPage) -> None:
        self.pages[key] = page

    def evict_all(self) -> int:
        count = len(self.pages)
        self.pages.clear()
        return count


class _RecordingAuditor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []

    def log_search(self, query: str, result_count: int) -> None:
        self.calls.append((query, result_count))


class _FlakyIndex(InMemoryIndexClient):
    """Memory index whose upserts fail while ``down`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.down = False

    def upsert(self, chunk: IndexedChunk) -> None:
        if self.down:
            raise ConnectionError("index offline")
        super().upsert(chunk)


@pytest.fixture()
def index() -> _FlakyIndex:
    return _FlakyIndex()


@pytest.fixture()
def cache() -> _DictCache:
    return _DictCache()


@pytest.fixture()
def auditor() -> _RecordingAuditor:
    return _RecordingAuditor()


@pytest.fixture()
def service(sqlite_engine, clock, index, cache, auditor) -> DefaultSearchIndexService:
    return DefaultSearchIndexService(
        settings=SearchIndexSettings(
            index_backend="memory",
            outbox_max_retries=2,
            default_tenant_id=TENANT_A,
        ),
        runtime=SearchIndexPostgresRuntime.from_engine(sqlite_engine),
        index_client=index,
        cache=cache,
        auditor=auditor,
        clock=clock,
    )


def _search(service: DefaultSearchIndexService, query: str, principal: str = "alice"):
    with request_identity(tenant_id=TENANT_A, principal=principal):
        return service.hybrid_search(query=query, page=PageRequest())


def test_enqueue_process_and_search(service, session_factory, index, auditor) -> None:
    """An upserted document becomes searchable after one outbox tick."""
    seed_document(
        session_factory,
        document_id="d1",
        texts=("the zephyr clause governs renewals", "standard boilerplate"),
    )

    with request_identity(tenant_id=TENANT_A, principal="alice"):
        service.enqueue_entity_index(entity_id="d1", action="UPSERT")
    result = service.process_outbox()
    page = _search(service, "zephyr")

    assert result.processed == 1
    assert sorted(chunk.chunk_id for chunk in index.list_all(TENANT_A)) == ["d1-c0", "d1-c1"]
    assert [item.chunk_id for item in page.items] == ["d1-c0"]
    assert page.items[0].search_type is SearchType.HYBRID
    assert auditor.calls == [("zephyr", 1)]


def test_denied_document_yields_fallback(service, session_factory) -> None:
    """A document restricted to another group is replaced by the fallback."""
    seed_document(
        session_factory, document_id="d1", texts=("zephyr clause",), allowed_groups=("legal",)
    )
    seed_membership(session_factory, principal="bob", group_id="legal")

    denied = _search(service, "zephyr", principal="alice")
    allowed = _search(service, "zephyr", principal="bob")

    assert [item.search_type for item in denied.items] == [SearchType.FALLBACK]
    assert [item.document_id for item in allowed.items] == ["d1"]


def test_enqueue_in_caller_session_commits_atomically(service, session_factory, clock) -> None:
    """Write paths commit the document and its outbox event together."""
    with pytest.raises(RuntimeError):
        with transactional_session(session_factory) as session:
            session.execute(
                insert(documents).values(
                    id="d1", tenant_id=TENANT_A, title="x", created_at=clock.now
                )
            )
            service.enqueue_entity_index(entity_id="d1", action="UPSERT", session=session)
            raise RuntimeError("write path failed")

    with transactional_session(session_factory) as session:
        documents_count = session.execute(
            select(func.count()).select_from(documents)
        ).scalar_one()
        events_count = session.execute(
            select(func.count()).select_from(outbox_events)
        ).scalar_one()
    assert (documents_count, events_count) == (0, 0)


def test_failing_event_dead_letters_then_replays(service, session_factory, index) -> None:
    """Dead letters are listed and a replay reprocesses them once healthy."""
    seed_document(session_factory, document_id="d1", texts=("alpha",))
    event = service.enqueue_entity_index(entity_id="d1", action="UPSERT")
    index.down = True

    service.process_outbox()
    service.process_outbox()
    dead = service.list_dead_lettered_events()
    index.down = False
    replayed = service.replay_event(event_id=event.id)
    result = service.process_outbox()

    assert [item.id for item in dead] == [event.id]
    assert dead[0].retry_count == 2
    assert replayed.retry_count == 0
    assert result.processed == 1
    assert service.list_dead_lettered_events() == []
    assert [chunk.chunk_id for chunk in index.list_all(TENANT_A)] == ["d1-c0"]


def test_replay_unknown_event_raises(service) -> None:
    """Replaying an unknown event is a not-found error."""
    with pytest.raises(OutboxEventNotFoundError):
        service.replay_event(event_id="missing")


def test_delete_event_removes_chunks(service, session_factory, index) -> None:
    """A DELETE event clears the document's chunks from the index."""
    seed_document(session_factory, document_id="d1", texts=("alpha", "beta"))
    service.enqueue_entity_index(entity_id="d1", action="UPSERT")
    service.process_outbox()

    service.enqueue_entity_index(entity_id="d1", action="DELETE")
    service.process_outbox()

    assert index.list_all(TENANT_A) == []


def test_drift_reconcile_and_rebuild(service, session_factory, cache) -> None:
    """Reconcile closes missing drift and evicts cached pages; rebuild queues docs."""
    seed_document(session_factory, document_id="d1", texts=("alpha", "beta"))
    _search(service, "alpha")

    before = service.analyze_drift()
    after = service.reconcile_drift(tenant_id=TENANT_A)
    queued = service.rebuild_tenant_index()

    assert (before.source_count, before.missing_in_index) == (2, 2)
    assert after.in_sync is True
    assert cache.pages == {}
    assert queued == 1


def test_evict_search_cache_reports_count(service, session_factory) -> None:
    """Explicit eviction returns the number of cached pages dropped."""
    seed_document(session_factory, document_id="d1", texts=("alpha",))
    _search(service, "alpha")
    _search(service, "beta")

    assert service.evict_search_cache() == 2


def test_health_reports_ready_dependencies(service) -> None:
    """SQLite and the memory index are both ready."""
    status = service.health()

    assert status.service_ready is True
    assert status.detail == "ok"


def test_from_settings_with_memory_backends_runs_without_redis(
    sqlite_engine, session_factory, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A fully local configuration never constructs a Redis client."""

    def _no_redis(settings):
        raise AssertionError("redis client requested")

    monkeypatch.setattr(implementation, "create_redis_client", _no_redis)
    monkeypatch.setattr(
        implementation.SearchIndexPostgresRuntime,
        "from_settings",
        lambda settings: SearchIndexPostgresRuntime.from_engine(sqlite_engine),
    )
    settings = load_settings(
        cli_params={
            "components": {
                "service": {
                    "search_index": {"index_backend": "memory", "cache_backend": "memory"}
                }
            }
        },
        config_path=tmp_path / "dms.yaml",
    )
    service = DefaultSearchIndexService.from_settings(settings)
    seed_document(session_factory, document_id="d1", texts=("zephyr clause",))

    with request_identity(tenant_id=TENANT_A, principal="alice"):
        service.enqueue_entity_index(entity_id="d1", action="UPSERT")
        service.process_outbox()
        first = service.hybrid_search(query="zephyr", page=PageRequest())
        second = service.hybrid_search(query="zephyr", page=PageRequest())

    assert [item.document_id for item in first.items] == ["d1"]
    assert second == first
    assert service.evict_search_cache() == 1
