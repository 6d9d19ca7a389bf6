"""CLI tests for the ``dms-search`` Typer commands."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from actors.cli import main
from services.state.search_index import (
    DriftReconciliationError,
    OutboxEventNotFoundError,
    PageRequest,
    SearchPage,
    SearchValidationError,
)
from services.state.search_index.config import DEFAULT_TENANT_ID
from services.state.search_index.context import RequestContextProvider
from services.state.search_index.domain import DriftReport, OutboxEvent
from services.state.search_index.outbox import OutboxTickResult

_NOW = datetime(2026, 1, 1, tzinfo=UTC)


class _FakeService:
    """Search index service stand-in recording calls and the active identity."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.identities: list[str] = []
        self.principals: list[str] = []
        self.error: Exception | None = None
        self.total_elements = 0
        self._context = RequestContextProvider(default_tenant_id="default-tenant")

    def _record(self, *call: Any) -> None:
        identity = self._context.current()
        self.identities.append(identity.tenant_id)
        self.principals.append(identity.principal)
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    def process_outbox(self) -> OutboxTickResult:
        self._record("process_outbox")
        return OutboxTickResult(processed=2, retried=1)

    def analyze_drift(self, *, tenant_id: str | None = None) -> DriftReport:
        self._record("analyze_drift", tenant_id)
        return DriftReport(
            tenant_id=tenant_id or "default-tenant",
            source_count=3,
            indexed_count=3,
            missing_in_index=1,
            orphaned_in_index=1,
        )

    def reconcile_drift(self, *, tenant_id: str | None = None) -> DriftReport:
        self._record("reconcile_drift", tenant_id)
        return self.analyze_drift(tenant_id=tenant_id)

    def rebuild_tenant_index(self, *, tenant_id: str | None = None) -> int:
        self._record("rebuild_tenant_index", tenant_id)
        return 4

    def list_dead_lettered_events(self) -> list[OutboxEvent]:
        self._record("list_dead_lettered_events")
        return [
            OutboxEvent(
                id="e1",
                tenant_id="t1",
                entity_type="DOCUMENT",
                entity_id="d1",
                action="UPSERT",
                retry_count=5,
                dead_lettered=True,
                created_at=_NOW,
            )
        ]

    def replay_event(self, *, event_id: str) -> OutboxEvent:
        self._record("replay_event", event_id)
        return OutboxEvent(
            id=event_id,
            tenant_id="t1",
            entity_type="DOCUMENT",
            entity_id="d1",
            action="UPSERT",
            created_at=_NOW,
            next_retry_at=_NOW,
        )

    def hybrid_search(self, *, query: str, page: PageRequest) -> SearchPage:
        self._record("hybrid_search", query, page.page_number, page.page_size)
        return SearchPage(
            items=(),
            page_number=page.page_number,
            page_size=page.page_size,
            total_elements=self.total_elements,
        )

    def start_worker(self) -> None:
        self.calls.append(("start_worker",))

    def stop_worker(self) -> None:
        self.calls.append(("stop_worker",))


@pytest.fixture()
def fake_service(monkeypatch: pytest.MonkeyPatch) -> _FakeService:
    service = _FakeService()
    monkeypatch.setattr(main, "_build_service", lambda cfg: service)
    monkeypatch.setattr(main, "configure_logging", lambda **kwargs: None)
    return service


def _invoke(tmp_path: Path, *args: str):
    return CliRunner().invoke(
        main.app, ["--config", str(tmp_path / "dms.yaml"), *args]
    )


def test_process_once_prints_tick_counts(tmp_path: Path, fake_service: _FakeService) -> None:
    """process-once renders the tick result as JSON."""
    result = _invoke(tmp_path, "--json", "process-once")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"processed": 2, "retried": 1, "dead_lettered": 0}


def test_drift_runs_under_requested_tenant(tmp_path: Path, fake_service: _FakeService) -> None:
    """--tenant binds the request identity and scopes the drift call."""
    result = _invoke(tmp_path, "--tenant", "t1", "--json", "drift")

    assert result.exit_code == 0
    assert fake_service.calls == [("analyze_drift", "t1")]
    assert fake_service.identities == ["t1"]
    assert json.loads(result.stdout)["missing_in_index"] == 1


def test_rebuild_reports_queued_count(tmp_path: Path, fake_service: _FakeService) -> None:
    """rebuild prints how many documents were queued."""
    result = _invoke(tmp_path, "--json", "rebuild")

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"queued": 4}
    assert fake_service.identities == [DEFAULT_TENANT_ID]
    assert fake_service.principals == ["operator"]


def test_dead_letters_lists_events(tmp_path: Path, fake_service: _FakeService) -> None:
    """dead-letters renders events with ISO timestamps."""
    result = _invoke(tmp_path, "--json", "dead-letters")

    payload = json.loads(result.stdout)
    assert result.exit_code == 0
    assert payload[0]["id"] == "e1"
    assert payload[0]["created_at"] == _NOW.isoformat()


def test_replay_unknown_event_exits_with_domain_error(
    tmp_path: Path, fake_service: _FakeService
) -> None:
    """Not-found errors print the error code and exit 3."""
    fake_service.error = OutboxEventNotFoundError("missing")

    result = _invoke(tmp_path, "replay", "missing")

    assert result.exit_code == main.DOMAIN_ERROR_EXIT_CODE
    assert "OUTBOX_EVENT_NOT_FOUND" in result.output


def test_reconcile_failure_exits_with_dependency_error(
    tmp_path: Path, fake_service: _FakeService
) -> None:
    """Dependency-category failures exit 4 and render JSON errors."""
    fake_service.error = DriftReconciliationError("t1", ConnectionError("down"))

    result = _invoke(tmp_path, "--json", "reconcile")

    assert result.exit_code == main.DEPENDENCY_ERROR_EXIT_CODE
    assert json.loads(result.output)["error"]["code"] == "DRIFT_RECONCILIATION_FAILED"


def test_search_passes_paging_options(tmp_path: Path, fake_service: _FakeService) -> None:
    """search forwards the query and page selector."""
    result = _invoke(tmp_path, "--json", "search", "tax forms", "--page", "2", "--size", "5")

    assert result.exit_code == 0
    assert fake_service.calls == [("hybrid_search", "tax forms", 2, 5)]
    assert json.loads(result.stdout)["page_size"] == 5


def test_search_runs_as_requested_principal_under_default_tenant(
    tmp_path: Path, fake_service: _FakeService
) -> None:
    """--principal alone still binds the identity, using the configured default tenant."""
    result = _invoke(tmp_path, "--principal", "bob", "--json", "search", "q")

    assert result.exit_code == 0
    assert fake_service.principals == ["bob"]
    assert fake_service.identities == [DEFAULT_TENANT_ID]


def test_search_output_includes_total_pages(
    tmp_path: Path, fake_service: _FakeService
) -> None:
    """Rendered pages carry the derived page count."""
    fake_service.total_elements = 11

    result = _invoke(tmp_path, "--json", "search", "q", "--size", "5")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["total_pages"] == 3


def test_search_validation_error_exits_with_domain_error(
    tmp_path: Path, fake_service: _FakeService
) -> None:
    """Blank queries surface the validation code."""
    fake_service.error = SearchValidationError("Search query cannot be empty")

    result = _invoke(tmp_path, "search", " ")

    assert result.exit_code == main.DOMAIN_ERROR_EXIT_CODE
    assert "SEARCH_QUERY_EMPTY" in result.output


def test_worker_starts_and_stops_processor(
    tmp_path: Path, fake_service: _FakeService, monkeypatch: pytest.MonkeyPatch
) -> None:
    """worker starts the processor and stops it after shutdown is signalled."""
    monkeypatch.setattr(main, "_wait_for_shutdown", lambda: None)

    result = _invoke(tmp_path, "worker")

    assert result.exit_code == 0
    assert fake_service.calls == [("start_worker",), ("stop_worker",)]


def test_migrate_upgrades_configured_database(
    tmp_path: Path, fake_service: _FakeService, monkeypatch: pytest.MonkeyPatch
) -> None:
    """migrate applies migrations against the configured Postgres URL."""
    calls: list[tuple[str, str]] = []
    monkeypatch.setattr(
        main, "upgrade_schema", lambda *, url, revision: calls.append((url, revision))
    )
    config_file = tmp_path / "dms.yaml"
    config_file.write_text(
        "\n".join(
            [
                "components:",
                "  substrate:",
                "    postgres:",
                "      url: postgresql+psycopg://dms:secret@db:5432/dms",
            ]
        ),
        encoding="utf-8",
    )

    result = _invoke(tmp_path, "migrate")

    assert result.exit_code == 0
    assert calls == [("postgresql+psycopg://dms:secret@db:5432/dms", "head")]
    assert "migrated to head" in result.stdout
