"""Tests for structured logging context, formatting and public API instrumentation."""

from __future__ import annotations

import json
import logging

import pytest

from packages.dms_shared.logging import fields, get_context, log_context
from packages.dms_shared.logging.config import ContextFilter, JsonFormatter, PlainFormatter
from packages.dms_shared.logging.public_api import (
    CompletionContext,
    InvocationContext,
    public_api_instrumented,
)
from services.state.search_index.context import request_identity
from services.state.search_index.errors import SearchValidationError


class _RecordingConcern:
    """Concern collecting invocation and completion events."""

    def __init__(self) -> None:
        self.invocations: list[InvocationContext] = []
        self.completions: list[CompletionContext] = []

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("exporter offline")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("exporter offline")


def _record(message: str = "hello") -> logging.LogRecord:
    record = logging.LogRecord("dms.test", logging.INFO, __file__, 1, message, (), None)
    ContextFilter().filter(record)
    return record


def test_log_context_binds_and_restores_values() -> None:
    """Nested context blocks add keys and restore the outer mapping on exit."""
    with log_context({fields.TENANT_ID: "t1"}):
        with log_context({fields.QUERY: "needle", "skipped": None}):
            inner = get_context()
        outer = get_context()

    assert inner[fields.TENANT_ID] == "t1"
    assert inner[fields.QUERY] == "needle"
    assert "skipped" not in inner
    assert outer[fields.TENANT_ID] == "t1"
    assert fields.QUERY not in outer
    assert fields.TENANT_ID not in get_context()


def test_json_formatter_merges_bound_context() -> None:
    """JSON records carry core fields plus the bound context."""
    with log_context({fields.TENANT_ID: "t1", fields.RESULT_COUNT: 3}):
        payload = json.loads(JsonFormatter().format(_record("Hybrid search completed")))

    assert payload[fields.MESSAGE] == "Hybrid search completed"
    assert payload[fields.LEVEL] == "INFO"
    assert payload[fields.LOGGER] == "dms.test"
    assert payload[fields.TENANT_ID] == "t1"
    assert payload[fields.RESULT_COUNT] == "3"


def test_plain_formatter_appends_sorted_context() -> None:
    """Plain records end with key=value context pairs."""
    with log_context({"b": 2, "a": 1}):
        line = PlainFormatter().format(_record())

    assert "hello a=1 b=2" in line


def test_request_identity_binds_tenant_and_principal() -> None:
    """Request identity is visible in the log context for the block only."""
    with request_identity(tenant_id="t1", principal="alice"):
        bound = get_context()

    assert bound[fields.TENANT_ID] == "t1"
    assert bound[fields.PRINCIPAL] == "alice"
    assert fields.PRINCIPAL not in get_context()


def test_request_identity_rejects_blank_tenant() -> None:
    """A tenant id is required."""
    with pytest.raises(ValueError):
        with request_identity(tenant_id=" ", principal="alice"):
            pass


def test_public_api_instrumented_reports_success_with_references() -> None:
    """Invocation carries identity and id fields; completion reports success."""
    concern = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_search_index",
        id_fields=("event_id",),
        concerns=(concern,),
    )
    def replay_event(*, event_id: str) -> str:
        return f"replayed {event_id}"

    with request_identity(tenant_id="t1", principal="alice"):
        result = replay_event(event_id="e1")

    assert result == "replayed e1"
    invocation = concern.invocations[0]
    assert invocation.api_name == "replay_event"
    assert invocation.tenant_id == "t1"
    assert invocation.principal == "alice"
    assert dict(invocation.references) == {"event_id": "e1"}
    assert concern.completions[0].success is True


def test_public_api_instrumented_reports_domain_error_category() -> None:
    """Failures re-raise and report the category carried by the exception."""
    concern = _RecordingConcern()

    @public_api_instrumented(component_id="service_search_index", concerns=(concern,))
    def hybrid_search() -> None:
        raise SearchValidationError("Search query cannot be empty")

    with pytest.raises(SearchValidationError):
        hybrid_search()

    completion = concern.completions[0]
    assert completion.success is False
    assert completion.error_categories == ["validation"]
    assert completion.errors == ["SearchValidationError: Search query cannot be empty"]


def test_public_api_instrumented_isolates_concern_failures(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A failing concern is logged and never breaks the wrapped call."""
    logger = logging.getLogger("dms.test.instrumentation")

    @public_api_instrumented(
        component_id="service_search_index",
        concerns=(_ExplodingConcern(),),
        logger=logger,
    )
    def health() -> str:
        return "ok"

    with caplog.at_level(logging.WARNING, logger="dms.test.instrumentation"):
        assert health() == "ok"

    assert any(
        record.getMessage() == "Public API instrumentation concern failed"
        for record in caplog.records
    )
