"""Instrumentation for public service API methods.

``public_api_instrumented`` wraps one method and notifies a set of concerns
when the call starts and when it completes. Each concern (logs, spans,
metrics) is independent; a concern that raises is reported and skipped so
the wrapped call always behaves as if it were undecorated.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from opentelemetry import context as otel_context
from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from packages.dms_shared.config import load_settings
from packages.dms_shared.errors import exception_to_error

from . import fields
from .context import get_context, log_context

SUCCESS_OUTCOME = "success"
FAILURE_OUTCOME = "failure"


@dataclass(frozen=True)
class InvocationContext:
    """Who called which API, with the identifiers worth correlating on."""

    component_id: str
    api_name: str
    tenant_id: str | None
    principal: str | None
    references: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CompletionContext:
    """Outcome of one invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str] = field(default_factory=list)
    error_categories: list[str] = field(default_factory=list)
    error_codes: list[str] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        return SUCCESS_OUTCOME if self.success else FAILURE_OUTCOME


class PublicApiInstrumentationConcern(Protocol):
    """Receives start and completion notifications for instrumented calls."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Handle the start of one call."""

    def on_completion(self, context: CompletionContext) -> None:
        """Handle the end of one call."""


class PublicApiLoggingConcern:
    """Log call start at debug and completion at info (warning on failure)."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(_call_fields(context, fields.PUBLIC_API_INVOCATION_EVENT)):
            self._logger.debug("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = _call_fields(context.invocation, fields.PUBLIC_API_COMPLETION_EVENT)
        payload[fields.OUTCOME] = context.outcome
        payload[fields.DURATION_MS] = context.duration_ms
        if not context.success:
            payload[fields.ERRORS] = "; ".join(context.errors)
            payload[fields.ERROR_CATEGORY] = ",".join(context.error_categories)
            payload[fields.ERROR_CODE] = ",".join(context.error_codes)
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


class PublicApiTracingConcern:
    """Open one span per call and make it current for the call's duration.

    Nested instrumented calls become child spans because the span is
    attached to the OTel context, not just recorded.
    """

    def __init__(self, *, tracer: Tracer) -> None:
        self._tracer = tracer
        self._open: ContextVar[tuple[tuple[Span, object], ...]] = ContextVar(
            "dms_public_api_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        attributes: dict[str, str] = {
            fields.COMPONENT_ID: context.component_id,
            fields.API_NAME: context.api_name,
        }
        if context.tenant_id is not None:
            attributes[fields.TENANT_ID] = context.tenant_id
        if context.principal is not None:
            attributes[fields.PRINCIPAL] = context.principal
        attributes.update(
            {f"reference.{key}": value for key, value in context.references.items()}
        )
        span = self._tracer.start_span(
            f"{context.component_id}.{context.api_name}", attributes=attributes
        )
        token = otel_context.attach(otel_trace.set_span_in_context(span))
        self._open.set((*self._open.get(), (span, token)))

    def on_completion(self, context: CompletionContext) -> None:
        open_spans = self._open.get()
        if not open_spans:
            return
        span, token = open_spans[-1]
        self._open.set(open_spans[:-1])
        try:
            span.set_attribute(fields.OUTCOME, context.outcome)
            span.set_attribute(fields.DURATION_MS, context.duration_ms)
            if not context.success:
                span.set_attribute(
                    fields.ERROR_CATEGORY, ",".join(context.error_categories)
                )
                span.set_status(Status(StatusCode.ERROR, "; ".join(context.errors)))
        finally:
            otel_context.detach(token)
            span.end()


class PublicApiMetricsConcern:
    """Count calls and failures and record latency per component and API."""

    def __init__(self, *, calls: Any, duration_ms: Any, errors: Any) -> None:
        self._calls = calls
        self._duration_ms = duration_ms
        self._errors = errors

    def on_invocation(self, context: InvocationContext) -> None:
        return None

    def on_completion(self, context: CompletionContext) -> None:
        labels = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
        }
        self._calls.add(1, attributes={**labels, fields.OUTCOME: context.outcome})
        self._duration_ms.record(
            context.duration_ms, attributes={**labels, fields.OUTCOME: context.outcome}
        )
        for category in context.error_categories:
            self._errors.add(1, attributes={**labels, fields.ERROR_CATEGORY: category})


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Instrument one public API method.

    ``id_fields`` names keyword arguments whose values are copied into the
    invocation references, and from there into logs and span attributes.
    Tenant and principal come from the bound log context.
    """
    active: list[PublicApiInstrumentationConcern] = []
    if logger is not None:
        active.append(PublicApiLoggingConcern(logger=logger))
    active.extend(concerns or ())
    active.extend((_default_tracing_concern(), _default_metrics_concern()))

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            bound = get_context()
            invocation = InvocationContext(
                component_id=component_id,
                api_name=name,
                tenant_id=bound.get(fields.TENANT_ID),
                principal=bound.get(fields.PRINCIPAL),
                references={
                    key: str(kwargs[key])
                    for key in id_fields
                    if kwargs.get(key) not in (None, "")
                },
            )
            _notify(active, "on_invocation", invocation, invocation, logger)

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                error = exception_to_error(exc)
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    errors=[f"{type(exc).__name__}: {exc}"],
                    error_categories=[error.category.value],
                    error_codes=[error.code],
                )
                _notify(active, "on_completion", completion, invocation, logger)
                raise

            completion = CompletionContext(
                invocation=invocation,
                success=True,
                duration_ms=_elapsed_ms(started),
            )
            _notify(active, "on_completion", completion, invocation, logger)
            return result

        return wrapper

    return decorator


def _notify(
    concerns: Sequence[PublicApiInstrumentationConcern],
    hook: str,
    payload: InvocationContext | CompletionContext,
    invocation: InvocationContext,
    logger: Any | None,
) -> None:
    for concern in concerns:
        try:
            getattr(concern, hook)(payload)
        except Exception as exc:  # noqa: BLE001
            if logger is None:
                continue
            with log_context(
                {
                    **_call_fields(
                        invocation, fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT
                    ),
                    fields.STAGE: hook,
                    fields.CONCERN: type(concern).__name__,
                    fields.ERRORS: f"{type(exc).__name__}: {exc}",
                }
            ):
                logger.warning("Public API instrumentation concern failed")


def _call_fields(context: InvocationContext, event: str) -> dict[str, object]:
    return {
        fields.EVENT: event,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        **context.references,
    }


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


@lru_cache(maxsize=1)
def _default_tracing_concern() -> PublicApiTracingConcern:
    names = load_settings().observability
    return PublicApiTracingConcern(tracer=otel_trace.get_tracer(names.tracer_name))


@lru_cache(maxsize=1)
def _default_metrics_concern() -> PublicApiMetricsConcern:
    names = load_settings().observability
    meter = otel_metrics.get_meter(names.meter_name)
    return PublicApiMetricsConcern(
        calls=meter.create_counter(
            name=names.calls_metric,
            unit="1",
            description="Public API calls by component, API and outcome.",
        ),
        duration_ms=meter.create_histogram(
            name=names.duration_metric,
            unit="ms",
            description="Public API call latency.",
        ),
        errors=meter.create_counter(
            name=names.errors_metric,
            unit="1",
            description="Public API failures by error category.",
        ),
    )
