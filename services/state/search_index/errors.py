"""Exceptions raised across the Search Index Service boundary.

Each exception carries an ``ErrorDetail`` so callers and instrumentation see
one stable code and category regardless of the failing layer.
"""

from __future__ import annotations

from packages.dms_shared.errors import (
    ErrorDetail,
    dependency_error,
    not_found_error,
    validation_error,
)

SEARCH_QUERY_EMPTY = "SEARCH_QUERY_EMPTY"
OUTBOX_EVENT_NOT_FOUND = "OUTBOX_EVENT_NOT_FOUND"
DRIFT_RECONCILIATION_FAILED = "DRIFT_RECONCILIATION_FAILED"
SEARCH_INDEX_UNAVAILABLE = "SEARCH_INDEX_UNAVAILABLE"


class SearchIndexError(Exception):
    """Base class for Search Index Service failures."""

    def __init__(self, detail: ErrorDetail) -> None:
        super().__init__(detail.message)
        self.detail = detail


class SearchValidationError(SearchIndexError):
    """Raised when a search request is rejected before execution."""

    def __init__(self, message: str) -> None:
        super().__init__(validation_error(message, code=SEARCH_QUERY_EMPTY))


class OutboxEventNotFoundError(SearchIndexError):
    """Raised when an operator action references an unknown outbox event."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            not_found_error(
                f"outbox event not found: {event_id}",
                code=OUTBOX_EVENT_NOT_FOUND,
                metadata={"outbox_event_id": event_id},
            )
        )


class DriftReconciliationError(SearchIndexError):
    """Raised when a tenant reconciliation cannot complete."""

    def __init__(self, tenant_id: str, cause: Exception) -> None:
        super().__init__(
            dependency_error(
                f"drift reconciliation failed for tenant {tenant_id}: {cause}",
                code=DRIFT_RECONCILIATION_FAILED,
                metadata={
                    "tenant_id": tenant_id,
                    "exception_type": type(cause).__name__,
                },
            )
        )


class IndexUnavailableError(SearchIndexError):
    """Raised by index clients when the backing search store cannot be reached."""

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(
            dependency_error(
                f"search index unavailable during {operation}: {cause}",
                code=SEARCH_INDEX_UNAVAILABLE,
                metadata={
                    "operation": operation,
                    "exception_type": type(cause).__name__,
                },
            )
        )
