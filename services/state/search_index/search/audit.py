"""Search audit sink writing structured audit records to the log stream."""

from __future__ import annotations

from packages.dms_shared.logging import fields, get_logger, log_context

_AUDIT_LOGGER = get_logger("dms.audit")

SEARCH_AUDIT_ACTION = "SEARCH"


class LoggingSearchAuditor:
    """Emit one ``SEARCH`` audit record per executed query."""

    def log_search(self, query: str, result_count: int) -> None:
        with log_context(
            {
                fields.AUDIT_ACTION: SEARCH_AUDIT_ACTION,
                fields.QUERY: query,
                fields.RESULT_COUNT: result_count,
            }
        ):
            _AUDIT_LOGGER.info("Search executed")
