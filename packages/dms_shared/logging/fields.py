"""Canonical logging field names shared across DMS components."""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"
EXCEPTION = "exception"

# Request scope.
TENANT_ID = "tenant_id"
PRINCIPAL = "principal"

# Public API invocation fields.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
ERROR_CODE = "error_code"
STAGE = "stage"
CONCERN = "concern"

# Outbox and index fields.
OUTBOX_EVENT_ID = "outbox_event_id"
ENTITY_TYPE = "entity_type"
ENTITY_ID = "entity_id"
ACTION = "action"
RETRY_COUNT = "retry_count"
MAX_RETRIES = "max_retries"
NEXT_RETRY_AT = "next_retry_at"
CHUNK_ID = "chunk_id"
DOCUMENT_ID = "document_id"

# Search audit fields.
QUERY = "query"
RESULT_COUNT = "result_count"
AUDIT_ACTION = "audit_action"

# Common service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"
