"""Component identity for the Search Index Service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_search_index"
