"""Pydantic settings for the Search Index Service component."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from packages.dms_shared.config import DmsSettings, resolve_component_settings
from services.state.search_index.component import SERVICE_COMPONENT_ID

DEFAULT_TENANT_ID = "00000000-0000-0000-0000-000000000001"


class SearchIndexSettings(BaseModel):
    """Outbox, fusion, cache and index runtime configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    poll_interval_seconds: float = Field(default=10.0, gt=0)
    outbox_max_retries: int = Field(default=5, gt=0)
    backoff_step_seconds: int = Field(default=10, gt=0)
    backoff_cap_seconds: int = Field(default=300, gt=0)
    honor_retry_backoff: bool = False

    keyword_weight: float = Field(default=0.4, ge=0)
    vector_weight: float = Field(default=0.6, ge=0)
    max_results: int = Field(default=100, gt=0)

    cache_backend: Literal["redis", "memory"] = "redis"
    cache_ttl_seconds: int = Field(default=300, gt=0)
    cache_key_prefix: str = "dms:search"

    default_tenant_id: str = DEFAULT_TENANT_ID
    default_principal: str = "system"

    index_backend: Literal["qdrant", "memory"] = "qdrant"
    collection_name: str = "dms_chunks"
    vector_dimensions: int = Field(default=256, gt=0)

    @model_validator(mode="after")
    def _validate_backoff(self) -> "SearchIndexSettings":
        """Require the backoff cap to admit at least one step."""
        if self.backoff_cap_seconds < self.backoff_step_seconds:
            raise ValueError(
                "service.search_index.backoff_cap_seconds must be >= backoff_step_seconds"
            )
        if self.cache_key_prefix.strip() == "":
            raise ValueError("service.search_index.cache_key_prefix is required")
        return self


def resolve_search_index_settings(settings: DmsSettings) -> SearchIndexSettings:
    """Resolve service settings from ``components.service.search_index``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=SearchIndexSettings,
    )
