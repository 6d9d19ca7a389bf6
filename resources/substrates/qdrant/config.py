"""Configuration model for the Qdrant substrate."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.dms_shared.config import DmsSettings, resolve_component_settings

RESOURCE_COMPONENT_ID = "substrate_qdrant"


class QdrantSettings(BaseModel):
    """Qdrant connection defaults under ``components.substrate.qdrant``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = "http://qdrant:6333"
    api_key: str | None = None
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        """Reject blank endpoint URLs."""
        if value.strip() == "":
            raise ValueError("substrate.qdrant.url is required")
        return value.strip()


def resolve_qdrant_settings(settings: DmsSettings) -> QdrantSettings:
    """Resolve Qdrant substrate settings from ``components.substrate.qdrant``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=QdrantSettings,
    )
