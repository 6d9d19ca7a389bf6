"""Pydantic settings for the Redis substrate component."""

from __future__ import annotations

from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, model_validator

from packages.dms_shared.config import DmsSettings, resolve_component_settings

RESOURCE_COMPONENT_ID = "substrate_redis"


class RedisSettings(BaseModel):
    """Redis connectivity defaults under ``components.substrate.redis``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str | None = "redis://redis:6379/0"
    host: str = "redis"
    port: int = Field(default=6379, gt=0)
    db: int = Field(default=0, ge=0)
    password: str = ""
    ssl: bool = False
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    socket_timeout_seconds: float = Field(default=5.0, gt=0)
    max_connections: int = Field(default=20, gt=0)

    @model_validator(mode="after")
    def _resolve_url(self) -> "RedisSettings":
        """Build the URL from split fields when no explicit URL is set."""
        if self.url is not None and self.url.strip() != "":
            object.__setattr__(self, "url", self.url.strip())
            return self
        if self.host.strip() == "":
            raise ValueError("substrate.redis.host is required when url is unset")

        auth = f":{quote_plus(self.password)}@" if self.password else ""
        scheme = "rediss" if self.ssl else "redis"
        object.__setattr__(
            self, "url", f"{scheme}://{auth}{self.host.strip()}:{self.port}/{self.db}"
        )
        return self


def resolve_redis_settings(settings: DmsSettings) -> RedisSettings:
    """Resolve Redis substrate settings from ``components.substrate.redis``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=RedisSettings,
    )
