"""Settings models for DMS processes.

``DmsSettings`` is the root object. Component settings live under
``components.<kind>.<name>`` as free-form mappings and are validated by the
owning component through ``resolve_component_settings``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "dms" / "dms.yaml"

COMPONENT_KINDS = frozenset({"service", "substrate"})

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseModel):
    level: LogLevel = "INFO"
    json_output: bool = True
    service: str = "dms"
    environment: str = "dev"


class ObservabilitySettings(BaseModel):
    """OpenTelemetry instrument names used by public API instrumentation."""

    tracer_name: str = "dms.public_api"
    meter_name: str = "dms.public_api"
    calls_metric: str = "dms_public_api_calls_total"
    duration_metric: str = "dms_public_api_duration_ms"
    errors_metric: str = "dms_public_api_errors_total"


class ComponentsSettings(BaseModel):
    """Per-kind mappings of component name to raw settings."""

    model_config = ConfigDict(extra="forbid")

    service: dict[str, Any] = Field(default_factory=dict)
    substrate: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _reject_flat_keys(cls, value: object) -> object:
        """``service_search_index`` must be written ``service: {search_index: ...}``."""
        for key in value if isinstance(value, dict) else ():
            kind, _, name = str(key).partition("_")
            if name and kind in COMPONENT_KINDS:
                raise ValueError(
                    f"components.{key} is invalid; use components.{kind}.{name} instead"
                )
        return value


class DmsSettings(BaseSettings):
    """Root settings; sources rank init > env > YAML > defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DMS_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
        yaml_file=DEFAULT_CONFIG_PATH,
        yaml_file_encoding="utf-8",
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, YamlConfigSettingsSource(settings_cls)


ComponentModel = TypeVar("ComponentModel", bound=BaseModel)


def resolve_component_settings(
    *,
    settings: DmsSettings,
    component_id: str,
    model: type[ComponentModel],
) -> ComponentModel:
    """Validate ``components.<kind>.<name>`` against ``model``.

    ``component_id`` is ``<kind>_<name>``; ``service_search_index`` reads
    ``components.service.search_index``. Missing sections yield defaults.
    """
    kind, _, name = component_id.partition("_")
    if not name or kind not in COMPONENT_KINDS:
        raise ValueError(f"unsupported component id: {component_id}")

    section = getattr(settings.components, kind).get(name) or {}
    if not isinstance(section, dict):
        raise TypeError(f"components.{kind}.{name} must be a mapping")
    return model.model_validate(section)
