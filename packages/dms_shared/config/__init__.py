"""Shared DMS settings: the root model, the loader and component resolution."""

from .loader import load_settings
from .models import (
    COMPONENT_KINDS,
    DEFAULT_CONFIG_PATH,
    ComponentsSettings,
    DmsSettings,
    LoggingSettings,
    ObservabilitySettings,
    resolve_component_settings,
)

__all__ = [
    "COMPONENT_KINDS",
    "DEFAULT_CONFIG_PATH",
    "ComponentsSettings",
    "DmsSettings",
    "LoggingSettings",
    "ObservabilitySettings",
    "load_settings",
    "resolve_component_settings",
]
