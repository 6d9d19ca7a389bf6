"""Qdrant substrate settings and client construction."""

from resources.substrates.qdrant.client import create_qdrant_client
from resources.substrates.qdrant.config import (
    RESOURCE_COMPONENT_ID,
    QdrantSettings,
    resolve_qdrant_settings,
)

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "QdrantSettings",
    "create_qdrant_client",
    "resolve_qdrant_settings",
]
