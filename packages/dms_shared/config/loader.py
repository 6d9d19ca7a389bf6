"""Load ``DmsSettings`` from a chosen YAML file.

Sources rank, highest first: explicit parameters (CLI flags), ``DMS_*``
environment variables, the YAML file, model defaults. Nested keys in the
environment use ``__``; ``DMS_LOGGING__LEVEL=DEBUG`` sets ``logging.level``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from pydantic_settings import SettingsConfigDict

from .models import DEFAULT_CONFIG_PATH, DmsSettings


def _settings_class(yaml_path: Path) -> type[DmsSettings]:
    if yaml_path == DEFAULT_CONFIG_PATH:
        return DmsSettings
    return type(
        "DmsSettingsFromFile",
        (DmsSettings,),
        {"model_config": SettingsConfigDict(yaml_file=yaml_path)},
    )


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> DmsSettings:
    path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)
    return _settings_class(path)(**dict(cli_params or {}))
