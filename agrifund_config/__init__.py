"""
agrifund_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.  Catalog YAML is loaded with
    ``load_catalog()`` and written into the kernel by
    ``agrifund_config.bridges.seed_catalog()``.

Architecture position:
    Configuration -- YAML-driven.  This package sits above
    ``agrifund_kernel`` and below ``agrifund_services``.  The kernel MUST
    NEVER import from ``agrifund_config``.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` / ``KeyError`` -- malformed settings.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``AGRIFUND_CONFIG_TRACE`` log entry with the settings checksum, so a
    running engine can be tied back to the exact file that configured it.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from agrifund_config.loader import load_catalog, load_yaml_file, parse_settings
from agrifund_config.schema import (
    CatalogDefinition,
    CostReferenceDef,
    CultureDef,
    DatabaseSettings,
    EngineSettings,
    MilestoneTemplateDef,
)
from agrifund_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_SETTINGS_FILE = _DEFAULT_CONFIG_DIR / "default.yaml"

DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> EngineSettings:
    """The ONLY public configuration entrypoint.

    Contract:
        ``DATABASE_URL`` in the environment, when set, overrides the URL
        found in the file.

    Args:
        config_path: Settings YAML.  Defaults to agrifund_config/sets/default.yaml.

    Returns:
        Frozen EngineSettings.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        KeyError: If required keys are missing.
        ValueError: If a value is invalid.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_SETTINGS_FILE
    settings = parse_settings(load_yaml_file(path), base_dir=path.parent)

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        settings = replace(settings, database=replace(settings.database, url=env_url))

    _logger.info(
        "AGRIFUND_CONFIG_TRACE",
        extra={
            "trace_type": "AGRIFUND_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": settings.checksum,
            "database_url_from_env": bool(env_url),
            "notification_sink": settings.notification_sink,
        },
    )
    return settings


__all__ = [
    "CatalogDefinition",
    "CostReferenceDef",
    "CultureDef",
    "DatabaseSettings",
    "EngineSettings",
    "MilestoneTemplateDef",
    "get_active_config",
    "load_catalog",
]
