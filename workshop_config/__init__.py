"""
workshop_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way components obtain
    configuration.  It resolves which YAML set to load, parses and validates
    it, and applies the environment override for the database URL.

Architecture position:
    Configuration layer.  Sits beside ``workshop_kernel``; the kernel MUST
    NEVER import from ``workshop_config``.  ``workshop_services`` reads the
    config and passes plain values down.

Resolution order:
    1. ``path`` argument
    2. ``WORKSHOP_CONFIG`` environment variable
    3. ``workshop_config/sets/default.yaml``

    ``DATABASE_URL``, when set, replaces ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``ValueError`` -- schema validation failure.

Audit relevance:
    Every successful call logs ``workshop_config_loaded`` with the set
    name, source path and content checksum.
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

from workshop_config.loader import load_config
from workshop_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    PaginationConfig,
    ReservationConfig,
    StatusHistoryConfig,
    WorkshopConfig,
)
from workshop_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_ENV_VAR = "WORKSHOP_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> WorkshopConfig:
    """The ONLY public configuration entrypoint."""
    source = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    config = load_config(source)

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    _logger.info(
        "workshop_config_loaded",
        extra={
            "config_name": config.name,
            "source": str(source),
            "checksum": config.checksum,
            "database_url_overridden": bool(database_url),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "WorkshopConfig",
    "DatabaseConfig",
    "ReservationConfig",
    "StatusHistoryConfig",
    "PaginationConfig",
    "LoggingConfig",
]
