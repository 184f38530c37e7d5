"""
Configuration Loader (``workshop_config.loader``).

Responsibility
--------------
Load a YAML configuration file and parse it into the frozen dataclasses of
``workshop_config.schema``.  Runtime callers go through
``workshop_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Unknown sections and unknown keys are rejected with ``ValueError``.
* Wrong value types are rejected with ``ValueError``; nothing is coerced
  silently except int -> float for ``busy_timeout``.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Schema violations -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from workshop_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    PaginationConfig,
    ReservationConfig,
    StatusHistoryConfig,
    WorkshopConfig,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseConfig,
    "reservations": ReservationConfig,
    "status_history": StatusHistoryConfig,
    "pagination": PaginationConfig,
    "logging": LoggingConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the configuration content."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _check_type(section: str, key: str, value: Any, expected: type) -> Any:
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if expected is int and isinstance(value, bool):
        raise ValueError(f"{section}.{key} must be an integer")
    if not isinstance(value, expected):
        raise ValueError(
            f"{section}.{key} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


def parse_section(section: str, data: Any) -> Any:
    """Parse one top-level section into its dataclass."""
    cls = _SECTIONS[section]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{section} must be a mapping")

    types = {
        f.name: {"str": str, "int": int, "float": float, "bool": bool}[f.type]
        for f in fields(cls)
    }
    kwargs = {}
    for key, value in data.items():
        if key not in types:
            raise ValueError(f"unknown key {section}.{key}")
        kwargs[key] = _check_type(section, key, value, types[key])
    return cls(**kwargs)


def parse_config(data: dict[str, Any]) -> WorkshopConfig:
    """Parse a loaded YAML mapping into a WorkshopConfig."""
    unknown = set(data) - set(_SECTIONS) - {"name"}
    if unknown:
        raise ValueError(f"unknown configuration sections: {', '.join(sorted(unknown))}")
    name = data.get("name", "default")
    if not isinstance(name, str):
        raise ValueError("name must be a string")
    return WorkshopConfig(
        name=name,
        checksum=compute_checksum(data),
        **{section: parse_section(section, data.get(section)) for section in _SECTIONS},
    )


def load_config(path: Path) -> WorkshopConfig:
    return parse_config(load_yaml_file(path))
