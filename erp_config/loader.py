"""
Configuration Loader (``erp_config.loader``).

Responsibility
--------------
Loads YAML files, merges overlays onto the packaged defaults and parses
the result into typed ``erp_config.schema`` dataclasses.  The single
public entry point for runtime config is ``erp_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on ``erp_kernel``
only for ``ConfigurationError``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections and unknown keys are rejected, never ignored.
* Monetary and rate values are parsed as ``Decimal`` from their string
  form; floats are rejected.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``ConfigurationError`` (wrapping ``yaml.YAMLError``).
* Wrong type or unknown key  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from erp_config.schema import (
    BillingSettings,
    DatabaseSettings,
    ErpConfig,
    LoggingSettings,
    ReconciliationSettings,
)
from erp_kernel.exceptions import ConfigurationError

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "logging": LoggingSettings,
    "billing": BillingSettings,
    "reconciliation": ReconciliationSettings,
}

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the file is not valid YAML or its top
            level is not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def merge_sections(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Shallow-merge each section of ``overlay`` onto ``base``."""
    merged = {name: dict(values or {}) for name, values in base.items()}
    for name, values in overlay.items():
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigurationError(f"section '{name}' must be a mapping")
        merged.setdefault(name, {}).update(values)
    return merged


def _coerce(section: str, key: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigurationError(f"{section}.{key} must be a boolean")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{section}.{key} must be an integer")
        if value < 0:
            raise ConfigurationError(f"{section}.{key} must not be negative")
        return value
    if isinstance(default, Decimal):
        if isinstance(value, float):
            raise ConfigurationError(f"{section}.{key} must be quoted, not a float")
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ConfigurationError(f"{section}.{key} is not a decimal: {value!r}") from exc
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{section}.{key} must be a non-empty string")
    return value


def parse_section(name: str, data: dict[str, Any]) -> Any:
    """Build one settings dataclass from its mapping."""
    cls = _SECTIONS[name]
    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"unknown keys in '{name}': {sorted(unknown)}")
    values = {
        key: _coerce(name, key, value, getattr(defaults, key))
        for key, value in data.items()
    }
    return cls(**values)


def parse_config(data: dict[str, Any]) -> ErpConfig:
    """Parse a merged configuration mapping into an ``ErpConfig``."""
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ConfigurationError(f"unknown sections: {sorted(unknown)}")

    config = ErpConfig(**{
        name: parse_section(name, data.get(name) or {})
        for name in _SECTIONS
    })

    level = config.logging.level.upper()
    if level not in _VALID_LOG_LEVELS:
        raise ConfigurationError(f"logging.level must be one of {sorted(_VALID_LOG_LEVELS)}")
    if config.billing.default_tax_rate < 0:
        raise ConfigurationError("billing.default_tax_rate must not be negative")
    if config.billing.dso_window_days <= 0:
        raise ConfigurationError("billing.dso_window_days must be positive")
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
