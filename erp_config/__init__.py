"""
erp_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the section they need
    (``BillingSettings``, ``ReconciliationSettings``) from their caller;
    they never read files or environment variables themselves.

Architecture position:
    Configuration.  Sits above ``erp_kernel`` and below ``erp_modules`` /
    ``erp_services``.  The kernel MUST NEVER import from ``erp_config``.

Resolution order (later wins):
    1. ``defaults.yaml`` packaged next to this module.
    2. The overlay file passed as ``path``, else ``ERP_CONFIG_FILE``.
    3. ``DATABASE_URL`` and ``ERP_LOG_LEVEL`` environment variables.

Failure modes:
    - ``FileNotFoundError`` -- an explicit overlay file does not exist.
    - ``ConfigurationError`` -- malformed YAML, unknown keys, bad values.

Audit relevance:
    Every successful call emits an ``ERP_CONFIG_TRACE`` log entry with the
    checksum of the merged configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

from erp_config.loader import compute_checksum, load_yaml_file, merge_sections, parse_config
from erp_config.schema import (
    BillingSettings,
    DatabaseSettings,
    ErpConfig,
    LoggingSettings,
    ReconciliationSettings,
)
from erp_kernel.logging_config import get_logger

__all__ = [
    "BillingSettings",
    "DatabaseSettings",
    "ErpConfig",
    "LoggingSettings",
    "ReconciliationSettings",
    "get_active_config",
]

_logger = get_logger("config")

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: str | Path | None = None) -> ErpConfig:
    """
    Resolve and return the active configuration.

    Args:
        path: Optional overlay YAML file.  Defaults to ``ERP_CONFIG_FILE``
            when that variable is set.

    Returns:
        A frozen ``ErpConfig``.  Not cached; callers hold on to it.
    """
    data = load_yaml_file(DEFAULTS_FILE)

    overlay_path = path or os.environ.get("ERP_CONFIG_FILE")
    if overlay_path:
        data = merge_sections(data, load_yaml_file(Path(overlay_path)))

    env_overrides: dict[str, dict[str, str]] = {}
    if os.environ.get("DATABASE_URL"):
        env_overrides["database"] = {"url": os.environ["DATABASE_URL"]}
    if os.environ.get("ERP_LOG_LEVEL"):
        env_overrides["logging"] = {"level": os.environ["ERP_LOG_LEVEL"].upper()}
    data = merge_sections(data, env_overrides)

    config = parse_config(data)

    _logger.info(
        "ERP_CONFIG_TRACE",
        extra={
            "trace_type": "ERP_CONFIG_TRACE",
            "checksum": compute_checksum(data),
            "overlay_file": str(overlay_path) if overlay_path else None,
            "env_overrides": sorted(env_overrides),
            "log_level": config.logging.level,
        },
    )
    return config
