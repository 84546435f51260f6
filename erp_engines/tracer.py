"""
erp_engines.tracer -- ERP_ENGINE_TRACE records for pure engine calls.

Responsibility:
    ``@traced_engine`` wraps an engine entry point and, after it returns,
    logs which engine ran (name and version), a fingerprint of the
    keyword inputs it was given and how long it took.  Two calls with the
    same fingerprint saw the same inputs, which is what an auditor needs to
    tie a report back to the data it was computed from.

Architecture position:
    Engines -- support for the pure calculation layer.  Emits a log record
    and nothing else; engines stay free of I/O.

Invariants enforced:
    - Fingerprints are stable: mapping keys are sorted, sequences keep
      their order, frozen dataclasses are expanded field by field.  The
      digest is the first 16 hex chars of SHA-256.
    - Inputs and results pass through untouched.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from erp_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(map(_canonicalize, value)) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """Hash the named keyword inputs; an absent input hashes like None."""
    digest = hashlib.sha256()
    for index, name in enumerate(fingerprint_fields):
        if index:
            digest.update(b"|")
        digest.update(f"{name}={_canonicalize(kwargs.get(name))}".encode("utf-8"))
    return digest.hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate an engine method to log ``ERP_ENGINE_TRACE`` after each call.

    Only keyword arguments can be fingerprinted, so traced entry points
    take their data keyword-only.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
            )
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            _logger.info("ERP_ENGINE_TRACE", extra={
                "trace_type": "ERP_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "function": func.__qualname__,
                "input_fingerprint": fingerprint,
                "duration_ms": elapsed_ms,
            })
            return result

        return wrapper

    return decorator
