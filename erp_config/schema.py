"""
Configuration Schema (``erp_config.schema``).

Responsibility
--------------
Frozen dataclass definitions for every configuration section.  Each
section carries working defaults so services can be constructed without
a loaded configuration (tests, scripts).

Architecture position
---------------------
**Config layer** -- pure data, zero I/O.  Imported by ``loader.py`` and by
module services that accept a settings section.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class BillingSettings:
    """Document numbering and invoice defaults for receivables."""
    receipt_prefix: str = "RCP"
    invoice_prefix: str = "INV"
    credit_note_prefix: str = "CN"
    debit_note_prefix: str = "DN"
    default_tax_rate: Decimal = Decimal("0.18")
    default_payment_terms_days: int = 30
    dso_window_days: int = 365


@dataclass(frozen=True)
class ReconciliationSettings:
    reconcile_prefix: str = "REC"


@dataclass(frozen=True)
class ErpConfig:
    """The complete runtime configuration."""
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    billing: BillingSettings = field(default_factory=BillingSettings)
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
