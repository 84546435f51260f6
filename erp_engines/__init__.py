"""
ERP Engines - pure calculation layer.

Every engine here is a pure function over its inputs: no database, no
clock, no I/O beyond an ERP_ENGINE_TRACE log record.  Services gather
inputs from one session snapshot and hand them in.

Engines:
    ledger               LedgerEntryNormalizer, LedgerBuilder
    aging                AgingCalculator (0-30 / 31-60 / 61-90 / 90+)
    collection_metrics   CollectionMetricsCalculator (DSO, CEI)
    reconciliation       VarianceCalculator (count differences, adjustments)
"""

from erp_engines.aging import (
    STANDARD_BUCKETS,
    AccountAging,
    AgeBucket,
    AgedItem,
    AgingCalculator,
    AgingReport,
    OpenItem,
)
from erp_engines.collection_metrics import (
    CollectionMetrics,
    CollectionMetricsCalculator,
    InvoiceFigures,
)
from erp_engines.ledger import (
    AccountKind,
    Ledger,
    LedgerBuilder,
    LedgerEntry,
    LedgerEntryNormalizer,
    LedgerEntryType,
    LedgerEvent,
    LedgerSummary,
)
from erp_engines.reconciliation import (
    CountLine,
    ReconciliationSummary,
    StockAdjustment,
    VarianceCalculator,
    compute_difference,
)
from erp_engines.tracer import traced_engine

__all__ = [
    "STANDARD_BUCKETS",
    "AccountAging",
    "AgeBucket",
    "AgedItem",
    "AgingCalculator",
    "AgingReport",
    "OpenItem",
    "CollectionMetrics",
    "CollectionMetricsCalculator",
    "InvoiceFigures",
    "AccountKind",
    "Ledger",
    "LedgerBuilder",
    "LedgerEntry",
    "LedgerEntryNormalizer",
    "LedgerEntryType",
    "LedgerEvent",
    "LedgerSummary",
    "CountLine",
    "ReconciliationSummary",
    "StockAdjustment",
    "VarianceCalculator",
    "compute_difference",
    "traced_engine",
]
