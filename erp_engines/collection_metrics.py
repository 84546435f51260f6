"""
Module: erp_engines.collection_metrics
Responsibility:
    Derive receivable collection metrics from invoice figures:
    Days Sales Outstanding (DSO) and the Collection Effectiveness Index
    (CEI).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - DSO = open receivables / sales in the trailing window * window days,
      and 0 when the window holds no sales.
    - CEI = total collected / total invoiced * 100, and 100 when nothing
      has been invoiced (an empty book is perfectly effective).
    - Both are rounded to one decimal place, ROUND_HALF_UP.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from erp_kernel.db.types import round_ratio
from erp_kernel.domain.values import Money
from erp_kernel.logging_config import get_logger
from erp_engines.tracer import traced_engine

logger = get_logger("engines.collection_metrics")

DEFAULT_DSO_WINDOW_DAYS = 365


@dataclass(frozen=True)
class InvoiceFigures:
    """The parts of a posted invoice the metrics need."""

    invoice_id: UUID | str
    invoice_date: date
    total: Money
    outstanding: Money


@dataclass(frozen=True)
class CollectionMetrics:
    dso: Decimal
    cei: Decimal
    open_receivables: Money
    period_sales: Money
    total_invoiced: Money
    total_collected: Money


class CollectionMetricsCalculator:
    """Pure DSO / CEI calculator."""

    def __init__(self, window_days: int = DEFAULT_DSO_WINDOW_DAYS):
        if window_days <= 0:
            raise ValueError("window_days must be positive")
        self.window_days = window_days

    def days_sales_outstanding(self, open_receivables: Money, period_sales: Money) -> Decimal:
        if not period_sales.is_positive:
            return round_ratio(Decimal("0"))
        return round_ratio(open_receivables.amount / period_sales.amount * self.window_days)

    def collection_effectiveness(self, collected: Money, invoiced: Money) -> Decimal:
        if not invoiced.is_positive:
            return round_ratio(Decimal("100"))
        return round_ratio(collected.amount / invoiced.amount * 100)

    @traced_engine(
        "collection_metrics", "1.0",
        fingerprint_fields=("invoices", "collected", "as_of"),
    )
    def calculate(
        self,
        *,
        invoices: Sequence[InvoiceFigures],
        collected: Money,
        as_of: date,
    ) -> CollectionMetrics:
        """
        Compute DSO and CEI as of a date.

        ``invoices`` must already exclude void, cancelled and draft
        invoices.  Sales for DSO are invoices dated within the trailing
        window ending on ``as_of`` (inclusive).
        """
        window_start = as_of - timedelta(days=self.window_days)

        open_receivables = Money.sum(
            i.outstanding for i in invoices if i.outstanding.is_positive
        )
        period_sales = Money.sum(
            i.total for i in invoices if window_start <= i.invoice_date <= as_of
        )
        total_invoiced = Money.sum(i.total for i in invoices)

        metrics = CollectionMetrics(
            dso=self.days_sales_outstanding(open_receivables, period_sales),
            cei=self.collection_effectiveness(collected, total_invoiced),
            open_receivables=open_receivables,
            period_sales=period_sales,
            total_invoiced=total_invoiced,
            total_collected=collected,
        )

        logger.info("collection_metrics_calculated", extra={
            "as_of": as_of.isoformat(),
            "invoice_count": len(invoices),
            "dso": str(metrics.dso),
            "cei": str(metrics.cei),
        })
        return metrics
