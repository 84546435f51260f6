"""
Module: erp_engines.reconciliation
Responsibility:
    Stock-count variance arithmetic for reconciliation sessions: per-item
    difference, the adjustment plan applied at finalize, and the session
    summary.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reconciliation
    service persists what this engine plans.

Invariants enforced:
    - difference = physical - system, always against the item's own
      system-quantity snapshot.
    - Uncounted items (physical quantity None) are "not audited": they
      produce no difference and no adjustment, never a zero count.
    - Counted items with zero difference produce no adjustment.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from erp_kernel.logging_config import get_logger
from erp_engines.tracer import traced_engine

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True)
class CountLine:
    """One reconciliation item as the engine sees it."""

    line_id: UUID | str
    item_id: UUID | str
    item_type: str
    system_quantity: Decimal
    physical_quantity: Decimal | None


@dataclass(frozen=True)
class StockAdjustment:
    """Signed quantity change to apply to a live stock row."""

    line_id: UUID | str
    item_id: UUID | str
    item_type: str
    delta: Decimal

    @property
    def magnitude(self) -> Decimal:
        return abs(self.delta)


@dataclass(frozen=True)
class ReconciliationSummary:
    total_items: int
    counted_items: int
    uncounted_items: int
    discrepancy_count: int
    net_variance: Decimal
    absolute_variance: Decimal


def compute_difference(
    system_quantity: Decimal,
    physical_quantity: Decimal | None,
) -> Decimal | None:
    """physical - system, or None when the item has not been counted."""
    if physical_quantity is None:
        return None
    return physical_quantity - system_quantity


class VarianceCalculator:
    """Pure planner for reconciliation adjustments."""

    @traced_engine("reconciliation_variance", "1.0", fingerprint_fields=("lines",))
    def plan_adjustments(self, *, lines: Sequence[CountLine]) -> tuple[StockAdjustment, ...]:
        """Adjustments for every counted line with a non-zero difference."""
        plan: list[StockAdjustment] = []
        for line in lines:
            diff = compute_difference(line.system_quantity, line.physical_quantity)
            if diff is None or diff == 0:
                continue
            plan.append(
                StockAdjustment(
                    line_id=line.line_id,
                    item_id=line.item_id,
                    item_type=line.item_type,
                    delta=diff,
                )
            )

        logger.info("reconciliation_adjustments_planned", extra={
            "line_count": len(lines),
            "adjustment_count": len(plan),
        })
        return tuple(plan)

    def summarize(self, lines: Sequence[CountLine]) -> ReconciliationSummary:
        diffs = [
            d for d in (compute_difference(line.system_quantity, line.physical_quantity) for line in lines)
            if d is not None
        ]
        return ReconciliationSummary(
            total_items=len(lines),
            counted_items=len(diffs),
            uncounted_items=len(lines) - len(diffs),
            discrepancy_count=sum(1 for d in diffs if d != 0),
            net_variance=sum(diffs, Decimal("0")),
            absolute_variance=sum((abs(d) for d in diffs), Decimal("0")),
        )
