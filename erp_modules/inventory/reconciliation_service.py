"""
Stock Reconciliation Service (``erp_modules.inventory.reconciliation_service``).

Responsibility
--------------
Runs physical stock count sessions for a warehouse: snapshot the system
quantities, record physical counts, and on finalize post the
differences to live stock with an ADJUSTMENT movement log per item.

Architecture position
---------------------
**Modules layer** -- owns its transaction boundary through a
``UnitOfWork``.  The adjustment plan comes from the pure
``erp_engines.reconciliation.VarianceCalculator``.

Invariants enforced
-------------------
* State machine PENDING -> COMPLETED, one way.  Sessions cannot be
  cancelled or reopened.
* ``difference`` is computed against the item's own ``system_quantity``
  snapshot, never against live stock.
* Uncounted items are skipped at finalize, never treated as zero.
* Live quantities are incremented in SQL (``quantity = quantity + diff``)
  so concurrent stock writes are not overwritten.
* Finalize is all-or-nothing: the stock updates, the movement logs and
  the status change commit together.

Failure modes
-------------
* ``NotFoundError``      -- unknown warehouse, session, session item, or a
  live stock row that disappeared before finalize.
* ``InvalidStateError``  -- counting or finalizing a COMPLETED session.
* ``ValidationError``    -- missing item id, negative or float quantity.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from erp_config.schema import ReconciliationSettings
from erp_engines.reconciliation import VarianceCalculator, compute_difference
from erp_kernel.db.transaction import UnitOfWork
from erp_kernel.db.types import to_decimal
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import InvalidStateError, NotFoundError, ValidationError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.services.sequence_service import SequenceService
from erp_modules.inventory.models import (
    ItemCount,
    MovementType,
    RawMaterialStatus,
    ReconciliationStatus,
    ReferenceType,
    StockItemType,
    StockMovement,
    StockReconciliation,
)
from erp_modules.inventory.orm import (
    FinishedGoodModel,
    RawMaterialModel,
    ReconciliationItemModel,
    StockMovementLogModel,
    StockReconciliationModel,
    WarehouseLocationModel,
    WarehouseModel,
)

logger = get_logger("modules.inventory.reconciliation")


def format_reconcile_number(prefix: str, day: str, sequence: int) -> str:
    """``REC-20240115-0001``: prefix, date, 4-digit daily sequence."""
    return f"{prefix}-{day}-{sequence:04d}"


def _validate_counts(counts: Sequence[ItemCount]) -> list[tuple[UUID, Decimal, str | None]]:
    """Check every count before any write; returns (item_id, quantity, notes)."""
    if not counts:
        raise ValidationError("counts", "at least one count is required")
    validated = []
    for index, count in enumerate(counts):
        if count.item_id is None:
            raise ValidationError(f"counts[{index}].item_id", "is required")
        if count.physical_quantity is None:
            raise ValidationError(f"counts[{index}].physical_quantity", "is required")
        try:
            quantity = to_decimal(count.physical_quantity)
        except (TypeError, InvalidOperation) as exc:
            raise ValidationError(
                f"counts[{index}].physical_quantity", "must be an exact decimal",
            ) from exc
        if not quantity.is_finite() or quantity < 0:
            raise ValidationError(f"counts[{index}].physical_quantity", "must not be negative")
        validated.append((count.item_id, quantity, count.notes))
    return validated


class StockReconciliationService:
    """Stock count sessions: start, count, finalize, read."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: ReconciliationSettings | None = None,
        unit_of_work: UnitOfWork | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or ReconciliationSettings()
        self._uow = unit_of_work or UnitOfWork(session)
        self._sequences = SequenceService(session)
        self._variance = VarianceCalculator()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_reconcile_number(self) -> str:
        day = self._clock.now().strftime("%Y%m%d")
        seq = self._sequences.next_in_period(SequenceService.RECONCILIATION, day)
        return format_reconcile_number(self._settings.reconcile_prefix, day, seq)

    def _lock_session(self, session_id: UUID) -> StockReconciliationModel:
        recon = self._session.execute(
            select(StockReconciliationModel)
            .where(StockReconciliationModel.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if recon is None:
            raise NotFoundError("StockReconciliation", session_id)
        return recon

    @staticmethod
    def _require_pending(recon: StockReconciliationModel, operation: str) -> None:
        if recon.status != ReconciliationStatus.PENDING.value:
            raise InvalidStateError("StockReconciliation", recon.id, recon.status, operation)

    def _first_location_id(self, warehouse_id: UUID) -> UUID | None:
        return self._session.execute(
            select(WarehouseLocationModel.id)
            .where(WarehouseLocationModel.warehouse_id == warehouse_id)
            .order_by(WarehouseLocationModel.created_at, WarehouseLocationModel.code)
            .limit(1)
        ).scalar_one_or_none()

    def _apply_delta(self, item_type: str, item_id: UUID, delta: Decimal) -> None:
        if item_type == StockItemType.RAW_MATERIAL.value:
            stmt = (
                update(RawMaterialModel)
                .where(RawMaterialModel.id == item_id)
                .values(quantity=RawMaterialModel.quantity + delta)
            )
            label = "RawMaterial"
        else:
            stmt = (
                update(FinishedGoodModel)
                .where(FinishedGoodModel.id == item_id)
                .values(produced_quantity=FinishedGoodModel.produced_quantity + delta)
            )
            label = "FinishedGood"
        result = self._session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError(label, item_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start_session(
        self,
        warehouse_id: UUID,
        started_by: UUID,
        notes: str | None = None,
    ) -> StockReconciliation:
        """
        Open a PENDING session that snapshots the warehouse's stock.

        Every IN_STOCK raw material and every finished good in one of the
        warehouse's locations becomes an uncounted item whose
        ``system_quantity`` is the current live quantity.
        """
        with LogContext.bind(actor_id=str(started_by)):
            with self._uow.atomic("start_reconciliation") as session:
                if session.get(WarehouseModel, warehouse_id) is None:
                    raise NotFoundError("Warehouse", warehouse_id)

                location_ids = select(WarehouseLocationModel.id).where(
                    WarehouseLocationModel.warehouse_id == warehouse_id
                )
                raw_materials = session.execute(
                    select(RawMaterialModel).where(
                        RawMaterialModel.warehouse_location_id.in_(location_ids),
                        RawMaterialModel.status == RawMaterialStatus.IN_STOCK.value,
                    )
                ).scalars().all()
                finished_goods = session.execute(
                    select(FinishedGoodModel).where(
                        FinishedGoodModel.warehouse_location_id.in_(location_ids),
                    )
                ).scalars().all()

                recon = StockReconciliationModel(
                    reconcile_no=self._next_reconcile_number(),
                    warehouse_id=warehouse_id,
                    status=ReconciliationStatus.PENDING.value,
                    notes=notes,
                    created_by_id=started_by,
                )
                items = [
                    ReconciliationItemModel(
                        item_id=rm.id,
                        item_type=StockItemType.RAW_MATERIAL.value,
                        item_name=rm.display_name,
                        system_quantity=rm.quantity,
                        created_by_id=started_by,
                    )
                    for rm in raw_materials
                ] + [
                    ReconciliationItemModel(
                        item_id=fg.id,
                        item_type=StockItemType.FINISHED_GOOD.value,
                        item_name=fg.display_name,
                        system_quantity=fg.produced_quantity,
                        created_by_id=started_by,
                    )
                    for fg in finished_goods
                ]
                recon.items = sorted(items, key=lambda item: item.item_name)
                session.add(recon)
                session.flush()
                result = recon.to_dto()

        logger.info("reconciliation_started", extra={
            "reconciliation_id": str(result.id),
            "reconcile_no": result.reconcile_no,
            "warehouse_id": str(warehouse_id),
            "item_count": len(result.items),
        })
        return result

    def record_counts(
        self,
        session_id: UUID,
        counts: Sequence[ItemCount],
        actor_id: UUID,
    ) -> StockReconciliation:
        """
        Record physical quantities for items of a PENDING session.

        Repeatable; the last count for an item wins.  All counts are
        validated before anything is written.
        """
        validated = _validate_counts(counts)

        with LogContext.bind(reconciliation_id=str(session_id), actor_id=str(actor_id)):
            with self._uow.atomic("record_counts") as session:
                recon = self._lock_session(session_id)
                self._require_pending(recon, "record counts on")

                items = {item.id: item for item in recon.items}
                for item_id, quantity, notes in validated:
                    item = items.get(item_id)
                    if item is None:
                        raise NotFoundError("ReconciliationItem", item_id)
                    item.physical_quantity = quantity
                    item.difference = compute_difference(item.system_quantity, quantity)
                    item.notes = notes
                    item.updated_by_id = actor_id
                session.flush()
                result = recon.to_dto()

            logger.info("reconciliation_counts_recorded", extra={
                "count": len(validated),
                "counted_items": result.summary.counted_items,
                "discrepancy_count": result.summary.discrepancy_count,
            })
            return result

    def finalize(self, session_id: UUID, finalized_by: UUID) -> StockReconciliation:
        """
        Post the counted differences to live stock and complete the session.

        Raises:
            NotFoundError: unknown session, or a live stock row is gone.
            InvalidStateError: the session is already COMPLETED.
        """
        with LogContext.bind(reconciliation_id=str(session_id), actor_id=str(finalized_by)):
            with self._uow.atomic("finalize_reconciliation") as session:
                recon = self._lock_session(session_id)
                self._require_pending(recon, "finalize")

                plan = self._variance.plan_adjustments(lines=recon.count_lines())
                location_id = self._first_location_id(recon.warehouse_id)

                for adjustment in plan:
                    self._apply_delta(adjustment.item_type, adjustment.item_id, adjustment.delta)
                    session.add(StockMovementLogModel(
                        movement_type=MovementType.ADJUSTMENT.value,
                        item_id=adjustment.item_id,
                        item_type=adjustment.item_type,
                        quantity=adjustment.magnitude,
                        location_id=location_id,
                        reference_type=ReferenceType.RECONCILIATION.value,
                        reference_id=recon.id,
                        created_by_id=finalized_by,
                    ))

                recon.status = ReconciliationStatus.COMPLETED.value
                recon.finalized_by = finalized_by
                recon.finalized_at = self._clock.now()
                recon.updated_by_id = finalized_by
                session.flush()
                result = recon.to_dto()

            logger.info("reconciliation_finalized", extra={
                "reconcile_no": result.reconcile_no,
                "adjustment_count": len(plan),
                "net_variance": str(result.summary.net_variance),
            })
            return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_session(self, session_id: UUID) -> StockReconciliation:
        recon = self._session.get(StockReconciliationModel, session_id)
        if recon is None:
            raise NotFoundError("StockReconciliation", session_id)
        return recon.to_dto()

    def list_sessions(self, warehouse_id: UUID | None = None) -> list[StockReconciliation]:
        """Sessions newest first, optionally for one warehouse."""
        stmt = select(StockReconciliationModel)
        if warehouse_id is not None:
            stmt = stmt.where(StockReconciliationModel.warehouse_id == warehouse_id)
        stmt = stmt.order_by(
            StockReconciliationModel.created_at.desc(),
            StockReconciliationModel.reconcile_no.desc(),
        )
        return [row.to_dto() for row in self._session.execute(stmt).scalars().all()]

    def list_movements(self, reference_id: UUID | None = None) -> list[StockMovement]:
        stmt = select(StockMovementLogModel)
        if reference_id is not None:
            stmt = stmt.where(StockMovementLogModel.reference_id == reference_id)
        stmt = stmt.order_by(StockMovementLogModel.created_at, StockMovementLogModel.item_id)
        return [row.to_dto() for row in self._session.execute(stmt).scalars().all()]
