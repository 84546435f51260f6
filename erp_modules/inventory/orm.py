"""
Inventory ORM Models (``erp_modules.inventory.orm``).

Responsibility
--------------
SQLAlchemy persistence for warehouses and their locations, raw material
and finished good stock rows, stock reconciliation sessions and items,
and the stock movement log.

Architecture position
---------------------
**Modules layer** -- persistence.  The reconciliation service is the only
writer of sessions, items and movement logs.  Immutability of movement
logs and of completed sessions is enforced by
``erp_kernel.db.immutability``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_engines.reconciliation import CountLine, VarianceCalculator
from erp_kernel.db.base import TrackedBase


class WarehouseModel(TrackedBase):
    __tablename__ = "inv_warehouses"

    __table_args__ = (
        UniqueConstraint("code", name="uq_inv_warehouses_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    locations: Mapped[list["WarehouseLocationModel"]] = relationship(
        back_populates="warehouse",
        order_by="WarehouseLocationModel.code",
    )

    def to_dto(self):
        from erp_modules.inventory.models import Warehouse

        return Warehouse(id=self.id, code=self.code, name=self.name)


class WarehouseLocationModel(TrackedBase):
    __tablename__ = "inv_warehouse_locations"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "code", name="uq_inv_warehouse_locations_code"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        ForeignKey("inv_warehouses.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    warehouse: Mapped["WarehouseModel"] = relationship(back_populates="locations")

    def to_dto(self):
        from erp_modules.inventory.models import WarehouseLocation

        return WarehouseLocation(
            id=self.id, warehouse_id=self.warehouse_id, code=self.code, name=self.name,
        )


class RawMaterialModel(TrackedBase):
    """Raw material stock row; ``quantity`` is the live on-hand figure."""

    __tablename__ = "inv_raw_materials"

    __table_args__ = (
        Index("idx_inv_raw_materials_location", "warehouse_location_id"),
        Index("idx_inv_raw_materials_status", "status"),
    )

    material_type: Mapped[str] = mapped_column(String(100), nullable=False)
    batch_no: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="in_stock")
    warehouse_location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inv_warehouse_locations.id"), nullable=True
    )

    def to_dto(self):
        from erp_modules.inventory.models import RawMaterial, RawMaterialStatus

        return RawMaterial(
            id=self.id,
            material_type=self.material_type,
            batch_no=self.batch_no,
            quantity=self.quantity,
            status=RawMaterialStatus(self.status),
            warehouse_location_id=self.warehouse_location_id,
        )

    @property
    def display_name(self) -> str:
        return f"{self.material_type} ({self.batch_no})"


class FinishedGoodModel(TrackedBase):
    """Finished good stock row; ``produced_quantity`` is the live figure."""

    __tablename__ = "inv_finished_goods"

    __table_args__ = (
        Index("idx_inv_finished_goods_location", "warehouse_location_id"),
    )

    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    produced_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    warehouse_location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inv_warehouse_locations.id"), nullable=True
    )

    def to_dto(self):
        from erp_modules.inventory.models import FinishedGood

        return FinishedGood(
            id=self.id,
            batch_number=self.batch_number,
            produced_quantity=self.produced_quantity,
            warehouse_location_id=self.warehouse_location_id,
        )

    @property
    def display_name(self) -> str:
        return f"FG: {self.batch_number}"


class StockReconciliationModel(TrackedBase):
    """
    A stock count session for one warehouse.

    Guarantees:
        - reconcile_no is unique (uq_inv_stock_reconciliations_no).
        - created_by_id is the user who started the session.
        - finalized_by / finalized_at are set only on COMPLETED.
    """

    __tablename__ = "inv_stock_reconciliations"

    __table_args__ = (
        UniqueConstraint("reconcile_no", name="uq_inv_stock_reconciliations_no"),
        Index("idx_inv_stock_reconciliations_warehouse", "warehouse_id"),
    )

    reconcile_no: Mapped[str] = mapped_column(String(50), nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(
        ForeignKey("inv_warehouses.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(50), default="pending")
    finalized_by: Mapped[UUID | None] = mapped_column(nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["ReconciliationItemModel"]] = relationship(
        back_populates="reconciliation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReconciliationItemModel.item_name",
    )

    def count_lines(self) -> list[CountLine]:
        return [
            CountLine(
                line_id=item.id,
                item_id=item.item_id,
                item_type=item.item_type,
                system_quantity=item.system_quantity,
                physical_quantity=item.physical_quantity,
            )
            for item in self.items
        ]

    def to_dto(self):
        from erp_modules.inventory.models import ReconciliationStatus, StockReconciliation

        return StockReconciliation(
            id=self.id,
            reconcile_no=self.reconcile_no,
            warehouse_id=self.warehouse_id,
            status=ReconciliationStatus(self.status),
            started_by=self.created_by_id,
            summary=VarianceCalculator().summarize(self.count_lines()),
            items=tuple(item.to_dto() for item in self.items),
            finalized_by=self.finalized_by,
            finalized_at=self.finalized_at,
            notes=self.notes,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<StockReconciliationModel {self.reconcile_no} [{self.status}]>"


class ReconciliationItemModel(TrackedBase):
    """
    One stock row snapshotted into a session.

    ``system_quantity`` is written once at session start; ``difference``
    is recomputed from it on every count.
    """

    __tablename__ = "inv_reconciliation_items"

    __table_args__ = (
        Index("idx_inv_reconciliation_items_session", "reconciliation_id"),
    )

    reconciliation_id: Mapped[UUID] = mapped_column(
        ForeignKey("inv_stock_reconciliations.id"), nullable=False
    )
    item_id: Mapped[UUID] = mapped_column(nullable=False)
    item_type: Mapped[str] = mapped_column(String(50), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    system_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    physical_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    difference: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    reconciliation: Mapped["StockReconciliationModel"] = relationship(back_populates="items")

    def to_dto(self):
        from erp_modules.inventory.models import ReconciliationItem, StockItemType

        return ReconciliationItem(
            id=self.id,
            reconciliation_id=self.reconciliation_id,
            item_id=self.item_id,
            item_type=StockItemType(self.item_type),
            item_name=self.item_name,
            system_quantity=self.system_quantity,
            physical_quantity=self.physical_quantity,
            difference=self.difference,
            notes=self.notes,
        )


class StockMovementLogModel(TrackedBase):
    """Append-only stock movement record; ``quantity`` is a magnitude."""

    __tablename__ = "inv_stock_movement_logs"

    __table_args__ = (
        Index("idx_inv_stock_movement_logs_reference", "reference_id"),
        Index("idx_inv_stock_movement_logs_item", "item_id"),
    )

    movement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    item_id: Mapped[UUID] = mapped_column(nullable=False)
    item_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inv_warehouse_locations.id"), nullable=True
    )
    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from erp_modules.inventory.models import (
            MovementType,
            ReferenceType,
            StockItemType,
            StockMovement,
        )

        return StockMovement(
            id=self.id,
            movement_type=MovementType(self.movement_type),
            item_id=self.item_id,
            item_type=StockItemType(self.item_type),
            quantity=self.quantity,
            location_id=self.location_id,
            performed_by=self.created_by_id,
            reference_type=ReferenceType(self.reference_type),
            reference_id=self.reference_id,
            created_at=self.created_at,
        )
