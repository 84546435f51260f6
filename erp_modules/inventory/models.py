"""
Inventory Domain Models (``erp_modules.inventory.models``).

Responsibility
--------------
Frozen value objects for warehouses, stock rows (raw materials and
finished goods), stock reconciliation sessions and their items, and the
stock movement log.

Invariants enforced
-------------------
* All models are ``frozen=True``; quantities are ``Decimal``.
* ``ReconciliationItem.difference`` is None exactly when the item has not
  been counted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from erp_engines.reconciliation import ReconciliationSummary


class ReconciliationStatus(Enum):
    """PENDING -> COMPLETED; COMPLETED is terminal."""
    PENDING = "pending"
    COMPLETED = "completed"


class StockItemType(Enum):
    RAW_MATERIAL = "raw_material"
    FINISHED_GOOD = "finished_good"


class RawMaterialStatus(Enum):
    IN_STOCK = "in_stock"
    RESERVED = "reserved"
    CONSUMED = "consumed"


class MovementType(Enum):
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class ReferenceType(Enum):
    RECONCILIATION = "reconciliation"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class Warehouse:
    id: UUID
    code: str
    name: str


@dataclass(frozen=True)
class WarehouseLocation:
    id: UUID
    warehouse_id: UUID
    code: str
    name: str


@dataclass(frozen=True)
class RawMaterial:
    id: UUID
    material_type: str
    batch_no: str
    quantity: Decimal
    status: RawMaterialStatus
    warehouse_location_id: UUID | None = None


@dataclass(frozen=True)
class FinishedGood:
    id: UUID
    batch_number: str
    produced_quantity: Decimal
    warehouse_location_id: UUID | None = None


@dataclass(frozen=True)
class ItemCount:
    """A physical count submitted for one reconciliation item."""
    item_id: UUID
    physical_quantity: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class ReconciliationItem:
    """Snapshot of one stock row inside a session, plus its count."""
    id: UUID
    reconciliation_id: UUID
    item_id: UUID
    item_type: StockItemType
    item_name: str
    system_quantity: Decimal
    physical_quantity: Decimal | None = None
    difference: Decimal | None = None
    notes: str | None = None

    @property
    def is_counted(self) -> bool:
        return self.physical_quantity is not None


@dataclass(frozen=True)
class StockReconciliation:
    """A reconciliation session with its items ordered by name."""
    id: UUID
    reconcile_no: str
    warehouse_id: UUID
    status: ReconciliationStatus
    started_by: UUID
    summary: ReconciliationSummary
    items: tuple[ReconciliationItem, ...] = field(default_factory=tuple)
    finalized_by: UUID | None = None
    finalized_at: datetime | None = None
    notes: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class StockMovement:
    """Append-only record of a stock quantity change."""
    id: UUID
    movement_type: MovementType
    item_id: UUID
    item_type: StockItemType
    quantity: Decimal
    performed_by: UUID
    reference_type: ReferenceType
    reference_id: UUID | None = None
    location_id: UUID | None = None
    created_at: datetime | None = None
