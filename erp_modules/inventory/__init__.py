"""Inventory module: warehouses, stock rows and stock reconciliation."""

from erp_modules.inventory.models import (
    ItemCount,
    MovementType,
    RawMaterialStatus,
    ReconciliationItem,
    ReconciliationStatus,
    ReferenceType,
    StockItemType,
    StockMovement,
    StockReconciliation,
)
from erp_modules.inventory.reconciliation_service import StockReconciliationService

__all__ = [
    "ItemCount",
    "MovementType",
    "RawMaterialStatus",
    "ReconciliationItem",
    "ReconciliationStatus",
    "ReferenceType",
    "StockItemType",
    "StockMovement",
    "StockReconciliation",
    "StockReconciliationService",
]
