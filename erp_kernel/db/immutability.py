"""
ORM-Level Immutability Enforcement (``erp_kernel.db.immutability``).

Receipts, payments, notes, provisions, the invoice history trail and the
stock movement log are append-only.  A posted invoice's amounts are
frozen, and a completed reconciliation session is frozen together with
its items.  This module enforces those rules on every flush through
SQLAlchemy mapper events, before any SQL reaches the database.

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities
------------------

Entity                    | When immutable
--------------------------|-------------------------------------------
InvoicePayment, ARPayment | Always
VendorPayment             | Always
CreditNote, DebitNote     | Always
BadDebtProvision          | Always
InvoiceHistory            | Always
StockMovementLog          | Always
Invoice                   | Amounts once status leaves DRAFT; no delete
                          | once payments exist
StockReconciliation       | Once COMPLETED
ReconciliationItem        | Once its session is COMPLETED

``updated_at`` / ``updated_by_id`` are audit metadata and may always
change.  Bulk ``UPDATE`` statements bypass mapper events; the only bulk
update in the system increments live stock rows, which are not
protected.

Module ORM classes are imported lazily inside the functions below; the
kernel never imports ``erp_modules`` at import time.

Usage
-----
    from erp_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()   # once, after models are imported

    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event, func, inspect, select

from erp_kernel.exceptions import ImmutabilityViolationError
from erp_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_INVOICE_AMOUNT_FIELDS = ("subtotal", "tax_amount", "total_amount")


def _changed_fields(target) -> list[str]:
    """Column attributes with pending changes, audit metadata excluded."""
    state = inspect(target)
    return [
        attr.key
        for attr in state.mapper.column_attrs
        if attr.key not in _AUDIT_FIELDS and state.attrs[attr.key].history.has_changes()
    ]


def _previous_value(target, key: str):
    """The value as loaded from the database, before pending changes."""
    history = inspect(target).attrs[key].history
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return getattr(target, key)


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =========================================================================
# Append-only records
# =========================================================================


def _append_only_models() -> dict[type, str]:
    from erp_modules.ap.orm import VendorPaymentModel
    from erp_modules.ar.orm import (
        ARPaymentModel,
        BadDebtProvisionModel,
        CreditNoteModel,
        DebitNoteModel,
        InvoiceHistoryModel,
        InvoicePaymentModel,
    )
    from erp_modules.inventory.orm import StockMovementLogModel

    return {
        InvoicePaymentModel: "InvoicePayment",
        ARPaymentModel: "ARPayment",
        VendorPaymentModel: "VendorPayment",
        CreditNoteModel: "CreditNote",
        DebitNoteModel: "DebitNote",
        BadDebtProvisionModel: "BadDebtProvision",
        InvoiceHistoryModel: "InvoiceHistory",
        StockMovementLogModel: "StockMovementLog",
    }


def _check_append_only_update(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        entity_type = mapper.class_.__name__.removesuffix("Model")
        _block(
            entity_type, target, "UPDATE",
            f"{entity_type} records are append-only (attempted to change '{changed[0]}')",
            field=changed[0],
        )


def _check_append_only_delete(mapper, connection, target):
    entity_type = mapper.class_.__name__.removesuffix("Model")
    _block(entity_type, target, "DELETE", f"{entity_type} records cannot be deleted")


# =========================================================================
# Invoices
# =========================================================================


def _check_invoice_update(mapper, connection, target):
    """Amounts are frozen once the invoice has left DRAFT."""
    if _previous_value(target, "status") == "draft":
        return
    for key in _INVOICE_AMOUNT_FIELDS:
        if inspect(target).attrs[key].history.has_changes():
            _block(
                "Invoice", target, "UPDATE",
                f"Cannot modify '{key}' on a posted invoice",
                field=key,
            )


def _check_invoice_delete(mapper, connection, target):
    """An invoice that has received money is never physically deleted."""
    from erp_modules.ar.orm import ARPaymentModel, InvoicePaymentModel

    receipts = connection.execute(
        select(func.count()).select_from(InvoicePaymentModel)
        .where(InvoicePaymentModel.invoice_id == target.id)
    ).scalar_one()
    payments = connection.execute(
        select(func.count()).select_from(ARPaymentModel)
        .where(ARPaymentModel.invoice_id == target.id)
    ).scalar_one()
    if receipts or payments:
        _block("Invoice", target, "DELETE", "Cannot delete an invoice that has payments")


# =========================================================================
# Reconciliation sessions
# =========================================================================


def _check_reconciliation_update(mapper, connection, target):
    """A COMPLETED session is frozen; the PENDING -> COMPLETED write is allowed."""
    if _previous_value(target, "status") != "completed":
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "StockReconciliation", target, "UPDATE",
            f"Cannot modify '{changed[0]}' on a completed reconciliation",
            field=changed[0],
        )


def _check_reconciliation_delete(mapper, connection, target):
    if _previous_value(target, "status") == "completed":
        _block("StockReconciliation", target, "DELETE", "Cannot delete a completed reconciliation")


def _session_is_completed(connection, reconciliation_id) -> bool:
    from erp_modules.inventory.orm import StockReconciliationModel

    status = connection.execute(
        select(StockReconciliationModel.status)
        .where(StockReconciliationModel.id == reconciliation_id)
    ).scalar_one_or_none()
    return status == "completed"


def _check_reconciliation_item_update(mapper, connection, target):
    if _changed_fields(target) and _session_is_completed(connection, target.reconciliation_id):
        _block(
            "ReconciliationItem", target, "UPDATE",
            "Items of a completed reconciliation are frozen",
        )


def _check_reconciliation_item_delete(mapper, connection, target):
    if _session_is_completed(connection, target.reconciliation_id):
        _block(
            "ReconciliationItem", target, "DELETE",
            "Items of a completed reconciliation cannot be deleted",
        )


# =========================================================================
# Registration
# =========================================================================


def _listener_table() -> list[tuple[type, str, object]]:
    from erp_modules.ar.orm import InvoiceModel
    from erp_modules.inventory.orm import ReconciliationItemModel, StockReconciliationModel

    table: list[tuple[type, str, object]] = []
    for model in _append_only_models():
        table.append((model, "before_update", _check_append_only_update))
        table.append((model, "before_delete", _check_append_only_delete))
    table += [
        (InvoiceModel, "before_update", _check_invoice_update),
        (InvoiceModel, "before_delete", _check_invoice_delete),
        (StockReconciliationModel, "before_update", _check_reconciliation_update),
        (StockReconciliationModel, "before_delete", _check_reconciliation_delete),
        (ReconciliationItemModel, "before_update", _check_reconciliation_item_update),
        (ReconciliationItemModel, "before_delete", _check_reconciliation_item_delete),
    ]
    return table


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent.  Call after the module ORM models are importable and
    before any database writes.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to bypass the rules.
    """
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
