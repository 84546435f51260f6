"""
Invoice Tracking Service (``erp_modules.ar.tracking``).

Responsibility
--------------
Moves invoices through the non-payment part of their lifecycle (sent,
viewed, overdue, cancelled, void) and exposes the invoice's history and
receipts.

Architecture position
---------------------
**Modules layer** -- owns its transaction boundary through a
``UnitOfWork``.  Payment-driven transitions (PARTIALLY_PAID, PAID) belong
to ``erp_modules.ar.payments`` and are rejected here.

Invariants enforced
-------------------
* Terminal states (PAID, CANCELLED, VOID) never change.
* PARTIALLY_PAID and PAID are only reachable by applying payments.
* An invoice that has received money cannot be cancelled or voided.
* ``sent_at`` and ``viewed_at`` are stamped once.
* Status never moves backward from PARTIALLY_PAID.
* Every change appends a STATUS_CHANGED history entry in the same
  transaction.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.transaction import UnitOfWork
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import InvalidStateError, NotFoundError
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules.ar.models import (
    HistoryAction,
    Invoice,
    InvoiceHistoryEntry,
    InvoicePayment,
    InvoiceStatus,
)
from erp_modules.ar.orm import InvoiceHistoryModel, InvoiceModel, InvoicePaymentModel
from erp_modules.ar.payments import lock_invoice, record_history

logger = get_logger("modules.ar.tracking")

_S = InvoiceStatus

ALLOWED_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    _S.DRAFT: frozenset({_S.PENDING, _S.SENT, _S.CANCELLED, _S.VOID}),
    _S.PENDING: frozenset({_S.SENT, _S.VIEWED, _S.OVERDUE, _S.CANCELLED, _S.VOID}),
    _S.SENT: frozenset({_S.VIEWED, _S.OVERDUE, _S.CANCELLED, _S.VOID}),
    _S.VIEWED: frozenset({_S.OVERDUE, _S.CANCELLED, _S.VOID}),
    _S.OVERDUE: frozenset({_S.CANCELLED, _S.VOID}),
    _S.PARTIALLY_PAID: frozenset(),
    _S.PAID: frozenset(),
    _S.CANCELLED: frozenset(),
    _S.VOID: frozenset(),
}

# PARTIALLY_PAID always carries payments, so it never qualifies
_OVERDUE_CANDIDATES = (
    _S.PENDING.value,
    _S.SENT.value,
    _S.VIEWED.value,
)


class InvoiceTrackingService:
    """Invoice status transitions and invoice-level reads."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        unit_of_work: UnitOfWork | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._uow = unit_of_work or UnitOfWork(session)

    def _transition(
        self,
        invoice: InvoiceModel,
        new_status: InvoiceStatus,
        actor_id: UUID,
        notes: str | None,
    ) -> bool:
        """Apply one checked transition; returns False for a same-status no-op."""
        current = InvoiceStatus(invoice.status)
        if new_status is current:
            return False
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStateError(
                "Invoice", invoice.id, current.value, f"change status to {new_status.value}",
            )
        if new_status in (_S.CANCELLED, _S.VOID) and invoice.paid_amount > 0:
            raise InvalidStateError(
                "Invoice", invoice.id, current.value,
                f"change status to {new_status.value} after payments",
            )

        now = self._clock.now()
        if new_status is _S.SENT and invoice.sent_at is None:
            invoice.sent_at = now
        if new_status is _S.VIEWED and invoice.viewed_at is None:
            invoice.viewed_at = now

        invoice.status = new_status.value
        invoice.updated_by_id = actor_id

        description = f"Status changed from {current.value} to {new_status.value}"
        if notes:
            description = f"{description}: {notes}"
        record_history(
            self._session,
            invoice,
            HistoryAction.STATUS_CHANGED,
            description,
            actor_id,
            old_value=current.value,
            new_value=new_status.value,
        )
        return True

    def update_status(
        self,
        invoice_id: UUID,
        status: InvoiceStatus,
        actor_id: UUID,
        notes: str | None = None,
    ) -> Invoice:
        """
        Change an invoice's status.

        Raises:
            NotFoundError: unknown invoice.
            InvalidStateError: transition not allowed from the current
                status, or a cancel/void of an invoice with payments.
        """
        status = InvoiceStatus(status)
        with LogContext.bind(invoice_id=str(invoice_id), actor_id=str(actor_id)):
            with self._uow.atomic("update_invoice_status") as session:
                invoice = lock_invoice(session, invoice_id)
                old_status = invoice.status
                changed = self._transition(invoice, status, actor_id, notes)
                session.flush()
                result = invoice.to_dto()

            if changed:
                logger.info("invoice_status_changed", extra={
                    "old_status": old_status,
                    "new_status": status.value,
                })
            return result

    def mark_overdue(self, as_of: date, actor_id: UUID) -> list[Invoice]:
        """
        Move unpaid invoices whose due date is before ``as_of`` to OVERDUE.

        Invoices that already carry payments keep their status.

        Returns:
            The invoices that changed, ordered by due date.
        """
        with self._uow.atomic("mark_overdue") as session:
            candidates = session.execute(
                select(InvoiceModel)
                .where(
                    InvoiceModel.status.in_(_OVERDUE_CANDIDATES),
                    InvoiceModel.due_date.is_not(None),
                    InvoiceModel.due_date < as_of,
                    InvoiceModel.paid_amount == 0,
                )
                .order_by(InvoiceModel.due_date, InvoiceModel.invoice_number)
                .with_for_update()
            ).scalars().all()

            changed = []
            for invoice in candidates:
                if self._transition(invoice, _S.OVERDUE, actor_id, f"due {invoice.due_date}"):
                    changed.append(invoice)
            session.flush()
            result = [invoice.to_dto() for invoice in changed]

        logger.info("invoices_marked_overdue", extra={
            "as_of": as_of.isoformat(),
            "count": len(result),
        })
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self._session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice.to_dto()

    def get_history(self, invoice_id: UUID) -> list[InvoiceHistoryEntry]:
        """History entries of an invoice, oldest first."""
        self.get_invoice(invoice_id)
        rows = self._session.execute(
            select(InvoiceHistoryModel)
            .where(InvoiceHistoryModel.invoice_id == invoice_id)
            .order_by(InvoiceHistoryModel.entry_seq)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def get_payments(self, invoice_id: UUID) -> list[InvoicePayment]:
        """Receipts recorded against an invoice, by receipt number."""
        self.get_invoice(invoice_id)
        rows = self._session.execute(
            select(InvoicePaymentModel)
            .where(InvoicePaymentModel.invoice_id == invoice_id)
            .order_by(InvoicePaymentModel.receipt_number)
        ).scalars().all()
        return [row.to_dto() for row in rows]
