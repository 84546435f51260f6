"""
Payment Application Engine (``erp_modules.ar.payments``).

Responsibility
--------------
Apply a payment amount against one invoice's outstanding balance:
create the receipt, advance paid_amount / balance / status and append
the PAYMENT_RECEIVED history entry, all in one transaction.

Architecture position
---------------------
**Modules layer** -- owns its transaction boundary through a
``UnitOfWork``.  The flush-only helpers ``lock_invoice``,
``apply_amount_to_invoice`` and ``record_history`` are shared with
``ReceivablesService`` and ``InvoiceTrackingService`` so every path
that touches an invoice's payment state follows the same rules.

Invariants enforced
-------------------
* ``balance == max(0, total_amount - paid_amount)`` after every write.
* ``paid_amount`` never exceeds ``total_amount``: the balance check reads
  the persisted paid_amount under ``SELECT ... FOR UPDATE`` in the same
  transaction as the update, so two concurrent payments serialize.
* A locked, PAID invoice rejects further payment.
* Status only moves forward: PENDING/SENT/VIEWED/OVERDUE ->
  PARTIALLY_PAID -> PAID.  ``paid_at`` is stamped once.
* The receipt, the invoice update and the history entry commit together
  or not at all.

Failure modes
-------------
* ``ValidationError``     -- non-positive amount, float, missing method.
* ``NotFoundError``       -- invoice does not exist.
* ``LockedInvoiceError``  -- invoice is fully paid and locked.
* ``InvalidStateError``   -- invoice is DRAFT, CANCELLED or VOID.
* ``OverpaymentError``    -- amount exceeds the remaining balance.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp_config.schema import BillingSettings
from erp_kernel.db.transaction import UnitOfWork
from erp_kernel.db.types import MONEY_DECIMAL_PLACES, round_money, to_decimal
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import (
    InvalidStateError,
    LockedInvoiceError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.services.sequence_service import SequenceService
from erp_modules.ar.models import (
    OPEN_INVOICE_STATUSES,
    HistoryAction,
    InvoicePayment,
    InvoiceStatus,
)
from erp_modules.ar.orm import InvoiceHistoryModel, InvoiceModel, InvoicePaymentModel

logger = get_logger("modules.ar.payments")


# =========================================================================
# Shared flush-only helpers
# =========================================================================


def validate_amount(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """Coerce and check a payment-like amount: positive, at most 2 decimals."""
    try:
        amount = to_decimal(value)
    except (TypeError, InvalidOperation) as exc:
        raise ValidationError(field, f"not an exact decimal amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(field, "must be a finite number")
    if amount <= 0:
        raise ValidationError(field, "must be greater than zero")
    # Trailing zeros are fine: stored values come back as Numeric(38, 9).
    rounded = round_money(amount)
    if amount != rounded:
        raise ValidationError(field, f"must have at most {MONEY_DECIMAL_PLACES} decimal places")
    return rounded


def lock_invoice(session: Session, invoice_id: UUID) -> InvoiceModel:
    """Read the invoice row under ``FOR UPDATE``; NotFoundError if missing."""
    invoice = session.execute(
        select(InvoiceModel)
        .where(InvoiceModel.id == invoice_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError("Invoice", invoice_id)
    return invoice


def apply_amount_to_invoice(
    invoice: InvoiceModel,
    amount: Decimal,
    clock: Clock,
) -> tuple[InvoiceStatus, InvoiceStatus]:
    """
    Check and apply ``amount`` to a locked invoice row.

    Returns:
        (old_status, new_status)
    """
    status = InvoiceStatus(invoice.status)

    if invoice.is_locked and status is InvoiceStatus.PAID:
        raise LockedInvoiceError(invoice.id)
    if status not in OPEN_INVOICE_STATUSES:
        raise InvalidStateError("Invoice", invoice.id, status.value, "apply payment to")

    balance = invoice.total_amount - invoice.paid_amount
    if amount > balance:
        raise OverpaymentError(invoice.id, amount, balance)

    invoice.paid_amount = invoice.paid_amount + amount
    invoice.balance = max(Decimal("0"), invoice.total_amount - invoice.paid_amount)

    if invoice.balance <= 0:
        new_status = InvoiceStatus.PAID
        if invoice.paid_at is None:
            invoice.paid_at = clock.now()
        invoice.is_locked = True
    elif invoice.paid_amount > 0:
        new_status = InvoiceStatus.PARTIALLY_PAID
    else:
        new_status = status
    invoice.status = new_status.value

    return status, new_status


def record_history(
    session: Session,
    invoice: InvoiceModel,
    action: HistoryAction,
    description: str,
    actor_id: UUID,
    old_value: str | None = None,
    new_value: str | None = None,
) -> InvoiceHistoryModel:
    """
    Append an invoice history row (flush-only).

    Callers hold the invoice row lock (or have just inserted the invoice),
    so reading the last ``entry_seq`` and adding one cannot race.
    """
    last_seq = session.execute(
        select(func.max(InvoiceHistoryModel.entry_seq))
        .where(InvoiceHistoryModel.invoice_id == invoice.id)
    ).scalar()
    entry = InvoiceHistoryModel(
        invoice_id=invoice.id,
        entry_seq=(last_seq or 0) + 1,
        action=action.value,
        description=description,
        old_value=old_value,
        new_value=new_value,
        created_by_id=actor_id,
    )
    session.add(entry)
    session.flush()
    return entry


def format_receipt_number(prefix: str, period: str, sequence: int) -> str:
    """``RCP-202401000007``: prefix, year+month, 6-digit sequence."""
    return f"{prefix}-{period}{sequence:06d}"


# =========================================================================
# Service
# =========================================================================


class PaymentApplicationService:
    """
    Applies payments to invoices.

    Transaction boundary: every ``apply_payment`` call is one unit of work;
    it commits on success and rolls back on any failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: BillingSettings | None = None,
        unit_of_work: UnitOfWork | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or BillingSettings()
        self._uow = unit_of_work or UnitOfWork(session)
        self._sequences = SequenceService(session)

    def _next_receipt_number(self) -> str:
        period = self._clock.now().strftime("%Y%m")
        seq = self._sequences.next_in_period(SequenceService.RECEIPT, period)
        return format_receipt_number(self._settings.receipt_prefix, period, seq)

    def apply_payment(
        self,
        invoice_id: UUID,
        amount: Decimal | int | str,
        method: str,
        payment_date: date,
        actor_id: UUID,
        reference: str | None = None,
        notes: str | None = None,
    ) -> InvoicePayment:
        """
        Apply ``amount`` to the invoice and return the created receipt.

        Input is validated before any persistence; the balance check and
        the balance update happen under the invoice row lock.  Identical
        requests are not deduplicated.
        """
        amount = validate_amount(amount)
        if not method or not method.strip():
            raise ValidationError("method", "payment method is required")
        if payment_date is None:
            raise ValidationError("payment_date", "payment date is required")

        with LogContext.bind(invoice_id=str(invoice_id), actor_id=str(actor_id)):
            logger.info("payment_application_started", extra={
                "amount": str(amount),
                "method": method,
            })

            with self._uow.atomic("apply_payment") as session:
                invoice = lock_invoice(session, invoice_id)
                old_status, new_status = apply_amount_to_invoice(invoice, amount, self._clock)

                payment = InvoicePaymentModel(
                    invoice_id=invoice.id,
                    receipt_number=self._next_receipt_number(),
                    amount=amount,
                    payment_method=method,
                    payment_date=payment_date,
                    reference=reference,
                    notes=notes,
                    created_by_id=actor_id,
                )
                session.add(payment)
                invoice.updated_by_id = actor_id
                session.flush()

                record_history(
                    session,
                    invoice,
                    HistoryAction.PAYMENT_RECEIVED,
                    f"Payment of {amount} received via {method}",
                    actor_id,
                    old_value=old_status.value,
                    new_value=payment.receipt_number,
                )
                result = payment.to_dto()

            logger.info("payment_applied", extra={
                "receipt_number": result.receipt_number,
                "amount": str(amount),
                "old_status": old_status.value,
                "new_status": new_status.value,
            })
            return result
