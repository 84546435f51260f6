"""
Receivables Service (``erp_modules.ar.service``).

Responsibility
--------------
Write-side operations on customer accounts other than invoice payment
application: customers, invoice creation, customer (AR) payments,
credit/debit notes, bad-debt provisions and collection follow-ups.

Architecture position
---------------------
**Modules layer** -- owns its transaction boundary through a
``UnitOfWork``.  A customer payment linked to an invoice goes through
the same ``lock_invoice`` / ``apply_amount_to_invoice`` helpers as the
payment engine.

Invariants enforced
-------------------
* ``invoice.total_amount = subtotal + tax_amount`` with every money
  figure rounded to 2 places (ROUND_HALF_UP) exactly once.
* A new invoice starts with ``paid_amount = 0`` and ``balance = total``.
* Notes and provisions never touch an invoice's ``paid_amount``; they
  only appear on the account ledger.
* Document numbers come from locked sequence counters, never from
  counting rows.

Failure modes
-------------
* ``ValidationError``   -- empty item list, non-positive amounts, blank
  reason or method, float input.
* ``NotFoundError``     -- unknown customer or invoice.
* ``ValidationError``   -- invoice linked to a payment or note belongs to
  another customer.
* Payment-side errors from ``apply_amount_to_invoice`` when an AR payment
  is linked to an invoice.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_config.schema import BillingSettings
from erp_kernel.db.transaction import UnitOfWork
from erp_kernel.db.types import round_money, to_decimal
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import InvalidStateError, NotFoundError, ValidationError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.services.sequence_service import SequenceService
from erp_modules.ar.models import (
    ARPayment,
    BadDebtProvision,
    CreditNote,
    Customer,
    DebitNote,
    FollowUp,
    FollowUpStatus,
    HistoryAction,
    Invoice,
    InvoiceLineInput,
    InvoiceStatus,
)
from erp_modules.ar.orm import (
    ARPaymentModel,
    BadDebtProvisionModel,
    CreditNoteModel,
    CustomerModel,
    DebitNoteModel,
    FollowUpModel,
    InvoiceItemModel,
    InvoiceModel,
)
from erp_modules.ar.payments import (
    apply_amount_to_invoice,
    lock_invoice,
    record_history,
    validate_amount,
)

logger = get_logger("modules.ar.service")


def format_document_number(prefix: str, period: str, sequence: int) -> str:
    """``INV-202401-0001``: prefix, year+month, 4-digit sequence."""
    return f"{prefix}-{period}-{sequence:04d}"


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(field, "must not be blank")
    return value.strip()


class ReceivablesService:
    """
    Customer account operations.

    Every public write method is one unit of work.
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

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_number(self, family: str, prefix: str, on_date: date) -> str:
        period = on_date.strftime("%Y%m")
        seq = self._sequences.next_in_period(family, period)
        return format_document_number(prefix, period, seq)

    def _get_customer(self, customer_id: UUID) -> CustomerModel:
        customer = self._session.get(CustomerModel, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    def _get_customer_invoice(self, customer_id: UUID, invoice_id: UUID) -> InvoiceModel:
        invoice = self._session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        if invoice.customer_id != customer_id:
            raise ValidationError("invoice_id", "invoice belongs to a different customer")
        return invoice

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def create_customer(
        self,
        code: str,
        name: str,
        actor_id: UUID,
        credit_limit: Decimal | int | str | None = None,
    ) -> Customer:
        code = _require_text(code, "code")
        name = _require_text(name, "name")
        limit = validate_amount(credit_limit, "credit_limit") if credit_limit is not None else None

        try:
            with self._uow.atomic("create_customer") as session:
                customer = CustomerModel(
                    code=code,
                    name=name,
                    credit_limit=limit,
                    created_by_id=actor_id,
                )
                session.add(customer)
                session.flush()
                result = customer.to_dto()
        except IntegrityError as exc:
            raise ValidationError("code", f"customer code '{code}' already exists") from exc

        logger.info("customer_created", extra={"customer_id": str(result.id), "code": code})
        return result

    def update_credit_limit(
        self,
        customer_id: UUID,
        credit_limit: Decimal | int | str | None,
        actor_id: UUID,
    ) -> Customer:
        """Set or clear (``None``) a customer's credit limit."""
        limit = validate_amount(credit_limit, "credit_limit") if credit_limit is not None else None

        with self._uow.atomic("update_credit_limit"):
            customer = self._get_customer(customer_id)
            old_limit = customer.credit_limit
            customer.credit_limit = limit
            customer.updated_by_id = actor_id
            self._session.flush()
            result = customer.to_dto()

        logger.info("customer_credit_limit_updated", extra={
            "customer_id": str(customer_id),
            "old_limit": str(old_limit) if old_limit is not None else None,
            "new_limit": str(limit) if limit is not None else None,
        })
        return result

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        customer_id: UUID,
        items: Sequence[InvoiceLineInput],
        invoice_date: date,
        actor_id: UUID,
        due_date: date | None = None,
        tax_rate: Decimal | str | None = None,
        notes: str | None = None,
        draft: bool = False,
    ) -> Invoice:
        """
        Create an invoice from its lines.

        Each line total is ``round(quantity * unit_price)``; tax is the
        configured default rate unless ``tax_rate`` is given.  The new
        invoice is PENDING (or DRAFT when ``draft``), with
        ``balance = total_amount`` and a CREATED history entry.
        """
        if not items:
            raise ValidationError("items", "an invoice needs at least one item")

        if tax_rate is None:
            rate = self._settings.default_tax_rate
        else:
            try:
                rate = to_decimal(tax_rate)
            except (TypeError, InvalidOperation) as exc:
                raise ValidationError("tax_rate", f"not an exact decimal rate: {tax_rate!r}") from exc
            if not rate.is_finite():
                raise ValidationError("tax_rate", "must be a finite number")
        if rate < 0:
            raise ValidationError("tax_rate", "must not be negative")

        lines: list[tuple[str, Decimal, Decimal, Decimal]] = []
        for index, item in enumerate(items, start=1):
            description = _require_text(item.description, f"items[{index}].description")
            try:
                quantity = to_decimal(item.quantity)
                unit_price = to_decimal(item.unit_price)
            except (TypeError, InvalidOperation) as exc:
                raise ValidationError(f"items[{index}]", "quantity and unit_price must be exact decimals") from exc
            if quantity <= 0:
                raise ValidationError(f"items[{index}].quantity", "must be greater than zero")
            if unit_price < 0:
                raise ValidationError(f"items[{index}].unit_price", "must not be negative")
            lines.append((description, quantity, unit_price, round_money(quantity * unit_price)))

        subtotal = round_money(sum((line[3] for line in lines), Decimal("0")))
        tax_amount = round_money(subtotal * rate)
        total = subtotal + tax_amount
        if total <= 0:
            raise ValidationError("items", "invoice total must be greater than zero")

        if due_date is None:
            due_date = invoice_date + timedelta(days=self._settings.default_payment_terms_days)
        if due_date < invoice_date:
            raise ValidationError("due_date", "must not precede the invoice date")

        status = InvoiceStatus.DRAFT if draft else InvoiceStatus.PENDING

        with LogContext.bind(actor_id=str(actor_id)):
            with self._uow.atomic("create_invoice") as session:
                customer = self._get_customer(customer_id)
                invoice = InvoiceModel(
                    invoice_number=self._next_number(
                        SequenceService.INVOICE, self._settings.invoice_prefix, invoice_date,
                    ),
                    customer_id=customer.id,
                    customer_name=customer.name,
                    invoice_date=invoice_date,
                    due_date=due_date,
                    subtotal=subtotal,
                    tax_amount=tax_amount,
                    total_amount=total,
                    paid_amount=Decimal("0"),
                    balance=total,
                    status=status.value,
                    is_locked=False,
                    notes=notes,
                    created_by_id=actor_id,
                )
                invoice.items = [
                    InvoiceItemModel(
                        line_number=number,
                        description=description,
                        quantity=quantity,
                        unit_price=unit_price,
                        total_price=line_total,
                        created_by_id=actor_id,
                    )
                    for number, (description, quantity, unit_price, line_total)
                    in enumerate(lines, start=1)
                ]
                session.add(invoice)
                session.flush()

                record_history(
                    session,
                    invoice,
                    HistoryAction.CREATED,
                    f"Invoice {invoice.invoice_number} created for {total}",
                    actor_id,
                    new_value=status.value,
                )
                result = invoice.to_dto()

        logger.info("invoice_created", extra={
            "invoice_id": str(result.id),
            "invoice_number": result.invoice_number,
            "customer_id": str(customer_id),
            "total_amount": str(result.total_amount),
            "status": result.status.value,
        })
        return result

    # ------------------------------------------------------------------
    # Customer payments
    # ------------------------------------------------------------------

    def record_payment(
        self,
        customer_id: UUID,
        amount: Decimal | int | str,
        method: str,
        payment_date: date,
        actor_id: UUID,
        invoice_id: UUID | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> ARPayment:
        """
        Record a customer payment.

        Without ``invoice_id`` the payment is unapplied: it reduces the
        account balance on the ledger but no invoice.  With an
        ``invoice_id`` the invoice is locked and updated under the same
        rules as ``PaymentApplicationService.apply_payment``.
        """
        amount = validate_amount(amount)
        method = _require_text(method, "method")

        with LogContext.bind(actor_id=str(actor_id)):
            with self._uow.atomic("record_ar_payment") as session:
                self._get_customer(customer_id)

                old_status = new_status = None
                if invoice_id is not None:
                    invoice = lock_invoice(session, invoice_id)
                    if invoice.customer_id != customer_id:
                        raise ValidationError("invoice_id", "invoice belongs to a different customer")
                    old_status, new_status = apply_amount_to_invoice(invoice, amount, self._clock)
                    invoice.updated_by_id = actor_id

                payment = ARPaymentModel(
                    customer_id=customer_id,
                    invoice_id=invoice_id,
                    amount=amount,
                    method=method,
                    payment_date=payment_date,
                    reference=reference,
                    notes=notes,
                    created_by_id=actor_id,
                )
                session.add(payment)
                session.flush()

                if invoice_id is not None:
                    record_history(
                        session,
                        invoice,
                        HistoryAction.PAYMENT_RECEIVED,
                        f"Payment of {amount} received via {method}",
                        actor_id,
                        old_value=old_status.value,
                        new_value=new_status.value,
                    )
                result = payment.to_dto()

        logger.info("ar_payment_recorded", extra={
            "payment_id": str(result.id),
            "customer_id": str(customer_id),
            "invoice_id": str(invoice_id) if invoice_id else None,
            "amount": str(amount),
        })
        return result

    # ------------------------------------------------------------------
    # Notes and provisions
    # ------------------------------------------------------------------

    def issue_credit_note(
        self,
        customer_id: UUID,
        amount: Decimal | int | str,
        reason: str,
        note_date: date,
        actor_id: UUID,
        invoice_id: UUID | None = None,
    ) -> CreditNote:
        amount = validate_amount(amount)
        reason = _require_text(reason, "reason")

        with self._uow.atomic("issue_credit_note") as session:
            self._get_customer(customer_id)
            if invoice_id is not None:
                self._get_customer_invoice(customer_id, invoice_id)
            note = CreditNoteModel(
                note_number=self._next_number(
                    SequenceService.CREDIT_NOTE, self._settings.credit_note_prefix, note_date,
                ),
                customer_id=customer_id,
                invoice_id=invoice_id,
                amount=amount,
                reason=reason,
                note_date=note_date,
                created_by_id=actor_id,
            )
            session.add(note)
            session.flush()
            result = note.to_dto()

        logger.info("credit_note_issued", extra={
            "note_number": result.note_number,
            "customer_id": str(customer_id),
            "amount": str(amount),
        })
        return result

    def issue_debit_note(
        self,
        customer_id: UUID,
        amount: Decimal | int | str,
        reason: str,
        note_date: date,
        actor_id: UUID,
        invoice_id: UUID | None = None,
    ) -> DebitNote:
        amount = validate_amount(amount)
        reason = _require_text(reason, "reason")

        with self._uow.atomic("issue_debit_note") as session:
            self._get_customer(customer_id)
            if invoice_id is not None:
                self._get_customer_invoice(customer_id, invoice_id)
            note = DebitNoteModel(
                note_number=self._next_number(
                    SequenceService.DEBIT_NOTE, self._settings.debit_note_prefix, note_date,
                ),
                customer_id=customer_id,
                invoice_id=invoice_id,
                amount=amount,
                reason=reason,
                note_date=note_date,
                created_by_id=actor_id,
            )
            session.add(note)
            session.flush()
            result = note.to_dto()

        logger.info("debit_note_issued", extra={
            "note_number": result.note_number,
            "customer_id": str(customer_id),
            "amount": str(amount),
        })
        return result

    def provision_bad_debt(
        self,
        customer_id: UUID,
        amount: Decimal | int | str,
        provision_date: date,
        actor_id: UUID,
        notes: str | None = None,
    ) -> BadDebtProvision:
        """Record a provision; it reduces exposure and is never reversed here."""
        amount = validate_amount(amount)

        with self._uow.atomic("provision_bad_debt") as session:
            self._get_customer(customer_id)
            provision = BadDebtProvisionModel(
                customer_id=customer_id,
                amount=amount,
                provision_date=provision_date,
                notes=notes,
                created_by_id=actor_id,
            )
            session.add(provision)
            session.flush()
            result = provision.to_dto()

        logger.info("bad_debt_provisioned", extra={
            "customer_id": str(customer_id),
            "amount": str(amount),
        })
        return result

    # ------------------------------------------------------------------
    # Collection follow-ups
    # ------------------------------------------------------------------

    def create_follow_up(
        self,
        customer_id: UUID,
        due_date: date,
        actor_id: UUID,
        invoice_id: UUID | None = None,
        notes: str | None = None,
    ) -> FollowUp:
        """Schedule an OPEN follow-up; a linked invoice must be the customer's own."""
        with self._uow.atomic("create_follow_up") as session:
            self._get_customer(customer_id)
            if invoice_id is not None:
                self._get_customer_invoice(customer_id, invoice_id)
            follow_up = FollowUpModel(
                customer_id=customer_id,
                invoice_id=invoice_id,
                due_date=due_date,
                status=FollowUpStatus.OPEN.value,
                notes=notes,
                created_by_id=actor_id,
            )
            session.add(follow_up)
            session.flush()
            result = follow_up.to_dto()

        logger.info("follow_up_created", extra={
            "customer_id": str(customer_id),
            "invoice_id": str(invoice_id) if invoice_id else None,
            "due_date": due_date,
        })
        return result

    def close_follow_up(self, follow_up_id: UUID, actor_id: UUID) -> FollowUp:
        with self._uow.atomic("close_follow_up") as session:
            follow_up = session.execute(
                select(FollowUpModel)
                .where(FollowUpModel.id == follow_up_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if follow_up is None:
                raise NotFoundError("FollowUp", follow_up_id)
            if follow_up.status != FollowUpStatus.OPEN.value:
                raise InvalidStateError("FollowUp", follow_up.id, follow_up.status, "close")
            follow_up.status = FollowUpStatus.CLOSED.value
            follow_up.updated_by_id = actor_id
            session.flush()
            return follow_up.to_dto()

    def list_follow_ups(
        self,
        customer_id: UUID,
        status: FollowUpStatus | None = None,
    ) -> list[FollowUp]:
        """A customer's follow-ups, earliest due first."""
        stmt = select(FollowUpModel).where(FollowUpModel.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(FollowUpModel.status == status.value)
        rows = self._session.execute(
            stmt.order_by(FollowUpModel.due_date, FollowUpModel.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_customer(self, customer_id: UUID) -> Customer:
        return self._get_customer(customer_id).to_dto()

    def list_customers(self) -> list[Customer]:
        rows = self._session.execute(
            select(CustomerModel).order_by(CustomerModel.code)
        ).scalars().all()
        return [row.to_dto() for row in rows]
