"""
Payables Service (``erp_modules.ap.service``).

Responsibility
--------------
Supplier bills and payments: create a bill, pay it (fully or in part,
or on account), and list what is still owed.  Operating expenses are
recorded here too, reviewed once, and reported per category.

Architecture position
---------------------
**Modules layer** -- owns its transaction boundary through a
``UnitOfWork``.  The payable account ledger itself is built by
``erp_services.ledger_service`` from these rows.

Invariants enforced
-------------------
* ``balance == max(0, total_amount - paid_amount)`` after every write.
* A payment never pushes ``paid_amount`` past ``total_amount``; the
  check runs against the bill row read ``FOR UPDATE``.
* Status moves OPEN -> PARTIAL -> PAID only.  VOID and PAID bills accept
  no payments.
* An expense is reviewed once: PENDING -> APPROVED or REJECTED.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_kernel.db.transaction import UnitOfWork
from erp_kernel.db.types import round_money
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_modules.ap.models import (
    OUTSTANDING_BILL_STATUSES,
    REVIEW_OUTCOMES,
    Expense,
    ExpenseCategoryTotal,
    ExpenseStatus,
    OutstandingPayables,
    Supplier,
    VendorInvoice,
    VendorInvoiceStatus,
    VendorPayment,
)
from erp_modules.ap.orm import ExpenseModel, SupplierModel, VendorInvoiceModel, VendorPaymentModel
from erp_modules.ar.payments import validate_amount

logger = get_logger("modules.ap.service")


def _expense_status(value: ExpenseStatus | str) -> ExpenseStatus:
    try:
        return ExpenseStatus(value)
    except ValueError as exc:
        raise ValidationError("status", f"unknown expense status: {value!r}") from exc


class PayablesService:
    """Supplier bills and payments."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        unit_of_work: UnitOfWork | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._uow = unit_of_work or UnitOfWork(session)

    def _get_supplier(self, supplier_id: UUID) -> SupplierModel:
        supplier = self._session.get(SupplierModel, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    def _lock_bill(self, invoice_id: UUID) -> VendorInvoiceModel:
        bill = self._session.execute(
            select(VendorInvoiceModel)
            .where(VendorInvoiceModel.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if bill is None:
            raise NotFoundError("VendorInvoice", invoice_id)
        return bill

    def create_supplier(self, code: str, name: str, actor_id: UUID) -> Supplier:
        if not code or not code.strip():
            raise ValidationError("code", "must not be blank")
        if not name or not name.strip():
            raise ValidationError("name", "must not be blank")
        try:
            with self._uow.atomic("create_supplier") as session:
                supplier = SupplierModel(code=code.strip(), name=name.strip(), created_by_id=actor_id)
                session.add(supplier)
                session.flush()
                result = supplier.to_dto()
        except IntegrityError as exc:
            raise ValidationError("code", f"supplier code '{code}' already exists") from exc
        logger.info("supplier_created", extra={"supplier_id": str(result.id), "code": result.code})
        return result

    def create_bill(
        self,
        supplier_id: UUID,
        invoice_number: str,
        invoice_date: date,
        total_amount: Decimal | int | str,
        actor_id: UUID,
        due_date: date | None = None,
        purchase_order_id: UUID | None = None,
        notes: str | None = None,
    ) -> VendorInvoice:
        """Record a supplier bill as OPEN with ``balance = total_amount``."""
        total = validate_amount(total_amount, "total_amount")
        if not invoice_number or not invoice_number.strip():
            raise ValidationError("invoice_number", "must not be blank")
        if due_date is not None and due_date < invoice_date:
            raise ValidationError("due_date", "must not precede the invoice date")

        try:
            with self._uow.atomic("create_bill") as session:
                self._get_supplier(supplier_id)
                bill = VendorInvoiceModel(
                    supplier_id=supplier_id,
                    invoice_number=invoice_number.strip(),
                    invoice_date=invoice_date,
                    due_date=due_date,
                    total_amount=total,
                    paid_amount=Decimal("0"),
                    balance=total,
                    status=VendorInvoiceStatus.OPEN.value,
                    purchase_order_id=purchase_order_id,
                    notes=notes,
                    created_by_id=actor_id,
                )
                session.add(bill)
                session.flush()
                result = bill.to_dto()
        except IntegrityError as exc:
            raise ValidationError(
                "invoice_number", f"bill '{invoice_number}' already recorded for this supplier",
            ) from exc

        logger.info("vendor_bill_created", extra={
            "vendor_invoice_id": str(result.id),
            "supplier_id": str(supplier_id),
            "total_amount": str(total),
        })
        return result

    def record_payment(
        self,
        supplier_id: UUID,
        amount: Decimal | int | str,
        payment_date: date,
        method: str,
        actor_id: UUID,
        invoice_id: UUID | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> VendorPayment:
        """
        Pay a supplier, optionally against one bill.

        Raises:
            ValidationError: bad amount or method, or the bill belongs to
                another supplier.
            NotFoundError: unknown supplier or bill.
            InvalidStateError: the bill is PAID or VOID.
            OverpaymentError: amount exceeds the bill's remaining balance.
        """
        amount = validate_amount(amount)
        if not method or not method.strip():
            raise ValidationError("method", "payment method is required")

        with LogContext.bind(actor_id=str(actor_id)):
            with self._uow.atomic("record_vendor_payment") as session:
                self._get_supplier(supplier_id)

                new_status = None
                if invoice_id is not None:
                    bill = self._lock_bill(invoice_id)
                    if bill.supplier_id != supplier_id:
                        raise ValidationError("invoice_id", "bill belongs to a different supplier")
                    status = VendorInvoiceStatus(bill.status)
                    if status not in OUTSTANDING_BILL_STATUSES:
                        raise InvalidStateError("VendorInvoice", bill.id, status.value, "pay")
                    remaining = bill.total_amount - bill.paid_amount
                    if amount > remaining:
                        raise OverpaymentError(bill.id, amount, remaining)

                    bill.paid_amount = bill.paid_amount + amount
                    bill.balance = max(Decimal("0"), bill.total_amount - bill.paid_amount)
                    new_status = (
                        VendorInvoiceStatus.PAID if bill.balance <= 0 else VendorInvoiceStatus.PARTIAL
                    )
                    bill.status = new_status.value
                    bill.updated_by_id = actor_id

                payment = VendorPaymentModel(
                    supplier_id=supplier_id,
                    invoice_id=invoice_id,
                    amount=amount,
                    payment_date=payment_date,
                    method=method.strip(),
                    reference=reference,
                    notes=notes,
                    created_by_id=actor_id,
                )
                session.add(payment)
                session.flush()
                result = payment.to_dto()

        logger.info("vendor_payment_recorded", extra={
            "payment_id": str(result.id),
            "supplier_id": str(supplier_id),
            "vendor_invoice_id": str(invoice_id) if invoice_id else None,
            "amount": str(amount),
            "new_status": new_status.value if new_status else None,
        })
        return result

    def get_outstanding_payables(self) -> OutstandingPayables:
        """OPEN and PARTIAL bills by due date; the total is the sum of balances."""
        rows = self._session.execute(
            select(VendorInvoiceModel)
            .where(VendorInvoiceModel.status.in_([s.value for s in OUTSTANDING_BILL_STATUSES]))
            .order_by(VendorInvoiceModel.due_date, VendorInvoiceModel.invoice_date)
        ).scalars().all()
        invoices = tuple(row.to_dto() for row in rows)
        total = sum((inv.balance for inv in invoices), Decimal("0"))
        return OutstandingPayables(invoices=invoices, total_outstanding=total)

    def get_supplier(self, supplier_id: UUID) -> Supplier:
        return self._get_supplier(supplier_id).to_dto()

    # ------------------------------------------------------------------
    # Operating expenses
    # ------------------------------------------------------------------

    def create_expense(
        self,
        category: str,
        amount: Decimal | int | str,
        expense_date: date,
        description: str,
        actor_id: UUID,
        supplier_id: UUID | None = None,
        vendor_name: str | None = None,
        status: ExpenseStatus = ExpenseStatus.PENDING,
    ) -> Expense:
        """Record an expense, PENDING review unless imported with another status."""
        amount = validate_amount(amount)
        if not category or not category.strip():
            raise ValidationError("category", "must not be blank")
        if not description or not description.strip():
            raise ValidationError("description", "must not be blank")
        status = _expense_status(status)

        with self._uow.atomic("create_expense") as session:
            if supplier_id is not None:
                self._get_supplier(supplier_id)
            expense = ExpenseModel(
                category=category.strip(),
                amount=amount,
                expense_date=expense_date,
                description=description.strip(),
                supplier_id=supplier_id,
                vendor_name=vendor_name,
                status=status.value,
                created_by_id=actor_id,
            )
            session.add(expense)
            session.flush()
            result = expense.to_dto()

        logger.info("expense_created", extra={
            "expense_id": str(result.id),
            "category": result.category,
            "amount": str(amount),
            "status": status.value,
        })
        return result

    def list_expenses(
        self,
        status: ExpenseStatus | str | None = None,
        category: str | None = None,
    ) -> list[Expense]:
        """Expenses, newest first, optionally filtered by status and category."""
        stmt = select(ExpenseModel)
        if status is not None:
            stmt = stmt.where(ExpenseModel.status == _expense_status(status).value)
        if category is not None:
            stmt = stmt.where(ExpenseModel.category == category)
        rows = self._session.execute(
            stmt.order_by(ExpenseModel.expense_date.desc(), ExpenseModel.created_at.desc())
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def update_expense_status(
        self,
        expense_id: UUID,
        status: ExpenseStatus | str,
        approver_id: UUID,
        rejection_reason: str | None = None,
    ) -> Expense:
        """
        Approve or reject a PENDING expense, stamping approver and time.

        Raises:
            ValidationError: ``status`` is not APPROVED or REJECTED.
            NotFoundError: unknown expense.
            InvalidStateError: the expense was already reviewed or paid.
        """
        outcome = _expense_status(status)
        if outcome not in REVIEW_OUTCOMES:
            raise ValidationError("status", "an expense review must approve or reject")

        with LogContext.bind(actor_id=str(approver_id)):
            with self._uow.atomic("review_expense") as session:
                expense = session.execute(
                    select(ExpenseModel)
                    .where(ExpenseModel.id == expense_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if expense is None:
                    raise NotFoundError("Expense", expense_id)
                if expense.status != ExpenseStatus.PENDING.value:
                    raise InvalidStateError("Expense", expense.id, expense.status, "review")

                expense.status = outcome.value
                expense.approver_id = approver_id
                expense.approval_date = self._clock.now()
                expense.rejection_reason = (
                    rejection_reason if outcome is ExpenseStatus.REJECTED else None
                )
                expense.updated_by_id = approver_id
                session.flush()
                result = expense.to_dto()

            logger.info("expense_reviewed", extra={
                "expense_id": str(expense_id),
                "status": outcome.value,
            })
            return result

    def get_expense_report(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ExpenseCategoryTotal]:
        """Total expense amount per category within the inclusive date range."""
        stmt = select(ExpenseModel.category, ExpenseModel.amount)
        if start_date is not None:
            stmt = stmt.where(ExpenseModel.expense_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(ExpenseModel.expense_date <= end_date)
        # Summed here, not in SQL: SQLite aggregates NUMERIC as float.
        totals: dict[str, Decimal] = {}
        for category, amount in self._session.execute(stmt).all():
            totals[category] = totals.get(category, Decimal("0")) + amount
        return [
            ExpenseCategoryTotal(category=category, amount=round_money(totals[category]))
            for category in sorted(totals)
        ]
