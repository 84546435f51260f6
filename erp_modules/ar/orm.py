"""
Accounts Receivable ORM Models (``erp_modules.ar.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the AR module.  Maps the frozen domain
dataclasses from ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``erp_kernel.db.base`` and
sibling ``models.py``.  MUST NOT be imported by ``erp_kernel`` (except the
lazy imports inside ``erp_kernel.db.immutability``).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase
from erp_kernel.db.types import round_money


# ---------------------------------------------------------------------------
# 1. CustomerModel
# ---------------------------------------------------------------------------


class CustomerModel(TrackedBase):
    """ORM model for customers.  ``code`` is unique."""

    __tablename__ = "ar_customers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_ar_customers_code"),
    )

    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    credit_limit: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        from erp_modules.ar.models import Customer

        return Customer(
            id=self.id,
            code=self.code,
            name=self.name,
            credit_limit=None if self.credit_limit is None else round_money(self.credit_limit),
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<CustomerModel {self.code}: {self.name}>"


# ---------------------------------------------------------------------------
# 2. InvoiceModel / InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for customer invoices.

    Guarantees:
        - invoice_number is unique (uq_ar_invoices_invoice_number).
        - customer_name is a point-in-time snapshot of the customer's name.
        - balance = max(0, total_amount - paid_amount), maintained by the
          payment engine inside the same transaction as paid_amount.
        - status stored as the enum value string.
    """

    __tablename__ = "ar_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_ar_invoices_invoice_number"),
        Index("idx_ar_invoices_customer_id", "customer_id"),
        Index("idx_ar_invoices_status", "status"),
        Index("idx_ar_invoices_invoice_date", "invoice_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=False
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceItemModel.line_number",
    )

    def to_dto(self):
        from erp_modules.ar.models import Invoice, InvoiceStatus

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            customer_id=self.customer_id,
            customer_name=self.customer_name,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            subtotal=round_money(self.subtotal),
            tax_amount=round_money(self.tax_amount),
            total_amount=round_money(self.total_amount),
            paid_amount=round_money(self.paid_amount),
            balance=round_money(self.balance),
            status=InvoiceStatus(self.status),
            is_locked=self.is_locked,
            sent_at=self.sent_at,
            viewed_at=self.viewed_at,
            paid_at=self.paid_at,
            notes=self.notes,
            items=tuple(item.to_dto() for item in self.items),
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} [{self.status}]>"


class InvoiceItemModel(TrackedBase):
    """ORM model for invoice line items."""

    __tablename__ = "ar_invoice_items"

    __table_args__ = (
        Index("idx_ar_invoice_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self):
        from erp_modules.ar.models import InvoiceItem

        return InvoiceItem(
            id=self.id,
            invoice_id=self.invoice_id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            total_price=self.total_price,
        )


# ---------------------------------------------------------------------------
# 3. Payments
# ---------------------------------------------------------------------------


class InvoicePaymentModel(TrackedBase):
    """
    Receipt recorded against a single invoice.  Append-only.

    Guarantees:
        - receipt_number is unique (uq_ar_invoice_payments_receipt_number).
        - amount > 0 (checked by the payment engine before insert).
    """

    __tablename__ = "ar_invoice_payments"

    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_ar_invoice_payments_receipt_number"),
        Index("idx_ar_invoice_payments_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=False
    )
    receipt_number: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from erp_modules.ar.models import InvoicePayment

        return InvoicePayment(
            id=self.id,
            invoice_id=self.invoice_id,
            receipt_number=self.receipt_number,
            amount=round_money(self.amount),
            payment_method=self.payment_method,
            payment_date=self.payment_date,
            reference=self.reference,
            notes=self.notes,
            received_by=self.created_by_id,
        )


class ARPaymentModel(TrackedBase):
    """Customer payment, optionally applied to one invoice.  Append-only."""

    __tablename__ = "ar_payments"

    __table_args__ = (
        Index("idx_ar_payments_customer_id", "customer_id"),
        Index("idx_ar_payments_invoice_id", "invoice_id"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=False
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from erp_modules.ar.models import ARPayment

        return ARPayment(
            id=self.id,
            customer_id=self.customer_id,
            invoice_id=self.invoice_id,
            amount=round_money(self.amount),
            method=self.method,
            payment_date=self.payment_date,
            reference=self.reference,
            notes=self.notes,
        )


# ---------------------------------------------------------------------------
# 4. Notes and provisions
# ---------------------------------------------------------------------------


class CreditNoteModel(TrackedBase):
    """Credit note issued to a customer.  Append-only."""

    __tablename__ = "ar_credit_notes"

    __table_args__ = (
        UniqueConstraint("note_number", name="uq_ar_credit_notes_note_number"),
        Index("idx_ar_credit_notes_customer_id", "customer_id"),
    )

    note_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=False
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    note_date: Mapped[date] = mapped_column(Date, nullable=False)

    def to_dto(self):
        from erp_modules.ar.models import CreditNote

        return CreditNote(
            id=self.id,
            note_number=self.note_number,
            customer_id=self.customer_id,
            invoice_id=self.invoice_id,
            amount=round_money(self.amount),
            reason=self.reason,
            note_date=self.note_date,
        )


class DebitNoteModel(TrackedBase):
    """Debit note issued to a customer.  Append-only."""

    __tablename__ = "ar_debit_notes"

    __table_args__ = (
        UniqueConstraint("note_number", name="uq_ar_debit_notes_note_number"),
        Index("idx_ar_debit_notes_customer_id", "customer_id"),
    )

    note_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=False
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    note_date: Mapped[date] = mapped_column(Date, nullable=False)

    def to_dto(self):
        from erp_modules.ar.models import DebitNote

        return DebitNote(
            id=self.id,
            note_number=self.note_number,
            customer_id=self.customer_id,
            invoice_id=self.invoice_id,
            amount=round_money(self.amount),
            reason=self.reason,
            note_date=self.note_date,
        )


class BadDebtProvisionModel(TrackedBase):
    """Bad-debt provision against a customer.  Append-only."""

    __tablename__ = "ar_bad_debt_provisions"

    __table_args__ = (
        Index("idx_ar_bad_debt_provisions_customer_id", "customer_id"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    provision_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from erp_modules.ar.models import BadDebtProvision

        return BadDebtProvision(
            id=self.id,
            customer_id=self.customer_id,
            amount=round_money(self.amount),
            provision_date=self.provision_date,
            notes=self.notes,
        )


class FollowUpModel(TrackedBase):
    """Collection follow-up; status goes OPEN -> CLOSED once."""

    __tablename__ = "ar_follow_ups"

    __table_args__ = (
        Index("idx_ar_follow_ups_customer_id", "customer_id"),
        Index("idx_ar_follow_ups_due_date", "due_date"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_customers.id"), nullable=False
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=True
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from erp_modules.ar.models import FollowUp, FollowUpStatus

        return FollowUp(
            id=self.id,
            customer_id=self.customer_id,
            due_date=self.due_date,
            status=FollowUpStatus(self.status),
            invoice_id=self.invoice_id,
            notes=self.notes,
        )


# ---------------------------------------------------------------------------
# 5. InvoiceHistoryModel
# ---------------------------------------------------------------------------


class InvoiceHistoryModel(TrackedBase):
    """Append-only audit trail of invoice mutations."""

    __tablename__ = "ar_invoice_history"

    __table_args__ = (
        Index("idx_ar_invoice_history_invoice_id", "invoice_id"),
        UniqueConstraint("invoice_id", "entry_seq", name="uq_ar_invoice_history_invoice_seq"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("ar_invoices.id"), nullable=False
    )
    # 1, 2, 3 ... per invoice; created_at alone cannot order same-instant rows.
    entry_seq: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    old_value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    new_value: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self):
        from erp_modules.ar.models import HistoryAction, InvoiceHistoryEntry

        return InvoiceHistoryEntry(
            id=self.id,
            invoice_id=self.invoice_id,
            entry_seq=self.entry_seq,
            action=HistoryAction(self.action),
            description=self.description,
            old_value=self.old_value,
            new_value=self.new_value,
            performed_by=self.created_by_id,
            created_at=self.created_at,
        )
