"""
Accounts Payable ORM Models (``erp_modules.ap.orm``).

SQLAlchemy persistence for suppliers, vendor invoices and vendor
payments.  Vendor payments are append-only (see
``erp_kernel.db.immutability``).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase
from erp_kernel.db.types import round_money


class SupplierModel(TrackedBase):
    __tablename__ = "ap_suppliers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_ap_suppliers_code"),
    )

    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def to_dto(self):
        from erp_modules.ap.models import Supplier

        return Supplier(id=self.id, code=self.code, name=self.name)

    def __repr__(self) -> str:
        return f"<SupplierModel {self.code}: {self.name}>"


class VendorInvoiceModel(TrackedBase):
    """
    ORM model for supplier bills.

    Guarantees:
        - (supplier_id, invoice_number) is unique; suppliers number their
          own bills, so the number alone is not.
        - balance = max(0, total_amount - paid_amount), maintained by
          ``PayablesService.record_payment`` under a row lock.
    """

    __tablename__ = "ap_vendor_invoices"

    __table_args__ = (
        UniqueConstraint(
            "supplier_id", "invoice_number", name="uq_ap_vendor_invoices_supplier_number",
        ),
        Index("idx_ap_vendor_invoices_status", "status"),
        Index("idx_ap_vendor_invoices_due_date", "due_date"),
    )

    supplier_id: Mapped[UUID] = mapped_column(
        ForeignKey("ap_suppliers.id"), nullable=False
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="open")
    purchase_order_id: Mapped[UUID | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    supplier: Mapped["SupplierModel"] = relationship()

    def to_dto(self):
        from erp_modules.ap.models import VendorInvoice, VendorInvoiceStatus

        return VendorInvoice(
            id=self.id,
            supplier_id=self.supplier_id,
            supplier_name=self.supplier.name,
            invoice_number=self.invoice_number,
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            total_amount=round_money(self.total_amount),
            paid_amount=round_money(self.paid_amount),
            balance=round_money(self.balance),
            status=VendorInvoiceStatus(self.status),
            purchase_order_id=self.purchase_order_id,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<VendorInvoiceModel {self.invoice_number} [{self.status}]>"


class VendorPaymentModel(TrackedBase):
    """Payment to a supplier.  Append-only."""

    __tablename__ = "ap_vendor_payments"

    __table_args__ = (
        Index("idx_ap_vendor_payments_supplier_id", "supplier_id"),
        Index("idx_ap_vendor_payments_invoice_id", "invoice_id"),
    )

    supplier_id: Mapped[UUID] = mapped_column(
        ForeignKey("ap_suppliers.id"), nullable=False
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ap_vendor_invoices.id"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from erp_modules.ap.models import VendorPayment

        return VendorPayment(
            id=self.id,
            supplier_id=self.supplier_id,
            invoice_id=self.invoice_id,
            amount=round_money(self.amount),
            payment_date=self.payment_date,
            method=self.method,
            reference=self.reference,
            notes=self.notes,
        )


class ExpenseModel(TrackedBase):
    """
    Operating expense awaiting or past review.

    Mutable only through ``PayablesService.update_expense_status``, which
    moves a PENDING row to APPROVED or REJECTED exactly once.
    """

    __tablename__ = "ap_expenses"

    __table_args__ = (
        Index("idx_ap_expenses_status", "status"),
        Index("idx_ap_expenses_category", "category"),
        Index("idx_ap_expenses_expense_date", "expense_date"),
    )

    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    supplier_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("ap_suppliers.id"), nullable=True
    )
    vendor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    approver_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from erp_modules.ap.models import Expense, ExpenseStatus

        return Expense(
            id=self.id,
            category=self.category,
            amount=round_money(self.amount),
            expense_date=self.expense_date,
            description=self.description,
            status=ExpenseStatus(self.status),
            supplier_id=self.supplier_id,
            vendor_name=self.vendor_name,
            approver_id=self.approver_id,
            approval_date=self.approval_date,
            rejection_reason=self.rejection_reason,
        )

    def __repr__(self) -> str:
        return f"<ExpenseModel {self.category} {self.amount} [{self.status}]>"
