"""
Accounts Payable Domain Models (``erp_modules.ap.models``).

Frozen value objects for suppliers, vendor invoices (bills) and vendor
payments.  Pure data with zero I/O; monetary fields are ``Decimal``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class VendorInvoiceStatus(Enum):
    """Bill lifecycle: OPEN -> PARTIAL -> PAID; VOID is excluded everywhere."""
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"
    VOID = "void"


OUTSTANDING_BILL_STATUSES: frozenset[VendorInvoiceStatus] = frozenset({
    VendorInvoiceStatus.OPEN,
    VendorInvoiceStatus.PARTIAL,
})


@dataclass(frozen=True)
class Supplier:
    id: UUID
    code: str
    name: str


@dataclass(frozen=True)
class VendorInvoice:
    """A supplier bill we owe."""
    id: UUID
    supplier_id: UUID
    supplier_name: str
    invoice_number: str
    invoice_date: date
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: VendorInvoiceStatus
    due_date: date | None = None
    purchase_order_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class VendorPayment:
    """Money paid to a supplier; ``invoice_id`` None means on account."""
    id: UUID
    supplier_id: UUID
    amount: Decimal
    payment_date: date
    method: str
    invoice_id: UUID | None = None
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class OutstandingPayables:
    """Open and partially paid bills, earliest due first."""
    invoices: tuple[VendorInvoice, ...] = field(default_factory=tuple)
    total_outstanding: Decimal = Decimal("0")

    @property
    def count(self) -> int:
        return len(self.invoices)


class ExpenseStatus(Enum):
    """PENDING until reviewed; PAID is set by settlement, never by review."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


REVIEW_OUTCOMES: frozenset[ExpenseStatus] = frozenset({
    ExpenseStatus.APPROVED,
    ExpenseStatus.REJECTED,
})


@dataclass(frozen=True)
class Expense:
    """
    An operating expense outside the bill cycle (freight, utilities, dye
    house fees).  ``supplier_id`` links a known supplier; ``vendor_name``
    covers one-off payees.
    """
    id: UUID
    category: str
    amount: Decimal
    expense_date: date
    description: str
    status: ExpenseStatus
    supplier_id: UUID | None = None
    vendor_name: str | None = None
    approver_id: UUID | None = None
    approval_date: datetime | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class ExpenseCategoryTotal:
    category: str
    amount: Decimal
