"""
Accounts Receivable Domain Models (``erp_modules.ar.models``).

Responsibility
--------------
Frozen dataclass value objects for the receivable side of billing:
customers, invoices and their items, invoice payments (receipts), AR
payments, credit/debit notes, bad-debt provisions and the invoice
history trail.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by the
AR services; built from ORM rows via ``to_dto()``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InvoiceStatus(Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    VOID = "void"


# Statuses that accept payments and appear in aging
OPEN_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.PENDING,
    InvoiceStatus.SENT,
    InvoiceStatus.VIEWED,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.OVERDUE,
})

TERMINAL_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.PAID,
    InvoiceStatus.CANCELLED,
    InvoiceStatus.VOID,
})


class HistoryAction(Enum):
    """Invoice history trail actions."""
    CREATED = "created"
    PAYMENT_RECEIVED = "payment_received"
    STATUS_CHANGED = "status_changed"


@dataclass(frozen=True)
class Customer:
    """A customer who owes money."""
    id: UUID
    code: str
    name: str
    credit_limit: Decimal | None = None
    is_active: bool = True


@dataclass(frozen=True)
class InvoiceItem:
    """A single line on a customer invoice."""
    id: UUID
    invoice_id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class Invoice:
    """A customer invoice with its payment state."""
    id: UUID
    invoice_number: str
    customer_id: UUID
    customer_name: str
    invoice_date: date
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: InvoiceStatus
    is_locked: bool = False
    due_date: date | None = None
    sent_at: datetime | None = None
    viewed_at: datetime | None = None
    paid_at: datetime | None = None
    notes: str | None = None
    items: tuple[InvoiceItem, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InvoicePayment:
    """A receipt recorded against one invoice by the payment engine."""
    id: UUID
    invoice_id: UUID
    receipt_number: str
    amount: Decimal
    payment_method: str
    payment_date: date
    reference: str | None = None
    notes: str | None = None
    received_by: UUID | None = None


@dataclass(frozen=True)
class ARPayment:
    """A customer payment; ``invoice_id`` is None while unapplied."""
    id: UUID
    customer_id: UUID
    amount: Decimal
    method: str
    payment_date: date
    invoice_id: UUID | None = None
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CreditNote:
    """Reduces what the customer owes."""
    id: UUID
    note_number: str
    customer_id: UUID
    amount: Decimal
    reason: str
    note_date: date
    invoice_id: UUID | None = None


@dataclass(frozen=True)
class DebitNote:
    """Increases what the customer owes."""
    id: UUID
    note_number: str
    customer_id: UUID
    amount: Decimal
    reason: str
    note_date: date
    invoice_id: UUID | None = None


@dataclass(frozen=True)
class BadDebtProvision:
    """Provision against a customer's receivable exposure."""
    id: UUID
    customer_id: UUID
    amount: Decimal
    provision_date: date
    notes: str | None = None


class FollowUpStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class FollowUp:
    """A scheduled collection call or reminder for a customer, optionally about one invoice."""
    id: UUID
    customer_id: UUID
    due_date: date
    status: FollowUpStatus
    invoice_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class InvoiceHistoryEntry:
    """Append-only audit row for an invoice mutation."""
    id: UUID
    invoice_id: UUID
    entry_seq: int
    action: HistoryAction
    description: str
    old_value: str | None = None
    new_value: str | None = None
    performed_by: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class InvoiceLineInput:
    """Caller-supplied line for ``ReceivablesService.create_invoice``."""
    description: str
    quantity: Decimal
    unit_price: Decimal
