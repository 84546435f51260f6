"""
erp_services.ledger_sources -- read-side gathering for the ledger engines.

Responsibility:
    Query the receivable and payable source tables and convert rows into
    the engine input types: ``LedgerEvent`` for the ledger builder,
    ``OpenItem`` for aging, ``InvoiceFigures`` and the collected total for
    collection metrics.

Architecture position:
    Services -- read side.  Extends the kernel ``BaseSelector``; imports
    module ORM models (services -> modules is allowed).  Never writes.

Invariants enforced:
    - Amounts leave this module as ``Money`` rounded to 2 places.
    - Only open invoices (PENDING, SENT, VIEWED, PARTIALLY_PAID, OVERDUE)
      with a positive balance become open items.
    - Every payment is read from exactly one table: receipts from
      ``ar_invoice_payments``, customer payments from ``ar_payments``.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from erp_engines.aging import OpenItem
from erp_engines.collection_metrics import InvoiceFigures
from erp_engines.ledger import EXCLUDED_INVOICE_STATUSES, LedgerEntryType, LedgerEvent
from erp_kernel.domain.values import Money
from erp_kernel.exceptions import NotFoundError
from erp_kernel.selectors.base import BaseSelector
from erp_modules.ap.models import OUTSTANDING_BILL_STATUSES
from erp_modules.ap.orm import SupplierModel, VendorInvoiceModel, VendorPaymentModel
from erp_modules.ar.models import OPEN_INVOICE_STATUSES
from erp_modules.ar.orm import (
    ARPaymentModel,
    BadDebtProvisionModel,
    CreditNoteModel,
    CustomerModel,
    DebitNoteModel,
    InvoiceModel,
    InvoicePaymentModel,
)

_OPEN_INVOICE_VALUES = tuple(sorted(s.value for s in OPEN_INVOICE_STATUSES))
_OPEN_BILL_VALUES = tuple(sorted(s.value for s in OUTSTANDING_BILL_STATUSES))


def _money(value: Decimal | None) -> Money:
    return Money.of(value if value is not None else Decimal("0")).round()


class LedgerSourceSelector(BaseSelector[InvoiceModel]):
    """Engine inputs for receivable and payable accounts."""

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def customer(self, customer_id: UUID) -> CustomerModel:
        customer = self.session.get(CustomerModel, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    def supplier(self, supplier_id: UUID) -> SupplierModel:
        supplier = self.session.get(SupplierModel, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    # ------------------------------------------------------------------
    # Ledger events
    # ------------------------------------------------------------------

    def receivable_events(self, customer_id: UUID) -> list[LedgerEvent]:
        """All invoices, payments, notes and provisions of one customer."""
        events: list[LedgerEvent] = []

        invoices = self.session.execute(
            select(InvoiceModel).where(InvoiceModel.customer_id == customer_id)
        ).scalars().all()
        for inv in invoices:
            events.append(LedgerEvent(
                source_id=inv.id,
                entry_type=LedgerEntryType.INVOICE,
                entry_date=inv.invoice_date,
                amount=_money(inv.total_amount),
                reference=inv.invoice_number,
                description=f"Invoice #{inv.invoice_number}",
                related_invoice_id=inv.id,
                created_at=inv.created_at,
                status=inv.status,
                outstanding=_money(inv.balance) if inv.status in _OPEN_INVOICE_VALUES else None,
            ))

        receipts = self.session.execute(
            select(InvoicePaymentModel)
            .join(InvoiceModel, InvoicePaymentModel.invoice_id == InvoiceModel.id)
            .where(InvoiceModel.customer_id == customer_id)
        ).scalars().all()
        for receipt in receipts:
            events.append(LedgerEvent(
                source_id=receipt.id,
                entry_type=LedgerEntryType.PAYMENT,
                entry_date=receipt.payment_date,
                amount=_money(receipt.amount),
                reference=receipt.receipt_number,
                description=f"Payment via {receipt.payment_method}",
                related_invoice_id=receipt.invoice_id,
                created_at=receipt.created_at,
            ))

        payments = self.session.execute(
            select(ARPaymentModel).where(ARPaymentModel.customer_id == customer_id)
        ).scalars().all()
        for payment in payments:
            events.append(LedgerEvent(
                source_id=payment.id,
                entry_type=LedgerEntryType.PAYMENT,
                entry_date=payment.payment_date,
                amount=_money(payment.amount),
                reference=payment.reference or "N/A",
                description=f"Payment via {payment.method}",
                related_invoice_id=payment.invoice_id,
                created_at=payment.created_at,
            ))

        for model, entry_type, label in (
            (CreditNoteModel, LedgerEntryType.CREDIT_NOTE, "Credit Note"),
            (DebitNoteModel, LedgerEntryType.DEBIT_NOTE, "Debit Note"),
        ):
            notes = self.session.execute(
                select(model).where(model.customer_id == customer_id)
            ).scalars().all()
            for note in notes:
                events.append(LedgerEvent(
                    source_id=note.id,
                    entry_type=entry_type,
                    entry_date=note.note_date,
                    amount=_money(note.amount),
                    reference=note.note_number,
                    description=f"{label}: {note.reason}",
                    related_invoice_id=note.invoice_id,
                    created_at=note.created_at,
                ))

        provisions = self.session.execute(
            select(BadDebtProvisionModel).where(BadDebtProvisionModel.customer_id == customer_id)
        ).scalars().all()
        for provision in provisions:
            events.append(LedgerEvent(
                source_id=provision.id,
                entry_type=LedgerEntryType.BAD_DEBT_PROVISION,
                entry_date=provision.provision_date,
                amount=_money(provision.amount),
                reference=None,
                description=provision.notes or "Bad debt provision",
                created_at=provision.created_at,
            ))

        return events

    def payable_events(self, supplier_id: UUID) -> list[LedgerEvent]:
        """All bills and payments of one supplier."""
        events: list[LedgerEvent] = []

        bills = self.session.execute(
            select(VendorInvoiceModel).where(VendorInvoiceModel.supplier_id == supplier_id)
        ).scalars().all()
        for bill in bills:
            events.append(LedgerEvent(
                source_id=bill.id,
                entry_type=LedgerEntryType.INVOICE,
                entry_date=bill.invoice_date,
                amount=_money(bill.total_amount),
                reference=bill.invoice_number,
                description=f"Bill #{bill.invoice_number}",
                related_invoice_id=bill.id,
                created_at=bill.created_at,
                status=bill.status,
                outstanding=_money(bill.balance) if bill.status in _OPEN_BILL_VALUES else None,
            ))

        payments = self.session.execute(
            select(VendorPaymentModel).where(VendorPaymentModel.supplier_id == supplier_id)
        ).scalars().all()
        for payment in payments:
            events.append(LedgerEvent(
                source_id=payment.id,
                entry_type=LedgerEntryType.PAYMENT,
                entry_date=payment.payment_date,
                amount=_money(payment.amount),
                reference=payment.reference or "N/A",
                description=f"Payment via {payment.method}",
                related_invoice_id=payment.invoice_id,
                created_at=payment.created_at,
            ))

        return events

    # ------------------------------------------------------------------
    # Aging and metrics inputs
    # ------------------------------------------------------------------

    def open_receivable_items(self) -> list[OpenItem]:
        rows = self.session.execute(
            select(InvoiceModel)
            .where(InvoiceModel.status.in_(_OPEN_INVOICE_VALUES), InvoiceModel.balance > 0)
            .order_by(InvoiceModel.invoice_date, InvoiceModel.invoice_number)
        ).scalars().all()
        return [
            OpenItem(
                document_id=inv.id,
                document_date=inv.invoice_date,
                outstanding=_money(inv.balance),
                account_id=inv.customer_id,
                account_name=inv.customer_name,
                reference=inv.invoice_number,
            )
            for inv in rows
        ]

    def open_payable_items(self) -> list[OpenItem]:
        rows = self.session.execute(
            select(VendorInvoiceModel, SupplierModel.name)
            .join(SupplierModel, VendorInvoiceModel.supplier_id == SupplierModel.id)
            .where(VendorInvoiceModel.status.in_(_OPEN_BILL_VALUES), VendorInvoiceModel.balance > 0)
            .order_by(VendorInvoiceModel.invoice_date, VendorInvoiceModel.invoice_number)
        ).all()
        return [
            OpenItem(
                document_id=bill.id,
                document_date=bill.invoice_date,
                outstanding=_money(bill.balance),
                account_id=bill.supplier_id,
                account_name=supplier_name,
                reference=bill.invoice_number,
            )
            for bill, supplier_name in rows
        ]

    def invoice_figures(self) -> list[InvoiceFigures]:
        """Every posted invoice (void, cancelled and draft excluded)."""
        rows = self.session.execute(
            select(InvoiceModel).where(
                InvoiceModel.status.not_in(tuple(sorted(EXCLUDED_INVOICE_STATUSES)))
            )
        ).scalars().all()
        return [
            InvoiceFigures(
                invoice_id=inv.id,
                invoice_date=inv.invoice_date,
                total=_money(inv.total_amount),
                outstanding=_money(inv.balance),
            )
            for inv in rows
        ]

    def total_collected(self) -> Money:
        """Receipts plus customer payments."""
        receipts = self.session.execute(
            select(func.coalesce(func.sum(InvoicePaymentModel.amount), 0))
        ).scalar_one()
        payments = self.session.execute(
            select(func.coalesce(func.sum(ARPaymentModel.amount), 0))
        ).scalar_one()
        return _money(Decimal(str(receipts))) + _money(Decimal(str(payments)))
