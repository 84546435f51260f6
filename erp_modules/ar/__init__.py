"""
Accounts Receivable module.

Customers, invoices, receipts, customer payments, credit/debit notes,
bad-debt provisions and the invoice history trail.
"""

from erp_modules.ar.models import (
    OPEN_INVOICE_STATUSES,
    ARPayment,
    BadDebtProvision,
    CreditNote,
    Customer,
    DebitNote,
    HistoryAction,
    Invoice,
    InvoiceHistoryEntry,
    InvoiceItem,
    InvoiceLineInput,
    InvoicePayment,
    InvoiceStatus,
)
from erp_modules.ar.payments import PaymentApplicationService
from erp_modules.ar.service import ReceivablesService
from erp_modules.ar.tracking import InvoiceTrackingService

__all__ = [
    "OPEN_INVOICE_STATUSES",
    "ARPayment",
    "BadDebtProvision",
    "CreditNote",
    "Customer",
    "DebitNote",
    "HistoryAction",
    "Invoice",
    "InvoiceHistoryEntry",
    "InvoiceItem",
    "InvoiceLineInput",
    "InvoicePayment",
    "InvoiceStatus",
    "InvoiceTrackingService",
    "PaymentApplicationService",
    "ReceivablesService",
]
