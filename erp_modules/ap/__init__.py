"""Accounts Payable module: suppliers, bills and vendor payments."""

from erp_modules.ap.models import (
    OutstandingPayables,
    Supplier,
    VendorInvoice,
    VendorInvoiceStatus,
    VendorPayment,
)
from erp_modules.ap.service import PayablesService

__all__ = [
    "OutstandingPayables",
    "PayablesService",
    "Supplier",
    "VendorInvoice",
    "VendorInvoiceStatus",
    "VendorPayment",
]
