"""Tests for the typed exception hierarchy."""

from decimal import Decimal

import pytest

from erp_kernel.exceptions import (
    ConfigurationError,
    ErpKernelError,
    ImmutabilityViolationError,
    InvalidStateError,
    LockedInvoiceError,
    NotFoundError,
    OverpaymentError,
    PaymentError,
    ValidationError,
)


class TestErrorCodes:

    @pytest.mark.parametrize("exc, code", [
        (NotFoundError("Invoice", "x"), "NOT_FOUND"),
        (ValidationError("amount", "must be greater than zero"), "VALIDATION_ERROR"),
        (OverpaymentError("x", Decimal("2"), Decimal("1")), "OVERPAYMENT"),
        (LockedInvoiceError("x"), "INVOICE_LOCKED"),
        (InvalidStateError("Invoice", "x", "draft", "pay"), "INVALID_STATE"),
        (ImmutabilityViolationError("InvoicePayment", "x", "append-only"), "IMMUTABILITY_VIOLATION"),
        (ConfigurationError("bad"), "CONFIGURATION_ERROR"),
    ])
    def test_every_error_carries_its_code(self, exc, code):
        assert isinstance(exc, ErpKernelError)
        assert exc.code == code

    def test_payment_errors_share_a_base(self):
        assert issubclass(OverpaymentError, PaymentError)
        assert issubclass(LockedInvoiceError, PaymentError)

    def test_structured_attributes(self):
        exc = OverpaymentError("inv-1", Decimal("700.00"), Decimal("600.00"))
        assert exc.invoice_id == "inv-1"
        assert exc.balance == Decimal("600.00")
        assert "exceeds balance 600.00" in str(exc)

        exc = InvalidStateError("StockReconciliation", "r-1", "completed", "finalize")
        assert exc.current_state == "completed"
        assert exc.operation == "finalize"
