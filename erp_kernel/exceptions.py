"""
Typed Exception Hierarchy for the ERP core.

Callers catch by type and read structured attributes, never by parsing
messages.  Every class carries a machine-readable ``code`` class attribute
so the (external) HTTP layer can map errors to status codes without
knowing the message wording.

    ErpKernelError (base)
    |
    +-- NotFoundError
    +-- ValidationError
    +-- PaymentError
    |   +-- OverpaymentError
    |   +-- LockedInvoiceError
    +-- InvalidStateError
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    +-- ConfigurationError

Code                     | When Raised
-------------------------|-----------------------------------------------
NOT_FOUND                | Invoice/account/session/warehouse/item missing
VALIDATION_ERROR         | Malformed input, rejected before persistence
OVERPAYMENT              | Payment amount exceeds the remaining balance
INVOICE_LOCKED           | Payment against a fully paid, locked invoice
INVALID_STATE            | Operation forbidden in the entity's state
IMMUTABILITY_VIOLATION   | UPDATE/DELETE of an append-only record
CONFIGURATION_ERROR      | Invalid configuration value
"""

from decimal import Decimal


class ErpKernelError(Exception):
    """
    Base exception for all ERP core errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_KERNEL_ERROR"


class NotFoundError(ErpKernelError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class ValidationError(ErpKernelError):
    """Malformed input caught before any persistence attempt."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Payment-related exceptions


class PaymentError(ErpKernelError):
    """Base exception for payment application errors."""

    code: str = "PAYMENT_ERROR"


class OverpaymentError(PaymentError):
    """Payment amount exceeds the invoice's remaining balance."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: object, amount: Decimal, balance: Decimal):
        self.invoice_id = str(invoice_id)
        self.amount = amount
        self.balance = balance
        super().__init__(
            f"Payment amount {amount} exceeds balance {balance} "
            f"on invoice {invoice_id}"
        )


class LockedInvoiceError(PaymentError):
    """Payment attempted against an invoice that is fully paid and locked."""

    code: str = "INVOICE_LOCKED"

    def __init__(self, invoice_id: object):
        self.invoice_id = str(invoice_id)
        super().__init__(f"Cannot add payment to fully paid invoice {invoice_id}")


class InvalidStateError(ErpKernelError):
    """Operation attempted against an entity in a state that forbids it."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: object,
        current_state: str,
        operation: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id} "
            f"in state {current_state}"
        )


# Immutability-related exceptions


class ImmutabilityError(ErpKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Payments, notes, provisions, invoice history and movement logs are
    append-only; reconciliation items freeze with their session.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class ConfigurationError(ErpKernelError):
    """Configuration file or override carries an invalid value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid configuration: {reason}")
