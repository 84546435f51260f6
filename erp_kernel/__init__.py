"""
ERP Kernel - shared foundation for the textile ERP financial core.

- Typed exceptions with machine-readable codes
- Structured JSON logging with request-scoped context
- Decimal-only Money value object
- Explicit unit-of-work transaction boundary
- Append-only enforcement for payments, notes and movement logs
"""

__version__ = "0.1.0"
