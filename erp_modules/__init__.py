"""
ERP Modules.

Stateful services over the kernel and engines.  Each module contains:
- Domain models (frozen dataclasses, the nouns)
- ORM models (persistence, ``to_dto()``)
- Services that own their unit of work

Modules:
- AR: Customers, invoices, receipts, payments, notes, provisions, history
- AP: Suppliers, bills, vendor payments
- Inventory: Warehouses, stock rows, stock reconciliation sessions
"""
