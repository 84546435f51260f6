"""
ERP Services - read-side orchestration across modules and engines.

Services:
    LedgerService         Account ledgers, aging reports, collection metrics
    LedgerSourceSelector  Engine inputs gathered from module tables
"""

from erp_services.ledger_service import LedgerService
from erp_services.ledger_sources import LedgerSourceSelector

__all__ = ["LedgerService", "LedgerSourceSelector"]
