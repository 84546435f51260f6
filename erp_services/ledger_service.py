"""
erp_services.ledger_service -- account ledgers, aging and collection metrics.

Responsibility:
    Read-side orchestration: gather inputs through ``LedgerSourceSelector``
    from one session snapshot and hand them to the pure engines
    (``LedgerBuilder``, ``AgingCalculator``, ``CollectionMetricsCalculator``).

Architecture position:
    Services -- stateless orchestration over engines + modules.  Never
    writes, never commits.

Invariants enforced:
    - Every query for one call runs on the caller's session, so the
      engine sees a consistent snapshot.
    - ``as_of`` defaults to the injected clock's today, never the wall
      clock directly.

Failure modes:
    - ``NotFoundError`` from ``build_ledger`` for an unknown customer or
      supplier.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from erp_config.schema import BillingSettings
from erp_engines.aging import AgingCalculator, AgingReport
from erp_engines.collection_metrics import CollectionMetrics, CollectionMetricsCalculator
from erp_engines.ledger import AccountKind, Ledger, LedgerBuilder
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.logging_config import get_logger
from erp_services.ledger_sources import LedgerSourceSelector

logger = get_logger("services.ledger")


class LedgerService:
    """
    Account ledger and receivables analytics.

    Contract:
        Receives Session, Clock and BillingSettings via constructor
        injection.
    Guarantees:
        - ``build_ledger`` returns entries in deterministic order with a
          running balance that reads as the amount outstanding.
        - Rebuilding with unchanged data yields an equal ``Ledger``.
    Non-goals:
        - Does not persist ledgers or snapshots; they are always derived.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: BillingSettings | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or BillingSettings()
        self._selector = LedgerSourceSelector(session)
        self._aging = AgingCalculator()
        self._builder = LedgerBuilder(self._aging)
        self._metrics = CollectionMetricsCalculator(window_days=self._settings.dso_window_days)

    def build_ledger(
        self,
        account_id: UUID,
        account_kind: AccountKind = AccountKind.RECEIVABLE,
        as_of: date | None = None,
    ) -> Ledger:
        """Ledger of one customer (RECEIVABLE) or supplier (PAYABLE)."""
        account_kind = AccountKind(account_kind)
        if account_kind is AccountKind.RECEIVABLE:
            account = self._selector.customer(account_id)
            events = self._selector.receivable_events(account_id)
        else:
            account = self._selector.supplier(account_id)
            events = self._selector.payable_events(account_id)

        return self._builder.build(
            account_id=account_id,
            account_kind=account_kind,
            events=events,
            as_of=as_of or self._clock.today(),
            account_name=account.name,
        )

    def get_aging_report(
        self,
        as_of: date | None = None,
        account_kind: AccountKind = AccountKind.RECEIVABLE,
    ) -> AgingReport:
        """Aging of every open invoice (or open bill), globally and per account."""
        account_kind = AccountKind(account_kind)
        items = (
            self._selector.open_receivable_items()
            if account_kind is AccountKind.RECEIVABLE
            else self._selector.open_payable_items()
        )
        report = self._aging.generate_report(items=items, as_of=as_of or self._clock.today())
        logger.info("aging_report_generated", extra={
            "account_kind": account_kind.value,
            "item_count": report.item_count,
            "total_amount": str(report.total_amount()),
        })
        return report

    def calculate_collection_metrics(self, as_of: date | None = None) -> CollectionMetrics:
        """DSO and CEI over all posted receivable invoices."""
        return self._metrics.calculate(
            invoices=self._selector.invoice_figures(),
            collected=self._selector.total_collected(),
            as_of=as_of or self._clock.today(),
        )
