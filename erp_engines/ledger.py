"""
Module: erp_engines.ledger
Responsibility:
    Merge heterogeneous financial events for one account (invoices,
    payments, credit notes, debit notes, bad-debt provisions) into a single
    time-ordered ledger with a running balance and summary aggregates.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Callers (``LedgerService``)
    fetch the event collections from one session snapshot and pass them in.

Invariants enforced:
    - Polarity is decided once per entry by ``AccountKind``: receivable
      ledgers are debit-normal (invoices and debit notes are debits,
      payments, credit notes and provisions are credits); payable ledgers
      are the mirror and credit-normal.  In both cases the running balance
      reads as the amount outstanding on the account.
    - running_balance_i = running_balance_{i-1} + sign * (debit_i - credit_i)
      with sign +1 for receivables and -1 for payables.
    - Invoices in status VOID, CANCELLED or DRAFT are excluded from both
      entries and totals.
    - Ordering is deterministic: entry date, then entry-type priority,
      then creation time, then source id.
    - ``current_balance`` is recomputed from the category totals, not copied
      from the last running balance.
    - Rebuilding from the same events yields identical output.

Failure modes:
    - ValueError for an event with a negative amount.

Usage:
    builder = LedgerBuilder()
    ledger = builder.build(
        account_id=customer_id,
        account_kind=AccountKind.RECEIVABLE,
        events=[LedgerEvent(...), ...],
    )
    ledger.summary.current_balance
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Sequence
from uuid import UUID

from erp_kernel.domain.values import Money
from erp_kernel.logging_config import get_logger
from erp_engines.aging import AgingCalculator, OpenItem
from erp_engines.tracer import traced_engine

logger = get_logger("engines.ledger")


class AccountKind(Enum):
    """Which side of the business the account sits on."""
    RECEIVABLE = "receivable"   # customer owes us
    PAYABLE = "payable"         # we owe the vendor


class LedgerEntryType(Enum):
    """Financial event kinds that land on an account ledger."""
    INVOICE = "invoice"
    DEBIT_NOTE = "debit_note"
    PAYMENT = "payment"
    CREDIT_NOTE = "credit_note"
    BAD_DEBT_PROVISION = "bad_debt_provision"


class EntrySide(Enum):
    DEBIT = "debit"
    CREDIT = "credit"


# Same-day ordering: charges first, then settlements
TYPE_PRIORITY: dict[LedgerEntryType, int] = {
    LedgerEntryType.INVOICE: 0,
    LedgerEntryType.DEBIT_NOTE: 1,
    LedgerEntryType.PAYMENT: 2,
    LedgerEntryType.CREDIT_NOTE: 3,
    LedgerEntryType.BAD_DEBT_PROVISION: 4,
}

_RECEIVABLE_SIDES: dict[LedgerEntryType, EntrySide] = {
    LedgerEntryType.INVOICE: EntrySide.DEBIT,
    LedgerEntryType.DEBIT_NOTE: EntrySide.DEBIT,
    LedgerEntryType.PAYMENT: EntrySide.CREDIT,
    LedgerEntryType.CREDIT_NOTE: EntrySide.CREDIT,
    LedgerEntryType.BAD_DEBT_PROVISION: EntrySide.CREDIT,
}

_MIRROR = {EntrySide.DEBIT: EntrySide.CREDIT, EntrySide.CREDIT: EntrySide.DEBIT}

POLARITY: dict[AccountKind, dict[LedgerEntryType, EntrySide]] = {
    AccountKind.RECEIVABLE: _RECEIVABLE_SIDES,
    AccountKind.PAYABLE: {t: _MIRROR[s] for t, s in _RECEIVABLE_SIDES.items()},
}

BALANCE_SIGN: dict[AccountKind, int] = {
    AccountKind.RECEIVABLE: 1,
    AccountKind.PAYABLE: -1,
}

# Invoice statuses that never reach a ledger (lowercase status values)
EXCLUDED_INVOICE_STATUSES: frozenset[str] = frozenset({"void", "cancelled", "draft"})


@dataclass(frozen=True)
class LedgerEvent:
    """
    One source record, already scoped to the account.

    ``amount`` is always the positive magnitude; the normalizer decides
    the side.  ``status`` and ``outstanding`` only apply to invoices.
    """

    source_id: UUID | str
    entry_type: LedgerEntryType
    entry_date: date
    amount: Money
    reference: str | None = None
    description: str | None = None
    related_invoice_id: UUID | str | None = None
    created_at: datetime | None = None
    status: str | None = None
    outstanding: Money | None = None


@dataclass(frozen=True)
class NormalizedEntry:
    """A signed entry before the running balance is attached."""

    source_id: UUID | str
    entry_type: LedgerEntryType
    entry_date: date
    debit: Money
    credit: Money
    reference: str | None
    description: str | None
    related_invoice_id: UUID | str | None
    created_at: datetime | None

    def sort_key(self) -> tuple:
        created = self.created_at.timestamp() if self.created_at is not None else 0.0
        return (
            self.entry_date,
            TYPE_PRIORITY[self.entry_type],
            self.created_at is not None,
            created,
            str(self.source_id),
        )


@dataclass(frozen=True)
class LedgerEntry:
    """A ledger line with its running balance."""

    entry_date: date
    entry_type: LedgerEntryType
    reference: str | None
    description: str | None
    debit: Money
    credit: Money
    running_balance: Money
    source_id: UUID | str
    related_invoice_id: UUID | str | None = None


@dataclass(frozen=True)
class LedgerSummary:
    """Aggregates over the included entries."""

    total_invoiced: Money
    total_paid: Money
    total_credit_notes: Money
    total_debit_notes: Money
    total_provisioned: Money
    current_balance: Money
    entry_count: int
    excluded_count: int = 0
    aging: dict[str, Money] | None = None


@dataclass(frozen=True)
class Ledger:
    """Ordered entries plus summary for one account."""

    account_id: UUID | str
    account_kind: AccountKind
    entries: tuple[LedgerEntry, ...]
    summary: LedgerSummary
    account_name: str | None = None


class LedgerEntryNormalizer:
    """
    Convert a source event into a signed entry for one account kind.

    The account kind is consulted once here; nothing downstream branches
    on receivable vs payable.
    """

    def __init__(self, account_kind: AccountKind):
        self.account_kind = account_kind
        self._sides = POLARITY[account_kind]

    def is_excluded(self, event: LedgerEvent) -> bool:
        """Invoices in a void, cancelled or draft state never reach the ledger."""
        return (
            event.entry_type is LedgerEntryType.INVOICE
            and event.status is not None
            and event.status.lower() in EXCLUDED_INVOICE_STATUSES
        )

    def normalize(self, event: LedgerEvent) -> NormalizedEntry | None:
        """Signed entry for ``event``, or None when it is excluded."""
        if event.amount.is_negative:
            raise ValueError(
                f"Ledger event {event.source_id} has negative amount {event.amount}"
            )
        if self.is_excluded(event):
            return None

        zero = Money.zero()
        side = self._sides[event.entry_type]
        entry_date = event.entry_date.date() if isinstance(event.entry_date, datetime) else event.entry_date
        return NormalizedEntry(
            source_id=event.source_id,
            entry_type=event.entry_type,
            entry_date=entry_date,
            debit=event.amount if side is EntrySide.DEBIT else zero,
            credit=event.amount if side is EntrySide.CREDIT else zero,
            reference=event.reference,
            description=event.description,
            related_invoice_id=event.related_invoice_id,
            created_at=event.created_at,
        )


class LedgerBuilder:
    """
    Build an account ledger from normalized events.

    Pure: no I/O, no clock.  The optional ``as_of`` only drives the aging
    breakdown in the summary.
    """

    def __init__(self, aging_calculator: AgingCalculator | None = None):
        self._aging = aging_calculator or AgingCalculator()

    @traced_engine(
        "ledger", "1.0",
        fingerprint_fields=("account_id", "account_kind", "events", "as_of"),
    )
    def build(
        self,
        *,
        account_id: UUID | str,
        account_kind: AccountKind,
        events: Sequence[LedgerEvent],
        as_of: date | datetime | None = None,
        account_name: str | None = None,
    ) -> Ledger:
        normalizer = LedgerEntryNormalizer(account_kind)
        sign = BALANCE_SIGN[account_kind]

        normalized: list[NormalizedEntry] = []
        excluded = 0
        for event in events:
            entry = normalizer.normalize(event)
            if entry is None:
                excluded += 1
                continue
            normalized.append(entry)

        normalized.sort(key=NormalizedEntry.sort_key)

        entries: list[LedgerEntry] = []
        running = Money.zero()
        for n in normalized:
            running = running + (n.debit - n.credit) * sign
            entries.append(
                LedgerEntry(
                    entry_date=n.entry_date,
                    entry_type=n.entry_type,
                    reference=n.reference,
                    description=n.description,
                    debit=n.debit,
                    credit=n.credit,
                    running_balance=running,
                    source_id=n.source_id,
                    related_invoice_id=n.related_invoice_id,
                )
            )

        summary = self._summarize(
            normalized, excluded, account_id, account_name,
            [e for e in events if not normalizer.is_excluded(e)], as_of,
        )

        if entries and entries[-1].running_balance != summary.current_balance:
            logger.warning("ledger_running_balance_mismatch", extra={
                "account_id": str(account_id),
                "running_balance": str(entries[-1].running_balance),
                "current_balance": str(summary.current_balance),
            })

        logger.info("ledger_built", extra={
            "account_id": str(account_id),
            "account_kind": account_kind.value,
            "entry_count": len(entries),
            "excluded_count": excluded,
            "current_balance": str(summary.current_balance),
        })

        return Ledger(
            account_id=account_id,
            account_kind=account_kind,
            entries=tuple(entries),
            summary=summary,
            account_name=account_name,
        )

    def _summarize(
        self,
        normalized: Sequence[NormalizedEntry],
        excluded: int,
        account_id: UUID | str,
        account_name: str | None,
        included_events: Sequence[LedgerEvent],
        as_of: date | datetime | None,
    ) -> LedgerSummary:
        totals = {t: Money.zero() for t in LedgerEntryType}
        for n in normalized:
            totals[n.entry_type] = totals[n.entry_type] + n.debit + n.credit

        current_balance = (
            totals[LedgerEntryType.INVOICE]
            + totals[LedgerEntryType.DEBIT_NOTE]
            - totals[LedgerEntryType.PAYMENT]
            - totals[LedgerEntryType.CREDIT_NOTE]
            - totals[LedgerEntryType.BAD_DEBT_PROVISION]
        )

        aging = None
        if as_of is not None:
            open_items = [
                OpenItem(
                    document_id=e.source_id,
                    document_date=e.entry_date,
                    outstanding=e.outstanding,
                    account_id=account_id,
                    account_name=account_name,
                    reference=e.reference,
                )
                for e in included_events
                if e.entry_type is LedgerEntryType.INVOICE and e.outstanding is not None
            ]
            aging = self._aging.generate_report(items=open_items, as_of=as_of).total_by_bucket()

        return LedgerSummary(
            total_invoiced=totals[LedgerEntryType.INVOICE],
            total_paid=totals[LedgerEntryType.PAYMENT],
            total_credit_notes=totals[LedgerEntryType.CREDIT_NOTE],
            total_debit_notes=totals[LedgerEntryType.DEBIT_NOTE],
            total_provisioned=totals[LedgerEntryType.BAD_DEBT_PROVISION],
            current_balance=current_balance,
            entry_count=len(normalized),
            excluded_count=excluded,
            aging=aging,
        )
