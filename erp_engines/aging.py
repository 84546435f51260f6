"""
Module: erp_engines.aging
Responsibility:
    Age open documents (customer invoices, vendor bills) and classify
    their outstanding balances into aging buckets, globally and per
    account.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel domain values and the tracer.

Invariants enforced:
    - Purity: no clock access; the as-of moment is always an argument.
    - Decimal-only arithmetic via Money.
    - Age is whole days since the document date with ceiling semantics:
      any started day counts as a full day.  Future-dated documents age 0.
    - Each item contributes its outstanding balance (not its original
      total) to exactly one bucket.

Failure modes:
    - ValueError when an age does not fall into any configured bucket
      (only possible with a malformed custom bucket set).

Usage:
    calculator = AgingCalculator()
    report = calculator.generate_report(
        items=[OpenItem(...), ...],
        as_of=date(2024, 4, 1),
    )
    report.total_by_bucket()["31-60"]
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Sequence
from uuid import UUID

from erp_kernel.domain.values import Money
from erp_kernel.logging_config import get_logger
from erp_engines.tracer import traced_engine

logger = get_logger("engines.aging")

_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class AgeBucket:
    """
    Definition of an aging bucket: a contiguous range of days.

    ``max_days=None`` means unbounded (e.g., 90+).
    """

    name: str
    min_days: int
    max_days: int | None

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        """Check if age falls within this bucket."""
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days


STANDARD_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("0-30", 0, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("90+", 91, None),
)


@dataclass(frozen=True)
class OpenItem:
    """An open document with an outstanding balance, as read from the store."""

    document_id: UUID | str
    document_date: date
    outstanding: Money
    account_id: UUID | str
    account_name: str | None = None
    reference: str | None = None


@dataclass(frozen=True)
class AgedItem:
    """An open item bound to its computed age and bucket."""

    item: OpenItem
    age_days: int
    bucket: AgeBucket


@dataclass(frozen=True)
class AccountAging:
    """Bucketed outstanding balance for one customer or vendor."""

    account_id: UUID | str
    account_name: str | None
    buckets: dict[str, Money]
    total: Money
    item_count: int


@dataclass(frozen=True)
class AgingReport:
    """
    Complete aging report.

    Guarantees:
        - ``total_amount()`` equals the sum of all item outstanding balances.
        - ``total_by_bucket()`` covers every bucket in ``self.buckets``.
        - ``by_account()`` rows are sorted by total outstanding, descending.
    """

    as_of: date | datetime
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedItem, ...]

    @property
    def item_count(self) -> int:
        return len(self.items)

    def total_amount(self) -> Money:
        """Sum of all outstanding balances."""
        return Money.sum(i.item.outstanding for i in self.items)

    def total_by_bucket(self) -> dict[str, Money]:
        """Outstanding balance per bucket name (every bucket present)."""
        result = {b.name: Money.zero() for b in self.buckets}
        for aged in self.items:
            result[aged.bucket.name] = result[aged.bucket.name] + aged.item.outstanding
        return result

    def items_in_bucket(self, bucket_name: str) -> tuple[AgedItem, ...]:
        return tuple(i for i in self.items if i.bucket.name == bucket_name)

    def by_account(self) -> tuple[AccountAging, ...]:
        """Per-account bucket breakdown, largest outstanding first."""
        grouped: dict[UUID | str, list[AgedItem]] = {}
        for aged in self.items:
            grouped.setdefault(aged.item.account_id, []).append(aged)

        rows: list[AccountAging] = []
        for account_id, aged_items in grouped.items():
            buckets = {b.name: Money.zero() for b in self.buckets}
            for aged in aged_items:
                buckets[aged.bucket.name] = buckets[aged.bucket.name] + aged.item.outstanding
            rows.append(
                AccountAging(
                    account_id=account_id,
                    account_name=aged_items[0].item.account_name,
                    buckets=buckets,
                    total=Money.sum(a.item.outstanding for a in aged_items),
                    item_count=len(aged_items),
                )
            )

        rows.sort(key=lambda r: (-r.total.amount, str(r.account_id)))
        return tuple(rows)


class AgingCalculator:
    """
    Calculate aging for any dated documents.

    Pure functions -- no I/O, no database access.  All dates and data are
    passed as parameters.
    """

    DEFAULT_BUCKETS = STANDARD_BUCKETS

    def calculate_age(
        self,
        document_date: date | datetime,
        as_of: date | datetime,
    ) -> int:
        """
        Age in whole days, rounding any partial day up.

        When ``as_of`` is a plain date the age is the calendar-day
        difference.  When it is a datetime, the document is taken to start
        at midnight and a started day counts in full.  Negative ages
        (documents dated after ``as_of``) clamp to 0.
        """
        if isinstance(as_of, datetime):
            if isinstance(document_date, datetime):
                start = document_date
            else:
                start = datetime.combine(document_date, time.min)
            if start.tzinfo is None and as_of.tzinfo is not None:
                start = start.replace(tzinfo=as_of.tzinfo)
            elif start.tzinfo is not None and as_of.tzinfo is None:
                start = start.replace(tzinfo=None)
            seconds = (as_of - start).total_seconds()
            whole, remainder = divmod(seconds, _SECONDS_PER_DAY)
            age_days = int(whole) + (1 if remainder > 0 else 0)
        else:
            if isinstance(document_date, datetime):
                document_date = document_date.date()
            age_days = (as_of - document_date).days

        return max(0, age_days)

    def classify(
        self,
        age_days: int,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgeBucket:
        """
        Classify an age into a bucket.

        Raises:
            ValueError: If age doesn't fit any bucket.
        """
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        for bucket in buckets:
            if bucket.contains(age_days):
                return bucket

        logger.warning("age_classification_no_bucket", extra={
            "age_days": age_days,
            "bucket_count": len(buckets),
        })
        raise ValueError(f"Age {age_days} does not fit any bucket")

    def age_item(
        self,
        item: OpenItem,
        as_of: date | datetime,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgedItem:
        """Compute age and bucket for a single open item."""
        age_days = self.calculate_age(item.document_date, as_of)
        return AgedItem(item=item, age_days=age_days, bucket=self.classify(age_days, buckets))

    @traced_engine("aging", "1.0", fingerprint_fields=("items", "as_of"))
    def generate_report(
        self,
        *,
        items: Sequence[OpenItem],
        as_of: date | datetime,
        buckets: Sequence[AgeBucket] | None = None,
    ) -> AgingReport:
        """
        Generate a complete aging report.

        Items with a zero or negative outstanding balance are not open and
        are left out of the report.
        """
        if buckets is None:
            buckets = self.DEFAULT_BUCKETS

        aged = tuple(
            self.age_item(item, as_of, buckets)
            for item in items
            if item.outstanding.is_positive
        )

        logger.info("aging_report_generated", extra={
            "as_of": as_of.isoformat(),
            "item_count": len(aged),
            "skipped_count": len(items) - len(aged),
            "bucket_count": len(buckets),
        })

        return AgingReport(as_of=as_of, buckets=tuple(buckets), items=aged)
