"""
SequenceService -- gap-free document numbering on locked counter rows.

Responsibility:
    Hands out the running number inside every human-readable document
    number: receipts (``RCP-202401000001``), invoices and credit/debit
    notes (``INV-202401-0001``), reconciliation sessions
    (``REC-20240115-0001``).  Each (family, period) pair has one counter
    row; the period is whatever string the caller keys on (a month, a day).

Architecture position:
    Kernel > Services.  Called by the AR payment engine, ReceivablesService
    and StockReconciliationService inside their unit of work.

Invariants enforced:
    - The counter row, read ``FOR UPDATE``, is the only source of the next
      number.  Concurrent allocations in the same period queue on that row.
    - Numbers become visible with the caller's commit; a rollback gives
      the number back, so a period's numbers have no gaps.

Failure modes:
    - Two transactions creating the same period's row race on the unique
      constraint; the loser rolls back its savepoint and locks the
      winner's row.
"""

from sqlalchemy import String, UniqueConstraint, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base
from erp_kernel.logging_config import get_logger
from erp_kernel.services.base import BaseService

logger = get_logger("services.sequence")

# Period used by sequences that never restart.
NO_PERIOD = "-"


class SequenceCounter(Base):
    """Last number issued for one family in one period."""

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("family", "period", name="uq_sequence_counters_family_period"),
    )

    family: Mapped[str] = mapped_column(String(50), nullable=False)
    period: Mapped[str] = mapped_column(String(16), nullable=False)
    last_value: Mapped[int] = mapped_column(nullable=False, default=0)


class SequenceService(BaseService[SequenceCounter]):
    """Allocates numbers within the caller's transaction; flushes, never commits."""

    RECEIPT = "receipt"
    RECONCILIATION = "reconciliation"
    INVOICE = "invoice"
    CREDIT_NOTE = "credit_note"
    DEBIT_NOTE = "debit_note"

    def _counter(self, family: str, period: str, *, lock: bool) -> SequenceCounter | None:
        stmt = select(SequenceCounter).where(
            SequenceCounter.family == family,
            SequenceCounter.period == period,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def _create_counter(self, family: str, period: str) -> SequenceCounter | None:
        """Insert the period's row at 0; None when a concurrent transaction won."""
        savepoint = self.session.begin_nested()
        counter = SequenceCounter(family=family, period=period, last_value=0)
        self.session.add(counter)
        try:
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_race", extra={"family": family, "period": period})
            return None
        savepoint.commit()
        return counter

    def next_in_period(self, family: str, period: str) -> int:
        """Lock the (family, period) counter, bump it and return the new number."""
        counter = self._counter(family, period, lock=True)
        if counter is None:
            counter = self._create_counter(family, period)
        if counter is None:
            counter = self._counter(family, period, lock=True)
            if counter is None:
                raise RuntimeError(f"sequence counter {family}:{period} vanished after a create race")

        counter.last_value += 1
        self.session.flush()
        logger.debug("sequence_allocated", extra={
            "family": family,
            "period": period,
            "value": counter.last_value,
        })
        return counter.last_value

    def next_value(self, family: str) -> int:
        """Next number of a sequence that never restarts."""
        return self.next_in_period(family, NO_PERIOD)

    def current_value(self, family: str, period: str = NO_PERIOD) -> int | None:
        """Last number issued, or None if the sequence was never used."""
        counter = self._counter(family, period, lock=False)
        return counter.last_value if counter is not None else None
