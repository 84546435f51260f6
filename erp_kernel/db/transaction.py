"""
Module: erp_kernel.db.transaction
Responsibility: The explicit transactional boundary that module services
    wrap around every multi-record write (payment application, invoice
    creation, reconciliation start/count/finalize).
Architecture position: Kernel > DB.  Imported by erp_modules services.
    Services receive a UnitOfWork (or build one around their session) so
    tests can substitute a recording or failing implementation.

Invariants enforced:
    - All-or-nothing: the work inside ``atomic()`` is committed as one
      transaction or rolled back entirely.  Audit rows written inside the
      block share that fate.
    - Errors propagate unchanged after rollback; nothing is swallowed.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy.orm import Session

from erp_kernel.logging_config import get_logger

logger = get_logger("db.transaction")

T = TypeVar("T")


class UnitOfWork:
    """
    Commit-or-rollback wrapper around a caller-owned Session.

    Usage:
        uow = UnitOfWork(session)
        with uow.atomic("apply_payment") as session:
            ...  # flush as needed; commit happens on exit

        payment = uow.run(lambda s: do_work(s), operation="apply_payment")
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def atomic(self, operation: str = "unit_of_work") -> Iterator[Session]:
        """Run the enclosed block as a single transaction."""
        logger.debug("transaction_started", extra={"operation": operation})
        try:
            yield self.session
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise
        logger.debug("transaction_committed", extra={"operation": operation})

    def run(self, fn: Callable[[Session], T], operation: str = "unit_of_work") -> T:
        """Call ``fn(session)`` inside ``atomic()`` and return its result."""
        with self.atomic(operation) as session:
            return fn(session)
