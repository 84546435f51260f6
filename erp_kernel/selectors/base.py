"""
Module: erp_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the read side used to gather transactionally-consistent inputs for
    the pure engines (ledger events, open invoices, sales history).
Architecture position: Kernel > Selectors.  MUST NOT import from services/ or
    outer packages.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - The caller owns the session, so every query a selector issues for one
      engine call runs against the same snapshot.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from erp_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
