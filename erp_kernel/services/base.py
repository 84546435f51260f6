"""
BaseService -- abstract base for kernel-level write services.

Responsibility:
    Common constructor and session-handling contract for kernel services.
    Kernel services flush within the caller's transaction and never commit
    or roll back; the module service (through its UnitOfWork) owns the
    boundary so multi-step operations stay atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from erp_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only query methods -- those belong in
          selectors.
    """

    def __init__(self, session: Session):
        self.session = session
