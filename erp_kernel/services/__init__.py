"""Kernel services - flush-only infrastructure shared by the modules."""

from erp_kernel.services.base import BaseService
from erp_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "BaseService",
    "SequenceCounter",
    "SequenceService",
]
