"""Domain layer - pure value objects and the clock abstraction."""

from erp_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from erp_kernel.domain.values import Money

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Money",
]
