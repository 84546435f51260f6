"""Read-only selectors."""

from erp_kernel.selectors.base import BaseSelector

__all__ = ["BaseSelector"]
