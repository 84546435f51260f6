"""Database layer - engine, base classes, types, unit of work."""

from erp_kernel.db.base import Base, TrackedBase, UUIDString
from erp_kernel.db.engine import create_tables, get_engine, get_session
from erp_kernel.db.transaction import UnitOfWork

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UnitOfWork",
]
