"""Database layer - engine, base classes, owner scoping and immutability."""

from workshop_kernel.db.base import UUID, Base, OwnedMixin, TrackedBase, UUIDString
from workshop_kernel.db.engine import create_tables, get_engine, get_session
from workshop_kernel.db.scope import OwnerScopedRepository

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "OwnedMixin",
    "UUIDString",
    "UUID",
    "OwnerScopedRepository",
]
