"""
Module: workshop_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the UUID primary key convention, the type annotation map, the
    TrackedBase audit mixin and the OwnedMixin that scopes every workshop
    record to one user.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model gets a uuid4-generated primary key.
    - Money precision: Decimal maps to Numeric(38, 9).  NEVER use float for
      prices or totals.
    - Owner scoping: OwnedMixin makes owner_id a NOT NULL, indexed column so
      every owned row can be filtered by its owner cheaply.
    - Optimistic versioning: mutable models declare ``version`` as their
      mapper version_id_col.  Every ORM UPDATE carries
      ``WHERE version = :old`` and increments it.

Failure modes:
    - sqlalchemy.orm.exc.StaleDataError when an ORM UPDATE finds the version
      already moved on.  Services translate it to OptimisticLockError.

Audit relevance:
    created_at / updated_at / created_by / updated_by are the audit metadata
    of every tracked row.  The Status History table is the authoritative
    trail of lifecycle changes; these columns only record the last touch.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Contract:
        Transparently converts between Python UUID objects and their
        36-character string representation.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE/WHERE.
        - process_result_value: str -> UUID on SELECT.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Contract:
        Every model that inherits TrackedBase records who created and last
        modified the row, and when.  Actors are opaque user identifiers
        (strings) supplied by the identity provider.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at is refreshed on every ORM UPDATE.
        - created_by is required.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)

    updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)


class OwnedMixin:
    """Row belongs to exactly one user; every read and write filters on it."""

    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)


UUID = PyUUID
