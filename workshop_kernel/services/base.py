"""
BaseService -- common root of the kernel's write-side services.

The Stock Ledger, the Status History Recorder and sequence allocation all
write through a session they are handed and only ever ``flush()``.  Commit
and rollback belong to whoever opened the transaction (a module service or
the Reservation Coordinator), which is what lets "create the order and
reserve every part" succeed or fail as one unit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workshop_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Holds the caller's session.

    Non-goals:
        - No transaction management.
        - No read-only queries; those live in ``workshop_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
