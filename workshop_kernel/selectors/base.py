"""
Read side of the kernel.

Selectors run queries on a session they are handed and return frozen DTOs,
never ORM instances.  They do not add, delete, flush or commit; the module
service that calls them owns the transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workshop_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    def __init__(self, session: Session):
        self.session = session
