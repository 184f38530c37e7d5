"""
Module: workshop_kernel.db.scope
Responsibility: Owner-scoped data access.  Every read and write of an owned
    record passes through an OwnerScopedRepository bound to exactly one
    owner, so a query can never see another user's rows.
Architecture position: Kernel > DB.  Imports db/base, domain/pagination and
    exceptions only.

Invariants enforced:
    - Every SELECT carries ``WHERE owner_id = :owner``.
    - A record owned by someone else is indistinguishable from a missing
      one: both raise EntityNotFoundError.
    - An identifier that is not a well-formed UUID resolves to "not found".
    - get() always refreshes the identity map copy from the database, so a
      long-lived session never decides on stale column values.

Failure modes:
    - EntityNotFoundError from require().
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from workshop_kernel.db.base import Base
from workshop_kernel.domain.pagination import Page, PageRequest
from workshop_kernel.exceptions import EntityNotFoundError

ModelType = TypeVar("ModelType", bound=Base)


def coerce_uuid(value: Any) -> UUID | None:
    """Parse ``value`` as a UUID; None when it is not one."""
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


class OwnerScopedRepository(Generic[ModelType]):
    """
    Query and persist one model type on behalf of one owner.

    Contract:
        Flush-only.  The caller owns the transaction.

    Guarantees:
        - All reads are filtered by owner_id.
        - add() stamps owner_id, so callers cannot create foreign rows.

    Non-goals:
        - No cross-owner queries.  There is no admin path.
    """

    def __init__(
        self,
        session: Session,
        model: type[ModelType],
        owner_id: str,
        entity_type: str | None = None,
    ):
        self.session = session
        self.model = model
        self.owner_id = owner_id
        self.entity_type = entity_type or model.__name__

    def select(self, *criteria: ColumnElement[bool]) -> Select:
        return select(self.model).where(
            self.model.owner_id == self.owner_id, *criteria
        )

    def get(self, entity_id: Any, for_update: bool = False) -> ModelType | None:
        uid = coerce_uuid(entity_id)
        if uid is None:
            return None
        stmt = self.select(self.model.id == uid).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def require(self, entity_id: Any, for_update: bool = False) -> ModelType:
        """Load the record or raise EntityNotFoundError."""
        entity = self.get(entity_id, for_update=for_update)
        if entity is None:
            raise EntityNotFoundError(self.entity_type, entity_id)
        return entity

    def count(self, *criteria: ColumnElement[bool]) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(self.model.owner_id == self.owner_id, *criteria)
        )
        return self.session.execute(stmt).scalar_one()

    def page(
        self,
        request: PageRequest,
        *criteria: ColumnElement[bool],
        order_by: tuple = (),
    ) -> Page[ModelType]:
        total = self.count(*criteria)
        stmt = (
            self.select(*criteria)
            .order_by(*order_by)
            .offset(request.offset)
            .limit(request.limit)
        )
        rows = tuple(self.session.execute(stmt).scalars().all())
        return Page(items=rows, page=request.page, limit=request.limit, total=total)

    def add(self, entity: ModelType) -> ModelType:
        entity.owner_id = self.owner_id
        self.session.add(entity)
        self.session.flush()
        return entity

    def delete(self, entity: ModelType) -> None:
        if entity.owner_id != self.owner_id:
            raise EntityNotFoundError(self.entity_type, entity.id)
        self.session.delete(entity)
        self.session.flush()
