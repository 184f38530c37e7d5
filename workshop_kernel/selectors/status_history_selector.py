"""
Module: workshop_kernel.selectors.status_history_selector
Responsibility: Read side of the status history log.
Architecture position: Kernel > Selectors.

Ordering:
    - Per entity: ascending by (timestamp, seq) -- the full audit trail in
      the order it happened.
    - Browsing: descending by (timestamp, seq) -- most recent first.
"""

from typing import Any

from sqlalchemy.orm import Session

from workshop_kernel.db.scope import OwnerScopedRepository, coerce_uuid
from workshop_kernel.domain.lifecycle import EntityType
from workshop_kernel.domain.pagination import Page, PageRequest
from workshop_kernel.models.status_history import StatusHistoryEntry, StatusHistoryRecord
from workshop_kernel.selectors.base import BaseSelector


class StatusHistorySelector(BaseSelector[StatusHistoryEntry]):
    """Owner-scoped queries over StatusHistoryEntry."""

    def __init__(self, session: Session, owner_id: str):
        super().__init__(session)
        self._repo = OwnerScopedRepository(
            session, StatusHistoryEntry, owner_id, entity_type="StatusHistoryEntry"
        )

    def for_entity(self, entity_type: EntityType, entity_id: Any) -> list[StatusHistoryRecord]:
        uid = coerce_uuid(entity_id)
        if uid is None:
            return []
        stmt = self._repo.select(
            StatusHistoryEntry.entity_type == entity_type.value,
            StatusHistoryEntry.entity_id == str(uid),
        ).order_by(StatusHistoryEntry.timestamp.asc(), StatusHistoryEntry.seq.asc())
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]

    def query(
        self,
        request: PageRequest,
        entity_id: Any = None,
        entity_type: EntityType | None = None,
    ) -> Page[StatusHistoryRecord]:
        criteria = []
        if entity_id is not None:
            uid = coerce_uuid(entity_id)
            criteria.append(StatusHistoryEntry.entity_id == (str(uid) if uid else str(entity_id)))
        if entity_type is not None:
            criteria.append(StatusHistoryEntry.entity_type == entity_type.value)

        page = self._repo.page(
            request,
            *criteria,
            order_by=(StatusHistoryEntry.timestamp.desc(), StatusHistoryEntry.seq.desc()),
        )
        return Page(
            items=tuple(row.to_dto() for row in page.items),
            page=page.page,
            limit=page.limit,
            total=page.total,
        )
