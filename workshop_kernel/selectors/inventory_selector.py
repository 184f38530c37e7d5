"""Read-only inventory queries (listing, low-stock report)."""

from sqlalchemy.orm import Session

from workshop_kernel.db.scope import OwnerScopedRepository
from workshop_kernel.domain.pagination import Page, PageRequest
from workshop_kernel.models.inventory_item import InventoryItem, InventoryItemInfo
from workshop_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector[InventoryItem]):
    """Owner-scoped inventory reads returning InventoryItemInfo DTOs."""

    def __init__(self, session: Session, owner_id: str):
        super().__init__(session)
        self._repo = OwnerScopedRepository(session, InventoryItem, owner_id)

    def _to_page(self, page: Page[InventoryItem]) -> Page[InventoryItemInfo]:
        return Page(
            items=tuple(item.to_dto() for item in page.items),
            page=page.page,
            limit=page.limit,
            total=page.total,
        )

    def list(self, request: PageRequest) -> Page[InventoryItemInfo]:
        return self._to_page(
            self._repo.page(request, order_by=(InventoryItem.name.asc(), InventoryItem.id))
        )

    def low_stock(self, request: PageRequest) -> Page[InventoryItemInfo]:
        """Items at or below their reorder threshold, emptiest first."""
        return self._to_page(
            self._repo.page(
                request,
                InventoryItem.quantity <= InventoryItem.min_quantity,
                order_by=(InventoryItem.quantity.asc(), InventoryItem.name.asc()),
            )
        )

    def get(self, item_id) -> InventoryItemInfo | None:
        item = self._repo.get(item_id)
        return item.to_dto() if item is not None else None
