"""
Inventory Module Service (``workshop_modules.inventory.service``).

Responsibility
--------------
CRUD over the owner's stocked parts plus the low-stock report.  Descriptive
fields are written through the ORM; the on-hand quantity is never written
here directly but through ``StockLedger.set_quantity`` (compare-and-set on
``version``), so a manual stock count cannot silently overwrite a
reservation that landed in between.

Architecture position
---------------------
**Modules layer** -- thin glue over ``OwnerScopedRepository``,
``InventorySelector`` and the kernel ``StockLedger``.

Invariants
----------
- Each public method owns its transaction boundary.
- ``sku`` is unique per owner (checked up front, backed by the unique
  constraint).
- Quantity never goes negative (request validation, ledger, CHECK).

Failure Modes
-------------
- EntityNotFoundError, DuplicateEntityError, OptimisticLockError,
  StorageError.  Any exception rolls the session back before re-raise.

Usage::

    service = InventoryService(session, owner_id="user-1", actor_id="user-1")
    item = service.create_item(InventoryCreateRequest.from_payload(payload))
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workshop_kernel.db.scope import OwnerScopedRepository
from workshop_kernel.db.transaction import owned_transaction
from workshop_kernel.domain.pagination import Page, PageRequest
from workshop_kernel.domain.requests import InventoryCreateRequest, InventoryUpdateRequest
from workshop_kernel.exceptions import DuplicateEntityError
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.inventory_item import InventoryItem, InventoryItemInfo
from workshop_kernel.selectors.inventory_selector import InventorySelector
from workshop_kernel.services.stock_ledger import StockLedger
from workshop_modules._service_helpers import check_expected_version

logger = get_logger("modules.inventory.service")

ENTITY = "InventoryItem"


class InventoryService:
    """Inventory operations on behalf of one owner and actor."""

    def __init__(self, session: Session, owner_id: str, actor_id: str):
        self.session = session
        self._owner_id = owner_id
        self._actor_id = actor_id
        self._repo = OwnerScopedRepository(session, InventoryItem, owner_id, entity_type=ENTITY)
        self._selector = InventorySelector(session, owner_id)
        self._ledger = StockLedger(session, actor_id=actor_id)

    def list_items(self, request: PageRequest) -> Page[InventoryItemInfo]:
        with owned_transaction(self.session, "list_inventory", ENTITY):
            return self._selector.list(request)

    def list_low_stock(self, request: PageRequest) -> Page[InventoryItemInfo]:
        """Items with ``quantity <= min_quantity``."""
        with owned_transaction(self.session, "list_low_stock", ENTITY):
            return self._selector.low_stock(request)

    def get_item(self, item_id: Any) -> InventoryItemInfo:
        with owned_transaction(self.session, "get_inventory_item", ENTITY, item_id):
            return self._repo.require(item_id).to_dto()

    def create_item(self, request: InventoryCreateRequest) -> InventoryItemInfo:
        with owned_transaction(self.session, "create_inventory_item", ENTITY):
            self._check_sku_free(request.sku)
            item = InventoryItem(
                name=request.name,
                sku=request.sku,
                quantity=request.quantity,
                min_quantity=request.min_quantity,
                unit_price=request.unit_price,
                description=request.description,
                category=request.category,
                supplier=request.supplier,
                notes=request.notes,
                created_by=self._actor_id,
            )
            try:
                self._repo.add(item)
            except IntegrityError as exc:
                raise DuplicateEntityError(ENTITY, "sku", request.sku) from exc
            result = item.to_dto()

        logger.info(
            "inventory_item_created",
            extra={
                "item_id": str(result.id),
                "owner_id": self._owner_id,
                "sku": result.sku,
                "quantity": result.quantity,
            },
        )
        return result

    def update_item(self, item_id: Any, request: InventoryUpdateRequest) -> InventoryItemInfo:
        """
        Update descriptive fields and/or the on-hand quantity.

        Both parts of the update are conditional on ``expected_version``;
        a reservation that moved the quantity in between makes the whole
        update fail with OptimisticLockError.
        """
        with owned_transaction(
            self.session, "update_inventory_item", ENTITY, item_id, request.expected_version
        ):
            item = self._repo.require(item_id)
            check_expected_version(item, request.expected_version, ENTITY)

            changes = request.field_changes()
            if "sku" in changes and changes["sku"] != item.sku:
                self._check_sku_free(changes["sku"])
            for name, value in changes.items():
                setattr(item, name, value)
            if changes:
                item.updated_by = self._actor_id
            try:
                self.session.flush()
            except IntegrityError as exc:
                raise DuplicateEntityError(ENTITY, "sku", changes.get("sku", item.sku)) from exc

            result = item.to_dto()
            if request.quantity is not None and request.quantity != item.quantity:
                result = self._ledger.set_quantity(
                    item.id, self._owner_id, request.quantity, expected_version=item.version
                )

        logger.info(
            "inventory_item_updated",
            extra={
                "item_id": str(result.id),
                "owner_id": self._owner_id,
                "fields": sorted(changes),
                "quantity": result.quantity,
                "version": result.version,
            },
        )
        return result

    def delete_item(self, item_id: Any) -> None:
        """
        Remove an item.  Part lines that reference it keep their snapshot;
        the reference simply stops resolving.
        """
        with owned_transaction(self.session, "delete_inventory_item", ENTITY, item_id):
            item = self._repo.require(item_id)
            sku = item.sku
            self._repo.delete(item)

        logger.info(
            "inventory_item_deleted",
            extra={"item_id": str(item_id), "owner_id": self._owner_id, "sku": sku},
        )

    def _check_sku_free(self, sku: str) -> None:
        if self._repo.count(InventoryItem.sku == sku):
            raise DuplicateEntityError(ENTITY, "sku", sku)
