"""
StockLedger -- the only writer of ``InventoryItem.quantity``.

Responsibility:
    Atomic, never-negative stock movements.  A decrement is one conditional
    UPDATE whose WHERE clause carries the precondition
    ``quantity >= :amount``; the database evaluates the check and applies
    the subtraction in the same step, so concurrent callers racing for the
    last units can never oversell.

Architecture position:
    Kernel > Services.  Flush-only: the Reservation Coordinator and the
    inventory module own the transaction.

Invariants enforced:
    - Quantity never goes negative: there is no read-then-write path.
      The CHECK constraint on the column is the second line.
    - Every movement increments ``version`` in the same statement, so an
      ORM copy of the row that was loaded earlier can no longer overwrite
      the new quantity (optimistic lock).
    - Owner scoping: every statement filters on owner_id.  An item of
      another owner behaves exactly like a missing one.

Failure modes:
    - try_decrement() never raises for lack of stock; it returns a result
      with status INSUFFICIENT_STOCK and the caller decides (no retries here).
    - set_quantity() raises EntityNotFoundError or OptimisticLockError.
    - ValueError for a non-positive amount (a programming error upstream;
      request validation rejects such payloads earlier).
    - sqlalchemy errors propagate unchanged.

Audit relevance:
    Every movement is logged with item id, owner, amount and resulting
    quantity (``stock_decremented``, ``stock_insufficient``,
    ``stock_incremented``, ``stock_quantity_set``).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from workshop_kernel.db.scope import coerce_uuid
from workshop_kernel.exceptions import (
    EntityNotFoundError,
    InsufficientStockError,
    OptimisticLockError,
)
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.inventory_item import InventoryItem, InventoryItemInfo
from workshop_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")


class DecrementStatus(str, Enum):
    APPLIED = "applied"
    INSUFFICIENT_STOCK = "insufficient_stock"


@dataclass(frozen=True)
class DecrementResult:
    """
    Outcome of one conditional decrement.

    ``available`` is the on-hand quantity observed right after the attempt:
    the new quantity on success, the unchanged quantity (or 0 for a missing
    item) on failure.
    """

    status: DecrementStatus
    item_id: str
    requested: int
    available: int
    item: InventoryItemInfo | None = None

    @property
    def ok(self) -> bool:
        return self.status == DecrementStatus.APPLIED

    def to_error(self) -> InsufficientStockError:
        return InsufficientStockError(
            item_id=self.item_id,
            available=self.available,
            requested=self.requested,
            sku=self.item.sku if self.item else None,
            name=self.item.name if self.item else None,
        )

    def raise_for_status(self) -> None:
        if not self.ok:
            raise self.to_error()


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"stock movement amount must be a positive integer, got {amount!r}")


class StockLedger(BaseService[InventoryItem]):
    """
    Conditional decrement / compensating increment / compare-and-set.

    Contract:
        One SQL statement per movement.  Never commits.

    Guarantees:
        - try_decrement linearizes per item: PostgreSQL re-evaluates the
          WHERE clause after waiting on the row lock; SQLite serializes
          writers with BEGIN IMMEDIATE.

    Non-goals:
        - No retries, no reservations across items, no restocking policy.
    """

    def __init__(self, session: Session, actor_id: str | None = None):
        super().__init__(session)
        self._actor_id = actor_id

    def _load(self, item_id: Any, owner_id: str) -> InventoryItem | None:
        uid = coerce_uuid(item_id)
        if uid is None:
            return None
        return self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == uid, InventoryItem.owner_id == owner_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _movement(self, uid, owner_id: str, *criteria, **values):
        stmt = (
            update(InventoryItem)
            .where(
                InventoryItem.id == uid,
                InventoryItem.owner_id == owner_id,
                *criteria,
            )
            .values(
                version=InventoryItem.version + 1,
                updated_by=self._actor_id,
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount

    def try_decrement(self, item_id: Any, owner_id: str, amount: int) -> DecrementResult:
        """
        Subtract ``amount`` if and only if at least ``amount`` is on hand.

        Preconditions: amount > 0.
        """
        _check_amount(amount)
        uid = coerce_uuid(item_id)

        matched = 0
        if uid is not None:
            matched = self._movement(
                uid,
                owner_id,
                InventoryItem.quantity >= amount,
                quantity=InventoryItem.quantity - amount,
            )

        item = self._load(uid, owner_id) if uid is not None else None
        info = item.to_dto() if item is not None else None

        if matched == 1:
            logger.info(
                "stock_decremented",
                extra={
                    "item_id": str(uid),
                    "owner_id": owner_id,
                    "amount": amount,
                    "quantity_after": info.quantity,
                },
            )
            return DecrementResult(
                status=DecrementStatus.APPLIED,
                item_id=str(uid),
                requested=amount,
                available=info.quantity,
                item=info,
            )

        available = info.quantity if info is not None else 0
        logger.warning(
            "stock_insufficient",
            extra={
                "item_id": str(item_id),
                "owner_id": owner_id,
                "requested": amount,
                "available": available,
                "item_exists": info is not None,
            },
        )
        return DecrementResult(
            status=DecrementStatus.INSUFFICIENT_STOCK,
            item_id=str(item_id),
            requested=amount,
            available=available,
            item=info,
        )

    def increment(self, item_id: Any, owner_id: str, amount: int) -> InventoryItemInfo | None:
        """
        Add ``amount`` back (compensation for an earlier decrement).

        No precondition on stock.  Returns None only when the item has
        vanished, which is logged but not raised.
        """
        _check_amount(amount)
        uid = coerce_uuid(item_id)
        matched = 0
        if uid is not None:
            matched = self._movement(
                uid, owner_id, quantity=InventoryItem.quantity + amount
            )
        if matched != 1:
            logger.warning(
                "stock_increment_target_missing",
                extra={"item_id": str(item_id), "owner_id": owner_id, "amount": amount},
            )
            return None

        info = self._load(uid, owner_id).to_dto()
        logger.info(
            "stock_incremented",
            extra={
                "item_id": str(uid),
                "owner_id": owner_id,
                "amount": amount,
                "quantity_after": info.quantity,
            },
        )
        return info

    def set_quantity(
        self,
        item_id: Any,
        owner_id: str,
        new_quantity: int,
        expected_version: int,
    ) -> InventoryItemInfo:
        """
        Overwrite the on-hand quantity (manual stock count / correction).

        Compare-and-set on ``version``: the write only lands if nobody moved
        the item since the caller read ``expected_version``.

        Raises:
            EntityNotFoundError: no such item for this owner.
            OptimisticLockError: version moved on.
        """
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
            raise ValueError(f"quantity must be a non-negative integer, got {new_quantity!r}")
        uid = coerce_uuid(item_id)
        matched = 0
        if uid is not None:
            matched = self._movement(
                uid,
                owner_id,
                InventoryItem.version == expected_version,
                quantity=new_quantity,
            )

        item = self._load(uid, owner_id) if uid is not None else None
        if item is None:
            raise EntityNotFoundError("InventoryItem", item_id)
        if matched != 1:
            raise OptimisticLockError(
                entity_type="InventoryItem",
                entity_id=item.id,
                expected_version=expected_version,
                actual_version=item.version,
            )

        logger.info(
            "stock_quantity_set",
            extra={
                "item_id": str(uid),
                "owner_id": owner_id,
                "quantity_after": new_quantity,
                "version": item.version,
            },
        )
        return item.to_dto()
