"""
ReservationCoordinator -- "write the entity" + "reserve every part" as one unit.

Responsibility:
    The only component that decides when stock moves.  Given a plan (persist
    a new direct order, or flip a budget to approved) and the part lines to
    reserve, it walks the parts in order and, for each inventory-linked
    line, calls ``StockLedger.try_decrement``.  The first shortfall stops the
    walk and the whole operation is undone; the caller gets one
    InsufficientStockError naming the item, the quantity available and the
    quantity requested.

Architecture position:
    Services layer.  Imports the kernel only.  Module services build a
    ReservationPlan with entity-specific callbacks and hand it over; the
    coordinator owns the transaction boundary while it runs.

Modes:
    transactional (default)
        persist + every decrement + finalize share one database
        transaction.  A failure rolls it back: neither the entity change
        nor any decrement survives.
    compensating (``reservations.transactional: false``)
        Each step commits on its own.  On failure the coordinator
        re-increments every part it already decremented (newest first) and
        then runs the plan's ``undo`` callback (delete the new order /
        restore the budget status), each in its own commit.

Invariants enforced:
    - All-or-nothing: after execute() returns or raises, either every
      reservation and the entity change are committed, or none is.
    - finalize (status history) only runs after every reservation
      succeeded.

Failure modes:
    - InsufficientStockError after a complete undo.
    - StorageError / OptimisticLockError from any step; in compensating
      mode the undo is attempted before the error propagates.
    - A failure during compensation is logged as
      ``reservation_compensation_failed`` and propagates.

Audit relevance:
    ``reservation_committed``, ``reservation_aborted`` and
    ``reservation_compensated`` log entries carry the operation, entity and
    per-part outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from sqlalchemy.orm import Session

from workshop_kernel.db.transaction import owned_transaction
from workshop_kernel.domain.line_items import PartLine, inventory_linked
from workshop_kernel.exceptions import InsufficientStockError
from workshop_kernel.logging_config import get_logger
from workshop_kernel.services.stock_ledger import DecrementResult, StockLedger

logger = get_logger("services.reservation_coordinator")


@dataclass(frozen=True)
class ReservationPlan:
    """
    What to do around the reservations.

    persist:  write the entity change and flush (insert order / set status).
    undo:     reverse ``persist`` after it was committed (compensating mode).
    finalize: post-success side effects, e.g. status history.
    """

    operation: str
    entity_type: str
    entity_id: Any
    parts: Sequence[PartLine]
    persist: Callable[[], None]
    undo: Callable[[], None]
    finalize: Callable[[], None] | None = None


@dataclass(frozen=True)
class ReservationReceipt:
    operation: str
    entity_id: str
    reservations: tuple[DecrementResult, ...]

    @property
    def units_reserved(self) -> int:
        return sum(r.requested for r in self.reservations)


class ReservationCoordinator:
    """
    Runs ReservationPlans against the Stock Ledger.

    Contract:
        execute() commits on success and leaves nothing behind on failure.

    Non-goals:
        - No partial reservations, no back-orders, no retry on shortage.
        - No restocking on cancellation or deletion.
    """

    def __init__(
        self,
        session: Session,
        owner_id: str,
        actor_id: str,
        transactional: bool = True,
    ):
        self.session = session
        self.owner_id = owner_id
        self.actor_id = actor_id
        self.transactional = transactional
        self._ledger = StockLedger(session, actor_id=actor_id)

    def execute(self, plan: ReservationPlan) -> ReservationReceipt:
        linked = inventory_linked(plan.parts)
        logger.info(
            "reservation_started",
            extra={
                "operation": plan.operation,
                "entity_type": plan.entity_type,
                "entity_id": str(plan.entity_id),
                "linked_parts": len(linked),
                "transactional": self.transactional,
            },
        )
        if self.transactional:
            results = self._execute_transactional(plan, linked)
        else:
            results = self._execute_compensating(plan, linked)

        logger.info(
            "reservation_committed",
            extra={
                "operation": plan.operation,
                "entity_id": str(plan.entity_id),
                "reservations": [
                    {"item_id": r.item_id, "quantity": r.requested, "after": r.available}
                    for r in results
                ],
            },
        )
        return ReservationReceipt(
            operation=plan.operation,
            entity_id=str(plan.entity_id),
            reservations=tuple(results),
        )

    def _decrement(self, part: PartLine) -> DecrementResult:
        result = self._ledger.try_decrement(part.inventory_id, self.owner_id, part.quantity)
        if not result.ok:
            raise result.to_error()
        return result

    def _log_aborted(self, plan: ReservationPlan, exc: InsufficientStockError) -> None:
        logger.warning(
            "reservation_aborted",
            extra={
                "operation": plan.operation,
                "entity_type": plan.entity_type,
                "entity_id": str(plan.entity_id),
                "item_id": exc.item_id,
                "available": exc.available,
                "requested": exc.requested,
            },
        )

    def _execute_transactional(
        self, plan: ReservationPlan, linked: Sequence[PartLine]
    ) -> list[DecrementResult]:
        results: list[DecrementResult] = []
        try:
            with owned_transaction(
                self.session, plan.operation, plan.entity_type, plan.entity_id
            ):
                plan.persist()
                for part in linked:
                    results.append(self._decrement(part))
                if plan.finalize is not None:
                    plan.finalize()
        except InsufficientStockError as exc:
            self._log_aborted(plan, exc)
            raise
        return results

    def _execute_compensating(
        self, plan: ReservationPlan, linked: Sequence[PartLine]
    ) -> list[DecrementResult]:
        with owned_transaction(
            self.session, plan.operation, plan.entity_type, plan.entity_id
        ):
            plan.persist()

        applied: list[DecrementResult] = []
        try:
            for part in linked:
                with owned_transaction(
                    self.session, "stock_decrement", "InventoryItem", part.inventory_id
                ):
                    result = self._ledger.try_decrement(
                        part.inventory_id, self.owner_id, part.quantity
                    )
                if not result.ok:
                    raise result.to_error()
                applied.append(result)

            if plan.finalize is not None:
                with owned_transaction(
                    self.session, plan.operation, plan.entity_type, plan.entity_id
                ):
                    plan.finalize()
        except Exception as exc:
            if isinstance(exc, InsufficientStockError):
                self._log_aborted(plan, exc)
            self._compensate(plan, applied)
            raise
        return applied

    def _compensate(self, plan: ReservationPlan, applied: list[DecrementResult]) -> None:
        try:
            for result in reversed(applied):
                with owned_transaction(
                    self.session, "stock_compensate", "InventoryItem", result.item_id
                ):
                    self._ledger.increment(result.item_id, self.owner_id, result.requested)
            with owned_transaction(
                self.session, f"{plan.operation}_undo", plan.entity_type, plan.entity_id
            ):
                plan.undo()
        except Exception:
            logger.error(
                "reservation_compensation_failed",
                extra={
                    "operation": plan.operation,
                    "entity_id": str(plan.entity_id),
                    "reservations_restored": [r.item_id for r in applied],
                },
                exc_info=True,
            )
            raise

        logger.warning(
            "reservation_compensated",
            extra={
                "operation": plan.operation,
                "entity_type": plan.entity_type,
                "entity_id": str(plan.entity_id),
                "restored": [
                    {"item_id": r.item_id, "quantity": r.requested} for r in applied
                ],
            },
        )
