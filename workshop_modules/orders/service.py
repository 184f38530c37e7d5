"""
Orders Module Service (``workshop_modules.orders.service``).

Responsibility
--------------
Create, read, update and delete service orders and drive their status
machine.  Direct orders (no budget) with inventory-linked parts reserve
stock at creation through the Reservation Coordinator; orders created
from an approved budget never move stock, because the approval already
did.

Architecture position
---------------------
**Modules layer**.  ``OrderService`` is the sole public entry point for
order operations.  Reads budgets through their ORM model to convert them.

Invariants enforced
-------------------
* Each public method owns the transaction boundary.
* A direct order with linked parts exists if and only if every linked
  part was decremented.
* Completed orders reject every update (Lifecycle Guard, then the ORM
  immutability listener as a second line).
* Direct orders: linked parts are frozen after creation.
* ``actual_end_date`` is stamped from the clock on completion unless the
  request provides one.

Failure modes
-------------
* EntityNotFoundError, PayloadValidationError, InvalidStatusTransitionError,
  EntityLockedError, PartsImmutableError, BudgetNotApprovedError,
  OptimisticLockError, InsufficientStockError, StorageError.

Audit relevance
---------------
``order_created``, ``order_updated``, ``order_deleted`` log events plus one
status history entry per real status change.
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from workshop_kernel.db.scope import OwnerScopedRepository
from workshop_kernel.db.transaction import owned_transaction
from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.lifecycle import (
    BudgetStatus,
    EntityType,
    OrderStatus,
    guard_order_update,
)
from workshop_kernel.domain.line_items import inventory_linked, subtotal
from workshop_kernel.domain.pagination import Page, PageRequest
from workshop_kernel.domain.requests import (
    OrderCreateRequest,
    OrderFromBudgetRequest,
    OrderUpdateRequest,
    check_discount,
)
from workshop_kernel.exceptions import BudgetNotApprovedError
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.status_history import StatusHistoryRecord
from workshop_kernel.selectors.status_history_selector import StatusHistorySelector
from workshop_kernel.services.status_history_recorder import StatusHistoryRecorder
from workshop_modules._service_helpers import (
    apply_fields,
    check_expected_version,
    merge_lines,
    resolve_document_parts,
)
from workshop_modules.budget.orm import BudgetModel
from workshop_modules.orders.models import Order
from workshop_modules.orders.orm import OrderModel
from workshop_services.reservation_coordinator import (
    ReservationCoordinator,
    ReservationPlan,
)

logger = get_logger("modules.orders.service")

ENTITY = "Order"

_ORDER_FIELDS = (
    "customer_id",
    "vehicle_id",
    "notes",
    "mechanic_notes",
    "start_date",
    "estimated_end_date",
    "actual_end_date",
)


class OrderService:
    """
    Order operations on behalf of one owner and actor.

    Usage::

        service = OrderService(session, owner_id="user-1", actor_id="user-1")
        order = service.create_order(OrderCreateRequest.from_payload(payload))
        service.update_order(
            order.id,
            OrderUpdateRequest.from_payload(
                {"expected_version": order.version, "status": "in-progress"}
            ),
        )
    """

    def __init__(
        self,
        session: Session,
        owner_id: str,
        actor_id: str,
        clock: Clock | None = None,
        transactional: bool = True,
        strict_history: bool = False,
    ):
        self.session = session
        self._owner_id = owner_id
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._repo = OwnerScopedRepository(session, OrderModel, owner_id, entity_type=ENTITY)
        self._budgets = OwnerScopedRepository(session, BudgetModel, owner_id, entity_type="Budget")
        self._history = StatusHistoryRecorder(session, clock=self._clock, strict=strict_history)
        self._coordinator = ReservationCoordinator(
            session, owner_id, actor_id, transactional=transactional
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_orders(self, request: PageRequest) -> Page[Order]:
        """Orders of the owner, newest first."""
        with owned_transaction(self.session, "list_orders", ENTITY):
            page = self._repo.page(
                request,
                order_by=(OrderModel.created_at.desc(), OrderModel.id),
            )
            return Page(
                items=tuple(o.to_dto() for o in page.items),
                page=page.page,
                limit=page.limit,
                total=page.total,
            )

    def get_order(self, order_id: Any) -> Order:
        with owned_transaction(self.session, "get_order", ENTITY, order_id):
            return self._repo.require(order_id).to_dto()

    def get_status_history(self, order_id: Any) -> list[StatusHistoryRecord]:
        """Full status trail of one order, oldest first."""
        with owned_transaction(self.session, "get_order_history", ENTITY, order_id):
            order = self._repo.require(order_id)
            return StatusHistorySelector(self.session, self._owner_id).for_entity(
                EntityType.ORDER, order.id
            )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_order(self, request: OrderCreateRequest) -> Order:
        """
        Insert a pending order.

        Direct orders with inventory-linked parts go through the
        Reservation Coordinator: the order exists afterwards only if every
        linked part was decremented.  Budget-linked orders require the
        budget to be approved and never move stock.
        """
        with owned_transaction(self.session, "create_order", ENTITY):
            if not request.is_direct:
                self._require_approved_budget(request.budget_id)

            parts = resolve_document_parts(
                self.session, self._owner_id, "order_create", request.parts
            )
            check_discount("order_create", subtotal(request.services, parts), request.discount)

            order = OrderModel(
                id=uuid4(),
                customer_id=request.customer_id,
                vehicle_id=request.vehicle_id,
                budget_id=request.budget_id,
                status=OrderStatus.PENDING.value,
                start_date=request.start_date,
                estimated_end_date=request.estimated_end_date,
                notes=request.notes,
                mechanic_notes=request.mechanic_notes,
                created_by=self._actor_id,
            )
            order.set_lines(request.services, parts, request.discount)

            if request.is_direct and inventory_linked(parts):
                self._coordinator.execute(
                    ReservationPlan(
                        operation="create_order",
                        entity_type=ENTITY,
                        entity_id=order.id,
                        parts=parts,
                        persist=lambda: self._repo.add(order),
                        undo=lambda: self._repo.delete(order),
                    )
                )
            else:
                self._repo.add(order)
            result = order.to_dto()

        self._log_created(result)
        return result

    def create_from_budget(self, request: OrderFromBudgetRequest) -> Order:
        """
        Convert an approved budget into a pending order.

        Lines, discount and totals are copied from the budget as they are
        now; later edits to either document do not affect the other.
        """
        with owned_transaction(self.session, "create_order_from_budget", ENTITY):
            budget = self._require_approved_budget(request.budget_id)
            order = OrderModel(
                id=uuid4(),
                customer_id=budget.customer_id,
                vehicle_id=budget.vehicle_id,
                budget_id=str(budget.id),
                status=OrderStatus.PENDING.value,
                start_date=request.start_date,
                estimated_end_date=request.estimated_end_date,
                notes=request.notes if request.notes is not None else budget.notes,
                mechanic_notes=request.mechanic_notes,
                created_by=self._actor_id,
            )
            order.set_lines(budget.service_lines(), budget.part_lines(), budget.discount)
            self._repo.add(order)
            result = order.to_dto()

        self._log_created(result)
        return result

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def update_order(self, order_id: Any, request: OrderUpdateRequest) -> Order:
        """Guarded update.  Records history for a real status change."""
        with owned_transaction(
            self.session, "update_order", ENTITY, order_id, request.expected_version
        ):
            order = self._repo.require(order_id)
            new_parts = resolve_document_parts(
                self.session,
                self._owner_id,
                "order_update",
                request.parts,
                stored=order.part_lines(),
            )
            decision = guard_order_update(
                order.id,
                order.status,
                order.budget_id,
                order.part_lines(),
                new_status=request.status,
                new_parts=new_parts,
            )
            check_expected_version(order, request.expected_version, ENTITY)
            lines = merge_lines(
                order, "order_update", request.services, new_parts, request.discount
            )

            apply_fields(order, request, _ORDER_FIELDS)
            if lines is not None:
                order.set_lines(*lines)
            if decision.changed:
                order.status = decision.to_status
                if (
                    decision.to_status == OrderStatus.COMPLETED.value
                    and order.actual_end_date is None
                ):
                    order.actual_end_date = self._clock.now()
            order.updated_by = self._actor_id
            self.session.flush()

            if decision.changed:
                self._history.record(
                    owner_id=self._owner_id,
                    entity_id=order.id,
                    entity_type=EntityType.ORDER,
                    from_status=decision.from_status,
                    to_status=decision.to_status,
                    actor_id=self._actor_id,
                    notes=request.status_notes,
                )
            result = order.to_dto()

        logger.info(
            "order_updated",
            extra={
                "order_id": str(result.id),
                "owner_id": self._owner_id,
                "from_status": decision.from_status,
                "to_status": decision.to_status,
                "version": result.version,
            },
        )
        return result

    def delete_order(self, order_id: Any) -> None:
        """Remove an order in any status.  Stock is not returned."""
        with owned_transaction(self.session, "delete_order", ENTITY, order_id):
            order = self._repo.require(order_id)
            status = order.status
            self._repo.delete(order)

        logger.info(
            "order_deleted",
            extra={"order_id": str(order_id), "owner_id": self._owner_id, "status": status},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_approved_budget(self, budget_id: Any) -> BudgetModel:
        budget = self._budgets.require(budget_id)
        if budget.status != BudgetStatus.APPROVED.value:
            raise BudgetNotApprovedError(budget.id, budget.status)
        return budget

    def _log_created(self, order: Order) -> None:
        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "owner_id": self._owner_id,
                "budget_id": order.budget_id,
                "direct": order.is_direct,
                "linked_parts": len(inventory_linked(order.parts)),
                "total": str(order.total),
            },
        )
