"""
Budget Module Service (``workshop_modules.budget.service``).

Responsibility
--------------
Create, read, update and delete budgets (quotes) and drive their status
machine.  Approving a budget reserves every inventory-linked part through
the Reservation Coordinator; rejecting it only records history.

Architecture position
---------------------
**Modules layer**.  ``BudgetService`` is the sole public entry point for
budget operations.  It composes the kernel Lifecycle Guard, the
StatusHistoryRecorder and the services-layer ReservationCoordinator.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (commit on success,
  rollback on any exception).
* The Lifecycle Guard runs before any write.
* pending -> approved decrements stock for every linked part, or nothing
  changes at all (budget stays pending, no stock moved, no history).
* approved -> approved is a no-op: no stock moves twice.
* Status history is written only after the primary change succeeded.

Failure modes
-------------
* EntityNotFoundError, PayloadValidationError, InvalidStatusTransitionError,
  PartsImmutableError, OptimisticLockError, InsufficientStockError,
  StorageError.

Audit relevance
---------------
``budget_created``, ``budget_updated``, ``budget_deleted`` log events plus
one status history entry per real status change.
"""

from __future__ import annotations

from typing import Any, Callable
from uuid import uuid4

from sqlalchemy.orm import Session

from workshop_kernel.db.scope import OwnerScopedRepository
from workshop_kernel.db.transaction import owned_transaction
from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.lifecycle import (
    BudgetStatus,
    EntityType,
    TransitionDecision,
    guard_budget_update,
)
from workshop_kernel.domain.line_items import PartLine, subtotal
from workshop_kernel.domain.pagination import Page, PageRequest
from workshop_kernel.domain.requests import (
    BudgetCreateRequest,
    BudgetUpdateRequest,
    check_discount,
)
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.status_history import StatusHistoryRecord
from workshop_kernel.selectors.status_history_selector import StatusHistorySelector
from workshop_kernel.services.status_history_recorder import StatusHistoryRecorder
from workshop_modules._service_helpers import (
    apply_fields,
    check_expected_version,
    merge_lines,
    resolve_document_parts,
    restore,
    snapshot,
)
from workshop_modules.budget.models import Budget
from workshop_modules.budget.orm import BudgetModel
from workshop_services.reservation_coordinator import (
    ReservationCoordinator,
    ReservationPlan,
)

logger = get_logger("modules.budget.service")

ENTITY = "Budget"


class BudgetService:
    """
    Budget operations on behalf of one owner and actor.

    Usage::

        service = BudgetService(session, owner_id="user-1", actor_id="user-1")
        budget = service.create_budget(BudgetCreateRequest.from_payload(payload))
        service.approve_budget(budget.id, expected_version=budget.version)
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
        self._repo = OwnerScopedRepository(session, BudgetModel, owner_id, entity_type=ENTITY)
        self._history = StatusHistoryRecorder(session, clock=self._clock, strict=strict_history)
        self._coordinator = ReservationCoordinator(
            session, owner_id, actor_id, transactional=transactional
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_budgets(self, request: PageRequest) -> Page[Budget]:
        """Budgets of the owner, newest first."""
        with owned_transaction(self.session, "list_budgets", ENTITY):
            page = self._repo.page(
                request,
                order_by=(BudgetModel.created_at.desc(), BudgetModel.id),
            )
            return Page(
                items=tuple(b.to_dto() for b in page.items),
                page=page.page,
                limit=page.limit,
                total=page.total,
            )

    def get_budget(self, budget_id: Any) -> Budget:
        with owned_transaction(self.session, "get_budget", ENTITY, budget_id):
            return self._repo.require(budget_id).to_dto()

    def get_status_history(self, budget_id: Any) -> list[StatusHistoryRecord]:
        """Full status trail of one budget, oldest first."""
        with owned_transaction(self.session, "get_budget_history", ENTITY, budget_id):
            budget = self._repo.require(budget_id)
            return StatusHistorySelector(self.session, self._owner_id).for_entity(
                EntityType.BUDGET, budget.id
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_budget(self, request: BudgetCreateRequest) -> Budget:
        """Insert a pending budget.  No stock moves until approval."""
        with owned_transaction(self.session, "create_budget", ENTITY):
            parts = resolve_document_parts(
                self.session, self._owner_id, "budget_create", request.parts
            )
            check_discount("budget_create", subtotal(request.services, parts), request.discount)

            budget = BudgetModel(
                id=uuid4(),
                customer_id=request.customer_id,
                vehicle_id=request.vehicle_id,
                budget_date=request.budget_date or self._clock.now(),
                status=BudgetStatus.PENDING.value,
                notes=request.notes,
                created_by=self._actor_id,
            )
            budget.set_lines(request.services, parts, request.discount)
            self._repo.add(budget)
            result = budget.to_dto()

        logger.info(
            "budget_created",
            extra={
                "budget_id": str(result.id),
                "owner_id": self._owner_id,
                "total": str(result.total),
                "part_lines": len(result.parts),
            },
        )
        return result

    def update_budget(self, budget_id: Any, request: BudgetUpdateRequest) -> Budget:
        """
        Guarded update.  A status change to approved takes the approval
        path (stock reservation); any other change is a plain write.
        """
        return self._update(budget_id, request, "update_budget")

    def approve_budget(
        self,
        budget_id: Any,
        expected_version: int | None = None,
        notes: str | None = None,
    ) -> Budget:
        """pending -> approved, reserving every inventory-linked part."""
        request = BudgetUpdateRequest(
            expected_version=expected_version,
            status=BudgetStatus.APPROVED.value,
            status_notes=notes,
        )
        return self._update(budget_id, request, "approve_budget")

    def reject_budget(
        self,
        budget_id: Any,
        expected_version: int | None = None,
        notes: str | None = None,
    ) -> Budget:
        """pending -> rejected.  Records history; stock is untouched."""
        request = BudgetUpdateRequest(
            expected_version=expected_version,
            status=BudgetStatus.REJECTED.value,
            status_notes=notes,
        )
        return self._update(budget_id, request, "reject_budget")

    def delete_budget(self, budget_id: Any) -> None:
        """Remove a budget.  Reserved stock is not returned."""
        with owned_transaction(self.session, "delete_budget", ENTITY, budget_id):
            budget = self._repo.require(budget_id)
            status = budget.status
            self._repo.delete(budget)

        logger.info(
            "budget_deleted",
            extra={"budget_id": str(budget_id), "owner_id": self._owner_id, "status": status},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update(self, budget_id: Any, request: BudgetUpdateRequest, operation: str) -> Budget:
        with owned_transaction(
            self.session, operation, ENTITY, budget_id, request.expected_version
        ):
            budget = self._repo.require(budget_id)
            new_parts = resolve_document_parts(
                self.session,
                self._owner_id,
                "budget_update",
                request.parts,
                stored=budget.part_lines(),
            )
            decision = guard_budget_update(
                budget.id,
                budget.status,
                budget.part_lines(),
                new_status=request.status,
                new_parts=new_parts,
            )
            check_expected_version(budget, request.expected_version, ENTITY)
            lines = merge_lines(
                budget, "budget_update", request.services, new_parts, request.discount
            )
            parts_after = lines[1] if lines is not None else budget.part_lines()

            def persist() -> None:
                apply_fields(budget, request)
                if request.budget_date is not None:
                    budget.budget_date = request.budget_date
                if lines is not None:
                    budget.set_lines(*lines)
                budget.status = decision.to_status
                budget.updated_by = self._actor_id
                self.session.flush()

            self._apply(budget, decision, persist, parts_after, request.status_notes, operation)
            result = budget.to_dto()

        logger.info(
            "budget_updated",
            extra={
                "budget_id": str(result.id),
                "owner_id": self._owner_id,
                "from_status": decision.from_status,
                "to_status": decision.to_status,
                "version": result.version,
            },
        )
        return result

    def _apply(
        self,
        budget: BudgetModel,
        decision: TransitionDecision,
        persist: Callable[[], None],
        parts: tuple[PartLine, ...],
        notes: str | None,
        operation: str,
    ) -> None:
        def record_history() -> None:
            if decision.changed:
                self._history.record(
                    owner_id=self._owner_id,
                    entity_id=budget.id,
                    entity_type=EntityType.BUDGET,
                    from_status=decision.from_status,
                    to_status=decision.to_status,
                    actor_id=self._actor_id,
                    notes=notes,
                )

        if not decision.reserves_stock:
            persist()
            record_history()
            return

        before = snapshot(budget, extra=("budget_date",))

        def undo() -> None:
            restore(budget, before)
            budget.updated_by = self._actor_id
            self.session.flush()

        self._coordinator.execute(
            ReservationPlan(
                operation=operation,
                entity_type=ENTITY,
                entity_id=budget.id,
                parts=parts,
                persist=persist,
                undo=undo,
                finalize=record_history,
            )
        )
