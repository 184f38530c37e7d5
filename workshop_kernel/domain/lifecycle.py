"""
Lifecycle Guard (``workshop_kernel.domain.lifecycle``).

Responsibility
--------------
Decide whether a requested mutation of a Budget or Order is legal *before*
anything is written.  Encodes both status machines, the locked terminal
status of orders, and the part-immutability rules that protect stock
already committed through the Stock Ledger.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over plain values.  ZERO I/O.
Services load the stored state, ask the guard, and only then write.

Invariants enforced
-------------------
* Only edges declared in BUDGET_WORKFLOW / ORDER_WORKFLOW are accepted.
* A "transition" to the current status is not a transition: it is
  accepted, reported as unchanged, and must trigger no side effects.
* A completed order rejects every update, whatever it touches.
* Direct orders: once an inventory-linked part exists, the part list is
  frozen (structural comparison, reordering is not a change).  New
  inventory-linked parts can only be introduced at creation.
* Approved budgets: the inventory-linked parts reserved at approval are
  frozen.

Failure modes
-------------
* InvalidStatusTransitionError -- edge not in the workflow.
* EntityLockedError -- update of a completed order.
* PartsImmutableError -- part change after stock was committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from workshop_kernel.domain.line_items import PartLine, inventory_linked, parts_equal
from workshop_kernel.domain.workflow import Transition, Workflow
from workshop_kernel.exceptions import (
    EntityLockedError,
    InvalidStatusTransitionError,
    PartsImmutableError,
)


class EntityType(str, Enum):
    """Entities whose status changes are tracked."""

    ORDER = "order"
    BUDGET = "budget"


class BudgetStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


BUDGET_WORKFLOW = Workflow(
    name="budget",
    description="Quote lifecycle: a pending budget is approved or rejected once",
    initial_state=BudgetStatus.PENDING.value,
    states=tuple(s.value for s in BudgetStatus),
    transitions=(
        Transition("pending", "approved", action="approve", reserves_stock=True),
        Transition("pending", "rejected", action="reject"),
    ),
    terminal_states=("approved", "rejected"),
)

ORDER_WORKFLOW = Workflow(
    name="order",
    description="Service order lifecycle; completed orders are locked",
    initial_state=OrderStatus.PENDING.value,
    states=tuple(s.value for s in OrderStatus),
    transitions=(
        Transition("pending", "in-progress", action="start"),
        Transition("pending", "cancelled", action="cancel"),
        Transition("in-progress", "completed", action="complete"),
        Transition("in-progress", "cancelled", action="cancel"),
    ),
    terminal_states=("completed", "cancelled"),
    locked_states=("completed",),
)

NO_BUDGET_SENTINEL = "none"


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of a status check that did not raise."""

    from_status: str
    to_status: str
    transition: Transition | None = None

    @property
    def changed(self) -> bool:
        return self.from_status != self.to_status

    @property
    def reserves_stock(self) -> bool:
        return self.transition is not None and self.transition.reserves_stock


def normalise_budget_id(budget_id: Any) -> str | None:
    """Map the "no budget" spellings (None, "", "none") to None."""
    if budget_id is None:
        return None
    value = str(budget_id).strip()
    if not value or value.lower() == NO_BUDGET_SENTINEL:
        return None
    return value


def is_direct_order(budget_id: Any) -> bool:
    return normalise_budget_id(budget_id) is None


def check_transition(
    workflow: Workflow,
    entity_type: EntityType,
    entity_id: Any,
    from_status: str,
    to_status: str | None,
) -> TransitionDecision:
    """
    Validate ``from_status -> to_status`` against ``workflow``.

    ``to_status`` None or equal to ``from_status`` is an unchanged status and
    always passes.
    """
    if to_status is None or to_status == from_status:
        return TransitionDecision(from_status, from_status)
    transition = workflow.find(from_status, to_status)
    if transition is None:
        raise InvalidStatusTransitionError(
            entity_type=entity_type.value,
            entity_id=entity_id,
            from_status=from_status,
            to_status=to_status,
        )
    return TransitionDecision(from_status, to_status, transition)


def guard_order_update(
    order_id: Any,
    status: str,
    budget_id: Any,
    stored_parts: Sequence[PartLine],
    new_status: str | None = None,
    new_parts: Sequence[PartLine] | None = None,
) -> TransitionDecision:
    """Check an order update.  Raises before any write if it is illegal."""
    if status in ORDER_WORKFLOW.locked_states:
        raise EntityLockedError(
            entity_type=EntityType.ORDER.value,
            entity_id=order_id,
            status=status,
        )

    decision = check_transition(
        ORDER_WORKFLOW, EntityType.ORDER, order_id, status, new_status
    )

    if new_parts is not None and is_direct_order(budget_id):
        if inventory_linked(stored_parts):
            if not parts_equal(stored_parts, new_parts):
                raise PartsImmutableError(
                    entity_type=EntityType.ORDER.value,
                    entity_id=order_id,
                    reason="stock has already been committed for this direct "
                    "order; create a new order to change its parts",
                )
        elif inventory_linked(new_parts):
            raise PartsImmutableError(
                entity_type=EntityType.ORDER.value,
                entity_id=order_id,
                reason="inventory-linked parts can only be added when the "
                "order is created",
            )

    return decision


def guard_budget_update(
    budget_id: Any,
    status: str,
    stored_parts: Sequence[PartLine],
    new_status: str | None = None,
    new_parts: Sequence[PartLine] | None = None,
) -> TransitionDecision:
    """Check a budget update.  Raises before any write if it is illegal."""
    decision = check_transition(
        BUDGET_WORKFLOW, EntityType.BUDGET, budget_id, status, new_status
    )

    if (
        new_parts is not None
        and status == BudgetStatus.APPROVED.value
        and not parts_equal(inventory_linked(stored_parts), inventory_linked(new_parts))
    ):
        raise PartsImmutableError(
            entity_type=EntityType.BUDGET.value,
            entity_id=budget_id,
            reason="inventory-linked parts were reserved when the budget "
            "was approved",
        )

    return decision
