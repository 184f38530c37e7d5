"""Pure domain layer: lifecycle rules, line items, request schemas, time."""

from workshop_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workshop_kernel.domain.lifecycle import (
    BUDGET_WORKFLOW,
    ORDER_WORKFLOW,
    BudgetStatus,
    EntityType,
    OrderStatus,
    TransitionDecision,
)
from workshop_kernel.domain.line_items import PartLine, ServiceLine
from workshop_kernel.domain.pagination import Page, PageRequest

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "BUDGET_WORKFLOW",
    "ORDER_WORKFLOW",
    "BudgetStatus",
    "OrderStatus",
    "EntityType",
    "TransitionDecision",
    "PartLine",
    "ServiceLine",
    "Page",
    "PageRequest",
]
