"""
Reservation Coordinator in both modes.

Transactional mode rolls the whole unit back on a shortage.  Compensating
mode commits each step and, on a shortage, re-increments what it already
took (newest first) and then undoes the entity change.  Either way the
observable end state is the same: nothing happened.
"""

from decimal import Decimal

import pytest

from workshop_kernel.domain.line_items import PartLine
from workshop_kernel.domain.pagination import PageRequest
from workshop_kernel.domain.requests import BudgetCreateRequest, OrderCreateRequest
from workshop_kernel.exceptions import InsufficientStockError
from workshop_modules.budget.service import BudgetService
from workshop_modules.orders.service import OrderService
from workshop_services.reservation_coordinator import (
    ReservationCoordinator,
    ReservationPlan,
)

from payloads import OWNER_ID, budget_payload, free_part, linked_part, order_payload


def _quantity(inventory_service, item) -> int:
    return inventory_service.get_item(item.id).quantity


def _part(item, quantity: int) -> PartLine:
    return PartLine(
        description=item.name,
        quantity=quantity,
        unit_price=item.unit_price,
        inventory_id=str(item.id),
    )


def _fail_on_second_decrement(monkeypatch, ledger) -> None:
    original = ledger.try_decrement
    calls = []

    def try_decrement(*args, **kwargs):
        calls.append(args)
        if len(calls) == 2:
            raise OverflowError("quantity out of range")
        return original(*args, **kwargs)

    monkeypatch.setattr(ledger, "try_decrement", try_decrement)


@pytest.fixture
def compensating_orders(session, clock) -> OrderService:
    return OrderService(
        session, owner_id=OWNER_ID, actor_id=OWNER_ID, clock=clock, transactional=False
    )


@pytest.fixture
def compensating_budgets(session, clock) -> BudgetService:
    return BudgetService(
        session, owner_id=OWNER_ID, actor_id=OWNER_ID, clock=clock, transactional=False
    )


class TestCoordinatorPlans:

    @pytest.mark.parametrize("transactional", [True, False])
    def test_success_runs_persist_then_finalize(self, session, make_item, inventory_service,
                                                transactional):
        item = make_item(quantity=5)
        calls = []
        coordinator = ReservationCoordinator(
            session, OWNER_ID, OWNER_ID, transactional=transactional
        )

        receipt = coordinator.execute(
            ReservationPlan(
                operation="test_reserve",
                entity_type="Order",
                entity_id="order-1",
                parts=[_part(item, 2), _part(item, 1)],
                persist=lambda: calls.append("persist"),
                undo=lambda: calls.append("undo"),
                finalize=lambda: calls.append("finalize"),
            )
        )

        assert calls == ["persist", "finalize"]
        assert receipt.units_reserved == 3
        assert [r.available for r in receipt.reservations] == [3, 2]
        assert _quantity(inventory_service, item) == 2

    def test_unlinked_parts_are_skipped(self, session):
        coordinator = ReservationCoordinator(session, OWNER_ID, OWNER_ID)
        free = PartLine(description="Rag", quantity=100, unit_price=Decimal("1.00"))

        receipt = coordinator.execute(
            ReservationPlan(
                operation="test_reserve",
                entity_type="Order",
                entity_id="order-1",
                parts=[free],
                persist=lambda: None,
                undo=lambda: None,
            )
        )

        assert receipt.reservations == ()

    def test_transactional_failure_rolls_back_without_undo(self, session, make_item,
                                                          inventory_service):
        first = make_item(quantity=5)
        second = make_item(quantity=0)
        calls = []
        coordinator = ReservationCoordinator(session, OWNER_ID, OWNER_ID, transactional=True)

        with pytest.raises(InsufficientStockError):
            coordinator.execute(
                ReservationPlan(
                    operation="test_reserve",
                    entity_type="Order",
                    entity_id="order-1",
                    parts=[_part(first, 5), _part(second, 1)],
                    persist=lambda: calls.append("persist"),
                    undo=lambda: calls.append("undo"),
                    finalize=lambda: calls.append("finalize"),
                )
            )

        assert calls == ["persist"]
        assert _quantity(inventory_service, first) == 5

    def test_compensating_failure_restores_newest_first(self, session, make_item,
                                                       inventory_service, captured_logs):
        first = make_item(quantity=5)
        second = make_item(quantity=5)
        third = make_item(quantity=0)
        calls = []
        coordinator = ReservationCoordinator(session, OWNER_ID, OWNER_ID, transactional=False)

        with pytest.raises(InsufficientStockError):
            coordinator.execute(
                ReservationPlan(
                    operation="test_reserve",
                    entity_type="Order",
                    entity_id="order-1",
                    parts=[_part(first, 2), _part(second, 3), _part(third, 1)],
                    persist=lambda: calls.append("persist"),
                    undo=lambda: calls.append("undo"),
                    finalize=lambda: calls.append("finalize"),
                )
            )

        assert calls == ["persist", "undo"]
        assert _quantity(inventory_service, first) == 5
        assert _quantity(inventory_service, second) == 5

        increments = [r["item_id"] for r in captured_logs() if r["message"] == "stock_incremented"]
        assert increments == [str(second.id), str(first.id)]
        assert any(r["message"] == "reservation_compensated" for r in captured_logs())



    def test_compensating_unexpected_error_still_compensates(self, session, make_item,
                                                             inventory_service, monkeypatch):
        first = make_item(quantity=5)
        second = make_item(quantity=5)
        calls = []
        coordinator = ReservationCoordinator(session, OWNER_ID, OWNER_ID, transactional=False)
        _fail_on_second_decrement(monkeypatch, coordinator._ledger)

        with pytest.raises(OverflowError):
            coordinator.execute(
                ReservationPlan(
                    operation="test_reserve",
                    entity_type="Order",
                    entity_id="order-1",
                    parts=[_part(first, 2), _part(second, 3)],
                    persist=lambda: calls.append("persist"),
                    undo=lambda: calls.append("undo"),
                    finalize=lambda: calls.append("finalize"),
                )
            )

        assert calls == ["persist", "undo"]
        assert _quantity(inventory_service, first) == 5
        assert _quantity(inventory_service, second) == 5


class TestCompensatingOrders:

    def test_success(self, compensating_orders, make_item, inventory_service):
        item = make_item(quantity=4)

        order = compensating_orders.create_order(
            OrderCreateRequest.from_payload(order_payload(parts=[linked_part(item, 4)]))
        )

        assert order.status == "pending"
        assert _quantity(inventory_service, item) == 0

    def test_shortage_deletes_order_and_restores_stock(self, compensating_orders, make_item,
                                                       inventory_service):
        plenty = make_item(quantity=6)
        scarce = make_item(quantity=1)

        with pytest.raises(InsufficientStockError) as exc_info:
            compensating_orders.create_order(
                OrderCreateRequest.from_payload(
                    order_payload(parts=[linked_part(plenty, 6), linked_part(scarce, 2)])
                )
            )

        assert exc_info.value.item_id == str(scarce.id)
        assert _quantity(inventory_service, plenty) == 6
        assert compensating_orders.list_orders(PageRequest()).total == 0



    def test_unexpected_error_deletes_order_and_restores_stock(self, compensating_orders,
                                                               make_item, inventory_service,
                                                               monkeypatch):
        first = make_item(quantity=6)
        second = make_item(quantity=6)
        _fail_on_second_decrement(monkeypatch, compensating_orders._coordinator._ledger)

        with pytest.raises(OverflowError):
            compensating_orders.create_order(
                OrderCreateRequest.from_payload(
                    order_payload(parts=[linked_part(first, 2), linked_part(second, 2)])
                )
            )

        assert _quantity(inventory_service, first) == 6
        assert _quantity(inventory_service, second) == 6
        assert compensating_orders.list_orders(PageRequest()).total == 0


class TestCompensatingBudgets:

    def test_shortage_restores_pending_status(self, compensating_budgets, make_item,
                                              inventory_service):
        plenty = make_item(quantity=6)
        scarce = make_item(quantity=0)
        budget = compensating_budgets.create_budget(
            BudgetCreateRequest.from_payload(
                budget_payload(
                    parts=[linked_part(plenty, 3), free_part(), linked_part(scarce, 1)]
                )
            )
        )

        with pytest.raises(InsufficientStockError):
            compensating_budgets.approve_budget(budget.id)

        restored = compensating_budgets.get_budget(budget.id)
        assert restored.status == "pending"
        assert restored.parts == budget.parts
        assert _quantity(inventory_service, plenty) == 6
        assert compensating_budgets.get_status_history(budget.id) == []

    def test_success_records_history(self, compensating_budgets, make_item, inventory_service):
        item = make_item(quantity=2)
        budget = compensating_budgets.create_budget(
            BudgetCreateRequest.from_payload(budget_payload(parts=[linked_part(item, 2)]))
        )

        approved = compensating_budgets.approve_budget(budget.id)

        assert approved.status == "approved"
        assert _quantity(inventory_service, item) == 0
        assert len(compensating_budgets.get_status_history(budget.id)) == 1
