"""
ORM-level immutability (``workshop_kernel.db.immutability``).

Status history entries are append-only; completed orders reject any change
at flush time even when the service-level guard is bypassed.
"""

from uuid import uuid4

import pytest

from workshop_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from workshop_kernel.domain.lifecycle import EntityType
from workshop_kernel.domain.requests import OrderUpdateRequest
from workshop_kernel.exceptions import ImmutabilityViolationError
from workshop_kernel.models.status_history import StatusHistoryEntry
from workshop_kernel.services.status_history_recorder import StatusHistoryRecorder
from workshop_modules.orders.orm import OrderModel

from payloads import OWNER_ID


def _advance(order_service, order, status):
    return order_service.update_order(
        order.id,
        OrderUpdateRequest.from_payload({"expected_version": order.version, "status": status}),
    )


@pytest.fixture
def history_entry(session, clock):
    record = StatusHistoryRecorder(session, clock=clock).record(
        owner_id=OWNER_ID,
        entity_id=uuid4(),
        entity_type=EntityType.ORDER,
        from_status="pending",
        to_status="cancelled",
        actor_id=OWNER_ID,
    )
    session.commit()
    return session.get(StatusHistoryEntry, record.id)


class TestStatusHistoryAppendOnly:

    def test_update_blocked(self, session, history_entry):
        history_entry.notes = "rewritten"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        session.rollback()

        assert exc_info.value.entity_type == "status_history_entry"

    def test_delete_blocked(self, session, history_entry):
        session.delete(history_entry)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        assert session.get(StatusHistoryEntry, history_entry.id) is not None


class TestCompletedOrderLocked:

    def test_direct_modification_blocked(self, session, make_order, order_service):
        order = make_order()
        order = _advance(order_service, order, "in-progress")
        order = _advance(order_service, order, "completed")

        model = session.get(OrderModel, order.id)
        model.mechanic_notes = "edited after completion"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        session.rollback()

        assert "completed" in exc_info.value.reason

    def test_status_change_out_of_completed_blocked(self, session, make_order, order_service):
        order = make_order()
        order = _advance(order_service, order, "in-progress")
        order = _advance(order_service, order, "completed")

        model = session.get(OrderModel, order.id)
        model.status = "in-progress"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_transition_into_completed_allowed(self, make_order, order_service):
        order = make_order()
        order = _advance(order_service, order, "in-progress")

        completed = _advance(order_service, order, "completed")

        assert completed.status == "completed"

    def test_cancelled_order_is_not_locked(self, session, make_order, order_service):
        order = _advance(order_service, make_order(), "cancelled")

        model = session.get(OrderModel, order.id)
        model.notes = "customer will return next month"
        session.commit()

        assert order_service.get_order(order.id).notes == "customer will return next month"


class TestListenerRegistration:

    def test_unregistered_listeners_allow_writes(self, session, history_entry):
        unregister_immutability_listeners()
        try:
            history_entry.notes = "maintenance fix"
            session.commit()
        finally:
            register_immutability_listeners()

        assert session.get(StatusHistoryEntry, history_entry.id).notes == "maintenance fix"

    def test_registration_is_idempotent(self, session, history_entry):
        register_immutability_listeners()
        register_immutability_listeners()
        history_entry.notes = "rewritten"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
