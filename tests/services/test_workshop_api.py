"""
Tests for the WorkshopAPI facade: authentication, status codes, error
bodies, pagination envelopes and the status history endpoints.
"""

import pytest

from workshop_config import DatabaseConfig, WorkshopConfig
from workshop_kernel.db.engine import reset_engine
from workshop_modules.inventory.service import InventoryService
from workshop_services.api import WorkshopAPI, create_api
from workshop_services.identity import MappingIdentityProvider

from payloads import OTHER_OWNER_ID, OWNER_ID, budget_payload, linked_part, order_payload

ALICE = {"Authorization": "Bearer token-a"}
BOB = {"authorization": "bearer token-b"}


@pytest.fixture
def api(session_factory, clock) -> WorkshopAPI:
    return WorkshopAPI(
        session_factory,
        identity_provider=MappingIdentityProvider({"token-a": OWNER_ID, "token-b": OTHER_OWNER_ID}),
        config=WorkshopConfig(),
        clock=clock,
    )


def _item(api, headers=ALICE, **fields) -> dict:
    payload = {"name": "Brake pad", "sku": "BP-1", "quantity": 5, "unit_price": "12.00", **fields}
    result = api.create_inventory_item(headers, payload)
    assert result.status == 201, result.error
    return result.data


class _Ref:
    """Quacks like an InventoryItemInfo for the payload builders."""

    def __init__(self, data: dict):
        self.id = data["id"]


class TestAuthentication:

    @pytest.mark.parametrize(
        "headers",
        [None, {}, {"Authorization": "Bearer nope"}, {"Authorization": "Basic token-a"}],
    )
    def test_unauthenticated_calls_are_rejected(self, api, headers):
        result = api.list_inventory(headers)

        assert result.status == 401
        assert result.error.kind == "unauthorized"
        assert result.error.code == "UNAUTHORIZED"

    def test_no_session_opened_for_anonymous_calls(self, clock):
        opened = []
        api = WorkshopAPI(
            lambda: opened.append(1),
            identity_provider=MappingIdentityProvider({}),
            clock=clock,
        )

        assert api.create_inventory_item(ALICE, {"name": "x"}).status == 401
        assert opened == []

    def test_header_name_and_scheme_are_case_insensitive(self, api):
        _item(api, headers=BOB)
        assert api.list_inventory(BOB).data["total_count"] == 1


class TestStatusCodes:

    def test_create_returns_201_and_envelope(self, api):
        result = api.create_inventory_item(
            ALICE, {"name": "Oil", "sku": "OIL-1", "quantity": 3, "unit_price": "9.50"}
        )

        assert result.status == 201
        body = result.to_dict()
        assert body["success"] is True
        assert body["data"]["unit_price"] == "9.50"

    def test_validation_error_is_400(self, api):
        result = api.create_inventory_item(ALICE, {"sku": "X", "quantity": -1})

        assert result.status == 400
        assert result.error.kind == "validation_error"
        assert result.error.code == "INVALID_PAYLOAD"
        fields = {e["field"] for e in result.error.details["field_errors"]}
        assert {"name", "quantity"} <= fields

    def test_missing_and_foreign_items_are_404(self, api):
        item = _item(api)

        assert api.get_inventory_item(ALICE, "not-a-uuid").status == 404
        foreign = api.get_inventory_item(BOB, item["id"])
        assert foreign.status == 404
        assert foreign.error.kind == "not_found"

    def test_stale_version_is_409(self, api):
        item = _item(api)

        result = api.update_inventory_item(
            ALICE, item["id"], {"expected_version": item["version"] + 3, "quantity": 1}
        )

        assert result.status == 409
        assert result.error.code == "OPTIMISTIC_LOCK_CONFLICT"

    def test_duplicate_sku_is_409(self, api):
        _item(api, sku="SAME")

        result = api.create_inventory_item(
            ALICE, {"name": "Other", "sku": "SAME", "quantity": 1, "unit_price": "1"}
        )

        assert result.status == 409
        assert result.error.code == "DUPLICATE_ENTITY"

    def test_insufficient_stock_is_409_with_quantities(self, api):
        item = _item(api, quantity=2)

        result = api.create_order(ALICE, order_payload(parts=[linked_part(_Ref(item), 3)]))

        assert result.status == 409
        assert result.error.kind == "insufficient_stock"
        assert result.error.details["available"] == 2
        assert result.error.details["requested"] == 3
        assert result.error.details["item_id"] == item["id"]
        assert api.list_orders(ALICE).data["total_count"] == 0

    def test_unexpected_error_is_500(self, api, monkeypatch, captured_logs):
        def _boom(self, request):
            raise RuntimeError("boom")

        monkeypatch.setattr(InventoryService, "list_items", _boom)

        result = api.list_inventory(ALICE)

        assert result.status == 500
        assert result.error.code == "INTERNAL_ERROR"
        assert result.error.message == "internal error"
        (logged,) = [r for r in captured_logs() if r["message"] == "api_unhandled_error"]
        assert logged["operation"] == "list_inventory"
        assert "RuntimeError" in logged["traceback"]

    def test_delete_returns_confirmation(self, api):
        item = _item(api)

        result = api.delete_inventory_item(ALICE, item["id"])

        assert result.data == {"id": item["id"], "deleted": True}
        assert api.get_inventory_item(ALICE, item["id"]).status == 404


class TestPagination:

    def test_page_envelope(self, api):
        for n in range(3):
            _item(api, sku=f"P-{n}", name=f"Part {n}")

        first = api.list_inventory(ALICE, {"page": 1, "limit": 2}).data
        second = api.list_inventory(ALICE, {"page": 2, "limit": 2}).data

        assert len(first["items"]) == 2
        assert first["has_more"] is True
        assert first["total_count"] == 3
        assert first["total_pages"] == 2
        assert [i["name"] for i in second["items"]] == ["Part 2"]
        assert second["has_more"] is False

    def test_limit_is_capped(self, api):
        assert api.list_inventory(ALICE, {"limit": 1000}).data["limit"] == 100

    def test_bad_page_parameter_is_400(self, api):
        result = api.list_budgets(ALICE, {"page": 0})
        assert result.status == 400


class TestBudgetAndOrderFlow:

    def test_approve_then_order_from_budget(self, api):
        item = _item(api, quantity=4)
        budget = api.create_budget(ALICE, budget_payload(parts=[linked_part(_Ref(item), 3)])).data

        approved = api.approve_budget(
            ALICE, budget["id"], {"expected_version": budget["version"], "notes": "ok"}
        )
        order = api.create_order_from_budget(
            ALICE,
            {"budget_id": budget["id"], "estimated_end_date": "2024-03-01T12:00:00+00:00"},
        )

        assert approved.status == 200
        assert approved.data["status"] == "approved"
        assert order.status == 201
        assert order.data["budget_id"] == budget["id"]
        assert api.get_inventory_item(ALICE, item["id"]).data["quantity"] == 1

    def test_approve_payload_is_validated(self, api):
        budget = api.create_budget(ALICE, budget_payload()).data

        result = api.approve_budget(ALICE, budget["id"], {"expected_version": "one", "extra": 1})

        assert result.status == 400
        codes = {e["code"] for e in result.error.details["field_errors"]}
        assert codes == {"INVALID_INTEGER", "UNKNOWN_FIELD"}

    def test_invalid_transition_is_400(self, api):
        budget = api.create_budget(ALICE, budget_payload()).data
        api.reject_budget(ALICE, budget["id"])

        result = api.approve_budget(ALICE, budget["id"])

        assert result.status == 400
        assert result.error.code == "INVALID_STATUS_TRANSITION"


class TestStatusHistoryEndpoints:

    def test_history_for_entity(self, api):
        order = api.create_order(ALICE, order_payload()).data
        api.update_order(ALICE, order["id"], {"expected_version": order["version"],
                                              "status": "in-progress"})

        result = api.get_status_history(ALICE, "order", order["id"])

        assert result.status == 200
        assert [(e["from_status"], e["to_status"]) for e in result.data] == [
            ("pending", "in-progress")
        ]

    def test_unknown_entity_has_empty_history(self, api):
        assert api.get_status_history(ALICE, "budget", "unknown").data == []

    def test_bad_entity_type_is_400(self, api):
        result = api.get_status_history(ALICE, "invoice", "x")

        assert result.status == 400
        assert result.error.details["field_errors"][0]["code"] == "INVALID_ENTITY_TYPE"

    def test_history_is_owner_scoped(self, api):
        budget = api.create_budget(ALICE, budget_payload()).data
        api.approve_budget(ALICE, budget["id"])

        assert api.get_status_history(BOB, "budget", budget["id"]).data == []
        assert api.query_status_history(BOB).data["total_count"] == 0

    def test_query_filters_by_type(self, api):
        budget = api.create_budget(ALICE, budget_payload()).data
        api.approve_budget(ALICE, budget["id"])
        order = api.create_order(ALICE, order_payload()).data
        api.update_order(ALICE, order["id"], {"expected_version": order["version"],
                                              "status": "cancelled"})

        everything = api.query_status_history(ALICE).data
        budgets_only = api.query_status_history(ALICE, {"entity_type": "budget"}).data

        assert everything["total_count"] == 2
        assert [e["entity_id"] for e in budgets_only["items"]] == [budget["id"]]


def test_create_api_wires_from_config(tmp_path):
    config = WorkshopConfig(
        name="api-test",
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'api.db'}"),
    )
    try:
        api = create_api(config)

        created = api.create_inventory_item(
            {}, {"name": "Spark plug", "sku": "SP-1", "quantity": 8, "unit_price": "4.20"}
        )

        assert created.status == 201
        assert api.list_inventory(None).data["total_count"] == 1
    finally:
        reset_engine()
