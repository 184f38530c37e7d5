"""
Tests for request parsing (``workshop_kernel.domain.requests``).

Every payload problem is reported as a field error and no request object is
built while any error remains.
"""

from datetime import timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from workshop_kernel.domain.lifecycle import EntityType
from workshop_kernel.domain.line_items import PartLine
from workshop_kernel.domain.requests import (
    MAX_INTEGER,
    BudgetCreateRequest,
    BudgetStatusChangeRequest,
    BudgetUpdateRequest,
    InventoryCreateRequest,
    InventoryUpdateRequest,
    OrderCreateRequest,
    OrderFromBudgetRequest,
    OrderUpdateRequest,
    PartInput,
    PartSnapshot,
    StatusHistoryQuery,
    check_discount,
    parse_page_request,
    resolve_parts,
)
from workshop_kernel.exceptions import PayloadValidationError

from payloads import budget_payload, free_part, order_payload, service_line


def _fields(exc_info) -> dict[str, str]:
    return {e["field"]: e["code"] for e in exc_info.value.field_errors}


# =========================================================================
# Inventory
# =========================================================================


class TestInventoryRequests:

    def test_minimal_create(self):
        req = InventoryCreateRequest.from_payload(
            {"name": "Oil filter", "sku": "OF-1", "unit_price": "7.5"}
        )
        assert req.quantity == 0
        assert req.min_quantity == 0
        assert req.unit_price == Decimal("7.5")

    def test_create_collects_every_error(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            InventoryCreateRequest.from_payload(
                {"sku": "", "unit_price": "-1", "quantity": "abc", "colour": "red"}
            )
        fields = _fields(exc_info)
        assert fields["name"] == "MISSING_FIELD"
        assert fields["sku"] == "MISSING_FIELD"
        assert fields["unit_price"] == "NEGATIVE_AMOUNT"
        assert fields["quantity"] == "INVALID_INTEGER"
        assert fields["colour"] == "UNKNOWN_FIELD"

    def test_negative_quantity_rejected(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            InventoryCreateRequest.from_payload(
                {"name": "X", "sku": "X", "unit_price": "1", "quantity": -3}
            )
        assert _fields(exc_info) == {"quantity": "OUT_OF_RANGE"}

    def test_quantity_above_column_range_rejected(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            InventoryCreateRequest.from_payload(
                {"name": "X", "sku": "X", "unit_price": "1", "quantity": 2**31}
            )
        assert _fields(exc_info) == {"quantity": "OUT_OF_RANGE"}

    def test_float_price_goes_through_str(self):
        req = InventoryCreateRequest.from_payload(
            {"name": "X", "sku": "X", "unit_price": 0.1}
        )
        assert req.unit_price == Decimal("0.1")

    def test_non_object_payload(self):
        with pytest.raises(PayloadValidationError):
            InventoryCreateRequest.from_payload(["name", "sku"])

    def test_update_requires_expected_version(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            InventoryUpdateRequest.from_payload({"name": "New"})
        assert _fields(exc_info) == {"expected_version": "MISSING_FIELD"}

    def test_update_field_changes_excludes_quantity(self):
        req = InventoryUpdateRequest.from_payload(
            {"expected_version": 2, "name": "New", "quantity": 5, "notes": None}
        )
        assert req.field_changes() == {"name": "New"}
        assert req.quantity == 5

    def test_update_rejects_blank_name(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            InventoryUpdateRequest.from_payload({"expected_version": 1, "name": "  "})
        assert "name" in _fields(exc_info)


# =========================================================================
# Budget
# =========================================================================


class TestBudgetRequests:

    def test_totals_in_payload_are_ignored(self):
        payload = budget_payload(
            parts=[{**free_part(), "total": "999"}],
            subtotal="1",
            total="2",
        )
        req = BudgetCreateRequest.from_payload(payload)
        assert len(req.parts) == 1
        assert req.discount == Decimal("0")

    def test_new_budget_must_be_pending(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            BudgetCreateRequest.from_payload(budget_payload(status="approved"))
        assert _fields(exc_info) == {"status": "INVALID_STATUS"}

    def test_unknown_status_rejected(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            BudgetUpdateRequest.from_payload({"expected_version": 1, "status": "done"})
        assert _fields(exc_info) == {"status": "INVALID_STATUS"}

    def test_line_errors_carry_paths(self):
        payload = budget_payload(
            services=[service_line(), {"description": "Paint", "quantity": "0"}],
            parts=[{"description": "Bolt", "quantity": 1.5, "unit_price": "1"}],
        )
        with pytest.raises(PayloadValidationError) as exc_info:
            BudgetCreateRequest.from_payload(payload)
        fields = _fields(exc_info)
        assert fields["services[1].quantity"] == "ZERO_AMOUNT"
        assert fields["services[1].unit_price"] == "MISSING_FIELD"
        assert fields["parts[0].quantity"] == "INVALID_INTEGER"

    def test_linked_part_may_omit_description_and_price(self):
        item_id = str(uuid4())
        req = BudgetCreateRequest.from_payload(
            budget_payload(parts=[{"inventory_id": item_id, "quantity": 2}])
        )
        assert req.parts[0].inventory_id == item_id
        assert req.parts[0].description is None

    def test_invalid_inventory_id(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            BudgetCreateRequest.from_payload(
                budget_payload(parts=[{"inventory_id": "not-a-uuid", "quantity": 1}])
            )
        assert _fields(exc_info)["parts[0].inventory_id"] == "INVALID_ID"

    def test_huge_part_quantity_rejected(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            BudgetCreateRequest.from_payload(
                budget_payload(parts=[free_part(quantity=10**20)])
            )
        error = exc_info.value.field_errors[0]
        assert error["field"] == "parts[0].quantity"
        assert error["code"] == "OUT_OF_RANGE"
        assert str(MAX_INTEGER) in error["message"]

    def test_update_absent_lines_mean_unchanged(self):
        req = BudgetUpdateRequest.from_payload({"expected_version": 3, "notes": "x"})
        assert req.parts is None
        assert req.services is None

    def test_update_empty_parts_clears(self):
        req = BudgetUpdateRequest.from_payload({"expected_version": 3, "parts": []})
        assert req.parts == ()

    def test_status_change_body_is_optional(self):
        req = BudgetStatusChangeRequest.from_payload(None)
        assert req.expected_version is None
        assert req.notes is None

    def test_status_change_reads_version_and_notes(self):
        req = BudgetStatusChangeRequest.from_payload(
            {"expected_version": 2, "notes": "  customer agreed  "}
        )
        assert req.expected_version == 2
        assert req.notes == "customer agreed"

    def test_status_change_errors_carry_request_type(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            BudgetStatusChangeRequest.from_payload(
                {"expected_version": 0, "notes": 5, "extra": 1}, "approve_budget"
            )
        assert exc_info.value.request_type == "approve_budget"
        assert _fields(exc_info) == {
            "expected_version": "OUT_OF_RANGE",
            "notes": "INVALID_TYPE",
            "extra": "UNKNOWN_FIELD",
        }


# =========================================================================
# Order
# =========================================================================


class TestOrderRequests:

    def test_order_needs_a_service(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            OrderCreateRequest.from_payload(order_payload(services=[]))
        assert _fields(exc_info) == {"services": "MISSING_SERVICES"}

    def test_order_needs_estimated_end_date(self):
        payload = order_payload()
        del payload["estimated_end_date"]
        with pytest.raises(PayloadValidationError) as exc_info:
            OrderCreateRequest.from_payload(payload)
        assert _fields(exc_info) == {"estimated_end_date": "MISSING_FIELD"}

    @pytest.mark.parametrize("budget_id", [None, "", "none"])
    def test_direct_order_spellings(self, budget_id):
        req = OrderCreateRequest.from_payload(order_payload(budget_id=budget_id))
        assert req.is_direct
        assert req.budget_id is None

    def test_naive_dates_are_utc(self):
        req = OrderCreateRequest.from_payload(
            order_payload(estimated_end_date="2024-03-01T10:00:00")
        )
        assert req.estimated_end_date.tzinfo == timezone.utc

    def test_bad_date(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            OrderCreateRequest.from_payload(order_payload(start_date="next tuesday"))
        assert _fields(exc_info) == {"start_date": "INVALID_DATE"}

    def test_new_order_must_be_pending(self):
        with pytest.raises(PayloadValidationError):
            OrderCreateRequest.from_payload(order_payload(status="completed"))

    def test_create_rejects_actual_end_date(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            OrderCreateRequest.from_payload(
                order_payload(actual_end_date="2024-02-01T00:00:00+00:00")
            )
        assert _fields(exc_info) == {"actual_end_date": "UNKNOWN_FIELD"}

    def test_update_cannot_rebind_budget(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            OrderUpdateRequest.from_payload({"expected_version": 1, "budget_id": "x"})
        assert _fields(exc_info) == {"budget_id": "UNKNOWN_FIELD"}

    def test_update_cannot_empty_services(self):
        with pytest.raises(PayloadValidationError):
            OrderUpdateRequest.from_payload({"expected_version": 1, "services": []})

    def test_update_status_with_notes(self):
        req = OrderUpdateRequest.from_payload(
            {"expected_version": 1, "status": "in-progress", "status_notes": "go"}
        )
        assert req.status == "in-progress"
        assert req.status_notes == "go"

    def test_from_budget_request(self):
        req = OrderFromBudgetRequest.from_payload(
            {"budget_id": "b-1", "estimated_end_date": "2024-02-01"}
        )
        assert req.budget_id == "b-1"
        assert req.notes is None

    def test_from_budget_rejects_lines(self):
        with pytest.raises(PayloadValidationError):
            OrderFromBudgetRequest.from_payload(
                {"budget_id": "b-1", "estimated_end_date": "2024-02-01", "parts": []}
            )


# =========================================================================
# Part resolution and totals
# =========================================================================


class TestResolveParts:

    def test_snapshot_fills_description_price_and_part_number(self):
        inputs = [PartInput(quantity=2, inventory_id="item-1")]
        lines = resolve_parts(
            "budget_create",
            inputs,
            lambda _id: PartSnapshot(name="Spark plug", unit_price=Decimal("9.99"), sku="SP-9"),
        )
        assert lines[0].description == "Spark plug"
        assert lines[0].unit_price == Decimal("9.99")
        assert lines[0].part_number == "SP-9"
        assert lines[0].total == Decimal("19.98")

    def test_supplied_values_win_over_snapshot(self):
        inputs = [
            PartInput(
                quantity=1,
                inventory_id="item-1",
                description="Custom",
                unit_price=Decimal("0"),
            )
        ]
        lines = resolve_parts(
            "budget_create",
            inputs,
            lambda _id: PartSnapshot(name="Spark plug", unit_price=Decimal("9.99")),
        )
        assert lines[0].description == "Custom"
        assert lines[0].unit_price == Decimal("0")

    def test_stored_line_snapshot_wins_over_live_inventory(self):
        stored = [
            PartLine(
                description="Spark plug",
                quantity=2,
                unit_price=Decimal("9.99"),
                part_number="SP-9",
                inventory_id="item-1",
            )
        ]
        inputs = [
            PartInput(quantity=2, inventory_id="item-1"),
            PartInput(quantity=2, inventory_id="item-1"),
            PartInput(quantity=3, inventory_id="item-1"),
        ]
        lines = resolve_parts(
            "order_update",
            inputs,
            lambda _id: PartSnapshot(name="Iridium plug", unit_price=Decimal("14.50")),
            stored=stored,
        )
        assert [(p.description, p.unit_price) for p in lines] == [
            ("Spark plug", Decimal("9.99")),
            ("Iridium plug", Decimal("14.50")),
            ("Iridium plug", Decimal("14.50")),
        ]
        assert lines[0].part_number == "SP-9"

    def test_unknown_item_without_values_fails(self):
        inputs = [PartInput(quantity=1, inventory_id="missing")]
        with pytest.raises(PayloadValidationError) as exc_info:
            resolve_parts("order_create", inputs, lambda _id: None)
        assert _fields(exc_info) == {"parts[0]": "UNRESOLVED_PART"}

    def test_discount_may_equal_subtotal(self):
        check_discount("budget_create", Decimal("10"), Decimal("10"))

    def test_discount_above_subtotal_fails(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            check_discount("budget_create", Decimal("10"), Decimal("10.01"))
        assert _fields(exc_info) == {"discount": "DISCOUNT_EXCEEDS_SUBTOTAL"}


# =========================================================================
# Listing parameters
# =========================================================================


class TestListingParameters:

    def test_defaults(self):
        page = parse_page_request(None)
        assert (page.page, page.limit) == (1, 10)

    def test_limit_is_capped(self):
        page = parse_page_request({"page": "2", "limit": "1000"}, max_limit=100)
        assert (page.page, page.limit) == (2, 100)

    def test_page_zero_rejected(self):
        with pytest.raises(PayloadValidationError):
            parse_page_request({"page": 0})

    def test_unknown_parameter_rejected(self):
        with pytest.raises(PayloadValidationError):
            parse_page_request({"offset": 5})

    def test_history_query(self):
        query = StatusHistoryQuery.from_payload(
            {"entity_type": "order", "entity_id": "abc", "limit": 5}
        )
        assert query.entity_type is EntityType.ORDER
        assert query.entity_id == "abc"
        assert query.page.limit == 5

    def test_history_query_reports_all_errors(self):
        with pytest.raises(PayloadValidationError) as exc_info:
            StatusHistoryQuery.from_payload({"entity_type": "invoice", "page": -1})
        fields = _fields(exc_info)
        assert fields["entity_type"] == "INVALID_STATUS"
        assert fields["page"] == "OUT_OF_RANGE"
