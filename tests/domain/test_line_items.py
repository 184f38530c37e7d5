"""Tests for line items and pagination value objects."""

from decimal import Decimal

import pytest

from workshop_kernel.domain.line_items import (
    PartLine,
    ServiceLine,
    inventory_linked,
    parts_equal,
    parts_from_json,
    subtotal,
)
from workshop_kernel.domain.pagination import Page, PageRequest


def _part(description="Filter", quantity=1, price="10.00", inventory_id=None):
    return PartLine(
        description=description,
        quantity=quantity,
        unit_price=Decimal(price),
        inventory_id=inventory_id,
    )


class TestLineTotals:

    def test_service_total_allows_fractional_hours(self):
        line = ServiceLine("Labour", Decimal("1.5"), Decimal("80.00"))
        assert line.total == Decimal("120.000")

    def test_stored_total_is_never_read(self):
        stored = {
            "description": "Filter",
            "quantity": 3,
            "unit_price": "4.00",
            "total": "1000.00",
        }
        (line,) = parts_from_json([stored])
        assert line.total == Decimal("12.00")
        assert line.to_json()["total"] == "12.00"

    def test_subtotal(self):
        services = [ServiceLine("Labour", Decimal("2"), Decimal("50"))]
        parts = [_part(quantity=2, price="7.50"), _part(price="1.00")]
        assert subtotal(services, parts) == Decimal("116.00")

    def test_empty_subtotal_is_zero(self):
        assert subtotal([], []) == Decimal("0")

    def test_inventory_linked_filter(self):
        parts = [_part(), _part(inventory_id="item-1")]
        assert [p.inventory_id for p in inventory_linked(parts)] == ["item-1"]


class TestPartsEqual:

    def test_order_insensitive(self):
        a = [_part("A"), _part("B")]
        assert parts_equal(a, list(reversed(a)))

    def test_multiplicity_sensitive(self):
        assert not parts_equal([_part("A")], [_part("A"), _part("A")])

    def test_content_sensitive(self):
        assert not parts_equal([_part(quantity=1)], [_part(quantity=2)])

    def test_line_id_ignored(self):
        a = _part()
        b = PartLine(
            description=a.description,
            quantity=a.quantity,
            unit_price=a.unit_price,
            line_id="client-1",
        )
        assert parts_equal([a], [b])


class TestPagination:

    def test_offset(self):
        assert PageRequest(page=3, limit=20).offset == 40

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0)])
    def test_invalid_page_request(self, page, limit):
        with pytest.raises(ValueError):
            PageRequest(page=page, limit=limit)

    def test_has_more(self):
        page = Page(items=(), page=1, limit=10, total=11)
        assert page.pages == 2
        assert page.has_more

    def test_last_page(self):
        page = Page(items=(), page=2, limit=10, total=20)
        assert not page.has_more

    def test_empty(self):
        page = Page(items=(), page=1, limit=10, total=0)
        assert page.to_dict() == {
            "page": 1,
            "limit": 10,
            "total_count": 0,
            "total_pages": 0,
            "has_more": False,
        }
