"""
Line items -- service and part lines of budgets and orders.

Responsibility:
    Immutable value objects for the lines a budget or order is made of, the
    arithmetic that derives their totals, and the structural comparison the
    Lifecycle Guard uses to decide whether a part list "changed".

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - ``total`` is always ``quantity * unit_price``.  A total supplied by a
      caller is never read; it is recomputed on construction and on load.
    - Part quantities are whole units (stock is counted in integers).
    - Money is Decimal end to end.  JSON storage uses strings.

Failure modes:
    - ValueError from from_json() on a malformed stored document.  Request
      payloads are validated earlier by domain.requests, which reports
      field errors instead.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Sequence

ZERO = Decimal("0")


def _dec(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass(frozen=True)
class ServiceLine:
    """Labour or other non-stock line.  Quantity may be fractional (hours)."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    line_id: str | None = None

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price

    def to_json(self) -> dict:
        return {
            "id": self.line_id,
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "total": str(self.total),
        }

    @classmethod
    def from_json(cls, data: dict) -> ServiceLine:
        return cls(
            description=data["description"],
            quantity=_dec(data["quantity"]),
            unit_price=_dec(data["unit_price"]),
            line_id=data.get("id"),
        )


@dataclass(frozen=True)
class PartLine:
    """
    Material line.  ``inventory_id`` is a weak back-reference to an
    InventoryItem of the same owner; description, unit price and part
    number are a snapshot taken when the line was created.
    """

    description: str
    quantity: int
    unit_price: Decimal
    part_number: str | None = None
    inventory_id: str | None = None
    line_id: str | None = None

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def is_inventory_linked(self) -> bool:
        return bool(self.inventory_id)

    def content_key(self) -> tuple:
        """Value identity of the line, ignoring client line id and total."""
        return (
            self.description,
            self.quantity,
            self.unit_price,
            self.part_number,
            self.inventory_id,
        )

    def to_json(self) -> dict:
        return {
            "id": self.line_id,
            "description": self.description,
            "part_number": self.part_number,
            "inventory_id": self.inventory_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "total": str(self.total),
        }

    @classmethod
    def from_json(cls, data: dict) -> PartLine:
        return cls(
            description=data["description"],
            quantity=int(data["quantity"]),
            unit_price=_dec(data["unit_price"]),
            part_number=data.get("part_number"),
            inventory_id=data.get("inventory_id"),
            line_id=data.get("id"),
        )


def services_from_json(rows: Iterable[dict] | None) -> tuple[ServiceLine, ...]:
    return tuple(ServiceLine.from_json(r) for r in rows or ())


def parts_from_json(rows: Iterable[dict] | None) -> tuple[PartLine, ...]:
    return tuple(PartLine.from_json(r) for r in rows or ())


def lines_to_json(lines: Iterable[ServiceLine | PartLine]) -> list[dict]:
    return [line.to_json() for line in lines]


def subtotal(
    services: Sequence[ServiceLine],
    parts: Sequence[PartLine],
) -> Decimal:
    return sum((line.total for line in services), ZERO) + sum(
        (line.total for line in parts), ZERO
    )


def inventory_linked(parts: Sequence[PartLine]) -> tuple[PartLine, ...]:
    return tuple(p for p in parts if p.is_inventory_linked)


def parts_equal(a: Sequence[PartLine], b: Sequence[PartLine]) -> bool:
    """
    Structural equality of two part lists.

    Order-insensitive (a reordering is not a change) but multiplicity- and
    content-sensitive: adding, removing or editing any line is a change.
    """
    return Counter(p.content_key() for p in a) == Counter(
        p.content_key() for p in b
    )
