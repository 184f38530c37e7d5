"""
Line-item document columns shared by budgets and orders.

Responsibility
--------------
Budgets and orders are both "documents": a customer, a vehicle, a list of
service lines, a list of part lines, a discount and derived totals.  This
mixin stores the lines as JSON and keeps ``subtotal`` / ``total`` derived
from them.

Invariants enforced
-------------------
* ``subtotal`` and ``total`` are only ever written by ``set_lines()``;
  caller-supplied totals never reach the row.
* ``total = subtotal - discount`` and ``0 <= discount <= subtotal``.
"""

from decimal import Decimal
from typing import Sequence

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.domain.line_items import (
    ZERO,
    PartLine,
    ServiceLine,
    lines_to_json,
    parts_from_json,
    services_from_json,
    subtotal,
)


class LineItemDocumentMixin:
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)
    vehicle_id: Mapped[str] = mapped_column(String(100), nullable=False)
    services: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    parts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    discount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def service_lines(self) -> tuple[ServiceLine, ...]:
        return services_from_json(self.services)

    def part_lines(self) -> tuple[PartLine, ...]:
        return parts_from_json(self.parts)

    def set_lines(
        self,
        services: Sequence[ServiceLine],
        parts: Sequence[PartLine],
        discount: Decimal,
    ) -> None:
        """Replace both line lists and recompute the totals."""
        self.services = lines_to_json(services)
        self.parts = lines_to_json(parts)
        self.subtotal = subtotal(services, parts)
        self.discount = discount
        self.total = self.subtotal - discount
