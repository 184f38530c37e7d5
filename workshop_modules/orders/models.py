"""
Order domain models (``workshop_modules.orders.models``).

Frozen dataclass views of an order returned by ``OrderService``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from workshop_kernel.domain.line_items import PartLine, ServiceLine


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Order:
    """A service order as stored, with derived totals."""

    id: UUID
    owner_id: str
    customer_id: str
    vehicle_id: str
    budget_id: str | None
    status: str
    estimated_end_date: datetime
    services: tuple[ServiceLine, ...]
    parts: tuple[PartLine, ...]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    version: int
    start_date: datetime | None = None
    actual_end_date: datetime | None = None
    notes: str | None = None
    mechanic_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_direct(self) -> bool:
        return self.budget_id is None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "customer_id": self.customer_id,
            "vehicle_id": self.vehicle_id,
            "budget_id": self.budget_id,
            "status": self.status,
            "start_date": _iso(self.start_date),
            "estimated_end_date": _iso(self.estimated_end_date),
            "actual_end_date": _iso(self.actual_end_date),
            "services": [line.to_json() for line in self.services],
            "parts": [line.to_json() for line in self.parts],
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "total": str(self.total),
            "notes": self.notes,
            "mechanic_notes": self.mechanic_notes,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
