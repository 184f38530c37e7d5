"""
Budget domain models (``workshop_modules.budget.models``).

Frozen dataclass views of a budget returned by ``BudgetService``.  ZERO
I/O; monetary fields are ``Decimal``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from workshop_kernel.domain.line_items import PartLine, ServiceLine


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Budget:
    """A quote as stored, with derived totals."""

    id: UUID
    owner_id: str
    customer_id: str
    vehicle_id: str
    budget_date: datetime
    status: str
    services: tuple[ServiceLine, ...]
    parts: tuple[PartLine, ...]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    version: int
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "customer_id": self.customer_id,
            "vehicle_id": self.vehicle_id,
            "budget_date": _iso(self.budget_date),
            "status": self.status,
            "services": [line.to_json() for line in self.services],
            "parts": [line.to_json() for line in self.parts],
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "total": str(self.total),
            "notes": self.notes,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
