"""
SQLAlchemy ORM persistence model for the Orders module.

Responsibility
--------------
Persist service orders: the work actually carried out on a vehicle, its
lines, dates, mechanic notes and status.  An order either comes from an
approved budget (``budget_id`` set) or is direct (``budget_id`` NULL).

Architecture position
---------------------
**Modules layer** -- ORM model consumed by ``OrderService``.

Invariants enforced
-------------------
* ``status`` is one of pending / in-progress / completed / cancelled.
* A row whose stored status is ``completed`` rejects every UPDATE at flush
  time (``__locked_statuses__``, enforced by
  ``workshop_kernel.db.immutability``), independently of the service-level
  Lifecycle Guard.
* ``version`` is the optimistic-concurrency counter.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import OwnedMixin, TrackedBase
from workshop_modules._documents import LineItemDocumentMixin
from workshop_modules.orders.models import Order


class OrderModel(LineItemDocumentMixin, OwnedMixin, TrackedBase):
    """A service order.  Maps to the ``Order`` DTO."""

    __tablename__ = "orders"
    __entity_type__ = "order"
    __locked_statuses__ = frozenset({"completed"})

    __table_args__ = (
        Index("idx_order_owner_status", "owner_id", "status"),
        Index("idx_order_budget", "owner_id", "budget_id"),
        CheckConstraint(
            "status IN ('pending', 'in-progress', 'completed', 'cancelled')",
            name="ck_order_status",
        ),
        CheckConstraint("discount >= 0", name="ck_order_discount_non_negative"),
    )

    budget_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    mechanic_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_direct(self) -> bool:
        return self.budget_id is None

    def to_dto(self) -> Order:
        return Order(
            id=self.id,
            owner_id=self.owner_id,
            customer_id=self.customer_id,
            vehicle_id=self.vehicle_id,
            budget_id=self.budget_id,
            status=self.status,
            start_date=self.start_date,
            estimated_end_date=self.estimated_end_date,
            actual_end_date=self.actual_end_date,
            services=self.service_lines(),
            parts=self.part_lines(),
            subtotal=self.subtotal,
            discount=self.discount,
            total=self.total,
            notes=self.notes,
            mechanic_notes=self.mechanic_notes,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<OrderModel {self.id} {self.status} v{self.version}>"
