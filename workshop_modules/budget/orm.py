"""
SQLAlchemy ORM persistence model for the Budget module.

Responsibility
--------------
Persist budgets (quotes): customer, vehicle, the service and part lines
offered, discount, derived totals and the quote status.

Architecture position
---------------------
**Modules layer** -- ORM model consumed by ``BudgetService``.  Inherits
from ``TrackedBase`` (kernel db layer) and the shared line-item columns.

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* ``status`` is one of pending / approved / rejected (CHECK constraint);
  the legal moves between them are decided by the Lifecycle Guard.
* ``version`` is the optimistic-concurrency counter.

Audit relevance
---------------
Status changes are mirrored into ``status_history`` by the service.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import OwnedMixin, TrackedBase
from workshop_modules._documents import LineItemDocumentMixin
from workshop_modules.budget.models import Budget


class BudgetModel(LineItemDocumentMixin, OwnedMixin, TrackedBase):
    """
    A quote for a customer's vehicle.

    Maps to the ``Budget`` DTO in ``workshop_modules.budget.models``.
    """

    __tablename__ = "budgets"
    __entity_type__ = "budget"

    __table_args__ = (
        Index("idx_budget_owner_status", "owner_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_budget_status"
        ),
        CheckConstraint("discount >= 0", name="ck_budget_discount_non_negative"),
    )

    budget_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> Budget:
        return Budget(
            id=self.id,
            owner_id=self.owner_id,
            customer_id=self.customer_id,
            vehicle_id=self.vehicle_id,
            budget_date=self.budget_date,
            status=self.status,
            services=self.service_lines(),
            parts=self.part_lines(),
            subtotal=self.subtotal,
            discount=self.discount,
            total=self.total,
            notes=self.notes,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<BudgetModel {self.id} {self.status} v{self.version}>"
