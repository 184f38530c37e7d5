"""
Module: workshop_kernel.models.inventory_item
Responsibility: ORM model for stocked parts.  The quantity column is the
    single shared mutable resource contended by concurrent reservations.
Architecture position: Kernel > Models.  Lives in the kernel because the
    Stock Ledger (kernel service) is the only writer of ``quantity``.

Invariants enforced:
    - ``quantity >= 0`` as a CHECK constraint; the Stock Ledger's
      conditional UPDATE keeps it there without ever tripping it.
    - ``sku`` is unique per owner.
    - ``version`` is the optimistic-concurrency counter (version_id_col).

Failure modes:
    - IntegrityError on a duplicate (owner_id, sku) or a negative quantity.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import OwnedMixin, TrackedBase


@dataclass(frozen=True)
class InventoryItemInfo:
    """Detached, immutable view of an InventoryItem row."""

    id: UUID
    owner_id: str
    name: str
    sku: str
    quantity: int
    min_quantity: int
    unit_price: Decimal
    version: int
    description: str | None = None
    category: str | None = None
    supplier: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_quantity

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "min_quantity": self.min_quantity,
            "unit_price": str(self.unit_price),
            "description": self.description,
            "category": self.category,
            "supplier": self.supplier,
            "notes": self.notes,
            "is_low_stock": self.is_low_stock,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class InventoryItem(OwnedMixin, TrackedBase):
    """
    A stocked part owned by one user.

    Guarantees:
        - quantity is only changed by workshop_kernel.services.stock_ledger.
    """

    __tablename__ = "inventory_items"
    __entity_type__ = "inventory_item"

    __table_args__ = (
        UniqueConstraint("owner_id", "sku", name="uq_inventory_owner_sku"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("min_quantity >= 0", name="ck_inventory_min_quantity_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> InventoryItemInfo:
        return InventoryItemInfo(
            id=self.id,
            owner_id=self.owner_id,
            name=self.name,
            sku=self.sku,
            quantity=self.quantity,
            min_quantity=self.min_quantity,
            unit_price=self.unit_price,
            version=self.version,
            description=self.description,
            category=self.category,
            supplier=self.supplier,
            notes=self.notes,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<InventoryItem {self.sku}: qty={self.quantity} v{self.version}>"
