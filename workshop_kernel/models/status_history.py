"""
Module: workshop_kernel.models.status_history
Responsibility: Append-only status change log for orders and budgets.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are never updated or deleted (``__append_only__``; enforced by
      db/immutability.py listeners).
    - ``from_status <> to_status``: a non-change is never recorded.
    - ``seq`` is unique and monotonic; it orders entries that share a
      timestamp.

Audit relevance:
    This table is the audit trail for every lifecycle change.  Entries
    carry the acting user and an optional note.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workshop_kernel.db.base import Base


@dataclass(frozen=True)
class StatusHistoryRecord:
    """Immutable view of one status history entry."""

    id: UUID
    seq: int
    entity_id: str
    entity_type: str
    from_status: str
    to_status: str
    actor_id: str
    timestamp: datetime
    notes: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "seq": self.seq,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
            "notes": self.notes,
        }


class StatusHistoryEntry(Base):
    """One observed status transition of an order or budget."""

    __tablename__ = "status_history"
    __entity_type__ = "status_history_entry"
    __append_only__ = True

    __table_args__ = (
        Index("idx_status_history_entity", "owner_id", "entity_type", "entity_id", "seq"),
        Index("idx_status_history_owner_seq", "owner_id", "seq"),
        CheckConstraint("from_status <> to_status", name="ck_status_history_changed"),
        CheckConstraint(
            "entity_type IN ('order', 'budget')", name="ck_status_history_entity_type"
        ),
    )

    owner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    from_status: Mapped[str] = mapped_column(String(20), nullable=False)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> StatusHistoryRecord:
        return StatusHistoryRecord(
            id=self.id,
            seq=self.seq,
            entity_id=self.entity_id,
            entity_type=self.entity_type,
            from_status=self.from_status,
            to_status=self.to_status,
            actor_id=self.actor_id,
            timestamp=self.timestamp,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StatusHistoryEntry #{self.seq} {self.entity_type}:{self.entity_id} "
            f"{self.from_status}->{self.to_status}>"
        )
