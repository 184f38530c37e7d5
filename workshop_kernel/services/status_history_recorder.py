"""
StatusHistoryRecorder -- append one entry per observed status change.

Responsibility:
    Side-effect-only log of lifecycle transitions for orders and budgets.
    Holds no business rules: the caller compares the before/after status
    and only calls record() for a real change.

Architecture position:
    Kernel > Services.  Called by the budget and order services after the
    primary update has been flushed.

Invariants enforced:
    - Append-only: entries are only ever inserted (update/delete is blocked
      by db/immutability.py).
    - ``from_status != to_status`` for every entry.
    - Entries are ordered by (timestamp, seq); seq comes from the locked
      ``status_history`` counter.

Failure modes:
    - Best-effort mode (default): the insert runs inside a SAVEPOINT.  A
      storage failure rolls back only the savepoint, is logged as
      ``status_history_write_failed`` and record() returns None.  The
      primary update that already happened is kept.
    - Strict mode: the failure propagates and the caller's transaction
      (primary update included) is rolled back by its owner.
    - ValueError when called with an unchanged status.

Audit relevance:
    This is the audit trail of who moved which entity between which
    statuses, and when.
"""

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.lifecycle import EntityType
from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.status_history import StatusHistoryEntry, StatusHistoryRecord
from workshop_kernel.services.base import BaseService
from workshop_kernel.services.sequence_service import SequenceService

logger = get_logger("services.status_history")


class StatusHistoryRecorder(BaseService[StatusHistoryEntry]):
    """
    Writes StatusHistoryEntry rows.

    Contract:
        record() inserts exactly one row for a real transition, or none.

    Guarantees:
        - Never commits the outer transaction.
        - In best-effort mode a failed write leaves the outer transaction
          usable.

    Non-goals:
        - No deduplication: calling record() twice for the same transition
          writes two rows.  Idempotency is the caller's concern.
    """

    def __init__(self, session: Session, clock: Clock | None = None, strict: bool = False):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._strict = strict
        self._sequences = SequenceService(session)

    def _insert(
        self,
        owner_id: str,
        entity_id: str,
        entity_type: EntityType,
        from_status: str,
        to_status: str,
        actor_id: str,
        notes: str | None,
    ) -> StatusHistoryEntry:
        with self.session.begin_nested():
            entry = StatusHistoryEntry(
                owner_id=owner_id,
                seq=self._sequences.next_value(SequenceService.STATUS_HISTORY),
                entity_id=entity_id,
                entity_type=entity_type.value,
                from_status=from_status,
                to_status=to_status,
                actor_id=actor_id,
                timestamp=self._clock.now(),
                notes=notes,
            )
            self.session.add(entry)
            self.session.flush()
        return entry

    def record(
        self,
        owner_id: str,
        entity_id: Any,
        entity_type: EntityType,
        from_status: str,
        to_status: str,
        actor_id: str,
        notes: str | None = None,
    ) -> StatusHistoryRecord | None:
        """Append ``from_status -> to_status`` for the entity."""
        if from_status == to_status:
            raise ValueError(
                f"status history records changes only; got {from_status!r} -> {to_status!r}"
            )

        log_extra = {
            "owner_id": owner_id,
            "entity_id": str(entity_id),
            "entity_type": entity_type.value,
            "from_status": from_status,
            "to_status": to_status,
            "actor_id": actor_id,
        }

        try:
            entry = self._insert(
                owner_id, str(entity_id), entity_type, from_status, to_status, actor_id, notes
            )
        except SQLAlchemyError:
            logger.error("status_history_write_failed", extra=log_extra, exc_info=True)
            if self._strict:
                raise
            return None

        logger.info("status_history_recorded", extra={**log_extra, "seq": entry.seq})
        return entry.to_dto()
