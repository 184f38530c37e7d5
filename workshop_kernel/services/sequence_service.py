"""
SequenceService -- gap-tolerant, strictly increasing counters.

Status history entries recorded within the same clock tick are ordered by
the ``seq`` handed out here.  Each named sequence is one row in
``sequence_counters``; allocating a value locks that row for the rest of the
caller's transaction, so two writers can never draw the same number and a
rolled-back transaction gives its number back.

Flush-only.  The first allocation of a name inserts the row inside a
SAVEPOINT; losing that insert race to another writer falls back to locking
the row the winner created.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workshop_kernel.logging_config import get_logger
from workshop_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    STATUS_HISTORY = "status_history"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, name: str) -> SequenceCounter | None:
        # populate_existing: another session may have advanced the row.
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create_counter(self, name: str) -> SequenceCounter | None:
        """Insert a fresh counter at 0; None when another writer got there first."""
        counter = SequenceCounter(name=name, current_value=0)
        try:
            with self._session.begin_nested():
                self._session.add(counter)
        except IntegrityError:
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
            return None
        return counter

    def next_value(self, name: str) -> int:
        """Allocate the next value of ``name`` (the first value is 1)."""
        counter = self._locked_counter(name) or self._create_counter(name)
        if counter is None:
            counter = self._locked_counter(name)
            if counter is None:
                raise RuntimeError(f"sequence counter {name!r} vanished during allocation")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        """Last allocated value, or None if ``name`` was never used."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()
