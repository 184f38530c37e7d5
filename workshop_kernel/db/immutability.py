"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Two kinds of workshop records must not change once written:

  - Status history entries are an append-only audit trail.  Nothing may
    update or delete them.
  - Records in a locked lifecycle status (a completed service order) are
    final.  The Lifecycle Guard rejects such updates at the service layer;
    this module is the second line that catches any code path which
    bypasses the guard and modifies the ORM object directly.

===============================================================================
HOW IT WORKS
===============================================================================

Listeners are attached to the declarative Base with ``propagate=True`` so
that every mapped subclass is covered.  Each model opts in through class
attributes:

    __append_only__ = True                 # block every UPDATE and DELETE
    __locked_statuses__ = frozenset({...}) # block UPDATE once status is in set

    session.flush()
         |
         v
    [before_update] --> _check_update() --> ImmutabilityViolationError
    [before_delete] --> _check_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY CHECK "WAS LOCKED" NOT "IS LOCKED"?
   The transition that enters the locked status must itself be allowed
   (in-progress -> completed).  Attribute history tells us the status as
   it was loaded; only that value decides.

2. WHY ALLOW updated_at/updated_by/version CHANGES?
   They are bookkeeping written by the ORM on every flush.

3. DELETE of a locked record is allowed.  Removing a completed order is a
   supported operation; only modification is forbidden.

===============================================================================
USAGE
===============================================================================

    from workshop_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from workshop_kernel.db.base import Base
from workshop_kernel.exceptions import ImmutabilityViolationError
from workshop_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_BOOKKEEPING_FIELDS = frozenset({"updated_at", "updated_by", "version"})


def _entity_type(target) -> str:
    return getattr(type(target), "__entity_type__", type(target).__name__)


def _status_before_flush(target):
    """Status as loaded from the database, before any pending change."""
    hist = get_history(target, "status")
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return None


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _BOOKKEEPING_FIELDS and attr.history.has_changes()
    ]


def _check_update(mapper, connection, target):
    """Block updates to append-only rows and rows already in a locked status."""
    cls = type(target)
    changed = _changed_fields(target)
    if not changed:
        return

    if getattr(cls, "__append_only__", False):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": _entity_type(target),
                "entity_id": str(target.id),
                "operation": "UPDATE",
            },
        )
        raise ImmutabilityViolationError(
            entity_type=_entity_type(target),
            entity_id=target.id,
            reason="record is append-only and cannot be modified",
        )

    locked = getattr(cls, "__locked_statuses__", None)
    if not locked:
        return

    previous = _status_before_flush(target)
    if previous not in locked:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": _entity_type(target),
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "status": previous,
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=_entity_type(target),
        entity_id=target.id,
        reason=f"cannot modify {', '.join(sorted(changed))} while status is '{previous}'",
    )


def _check_delete(mapper, connection, target):
    """Block deletion of append-only rows."""
    if not getattr(type(target), "__append_only__", False):
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": _entity_type(target),
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=_entity_type(target),
        entity_id=target.id,
        reason="record is append-only and cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """
    Register the immutability listeners on every mapped model.

    Idempotent.  Call once during application initialization.
    """
    if not event.contains(Base, "before_update", _check_update):
        event.listen(Base, "before_update", _check_update, propagate=True)
    if not event.contains(Base, "before_delete", _check_delete):
        event.listen(Base, "before_delete", _check_delete, propagate=True)


def unregister_immutability_listeners() -> None:
    """
    Remove the immutability listeners.

    WARNING: Only use this in tests that must write forbidden changes to
    verify detection elsewhere.
    """
    if event.contains(Base, "before_update", _check_update):
        event.remove(Base, "before_update", _check_update)
    if event.contains(Base, "before_delete", _check_delete):
        event.remove(Base, "before_delete", _check_delete)
