"""
Module: workshop_kernel.db.transaction
Responsibility: Commit-or-rollback boundary for services that own their
    transaction, with storage failures translated into the typed
    exception hierarchy.
Architecture position: Kernel > DB.  Used by module services and the
    Reservation Coordinator.  Kernel services never use it (flush-only).

Translation:
    StaleDataError      -> OptimisticLockError  (kind conflict)
    other SQLAlchemyError -> StorageError       (kind server_error, retryable)
    WorkshopError       -> re-raised unchanged
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from workshop_kernel.exceptions import OptimisticLockError, StorageError
from workshop_kernel.logging_config import get_logger

logger = get_logger("db.transaction")


@contextmanager
def translate_storage_errors(
    operation: str,
    entity_type: str = "entity",
    entity_id: Any = None,
    expected_version: int | None = None,
) -> Generator[None, None, None]:
    """Re-raise SQLAlchemy failures as workshop exceptions."""
    try:
        yield
    except StaleDataError as exc:
        logger.warning(
            "optimistic_lock_conflict",
            extra={
                "operation": operation,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
            },
        )
        raise OptimisticLockError(
            entity_type=entity_type,
            entity_id=entity_id,
            expected_version=expected_version,
        ) from exc
    except SQLAlchemyError as exc:
        logger.error(
            "storage_error",
            extra={"operation": operation, "error_type": type(exc).__name__},
            exc_info=True,
        )
        raise StorageError(operation, type(exc).__name__) from exc


@contextmanager
def owned_transaction(
    session: Session,
    operation: str,
    entity_type: str = "entity",
    entity_id: Any = None,
    expected_version: int | None = None,
) -> Generator[Session, None, None]:
    """
    Commit on normal exit, roll back on any exception.

    Usage:
        with owned_transaction(session, "update_order", "Order", order_id):
            ...
    """
    try:
        with translate_storage_errors(operation, entity_type, entity_id, expected_version):
            yield session
            session.commit()
    except Exception:
        session.rollback()
        raise
