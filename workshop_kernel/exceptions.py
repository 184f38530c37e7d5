"""
Typed Exception Hierarchy for the Workshop Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the API facade, scripts, tests) must be able to react to a failure
without parsing its message:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has a KIND (one of six stable categories exposed to
     clients)
  4. Exceptions carry structured DATA (item id, quantities, statuses)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkshopError (base, kind=server_error)
    |
    +-- UnauthorizedError                    kind=unauthorized
    |
    +-- NotFoundError                        kind=not_found
    |   +-- EntityNotFoundError
    |
    +-- WorkshopValidationError              kind=validation_error
    |   +-- PayloadValidationError
    |   +-- InvalidStatusTransitionError
    |   +-- EntityLockedError
    |   +-- PartsImmutableError
    |   +-- BudgetNotApprovedError
    |   +-- ImmutabilityViolationError
    |
    +-- ConcurrencyError                     kind=conflict
    |   +-- OptimisticLockError
    |   +-- DuplicateEntityError
    |
    +-- InsufficientStockError               kind=insufficient_stock
    |
    +-- StorageError                         kind=server_error (retryable)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind               | Code                       | When Raised
-------------------|----------------------------|--------------------------------------
unauthorized       | UNAUTHORIZED               | No / invalid identity
not_found          | ENTITY_NOT_FOUND           | Absent OR owned by another user
validation_error   | INVALID_PAYLOAD            | Request failed schema validation
                   | INVALID_STATUS_TRANSITION  | Transition not in the workflow
                   | ENTITY_LOCKED              | Update of a completed order
                   | PARTS_IMMUTABLE            | Part change after stock commit
                   | BUDGET_NOT_APPROVED        | Order from a non-approved budget
                   | IMMUTABILITY_VIOLATION     | ORM-level write to locked record
conflict           | OPTIMISTIC_LOCK_CONFLICT   | Version mismatch on update
                   | DUPLICATE_ENTITY           | Unique key (e.g. SKU) already used
insufficient_stock | INSUFFICIENT_STOCK         | Ledger precondition failed
server_error       | STORAGE_ERROR              | Database / infrastructure fault

===============================================================================
DESIGN DECISIONS
===============================================================================

1. NotFound never distinguishes "absent" from "owned by someone else".
   EntityNotFoundError carries the requested id only.

2. ``kind`` is a class attribute next to ``code`` so the facade can map any
   error without instantiating or inspecting it.

3. StorageError is the only retryable kind.  Every other failure is a
   deterministic answer to the request as submitted.

===============================================================================
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Stable, client-visible error categories."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    INSUFFICIENT_STOCK = "insufficient_stock"
    SERVER_ERROR = "server_error"


class WorkshopError(Exception):
    """
    Base exception for all workshop kernel errors.

    All subclasses must have ``code`` and ``kind`` class attributes
    for machine-readable error identification.
    """

    code: str = "WORKSHOP_ERROR"
    kind: ErrorKind = ErrorKind.SERVER_ERROR
    retryable: bool = False

    def details(self) -> dict[str, Any]:
        """Structured context for API responses (public attributes only)."""
        return {
            k: v for k, v in vars(self).items()
            if not k.startswith("_")
        }


# Identity


class UnauthorizedError(WorkshopError):
    """No authenticated identity accompanies the request."""

    code: str = "UNAUTHORIZED"
    kind: ErrorKind = ErrorKind.UNAUTHORIZED

    def __init__(self, reason: str = "authentication required"):
        self.reason = reason
        super().__init__(f"Unauthorized: {reason}")


# Not found


class NotFoundError(WorkshopError):
    """Base exception for missing (or foreign-owned) resources."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class EntityNotFoundError(NotFoundError):
    """Entity does not exist for the requesting owner."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


# Validation


class WorkshopValidationError(WorkshopError):
    """Base exception for requests rejected before any write."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION_ERROR


class PayloadValidationError(WorkshopValidationError):
    """
    Request payload does not match its schema.

    ``field_errors`` holds one entry per problem so that a client can
    fix all of them in one round trip.
    """

    code: str = "INVALID_PAYLOAD"

    def __init__(self, request_type: str, field_errors: list[dict]):
        self.request_type = request_type
        self.field_errors = field_errors
        super().__init__(
            f"Invalid {request_type} payload: {len(field_errors)} error(s)"
        )


class InvalidStatusTransitionError(WorkshopValidationError):
    """Requested status change is not an edge of the entity's workflow."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        from_status: str,
        to_status: str,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition for {entity_type} {entity_id}: "
            f"{from_status} -> {to_status}"
        )


class EntityLockedError(WorkshopValidationError):
    """Entity is in a locked terminal status and cannot be modified."""

    code: str = "ENTITY_LOCKED"

    def __init__(self, entity_type: str, entity_id: Any, status: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.status = status
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: "
            f"status '{status}' is locked"
        )


class PartsImmutableError(WorkshopValidationError):
    """Inventory-linked parts cannot change once stock has been committed."""

    code: str = "PARTS_IMMUTABLE"

    def __init__(self, entity_type: str, entity_id: Any, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Cannot modify parts of {entity_type} {entity_id}: {reason}"
        )


class BudgetNotApprovedError(WorkshopValidationError):
    """An order can only be created from an approved budget."""

    code: str = "BUDGET_NOT_APPROVED"

    def __init__(self, budget_id: Any, status: str):
        self.budget_id = str(budget_id)
        self.status = status
        super().__init__(
            f"Budget {budget_id} is '{status}'; only approved budgets "
            "can be converted into orders"
        )


class ImmutabilityViolationError(WorkshopValidationError):
    """
    Attempted to modify or delete an immutable record at the ORM layer.

    Status history entries are immutable from creation; completed orders
    are immutable once the completion has been flushed.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: Any, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Concurrency


class ConcurrencyError(WorkshopError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    kind: ErrorKind = ErrorKind.CONFLICT


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected; re-fetch and retry."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another request"
        )


class DuplicateEntityError(ConcurrencyError):
    """A unique business key is already taken for this owner."""

    code: str = "DUPLICATE_ENTITY"

    def __init__(self, entity_type: str, key: str, value: str):
        self.entity_type = entity_type
        self.key = key
        self.value = value
        super().__init__(f"{entity_type} with {key} '{value}' already exists")


# Stock


class InsufficientStockError(WorkshopError):
    """
    Stock Ledger precondition failed: not enough units on hand.

    ``available`` is the quantity observed right after the failed
    conditional decrement (0 when the item does not exist for the owner).
    """

    code: str = "INSUFFICIENT_STOCK"
    kind: ErrorKind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(
        self,
        item_id: Any,
        available: int,
        requested: int,
        sku: str | None = None,
        name: str | None = None,
    ):
        self.item_id = str(item_id)
        self.available = available
        self.requested = requested
        self.sku = sku
        self.name = name
        label = name or sku or self.item_id
        if sku and name:
            label = f"{name} ({sku})"
        super().__init__(
            f"Insufficient stock for item {label}: "
            f"requested {requested}, available {available} "
            f"(short by {requested - available})"
        )

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


# Storage


class StorageError(WorkshopError):
    """Storage / infrastructure fault.  Safe to retry."""

    code: str = "STORAGE_ERROR"
    kind: ErrorKind = ErrorKind.SERVER_ERROR
    retryable: bool = True

    def __init__(self, operation: str, cause: str):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage failure during {operation}: {cause}")
