"""
Shared helpers for module services.

Used by workshop_modules/*/service.py to reduce duplication around
optimistic version checks, part resolution against the owner's inventory
and document line assembly.

Architecture: Modules layer.  Imports only from workshop_kernel.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Sequence

from sqlalchemy.orm import Session

from workshop_kernel.domain.line_items import PartLine, ServiceLine, subtotal
from workshop_kernel.domain.requests import (
    PartInput,
    PartSnapshot,
    check_discount,
    resolve_parts,
)
from workshop_kernel.exceptions import OptimisticLockError
from workshop_kernel.selectors.inventory_selector import InventorySelector

_UPDATE_FIELDS = (
    "customer_id",
    "vehicle_id",
    "notes",
)


def check_expected_version(entity: Any, expected_version: int | None, entity_type: str) -> None:
    """Raise OptimisticLockError when the stored version moved on.

    ``expected_version`` None skips the check (internal callers that just
    loaded the row).
    """
    if expected_version is not None and entity.version != expected_version:
        raise OptimisticLockError(
            entity_type=entity_type,
            entity_id=entity.id,
            expected_version=expected_version,
            actual_version=entity.version,
        )


def inventory_lookup(session: Session, owner_id: str) -> Callable[[str], PartSnapshot | None]:
    """Part snapshot source bound to one owner's inventory."""
    selector = InventorySelector(session, owner_id)

    def lookup(inventory_id: str) -> PartSnapshot | None:
        item = selector.get(inventory_id)
        if item is None:
            return None
        return PartSnapshot(name=item.name, unit_price=item.unit_price, sku=item.sku)

    return lookup


def resolve_document_parts(
    session: Session,
    owner_id: str,
    request_type: str,
    inputs: Sequence[PartInput] | None,
    stored: Sequence[PartLine] = (),
) -> tuple[PartLine, ...] | None:
    """
    Resolve part inputs against the owner's inventory; None passes through.

    ``stored`` is the document's current part list when updating, so that
    resent linked lines keep their original snapshot.
    """
    if inputs is None:
        return None
    return resolve_parts(
        request_type, inputs, inventory_lookup(session, owner_id), stored=stored
    )


def merge_lines(
    document: Any,
    request_type: str,
    services: Sequence[ServiceLine] | None,
    parts: Sequence[PartLine] | None,
    discount: Decimal | None,
) -> tuple[tuple[ServiceLine, ...], tuple[PartLine, ...], Decimal] | None:
    """
    Merge provided lines/discount with the stored ones.

    Returns None when nothing line-related was provided.  Raises
    PayloadValidationError when the merged discount exceeds the subtotal.
    """
    if services is None and parts is None and discount is None:
        return None
    services = tuple(document.service_lines() if services is None else services)
    parts = tuple(document.part_lines() if parts is None else parts)
    discount = document.discount if discount is None else discount
    check_discount(request_type, subtotal(services, parts), discount)
    return services, parts, discount


def apply_fields(document: Any, request: Any, names: Sequence[str] = _UPDATE_FIELDS) -> None:
    """Copy every provided (non-None) attribute of ``request`` onto ``document``."""
    for name in names:
        value = getattr(request, name)
        if value is not None:
            setattr(document, name, value)


_DOCUMENT_COLUMNS = (
    "customer_id",
    "vehicle_id",
    "notes",
    "services",
    "parts",
    "subtotal",
    "discount",
    "total",
    "status",
)


def snapshot(document: Any, extra: Sequence[str] = ()) -> dict[str, Any]:
    """Column values to restore if a committed change has to be undone."""
    return {name: getattr(document, name) for name in (*_DOCUMENT_COLUMNS, *extra)}


def restore(document: Any, values: dict[str, Any]) -> None:
    for name, value in values.items():
        setattr(document, name, value)
