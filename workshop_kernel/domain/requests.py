"""
Request schemas (``workshop_kernel.domain.requests``).

Responsibility
--------------
Parse untyped payloads (JSON-like dicts coming from the API layer) into
frozen, typed request objects *before* any service touches storage.  Every
problem is collected as a FieldError so the caller sees all of them at once;
if there is at least one, PayloadValidationError is raised and nothing is
written (fail closed).

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.

Conventions
-----------
* Keys are snake_case.  Unknown keys are rejected.
* ``total`` / ``subtotal`` keys are accepted and ignored: totals are always
  recomputed from quantities and prices.
* In update requests a key that is absent (or None) means "leave as is".
* Money is parsed to Decimal; floats go through ``str()`` first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID

from workshop_kernel.domain.lifecycle import (
    BudgetStatus,
    EntityType,
    OrderStatus,
    normalise_budget_id,
)
from workshop_kernel.domain.line_items import ZERO, PartLine, ServiceLine
from workshop_kernel.domain.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageRequest
from workshop_kernel.exceptions import PayloadValidationError

# Largest value an INTEGER column holds on every supported backend.
MAX_INTEGER = 2**31 - 1

_IGNORED_KEYS = frozenset({"total", "subtotal", "id", "version"})


@dataclass(frozen=True)
class FieldError:
    """
    A single request validation problem.

    Contract:
        Carries a machine-readable code, human-readable message and the
        path of the offending field (``parts[1].quantity``).
    """

    code: str
    message: str
    field: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message, "field": self.field}


class _Fields:
    """Error-accumulating accessor over one payload mapping."""

    def __init__(self, payload: Any, prefix: str = ""):
        self.errors: list[FieldError] = []
        self.prefix = prefix
        if isinstance(payload, Mapping):
            self.payload = payload
        else:
            self.payload = {}
            self.error("INVALID_TYPE", "payload must be an object", "")

    def path(self, key: str) -> str:
        if not self.prefix:
            return key
        if not key:
            return self.prefix
        return f"{self.prefix}.{key}"

    def error(self, code: str, message: str, key: str) -> None:
        self.errors.append(FieldError(code, message, self.path(key)))

    def reject_unknown(self, allowed: frozenset[str]) -> None:
        for key in self.payload:
            if key not in allowed and key not in _IGNORED_KEYS:
                self.error("UNKNOWN_FIELD", f"unknown field '{key}'", str(key))

    def present(self, key: str) -> bool:
        return self.payload.get(key) is not None

    def string(
        self,
        key: str,
        required: bool = False,
        max_length: int = 500,
    ) -> str | None:
        value = self.payload.get(key)
        if value is None:
            if required:
                self.error("MISSING_FIELD", f"{key} is required", key)
            return None
        if not isinstance(value, str):
            self.error("INVALID_TYPE", f"{key} must be a string", key)
            return None
        value = value.strip()
        if required and not value:
            self.error("MISSING_FIELD", f"{key} cannot be empty", key)
            return None
        if len(value) > max_length:
            self.error(
                "TOO_LONG", f"{key} must be at most {max_length} characters", key
            )
            return None
        return value

    def decimal(
        self,
        key: str,
        required: bool = False,
        allow_zero: bool = True,
        default: Decimal | None = None,
    ) -> Decimal | None:
        value = self.payload.get(key)
        if value is None:
            if required:
                self.error("MISSING_FIELD", f"{key} is required", key)
            return default
        if isinstance(value, bool):
            self.error("INVALID_AMOUNT", f"{key} must be a number", key)
            return None
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            self.error("INVALID_AMOUNT", f"{key} must be a valid decimal", key)
            return None
        if not amount.is_finite():
            self.error("INVALID_AMOUNT", f"{key} must be finite", key)
            return None
        if amount < ZERO:
            self.error("NEGATIVE_AMOUNT", f"{key} cannot be negative", key)
            return None
        if not allow_zero and amount == ZERO:
            self.error("ZERO_AMOUNT", f"{key} must be greater than zero", key)
            return None
        return amount

    def integer(
        self,
        key: str,
        required: bool = False,
        minimum: int = 0,
        maximum: int = MAX_INTEGER,
        default: int | None = None,
    ) -> int | None:
        value = self.payload.get(key)
        if value is None:
            if required:
                self.error("MISSING_FIELD", f"{key} is required", key)
            return default
        if isinstance(value, bool):
            self.error("INVALID_INTEGER", f"{key} must be an integer", key)
            return None
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            value = int(value)
        elif isinstance(value, (float, Decimal)):
            try:
                if value == int(value):
                    value = int(value)
            except (OverflowError, ValueError):
                pass
        if not isinstance(value, int):
            self.error("INVALID_INTEGER", f"{key} must be an integer", key)
            return None
        if value < minimum:
            self.error("OUT_OF_RANGE", f"{key} must be at least {minimum}", key)
            return None
        if value > maximum:
            self.error("OUT_OF_RANGE", f"{key} must be at most {maximum}", key)
            return None
        return value

    def uuid_string(self, key: str, required: bool = False) -> str | None:
        value = self.string(key, required=required, max_length=36)
        if value is None:
            return None
        try:
            return str(UUID(value))
        except ValueError:
            self.error("INVALID_ID", f"{key} must be a valid identifier", key)
            return None

    def timestamp(self, key: str, required: bool = False) -> datetime | None:
        value = self.payload.get(key)
        if value is None:
            if required:
                self.error("MISSING_FIELD", f"{key} is required", key)
            return None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime.combine(value, time())
        elif isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.strip())
            except ValueError:
                self.error("INVALID_DATE", f"{key} must be an ISO-8601 date", key)
                return None
        else:
            self.error("INVALID_DATE", f"{key} must be an ISO-8601 date", key)
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def choice(self, key: str, choices: Sequence[str]) -> str | None:
        value = self.payload.get(key)
        if value is None:
            return None
        if value not in choices:
            self.error(
                "INVALID_STATUS",
                f"{key} must be one of: {', '.join(choices)}",
                key,
            )
            return None
        return value

    def items(self, key: str) -> list | None:
        value = self.payload.get(key)
        if value is None:
            return None
        if not isinstance(value, (list, tuple)):
            self.error("INVALID_TYPE", f"{key} must be a list", key)
            return None
        return list(value)

    def absorb(self, other: _Fields) -> None:
        self.errors.extend(other.errors)

    def raise_if_invalid(self, request_type: str) -> None:
        if self.errors:
            raise PayloadValidationError(
                request_type, [e.to_dict() for e in self.errors]
            )


# ---------------------------------------------------------------------------
# Line inputs
# ---------------------------------------------------------------------------

_SERVICE_KEYS = frozenset({"description", "quantity", "unit_price"})
_PART_KEYS = frozenset(
    {"description", "quantity", "unit_price", "part_number", "inventory_id"}
)


@dataclass(frozen=True)
class PartSnapshot:
    """Inventory data copied onto a part line at the time of use."""

    name: str
    unit_price: Decimal
    sku: str | None = None


@dataclass(frozen=True)
class PartInput:
    """
    A requested part line.  Description and price may be omitted when the
    part links to an inventory item; they are then copied from it.
    """

    quantity: int
    description: str | None = None
    unit_price: Decimal | None = None
    part_number: str | None = None
    inventory_id: str | None = None
    line_id: str | None = None

    def to_line(self, snapshot: PartSnapshot | None = None) -> PartLine | None:
        """Build the stored line; None when description or price is unknown."""
        description = self.description
        unit_price = self.unit_price
        part_number = self.part_number
        if snapshot is not None:
            description = description or snapshot.name
            unit_price = snapshot.unit_price if unit_price is None else unit_price
            part_number = part_number or snapshot.sku
        if not description or unit_price is None:
            return None
        return PartLine(
            description=description,
            quantity=self.quantity,
            unit_price=unit_price,
            part_number=part_number,
            inventory_id=self.inventory_id,
            line_id=self.line_id,
        )


def _line_id(raw: Mapping) -> str | None:
    value = raw.get("id")
    return str(value) if value is not None else None


def _parse_services(f: _Fields, key: str) -> tuple[ServiceLine, ...] | None:
    rows = f.items(key)
    if rows is None:
        return None
    lines = []
    for i, raw in enumerate(rows):
        sub = _Fields(raw, prefix=f.path(f"{key}[{i}]"))
        sub.reject_unknown(_SERVICE_KEYS)
        description = sub.string("description", required=True)
        quantity = sub.decimal("quantity", required=True, allow_zero=False)
        unit_price = sub.decimal("unit_price", required=True)
        f.absorb(sub)
        if sub.errors:
            continue
        lines.append(
            ServiceLine(
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                line_id=_line_id(raw),
            )
        )
    return tuple(lines)


def _parse_parts(f: _Fields, key: str) -> tuple[PartInput, ...] | None:
    rows = f.items(key)
    if rows is None:
        return None
    parts = []
    for i, raw in enumerate(rows):
        sub = _Fields(raw, prefix=f.path(f"{key}[{i}]"))
        sub.reject_unknown(_PART_KEYS)
        inventory_id = sub.uuid_string("inventory_id")
        linked = sub.present("inventory_id")
        description = sub.string("description", required=not linked)
        quantity = sub.integer("quantity", required=True, minimum=1)
        unit_price = sub.decimal("unit_price", required=not linked)
        part_number = sub.string("part_number", max_length=100)
        f.absorb(sub)
        if sub.errors:
            continue
        parts.append(
            PartInput(
                quantity=quantity,
                description=description,
                unit_price=unit_price,
                part_number=part_number,
                inventory_id=inventory_id,
                line_id=_line_id(raw),
            )
        )
    return tuple(parts)


def _stored_snapshot(part: PartInput, unclaimed: list[PartLine]) -> PartSnapshot | None:
    for i, line in enumerate(unclaimed):
        if line.inventory_id == part.inventory_id and line.quantity == part.quantity:
            del unclaimed[i]
            return PartSnapshot(
                name=line.description, unit_price=line.unit_price, sku=line.part_number
            )
    return None


def resolve_parts(
    request_type: str,
    inputs: Sequence[PartInput],
    lookup: Callable[[str], PartSnapshot | None],
    stored: Sequence[PartLine] = (),
) -> tuple[PartLine, ...]:
    """
    Turn part inputs into stored lines, filling gaps from inventory.

    ``lookup`` returns the owner's item snapshot for an inventory id, or
    None when the owner has no such item.  On update, ``stored`` holds the
    document's current lines: a linked input with the same item and
    quantity as a stored line keeps that line's snapshot instead of
    re-reading inventory.  Each stored line is matched at most once.

    Raises:
        PayloadValidationError: a part still lacks description or price.
    """
    errors: list[FieldError] = []
    lines = []
    unclaimed = [line for line in stored if line.is_inventory_linked]
    for i, part in enumerate(inputs):
        snapshot = None
        if part.inventory_id:
            snapshot = _stored_snapshot(part, unclaimed) or lookup(part.inventory_id)
        line = part.to_line(snapshot)
        if line is None:
            errors.append(
                FieldError(
                    "UNRESOLVED_PART",
                    "description and unit_price are required when the "
                    "inventory item cannot be found",
                    f"parts[{i}]",
                )
            )
            continue
        lines.append(line)
    if errors:
        raise PayloadValidationError(request_type, [e.to_dict() for e in errors])
    return tuple(lines)


def check_discount(request_type: str, subtotal: Decimal, discount: Decimal) -> None:
    """Discount may not exceed the subtotal (a total is never negative)."""
    if discount > subtotal:
        raise PayloadValidationError(
            request_type,
            [
                FieldError(
                    "DISCOUNT_EXCEEDS_SUBTOTAL",
                    f"discount {discount} exceeds subtotal {subtotal}",
                    "discount",
                ).to_dict()
            ],
        )


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

_INVENTORY_KEYS = frozenset(
    {
        "name",
        "description",
        "category",
        "sku",
        "quantity",
        "min_quantity",
        "unit_price",
        "supplier",
        "notes",
    }
)


@dataclass(frozen=True)
class InventoryCreateRequest:
    name: str
    sku: str
    unit_price: Decimal
    quantity: int = 0
    min_quantity: int = 0
    description: str | None = None
    category: str | None = None
    supplier: str | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> InventoryCreateRequest:
        f = _Fields(payload)
        f.reject_unknown(_INVENTORY_KEYS)
        values = dict(
            name=f.string("name", required=True, max_length=200),
            sku=f.string("sku", required=True, max_length=100),
            unit_price=f.decimal("unit_price", required=True),
            quantity=f.integer("quantity", default=0),
            min_quantity=f.integer("min_quantity", default=0),
            description=f.string("description", max_length=2000),
            category=f.string("category", max_length=100),
            supplier=f.string("supplier", max_length=200),
            notes=f.string("notes", max_length=2000),
        )
        f.raise_if_invalid("inventory_create")
        return cls(**values)


@dataclass(frozen=True)
class InventoryUpdateRequest:
    expected_version: int
    name: str | None = None
    sku: str | None = None
    unit_price: Decimal | None = None
    quantity: int | None = None
    min_quantity: int | None = None
    description: str | None = None
    category: str | None = None
    supplier: str | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> InventoryUpdateRequest:
        f = _Fields(payload)
        f.reject_unknown(_INVENTORY_KEYS | {"expected_version"})
        values = dict(
            expected_version=f.integer("expected_version", required=True, minimum=1),
            name=f.string("name", required=f.present("name"), max_length=200),
            sku=f.string("sku", required=f.present("sku"), max_length=100),
            unit_price=f.decimal("unit_price"),
            quantity=f.integer("quantity"),
            min_quantity=f.integer("min_quantity"),
            description=f.string("description", max_length=2000),
            category=f.string("category", max_length=100),
            supplier=f.string("supplier", max_length=200),
            notes=f.string("notes", max_length=2000),
        )
        f.raise_if_invalid("inventory_update")
        return cls(**values)

    def field_changes(self) -> dict[str, Any]:
        """Provided non-quantity fields."""
        names = (
            "name",
            "sku",
            "unit_price",
            "min_quantity",
            "description",
            "category",
            "supplier",
            "notes",
        )
        return {
            name: getattr(self, name)
            for name in names
            if getattr(self, name) is not None
        }


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------

_BUDGET_KEYS = frozenset(
    {
        "customer_id",
        "vehicle_id",
        "budget_date",
        "status",
        "services",
        "parts",
        "discount",
        "notes",
    }
)
_BUDGET_STATUSES = tuple(s.value for s in BudgetStatus)


@dataclass(frozen=True)
class BudgetCreateRequest:
    customer_id: str
    vehicle_id: str
    services: tuple[ServiceLine, ...] = ()
    parts: tuple[PartInput, ...] = ()
    discount: Decimal = ZERO
    budget_date: datetime | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> BudgetCreateRequest:
        f = _Fields(payload)
        f.reject_unknown(_BUDGET_KEYS)
        status = f.choice("status", _BUDGET_STATUSES)
        if status is not None and status != BudgetStatus.PENDING.value:
            f.error("INVALID_STATUS", "a new budget must be pending", "status")
        values = dict(
            customer_id=f.string("customer_id", required=True, max_length=100),
            vehicle_id=f.string("vehicle_id", required=True, max_length=100),
            services=_parse_services(f, "services") or (),
            parts=_parse_parts(f, "parts") or (),
            discount=f.decimal("discount", default=ZERO),
            budget_date=f.timestamp("budget_date"),
            notes=f.string("notes", max_length=2000),
        )
        f.raise_if_invalid("budget_create")
        return cls(**values)


@dataclass(frozen=True)
class BudgetUpdateRequest:
    expected_version: int | None
    status: str | None = None
    status_notes: str | None = None
    customer_id: str | None = None
    vehicle_id: str | None = None
    services: tuple[ServiceLine, ...] | None = None
    parts: tuple[PartInput, ...] | None = None
    discount: Decimal | None = None
    budget_date: datetime | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> BudgetUpdateRequest:
        f = _Fields(payload)
        f.reject_unknown(_BUDGET_KEYS | {"expected_version", "status_notes"})
        values = dict(
            expected_version=f.integer("expected_version", required=True, minimum=1),
            status=f.choice("status", _BUDGET_STATUSES),
            status_notes=f.string("status_notes", max_length=2000),
            customer_id=f.string(
                "customer_id", required=f.present("customer_id"), max_length=100
            ),
            vehicle_id=f.string(
                "vehicle_id", required=f.present("vehicle_id"), max_length=100
            ),
            services=_parse_services(f, "services"),
            parts=_parse_parts(f, "parts"),
            discount=f.decimal("discount"),
            budget_date=f.timestamp("budget_date"),
            notes=f.string("notes", max_length=2000),
        )
        f.raise_if_invalid("budget_update")
        return cls(**values)


@dataclass(frozen=True)
class BudgetStatusChangeRequest:
    """Optional body of approve/reject: a version check and a history note."""

    expected_version: int | None = None
    notes: str | None = None

    @classmethod
    def from_payload(
        cls, payload: Any, request_type: str = "budget_status_change"
    ) -> BudgetStatusChangeRequest:
        f = _Fields(payload if payload is not None else {})
        f.reject_unknown(frozenset({"expected_version", "notes"}))
        values = dict(
            expected_version=f.integer("expected_version", minimum=1),
            notes=f.string("notes", max_length=2000),
        )
        f.raise_if_invalid(request_type)
        return cls(**values)


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------

_ORDER_KEYS = frozenset(
    {
        "customer_id",
        "vehicle_id",
        "budget_id",
        "status",
        "start_date",
        "estimated_end_date",
        "actual_end_date",
        "services",
        "parts",
        "discount",
        "notes",
        "mechanic_notes",
    }
)
_ORDER_STATUSES = tuple(s.value for s in OrderStatus)


@dataclass(frozen=True)
class OrderCreateRequest:
    customer_id: str
    vehicle_id: str
    estimated_end_date: datetime
    services: tuple[ServiceLine, ...]
    parts: tuple[PartInput, ...] = ()
    budget_id: str | None = None
    discount: Decimal = ZERO
    start_date: datetime | None = None
    notes: str | None = None
    mechanic_notes: str | None = None

    @property
    def is_direct(self) -> bool:
        return self.budget_id is None

    @classmethod
    def from_payload(cls, payload: Any) -> OrderCreateRequest:
        f = _Fields(payload)
        f.reject_unknown(_ORDER_KEYS - {"actual_end_date"})
        status = f.choice("status", _ORDER_STATUSES)
        if status is not None and status != OrderStatus.PENDING.value:
            f.error("INVALID_STATUS", "a new order must be pending", "status")
        services = _parse_services(f, "services")
        if not services and not any(
            e.field.startswith("services") for e in f.errors
        ):
            f.error(
                "MISSING_SERVICES", "an order needs at least one service", "services"
            )
        raw_budget = f.payload.get("budget_id")
        if raw_budget is not None and not isinstance(raw_budget, str):
            f.error("INVALID_TYPE", "budget_id must be a string", "budget_id")
            raw_budget = None
        values = dict(
            customer_id=f.string("customer_id", required=True, max_length=100),
            vehicle_id=f.string("vehicle_id", required=True, max_length=100),
            estimated_end_date=f.timestamp("estimated_end_date", required=True),
            services=services or (),
            parts=_parse_parts(f, "parts") or (),
            budget_id=normalise_budget_id(raw_budget),
            discount=f.decimal("discount", default=ZERO),
            start_date=f.timestamp("start_date"),
            notes=f.string("notes", max_length=2000),
            mechanic_notes=f.string("mechanic_notes", max_length=2000),
        )
        f.raise_if_invalid("order_create")
        return cls(**values)


@dataclass(frozen=True)
class OrderFromBudgetRequest:
    """Convert an approved budget; lines and totals come from the budget."""

    budget_id: str
    estimated_end_date: datetime
    start_date: datetime | None = None
    notes: str | None = None
    mechanic_notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> OrderFromBudgetRequest:
        f = _Fields(payload)
        f.reject_unknown(
            frozenset(
                {
                    "budget_id",
                    "estimated_end_date",
                    "start_date",
                    "notes",
                    "mechanic_notes",
                }
            )
        )
        values = dict(
            budget_id=f.string("budget_id", required=True, max_length=36),
            estimated_end_date=f.timestamp("estimated_end_date", required=True),
            start_date=f.timestamp("start_date"),
            notes=f.string("notes", max_length=2000),
            mechanic_notes=f.string("mechanic_notes", max_length=2000),
        )
        f.raise_if_invalid("order_from_budget")
        return cls(**values)


@dataclass(frozen=True)
class OrderUpdateRequest:
    expected_version: int | None
    status: str | None = None
    status_notes: str | None = None
    customer_id: str | None = None
    vehicle_id: str | None = None
    start_date: datetime | None = None
    estimated_end_date: datetime | None = None
    actual_end_date: datetime | None = None
    services: tuple[ServiceLine, ...] | None = None
    parts: tuple[PartInput, ...] | None = None
    discount: Decimal | None = None
    notes: str | None = None
    mechanic_notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> OrderUpdateRequest:
        f = _Fields(payload)
        f.reject_unknown((_ORDER_KEYS - {"budget_id"}) | {"expected_version", "status_notes"})
        services = _parse_services(f, "services")
        if services is not None and not services and not any(
            e.field.startswith("services") for e in f.errors
        ):
            f.error(
                "MISSING_SERVICES", "an order needs at least one service", "services"
            )
        values = dict(
            expected_version=f.integer("expected_version", required=True, minimum=1),
            status=f.choice("status", _ORDER_STATUSES),
            status_notes=f.string("status_notes", max_length=2000),
            customer_id=f.string(
                "customer_id", required=f.present("customer_id"), max_length=100
            ),
            vehicle_id=f.string(
                "vehicle_id", required=f.present("vehicle_id"), max_length=100
            ),
            start_date=f.timestamp("start_date"),
            estimated_end_date=f.timestamp("estimated_end_date"),
            actual_end_date=f.timestamp("actual_end_date"),
            services=services,
            parts=_parse_parts(f, "parts"),
            discount=f.decimal("discount"),
            notes=f.string("notes", max_length=2000),
            mechanic_notes=f.string("mechanic_notes", max_length=2000),
        )
        f.raise_if_invalid("order_update")
        return cls(**values)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def parse_page_request(
    params: Mapping[str, Any] | None,
    max_limit: int = MAX_PAGE_SIZE,
    default_limit: int = DEFAULT_PAGE_SIZE,
) -> PageRequest:
    """Parse ``page`` / ``limit`` query parameters; limit is capped at max_limit."""
    f = _Fields(params or {})
    f.reject_unknown(frozenset({"page", "limit"}))
    page = f.integer("page", minimum=1, default=1)
    limit = f.integer("limit", minimum=1, default=default_limit)
    f.raise_if_invalid("pagination")
    return PageRequest(page=page, limit=limit).clamp(max_limit)


@dataclass(frozen=True)
class StatusHistoryQuery:
    entity_id: str | None = None
    entity_type: EntityType | None = None
    page: PageRequest = field(default_factory=PageRequest)

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any] | None,
        max_limit: int = MAX_PAGE_SIZE,
        default_limit: int = DEFAULT_PAGE_SIZE,
    ) -> StatusHistoryQuery:
        payload = dict(payload or {})
        paging = {k: payload.pop(k) for k in ("page", "limit") if k in payload}
        f = _Fields(payload)
        f.reject_unknown(frozenset({"entity_id", "entity_type"}))
        entity_id = f.string("entity_id", max_length=36)
        entity_type = f.choice("entity_type", tuple(t.value for t in EntityType))
        errors = list(f.errors)
        try:
            page = parse_page_request(paging, max_limit, default_limit)
        except PayloadValidationError as exc:
            errors.extend(FieldError(**e) for e in exc.field_errors)
            page = None
        if errors:
            raise PayloadValidationError(
                "status_history_query", [e.to_dict() for e in errors]
            )
        return cls(
            entity_id=entity_id,
            entity_type=EntityType(entity_type) if entity_type else None,
            page=page,
        )
