"""
WorkshopAPI -- the outer surface of the workshop system.

Responsibility:
    One method per operation.  Each call authenticates the caller, opens a
    fresh session, parses the raw payload into a typed request, delegates
    to the owning module service and turns the outcome into an ApiResult.
    No exception escapes: every failure becomes an ErrorBody carrying the
    stable ``kind`` and ``code`` of the typed exception.

Architecture position:
    Services layer (outermost).  Imports modules, kernel and config.
    Transport adapters (HTTP, CLI) wrap this facade and only translate
    ApiResult.status.

Invariants:
    - Authentication happens before any storage access; an anonymous call
      never opens a session.
    - The authenticated user is both owner and actor of the call.
    - One session per call, always closed.

Failure modes:
    - Typed WorkshopError -> ErrorBody(kind, code, message, details).
    - Anything else -> ``server_error`` / ``INTERNAL_ERROR``, logged with
      traceback as ``api_unhandled_error``.

Audit relevance:
    ``api_request_failed`` / ``api_unhandled_error`` log entries carry the
    operation and the request id bound in LogContext.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from workshop_config import WorkshopConfig, get_active_config
from workshop_kernel.db.engine import get_session_factory, init_engine_from_url
from workshop_kernel.db.immutability import register_immutability_listeners
from workshop_kernel.domain.clock import Clock, SystemClock
from workshop_kernel.domain.lifecycle import EntityType
from workshop_kernel.domain.pagination import Page
from workshop_kernel.domain.requests import (
    BudgetCreateRequest,
    BudgetStatusChangeRequest,
    BudgetUpdateRequest,
    InventoryCreateRequest,
    InventoryUpdateRequest,
    OrderCreateRequest,
    OrderFromBudgetRequest,
    OrderUpdateRequest,
    StatusHistoryQuery,
    parse_page_request,
)
from workshop_kernel.exceptions import (
    ErrorKind,
    PayloadValidationError,
    WorkshopError,
)
from workshop_kernel.logging_config import LogContext, configure_logging, get_logger
from workshop_kernel.selectors.status_history_selector import StatusHistorySelector
from workshop_modules._orm_registry import create_all_tables
from workshop_modules.budget.service import BudgetService
from workshop_modules.inventory.service import InventoryService
from workshop_modules.orders.service import OrderService
from workshop_services.identity import IdentityProvider, StaticIdentityProvider

logger = get_logger("services.api")

_STATUS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.SERVER_ERROR: 500,
}


@dataclass(frozen=True)
class ErrorBody:
    kind: str
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


@dataclass(frozen=True)
class ApiResult:
    """Outcome of one facade call.  ``status`` follows HTTP conventions."""

    ok: bool
    status: int
    data: Any = None
    error: ErrorBody | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error.to_dict()}


def _page_dict(page: Page) -> dict[str, Any]:
    return {"items": [item.to_dict() for item in page.items], **page.to_dict()}


class WorkshopAPI:
    """
    Facade over the inventory, budget, order and status history operations.

    ``request`` arguments are header mappings handed to the identity
    provider.  Payloads and query parameters are raw mappings.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        identity_provider: IdentityProvider | None = None,
        config: WorkshopConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._identity = identity_provider or StaticIdentityProvider()
        self._config = config or WorkshopConfig()
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Call plumbing
    # ------------------------------------------------------------------

    def _call(
        self,
        operation: str,
        request: Mapping[str, Any] | None,
        handler: Callable[[Session, str], Any],
        success_status: int = 200,
    ) -> ApiResult:
        request_id = str(uuid4())
        with LogContext.bind(request_id=request_id):
            try:
                user_id = self._identity.authenticate(request).require_user()
            except WorkshopError as exc:
                return self._failure(operation, exc)

            with LogContext.bind(actor_id=user_id, owner_id=user_id):
                session = self._session_factory()
                try:
                    data = handler(session, user_id)
                except WorkshopError as exc:
                    return self._failure(operation, exc)
                except Exception:
                    logger.exception("api_unhandled_error", extra={"operation": operation})
                    return ApiResult(
                        ok=False,
                        status=500,
                        error=ErrorBody(
                            kind=ErrorKind.SERVER_ERROR.value,
                            code="INTERNAL_ERROR",
                            message="internal error",
                        ),
                    )
                finally:
                    session.close()
        return ApiResult(ok=True, status=success_status, data=data)

    def _failure(self, operation: str, exc: WorkshopError) -> ApiResult:
        level = logging.ERROR if exc.kind == ErrorKind.SERVER_ERROR else logging.INFO
        logger.log(
            level,
            "api_request_failed",
            extra={"operation": operation, "error_code": exc.code, "error_kind": exc.kind.value},
        )
        return ApiResult(
            ok=False,
            status=_STATUS_BY_KIND[exc.kind],
            error=ErrorBody(
                kind=exc.kind.value,
                code=exc.code,
                message=str(exc),
                details=exc.details(),
            ),
        )

    def _page(self, params: Mapping[str, Any] | None):
        return parse_page_request(
            params,
            max_limit=self._config.pagination.max_limit,
            default_limit=self._config.pagination.default_limit,
        )

    def _inventory(self, session: Session, user_id: str) -> InventoryService:
        return InventoryService(session, owner_id=user_id, actor_id=user_id)

    def _budgets(self, session: Session, user_id: str) -> BudgetService:
        return BudgetService(
            session,
            owner_id=user_id,
            actor_id=user_id,
            clock=self._clock,
            transactional=self._config.reservations.transactional,
            strict_history=self._config.status_history.strict,
        )

    def _orders(self, session: Session, user_id: str) -> OrderService:
        return OrderService(
            session,
            owner_id=user_id,
            actor_id=user_id,
            clock=self._clock,
            transactional=self._config.reservations.transactional,
            strict_history=self._config.status_history.strict,
        )

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def list_inventory(self, request, params=None) -> ApiResult:
        return self._call(
            "list_inventory",
            request,
            lambda s, u: _page_dict(self._inventory(s, u).list_items(self._page(params))),
        )

    def list_low_stock(self, request, params=None) -> ApiResult:
        return self._call(
            "list_low_stock",
            request,
            lambda s, u: _page_dict(self._inventory(s, u).list_low_stock(self._page(params))),
        )

    def get_inventory_item(self, request, item_id) -> ApiResult:
        return self._call(
            "get_inventory_item",
            request,
            lambda s, u: self._inventory(s, u).get_item(item_id).to_dict(),
        )

    def create_inventory_item(self, request, payload) -> ApiResult:
        def handler(s, u):
            parsed = InventoryCreateRequest.from_payload(payload)
            return self._inventory(s, u).create_item(parsed).to_dict()

        return self._call("create_inventory_item", request, handler, success_status=201)

    def update_inventory_item(self, request, item_id, payload) -> ApiResult:
        def handler(s, u):
            parsed = InventoryUpdateRequest.from_payload(payload)
            return self._inventory(s, u).update_item(item_id, parsed).to_dict()

        return self._call("update_inventory_item", request, handler)

    def delete_inventory_item(self, request, item_id) -> ApiResult:
        def handler(s, u):
            self._inventory(s, u).delete_item(item_id)
            return {"id": str(item_id), "deleted": True}

        return self._call("delete_inventory_item", request, handler)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def list_budgets(self, request, params=None) -> ApiResult:
        return self._call(
            "list_budgets",
            request,
            lambda s, u: _page_dict(self._budgets(s, u).list_budgets(self._page(params))),
        )

    def get_budget(self, request, budget_id) -> ApiResult:
        return self._call(
            "get_budget",
            request,
            lambda s, u: self._budgets(s, u).get_budget(budget_id).to_dict(),
        )

    def create_budget(self, request, payload) -> ApiResult:
        def handler(s, u):
            parsed = BudgetCreateRequest.from_payload(payload)
            return self._budgets(s, u).create_budget(parsed).to_dict()

        return self._call("create_budget", request, handler, success_status=201)

    def update_budget(self, request, budget_id, payload) -> ApiResult:
        def handler(s, u):
            parsed = BudgetUpdateRequest.from_payload(payload)
            return self._budgets(s, u).update_budget(budget_id, parsed).to_dict()

        return self._call("update_budget", request, handler)

    def approve_budget(self, request, budget_id, payload=None) -> ApiResult:
        def handler(s, u):
            parsed = BudgetStatusChangeRequest.from_payload(payload, "approve_budget")
            return (
                self._budgets(s, u)
                .approve_budget(budget_id, parsed.expected_version, parsed.notes)
                .to_dict()
            )

        return self._call("approve_budget", request, handler)

    def reject_budget(self, request, budget_id, payload=None) -> ApiResult:
        def handler(s, u):
            parsed = BudgetStatusChangeRequest.from_payload(payload, "reject_budget")
            return (
                self._budgets(s, u)
                .reject_budget(budget_id, parsed.expected_version, parsed.notes)
                .to_dict()
            )

        return self._call("reject_budget", request, handler)

    def delete_budget(self, request, budget_id) -> ApiResult:
        def handler(s, u):
            self._budgets(s, u).delete_budget(budget_id)
            return {"id": str(budget_id), "deleted": True}

        return self._call("delete_budget", request, handler)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def list_orders(self, request, params=None) -> ApiResult:
        return self._call(
            "list_orders",
            request,
            lambda s, u: _page_dict(self._orders(s, u).list_orders(self._page(params))),
        )

    def get_order(self, request, order_id) -> ApiResult:
        return self._call(
            "get_order",
            request,
            lambda s, u: self._orders(s, u).get_order(order_id).to_dict(),
        )

    def create_order(self, request, payload) -> ApiResult:
        def handler(s, u):
            parsed = OrderCreateRequest.from_payload(payload)
            return self._orders(s, u).create_order(parsed).to_dict()

        return self._call("create_order", request, handler, success_status=201)

    def create_order_from_budget(self, request, payload) -> ApiResult:
        def handler(s, u):
            parsed = OrderFromBudgetRequest.from_payload(payload)
            return self._orders(s, u).create_from_budget(parsed).to_dict()

        return self._call("create_order_from_budget", request, handler, success_status=201)

    def update_order(self, request, order_id, payload) -> ApiResult:
        def handler(s, u):
            parsed = OrderUpdateRequest.from_payload(payload)
            return self._orders(s, u).update_order(order_id, parsed).to_dict()

        return self._call("update_order", request, handler)

    def delete_order(self, request, order_id) -> ApiResult:
        def handler(s, u):
            self._orders(s, u).delete_order(order_id)
            return {"id": str(order_id), "deleted": True}

        return self._call("delete_order", request, handler)

    # ------------------------------------------------------------------
    # Status history
    # ------------------------------------------------------------------

    def get_status_history(self, request, entity_type, entity_id) -> ApiResult:
        """Full trail of one entity, oldest first.  Unknown ids yield []."""

        def handler(s, u):
            try:
                kind = EntityType(entity_type)
            except ValueError:
                raise PayloadValidationError(
                    "status_history",
                    [
                        {
                            "code": "INVALID_ENTITY_TYPE",
                            "message": "entity_type must be one of: order, budget",
                            "field": "entity_type",
                        }
                    ],
                ) from None
            records = StatusHistorySelector(s, u).for_entity(kind, entity_id)
            return [r.to_dict() for r in records]

        return self._call("get_status_history", request, handler)

    def query_status_history(self, request, params=None) -> ApiResult:
        """Most recent first, optionally filtered by entity id and/or type."""

        def handler(s, u):
            query = StatusHistoryQuery.from_payload(
                params,
                max_limit=self._config.pagination.max_limit,
                default_limit=self._config.pagination.default_limit,
            )
            page = StatusHistorySelector(s, u).query(
                query.page, entity_id=query.entity_id, entity_type=query.entity_type
            )
            return _page_dict(page)

        return self._call("query_status_history", request, handler)


def create_api(
    config: WorkshopConfig | None = None,
    identity_provider: IdentityProvider | None = None,
    clock: Clock | None = None,
) -> WorkshopAPI:
    """
    Wire a ready-to-use facade from configuration.

    Configures logging, initializes the engine, registers the ORM
    immutability listeners and creates missing tables.
    """
    config = config or get_active_config()
    configure_logging(level=config.logging.level.upper())
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
        busy_timeout=config.database.busy_timeout,
    )
    register_immutability_listeners()
    create_all_tables()
    logger.info(
        "workshop_api_ready",
        extra={
            "config_name": config.name,
            "transactional_reservations": config.reservations.transactional,
        },
    )
    return WorkshopAPI(
        get_session_factory(),
        identity_provider=identity_provider,
        config=config,
        clock=clock,
    )
