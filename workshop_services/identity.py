"""
workshop_services.identity -- who is calling.

Responsibility:
    Turn request metadata into an Identity.  The user id of an
    authenticated identity is both the owner of every record the call
    touches and the actor recorded in audit columns and status history.

Architecture position:
    Services layer.  Consumed by the API facade before any storage access.

Invariants:
    - The kernel remains identity-agnostic: it receives plain owner/actor
      strings and never resolves them.
    - An unauthenticated identity never reaches a module service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from workshop_kernel.exceptions import UnauthorizedError
from workshop_kernel.logging_config import get_logger

logger = get_logger("services.identity")

DEFAULT_USER_ID = "default-user"


@dataclass(frozen=True)
class Identity:
    authenticated: bool
    user_id: str | None = None

    def require_user(self) -> str:
        """The user id, or UnauthorizedError when unauthenticated."""
        if not self.authenticated or not self.user_id:
            raise UnauthorizedError()
        return self.user_id


ANONYMOUS = Identity(authenticated=False)


class IdentityProvider(Protocol):
    def authenticate(self, request: Mapping[str, Any] | None) -> Identity: ...


class StaticIdentityProvider:
    """Every request is the same user.  Single-tenant and development setups."""

    def __init__(self, user_id: str = DEFAULT_USER_ID):
        self._identity = Identity(authenticated=True, user_id=user_id)

    def authenticate(self, request: Mapping[str, Any] | None) -> Identity:
        return self._identity


class MappingIdentityProvider:
    """
    Bearer tokens looked up in a fixed token -> user id table.

    ``request`` is a mapping of headers; the ``Authorization`` header (any
    case) must read ``Bearer <token>``.
    """

    def __init__(self, tokens: Mapping[str, str]):
        self._tokens = dict(tokens)

    def authenticate(self, request: Mapping[str, Any] | None) -> Identity:
        header = None
        for key, value in (request or {}).items():
            if str(key).lower() == "authorization":
                header = value
                break
        if not isinstance(header, str):
            return ANONYMOUS

        scheme, _, token = header.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            logger.warning("identity_malformed_authorization")
            return ANONYMOUS

        user_id = self._tokens.get(token.strip())
        if user_id is None:
            logger.warning("identity_unknown_token")
            return ANONYMOUS
        return Identity(authenticated=True, user_id=user_id)
