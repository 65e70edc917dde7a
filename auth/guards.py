"""
auth/guards.py -- RBAC guard layer: route markers and the guard dependency.

Markers (set attributes on the endpoint function, nothing else):
  @public            -- skip identity verification entirely.
  @roles(Role.ADMIN) -- allow-list of roles. Exact membership, no hierarchy:
                        admin does not inherit client or team permissions.
  (neither)          -- any authenticated identity is enough.

Place markers BELOW the @router.<method> decorator so the function FastAPI
registers is the one carrying the attributes.

AuthGuard is a FastAPI dependency wrapping one CookieTokenStrategy. Per
request it walks:

  UNAUTHENTICATED -> IDENTITY_RESOLVED -> AUTHORIZED
  UNAUTHENTICATED -> REJECTED   (401, AuthenticationFailure)
  IDENTITY_RESOLVED -> FORBIDDEN (403, AuthorizationFailure)
  public route: UNAUTHENTICATED -> AUTHORIZED

The final state is left on request.state.auth_state; the identity on
request.state.identity; the verified token on request.state.credentials.

Usage:
    router = APIRouter(dependencies=[Depends(access_guard)])

    @router.get("/users")
    @roles(Role.ADMIN)
    async def list_users(identity: AuthenticatedIdentity = Depends(current_identity)): ...
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar

from starlette.requests import Request

from auth.errors import AuthenticationFailure, AuthorizationFailure
from auth.models import AuthenticatedIdentity, Role
from auth.strategies import CookieTokenStrategy, VerifiedToken, access_token_strategy, refresh_token_strategy

logger = logging.getLogger("nexstack.auth.guards")

_Endpoint = TypeVar("_Endpoint", bound=Callable[..., Any])

_PUBLIC_ATTR = "__auth_public__"
_ROLES_ATTR = "__auth_roles__"


class GuardState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    IDENTITY_RESOLVED = "identity_resolved"
    AUTHORIZED = "authorized"
    REJECTED = "rejected"
    FORBIDDEN = "forbidden"


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------


def public(endpoint: _Endpoint) -> _Endpoint:
    setattr(endpoint, _PUBLIC_ATTR, True)
    return endpoint


def roles(*allowed: Role) -> Callable[[_Endpoint], _Endpoint]:
    if not allowed:
        raise ValueError("roles() needs at least one role")
    allowed_set = frozenset(Role(r) for r in allowed)

    def decorator(endpoint: _Endpoint) -> _Endpoint:
        setattr(endpoint, _ROLES_ATTR, allowed_set)
        return endpoint

    return decorator


def is_public(endpoint: Any) -> bool:
    return bool(getattr(endpoint, _PUBLIC_ATTR, False))


def required_roles(endpoint: Any) -> frozenset[Role] | None:
    return getattr(endpoint, _ROLES_ATTR, None)


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


class AuthGuard:
    def __init__(self, strategy: CookieTokenStrategy) -> None:
        self.strategy = strategy

    async def __call__(self, request: Request) -> AuthenticatedIdentity | None:
        endpoint = request.scope.get("endpoint")
        request.state.auth_state = GuardState.UNAUTHENTICATED

        if is_public(endpoint):
            request.state.auth_state = GuardState.AUTHORIZED
            return None

        try:
            verified: VerifiedToken = await self.strategy.authenticate(request)
        except AuthenticationFailure:
            request.state.auth_state = GuardState.REJECTED
            raise

        identity = verified.identity
        request.state.identity = identity
        request.state.credentials = verified
        request.state.auth_state = GuardState.IDENTITY_RESOLVED

        allowed = required_roles(endpoint)
        if allowed is not None and identity.role not in allowed:
            request.state.auth_state = GuardState.FORBIDDEN
            logger.warning(
                "Forbidden %s %s for user %s (role=%s)",
                request.method,
                request.url.path,
                identity.id,
                identity.role.value,
            )
            raise AuthorizationFailure(f"role {identity.role.value} not in allow-list")

        request.state.auth_state = GuardState.AUTHORIZED
        return identity


access_guard = AuthGuard(access_token_strategy)
refresh_guard = AuthGuard(refresh_token_strategy)


# ---------------------------------------------------------------------------
# Accessors for handlers
# ---------------------------------------------------------------------------


def current_identity(request: Request) -> AuthenticatedIdentity:
    """Return the identity a guard attached. 401 if no guard resolved one."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise AuthenticationFailure("no identity on request")
    return identity


def current_credentials(request: Request) -> VerifiedToken:
    credentials = getattr(request.state, "credentials", None)
    if credentials is None:
        raise AuthenticationFailure("no verified token on request")
    return credentials
