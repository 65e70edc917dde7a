"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /auth/login     -- password login; sets Authentication + Refresh cookies
  POST /auth/register  -- self-registration (ALLOW_REGISTRATION); sets cookies
  POST /auth/logout    -- clears stored refresh hash and both cookies
  POST /auth/refresh   -- rotates the token pair; sets both cookies
  GET  /auth/me        -- current user (no password / refresh token)

Security:
  POST /login, /register and /refresh are rate-limited (LOGIN_RATE_LIMIT per IP,
  counted per route). Failed logins count; a refresh rejected by the guard
  does not, since the guard answers before the limit is checked.
  Wrong email and wrong password produce the same 401 (no enumeration).
  Cache-Control: no-store on every response that sets token cookies.
  Tokens travel only in httpOnly cookies, never in a response body.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MessageResponse, RegisterRequest, UserResponse
from auth.errors import AuthenticationFailure
from auth.guards import access_guard, current_credentials, current_identity, refresh_guard
from auth.models import AuthenticatedIdentity, TokenPair
from auth.service import AuthService
from auth.strategies import VerifiedToken, password_strategy
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /auth/login:    no guard -- password strategy in the handler
# - POST /auth/register: no guard
# - POST /auth/logout:   requires access token (access_guard)
# - POST /auth/refresh:  requires refresh token (refresh_guard)
# - GET  /auth/me:       requires access token (access_guard)
router = APIRouter()


def _with_cookies(request: Request, content: dict, tokens: TokenPair, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    request.app.state.cookie_binder.set_auth_cookies(resp, tokens)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
#
# @limiter.limit sits BELOW @router so the router registers the throttled
# wrapper. The limit is checked inside that wrapper, after FastAPI has
# resolved dependencies, which is why the password strategy runs in the
# handler body: a failed attempt must count against the limit.
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(_settings.login_rate_limit)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Issue a token pair for verified credentials and bind it to cookies."""
    identity = await password_strategy.authenticate(request, body.email, body.password)
    service: AuthService = request.app.state.auth_service
    tokens = await service.login(identity)
    user = await service.resolve_identity(identity.id)
    if user is None:
        raise AuthenticationFailure("user vanished during login")
    resp_body = LoginResponse(message="Login successful", user=UserResponse.from_user(user))
    return _with_cookies(request, resp_body.model_dump(mode="json"), tokens)


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
@limiter.limit(_settings.login_rate_limit)
async def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a client account and log it in. 403 when registration is disabled."""
    service: AuthService = request.app.state.auth_service
    tokens = await service.register(body.email, body.password, body.name)
    return _with_cookies(request, {"message": "Registration successful"}, tokens, status_code=201)


# ---------------------------------------------------------------------------
# Token-protected endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse, dependencies=[Depends(access_guard)])
async def logout(request: Request, identity: AuthenticatedIdentity = Depends(current_identity)) -> JSONResponse:
    """Drop the server-side session and clear both cookies.

    The access token the client holds stays valid until it expires; only
    future refreshes are blocked.
    """
    service: AuthService = request.app.state.auth_service
    await service.logout(identity.id)
    resp = JSONResponse(content={"message": "Logout successful"})
    request.app.state.cookie_binder.clear_auth_cookies(resp)
    return resp


@router.post("/auth/refresh", response_model=MessageResponse, dependencies=[Depends(refresh_guard)])
@limiter.limit(_settings.login_rate_limit)
async def refresh(request: Request, credentials: VerifiedToken = Depends(current_credentials)) -> JSONResponse:
    """Rotate the pair. The presented refresh token is dead after this call."""
    service: AuthService = request.app.state.auth_service
    tokens = await service.refresh(credentials.identity.id, credentials.raw_token)
    return _with_cookies(request, {"message": "Refresh successful"}, tokens)


@limiter.exempt
@router.get("/auth/me", response_model=UserResponse, dependencies=[Depends(access_guard)])
async def me(request: Request, identity: AuthenticatedIdentity = Depends(current_identity)) -> UserResponse:
    """Return the current user record. 401 if the token's subject no longer exists."""
    service: AuthService = request.app.state.auth_service
    user = await service.resolve_identity(identity.id)
    if user is None:
        raise AuthenticationFailure(f"user {identity.id} not found")
    return UserResponse.from_user(user)
