"""
auth/strategies.py -- Credential verification strategies.

Two independent paths, both converging on an AuthenticatedIdentity:

  PasswordStrategy     -- email + password from the login body, checked against
                          the credential store via AuthService.validate_credentials().
  CookieTokenStrategy  -- a JWT read from a named cookie (never a header),
                          verified against the secret for its kind. Two shared
                          instances: access_token_strategy and
                          refresh_token_strategy.

Token extraction is a plain function (cookies) -> token | None, passed into the
strategy. Extraction knows nothing about verification and vice versa.

Collaborators (AuthService, TokenIssuer) are looked up on request.app.state,
where the lifespan in api/main.py put them.

Layer rule: no imports from api/. fastapi/starlette imports are allowed because
strategies run inside the dependency injection system.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from starlette.requests import Request

from auth.cookies import ACCESS_COOKIE, REFRESH_COOKIE
from auth.errors import AuthenticationFailure
from auth.models import AuthenticatedIdentity
from auth.tokens import TokenIssuer

TokenExtractor = Callable[[Mapping[str, str]], str | None]
TokenVerifier = Callable[[TokenIssuer, str], Awaitable[AuthenticatedIdentity]]


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


def access_cookie_extractor(cookies: Mapping[str, str]) -> str | None:
    return cookies.get(ACCESS_COOKIE) or None


def refresh_cookie_extractor(cookies: Mapping[str, str]) -> str | None:
    return cookies.get(REFRESH_COOKIE) or None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerifiedToken:
    """Identity decoded from a token plus the raw token string that carried it.

    The raw string is only needed by the refresh flow, which compares it
    against the stored hash.
    """

    identity: AuthenticatedIdentity
    raw_token: str


class CookieTokenStrategy:
    def __init__(self, name: str, extractor: TokenExtractor, verifier: TokenVerifier) -> None:
        self.name = name
        self.extractor = extractor
        self.verifier = verifier

    async def authenticate(self, request: Request) -> VerifiedToken:
        """Raise AuthenticationFailure on a missing, forged, expired or malformed token."""
        token = self.extractor(request.cookies)
        if not token:
            raise AuthenticationFailure(f"{self.name} cookie missing")
        issuer: TokenIssuer = request.app.state.token_issuer
        identity = await self.verifier(issuer, token)
        return VerifiedToken(identity=identity, raw_token=token)


class PasswordStrategy:
    async def authenticate(self, request: Request, email: str, password: str) -> AuthenticatedIdentity:
        """Validate login credentials and attach the identity to the request.

        Unknown email and wrong password raise the same AuthenticationFailure.
        """
        identity = await request.app.state.auth_service.validate_credentials(email, password)
        if identity is None:
            raise AuthenticationFailure("bad credentials")
        request.state.identity = identity
        return identity


access_token_strategy = CookieTokenStrategy("access", access_cookie_extractor, TokenIssuer.decode_access)
refresh_token_strategy = CookieTokenStrategy("refresh", refresh_cookie_extractor, TokenIssuer.decode_refresh)
password_strategy = PasswordStrategy()
