"""
auth/cookies.py -- Session cookie binder.

Two httpOnly cookies carry the token pair:
  Authentication -- access token, max_age = access lifetime (15 min)
  Refresh        -- refresh token, max_age = refresh lifetime (7 days)

Attributes on both:
  httponly=True: JS cannot read the cookie (XSS mitigation).
  samesite="lax": not sent on cross-site POST -- CSRF mitigation for most cases.
  secure: only when ENVIRONMENT=production.
  path="/": clearing must use the same path or the browser keeps the cookie.
"""

from __future__ import annotations

from starlette.responses import Response

from auth.models import TokenPair
from core.config import Settings

ACCESS_COOKIE = "Authentication"
REFRESH_COOKIE = "Refresh"
COOKIE_PATH = "/"


class SessionCookieBinder:
    def __init__(self, settings: Settings) -> None:
        self.secure = settings.secure_cookies
        self.access_max_age = settings.access_token_expire_seconds
        self.refresh_max_age = settings.refresh_token_expire_seconds

    def set_auth_cookies(self, response: Response, tokens: TokenPair) -> None:
        """Write both token cookies with expiry mirroring the token lifetimes."""
        self._set(response, ACCESS_COOKIE, tokens.access_token, self.access_max_age)
        self._set(response, REFRESH_COOKIE, tokens.refresh_token, self.refresh_max_age)

    def clear_auth_cookies(self, response: Response) -> None:
        for name in (ACCESS_COOKIE, REFRESH_COOKIE):
            response.delete_cookie(
                name,
                path=COOKIE_PATH,
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )

    def _set(self, response: Response, name: str, value: str, max_age: int) -> None:
        response.set_cookie(
            name,
            value=value,
            max_age=max_age,
            path=COOKIE_PATH,
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )
