"""
auth/tokens.py -- JWT issuance and verification for access and refresh tokens.

Security design decisions:
  python-jose with HS256. Every token carries sub (user id), email, role,
  iat, exp and a random jti. The jti keeps two tokens minted in the same
  second distinct, which rotation depends on.

  Two independent secrets and lifetimes (Settings.access_secret /
  refresh_secret, 15 minutes / 7 days). An access token never verifies under
  the refresh secret and vice versa.

  Verification raises AuthenticationFailure on any problem -- bad signature,
  expiry, or a claim set missing sub/email/role. The reason goes to the
  exception for server logs; clients only ever see "Unauthorized".

Layer rule: no imports from api/.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from starlette.concurrency import run_in_threadpool

from auth.errors import AuthenticationFailure
from auth.models import AuthenticatedIdentity, Role, TokenPair
from core.config import Settings

logger = logging.getLogger("nexstack.auth.tokens")

ALGORITHM = "HS256"


def _sign(subject_id: str, email: str, role: Role, secret: str, lifetime: int, issued_at: datetime) -> str:
    payload = {
        "sub": subject_id,
        "email": email,
        "role": Role(role).value,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=lifetime),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def _verify(token: str, secret: str) -> AuthenticatedIdentity:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError as exc:
        raise AuthenticationFailure("token expired") from exc
    except JWTError as exc:
        raise AuthenticationFailure(f"token rejected: {exc}") from exc

    sub = payload.get("sub")
    email = payload.get("email")
    if not isinstance(sub, str) or not sub or not isinstance(email, str) or not email:
        raise AuthenticationFailure("token missing sub or email claim")
    try:
        role = Role(payload.get("role"))
    except ValueError as exc:
        raise AuthenticationFailure("token carries an unknown role") from exc
    return AuthenticatedIdentity(id=sub, email=email, role=role)


class TokenIssuer:
    """Creates and verifies signed, expiring access/refresh token pairs."""

    def __init__(self, settings: Settings) -> None:
        self._access_secret = settings.access_secret
        self._refresh_secret = settings.refresh_secret
        self.access_lifetime = settings.access_token_expire_seconds
        self.refresh_lifetime = settings.refresh_token_expire_seconds

    async def issue_token_pair(
        self,
        subject_id: str,
        email: str,
        role: Role,
        issued_at: datetime | None = None,
    ) -> TokenPair:
        """Sign both tokens concurrently. issued_at defaults to now (UTC)."""
        now = issued_at or datetime.now(timezone.utc)
        access_token, refresh_token = await asyncio.gather(
            run_in_threadpool(_sign, subject_id, email, role, self._access_secret, self.access_lifetime, now),
            run_in_threadpool(_sign, subject_id, email, role, self._refresh_secret, self.refresh_lifetime, now),
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def decode_access(self, token: str) -> AuthenticatedIdentity:
        return await run_in_threadpool(_verify, token, self._access_secret)

    async def decode_refresh(self, token: str) -> AuthenticatedIdentity:
        return await run_in_threadpool(_verify, token, self._refresh_secret)
