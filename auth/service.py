"""
auth/service.py -- Auth orchestrator: login, logout, refresh, identity.

AuthService composes the credential store, the password hasher and the token
issuer. Every collaborator is injected; the service never reads configuration
or the environment on its own.

Token lifecycle:
  login    -- issue a pair, store bcrypt(refresh) on the user, return the pair.
              Overwriting the stored hash invalidates every earlier refresh token.
  refresh  -- the presented refresh token must match the stored hash. A new pair
              is issued and the new hash replaces the old one with a
              compare-and-swap, so each refresh token works exactly once.
  logout   -- clear the stored hash. Outstanding refresh tokens die at once.

Residual access after logout:
  logout does not revoke the access token the client already holds. It stays
  valid until its own expiry (at most ACCESS_TOKEN_EXPIRE_SECONDS, 15 minutes
  by default). Only future refreshes are blocked. There is no revocation list.

Timing equalization:
  validate_credentials() always runs one bcrypt verification, against a dummy
  hash when the email is unknown, so "no such user" and "wrong password" take
  the same order of time and return the same None.

Every store call goes through run_in_threadpool; the store is synchronous.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from auth.errors import (
    AccessDenied,
    AuthenticationFailure,
    EmailAlreadyRegistered,
    InvalidCurrentPassword,
    RegistrationDisabled,
)
from auth.hashing import PasswordHasher
from auth.models import AuthenticatedIdentity, Role, TokenPair, User
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("nexstack.auth")


class AuthService:
    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        allow_registration: bool = True,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.allow_registration = allow_registration

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def validate_credentials(self, email: str, password: str) -> AuthenticatedIdentity | None:
        """Return the identity for a matching email/password, else None. Never raises on mismatch."""
        user = await run_in_threadpool(self.store.find_by_email, email, True)
        if user is None:
            await self.hasher.verify(password, self.hasher.dummy_hash)
            return None
        if not await self.hasher.verify(password, user.password_hash):
            return None
        return AuthenticatedIdentity.from_user(user)

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    async def login(self, identity: AuthenticatedIdentity) -> TokenPair:
        tokens = await self.issuer.issue_token_pair(identity.id, identity.email, identity.role)
        await self._store_refresh_hash(identity.id, tokens.refresh_token)
        logger.info("Login for user %s", identity.id)
        return tokens

    async def logout(self, user_id: str) -> None:
        await run_in_threadpool(self.store.update_fields, user_id, refresh_token_hash=None)
        logger.info("Logout for user %s", user_id)

    async def refresh(self, user_id: str, presented_refresh_token: str) -> TokenPair:
        """Rotate the token pair. Raises AccessDenied if the presented token is not the current one."""
        user = await run_in_threadpool(self.store.find_by_id, user_id)
        if user is None or not user.refresh_token_hash:
            logger.warning("Refresh denied for user %s: no active session", user_id)
            raise AccessDenied("no stored refresh hash")

        stored_hash = user.refresh_token_hash
        if not await self.hasher.verify_token(presented_refresh_token, stored_hash):
            # A validly signed refresh token that no longer matches has already
            # been rotated away (replayed) or was invalidated by logout.
            logger.warning("Refresh denied for user %s: refresh token does not match", user_id)
            raise AccessDenied("refresh hash mismatch")

        tokens = await self.issuer.issue_token_pair(user.id, user.email, user.role)
        new_hash = await self.hasher.hash_token(tokens.refresh_token)
        swapped = await run_in_threadpool(self.store.compare_and_set_refresh_hash, user.id, stored_hash, new_hash)
        if not swapped:
            logger.warning("Refresh denied for user %s: concurrent rotation won", user_id)
            raise AccessDenied("refresh hash changed during rotation")
        return tokens

    async def resolve_identity(self, user_id: str) -> User | None:
        """Return the current user record for "who am I" (no password hash)."""
        return await run_in_threadpool(self.store.find_by_id, user_id)

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    async def register(self, email: str, password: str, name: str) -> TokenPair:
        """Create a client account and log it in."""
        if not self.allow_registration:
            raise RegistrationDisabled("self-registration disabled")
        user_id = await self.create_user(email=email, password=password, name=name, role=Role.CLIENT)
        return await self.login(AuthenticatedIdentity(id=user_id, email=email, role=Role.CLIENT))

    async def create_user(self, email: str, password: str, name: str, role: Role) -> str:
        password_hash = await self.hasher.hash(password)
        user = User(email=email, name=name, role=role, password_hash=password_hash)
        try:
            return await run_in_threadpool(self.store.create_user, user)
        except IntegrityError as exc:
            raise EmailAlreadyRegistered(f"duplicate email {email!r}") from exc

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Self-service password change; the current password must verify first."""
        stored = await run_in_threadpool(self.store.get_password_hash, user_id)
        if not await self.hasher.verify(current_password, stored):
            raise InvalidCurrentPassword("current password mismatch")
        new_hash = await self.hasher.hash(new_password)
        await run_in_threadpool(self.store.update_fields, user_id, password_hash=new_hash)
        logger.info("Password changed for user %s", user_id)

    async def reset_password(self, user_id: str, new_password: str) -> bool:
        """Admin-driven reset. No prior password check; the user's session is dropped."""
        new_hash = await self.hasher.hash(new_password)
        updated = await run_in_threadpool(
            self.store.update_fields, user_id, password_hash=new_hash, refresh_token_hash=None
        )
        if updated:
            logger.info("Password reset by admin for user %s", user_id)
        return updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _store_refresh_hash(self, user_id: str, refresh_token: str) -> None:
        refresh_hash = await self.hasher.hash_token(refresh_token)
        stored = await run_in_threadpool(self.store.update_fields, user_id, refresh_token_hash=refresh_hash)
        if not stored:
            # The pair is useless without its hash on record; fail the whole login.
            raise AuthenticationFailure("user vanished before refresh hash was stored")
