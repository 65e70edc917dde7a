"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these types only own the shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Fixed role claim carried in every token. No hierarchy between roles."""

    ADMIN = "admin"
    CLIENT = "client"
    TEAM = "team"


@dataclass
class User:
    """A user record as persisted by the credential store.

    password_hash is None unless the lookup explicitly asked for it
    (UserStore.find_by_email(..., include_password_hash=True)). It must never
    reach a response body.

    refresh_token_hash is the bcrypt hash of the single refresh token currently
    honoured for this user, or None when there is no active session.
    """

    email: str
    name: str
    role: Role
    id: str | None = None
    password_hash: str | None = None
    refresh_token_hash: str | None = None
    profile_image: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    deleted_at: str | None = None  # soft-delete marker


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """The minimal claim set attached to a request after token verification."""

    id: str
    email: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> AuthenticatedIdentity:
        return cls(id=user.id, email=user.email, role=user.role)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
