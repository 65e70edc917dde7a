"""
API request and response models for NexStack REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

No response model has a password or refresh-token field. Serializing a User
through UserResponse.from_user() is the only way a user reaches the wire.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Role, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Upper and lower case letter, plus a digit or a symbol.
_STRONG_PASSWORD = re.compile(r"^(?=.*[A-Z])(?=.*[a-z])(?=.*(\d|\W)).*$")


def _check_strength(value: str) -> str:
    if not _STRONG_PASSWORD.match(value):
        raise ValueError("Password too weak")
    return value


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login.

    No strength rules here: login must accept whatever password was stored.
    """

    model_config = ConfigDict(str_strip_whitespace=False)

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=255)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_strength(v)


# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /users (admin only)."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    role: Role

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_strength(v)


class UserAdminUpdate(BaseModel):
    """Request body for PATCH /users/{id} (admin only).

    password here is an admin-driven reset: no current password is required,
    and the user's active session is dropped.
    """

    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role: Optional[Role] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: Optional[str]) -> Optional[str]:
        return _check_strength(v) if v is not None else v


class ProfileUpdate(BaseModel):
    """Request body for PATCH /users/profile."""

    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)


class ChangePasswordRequest(BaseModel):
    """Request body for PATCH /users/change-password."""

    current_password: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_strength(v)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """A user as exposed over HTTP -- never includes password or refresh token."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: Role
    profile_image: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            profile_image=user.profile_image,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class LoginResponse(BaseModel):
    """Response for POST /auth/login. Tokens travel in cookies, not in the body."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
