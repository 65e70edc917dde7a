"""
auth/errors.py -- Exception taxonomy for the auth core.

Every class carries the HTTP status and the generic message the API layer
returns. Messages never say *why* authentication failed: user-not-found,
wrong password, bad signature and expired token all read "Unauthorized" so
callers cannot enumerate accounts.

AccessDenied is raised during refresh rotation (stored hash absent or not
matching). It subclasses AuthenticationFailure so the HTTP layer treats it
identically, while service callers and tests can still tell them apart.
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 401
    code: str = "unauthorized"
    message: str = "Unauthorized"

    def __init__(self, reason: str = "") -> None:
        # reason is for server-side logs only; it is never sent to the client.
        super().__init__(reason or self.message)
        self.reason = reason


class AuthenticationFailure(AuthError):
    pass


class AccessDenied(AuthenticationFailure):
    pass


class AuthorizationFailure(AuthError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


# ---------------------------------------------------------------------------
# Account management failures (register / change password)
# ---------------------------------------------------------------------------


class RegistrationDisabled(AuthError):
    status_code = 403
    code = "registration_disabled"
    message = "Registration is disabled."


class EmailAlreadyRegistered(AuthError):
    status_code = 409
    code = "conflict"
    message = "A user with that email already exists."


class InvalidCurrentPassword(AuthError):
    status_code = 400
    code = "invalid_current_password"
    message = "Invalid current password"
