"""
auth/hashing.py -- bcrypt hashing for passwords and refresh tokens.

Security design decisions:
  bcrypt directly (no passlib wrapper). The cost factor comes from
  Settings.bcrypt_rounds (default 10). checkpw() is the constant-time
  comparison; nothing here compares hashes by hand.

  Hashing is CPU-bound, so every call is pushed to Starlette's worker
  threadpool. The event loop keeps serving other requests while bcrypt runs.

  Verification never raises. A wrong password and a malformed stored hash both
  return False; callers turn False into an authentication failure.

  bcrypt only reads the first 72 bytes of its input. Passwords are truncated to
  72 bytes explicitly (bcrypt 4.1+ raises instead of truncating). Refresh
  tokens are a different story: two JWTs issued to the same user share far
  more than 72 leading bytes (header + sub + email), so hashing them raw would
  make every previous refresh token verify against the newest hash. Tokens are
  therefore reduced to a SHA-256 hex digest before bcrypt.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib

import bcrypt
from starlette.concurrency import run_in_threadpool

_BCRYPT_MAX_BYTES = 72


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def _token_bytes(token: str) -> bytes:
    return hashlib.sha256(token.encode("utf-8")).hexdigest().encode("ascii")


def _hash(data: bytes, rounds: int) -> str:
    return bcrypt.hashpw(data, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _check(data: bytes, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(data, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class PasswordHasher:
    """Salted one-way hashing with verification.

    Usage:
        hasher = PasswordHasher(rounds=10)
        hashed = await hasher.hash("s3cret")
        ok = await hasher.verify("s3cret", hashed)
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        # Timing equalization: verified against when the email is unknown so a
        # missing user costs the same bcrypt work as a wrong password.
        self.dummy_hash = _hash(_password_bytes("nexstack_timing_dummy"), rounds)

    async def hash(self, plain: str) -> str:
        return await run_in_threadpool(_hash, _password_bytes(plain), self.rounds)

    async def verify(self, plain: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        return await run_in_threadpool(_check, _password_bytes(plain), hashed)

    async def hash_token(self, token: str) -> str:
        """Hash a refresh token for at-rest storage."""
        return await run_in_threadpool(_hash, _token_bytes(token), self.rounds)

    async def verify_token(self, token: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        return await run_in_threadpool(_check, _token_bytes(token), hashed)
