"""
tests/test_hashing.py -- Unit tests for PasswordHasher.

Coverage:
  - hash/verify round trip, wrong password, salted output
  - Malformed or missing stored hash verifies False instead of raising
  - Passwords longer than bcrypt's 72-byte window hash without error
  - Refresh tokens sharing a long prefix do not verify against each other
"""

from __future__ import annotations

import asyncio

import pytest

from auth.hashing import PasswordHasher


@pytest.fixture(scope="module")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


def test_hash_and_verify(hasher: PasswordHasher) -> None:
    hashed = asyncio.run(hasher.hash("Secret123!"))
    assert hashed != "Secret123!"
    assert hashed.startswith("$2")
    assert asyncio.run(hasher.verify("Secret123!", hashed)) is True
    assert asyncio.run(hasher.verify("Secret123?", hashed)) is False


def test_hash_is_salted(hasher: PasswordHasher) -> None:
    assert asyncio.run(hasher.hash("same")) != asyncio.run(hasher.hash("same"))


def test_cost_factor_is_applied() -> None:
    hashed = asyncio.run(PasswordHasher(rounds=5).hash("pw"))
    assert hashed.split("$")[2] == "05"


@pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash"])
def test_verify_bad_stored_hash_is_false(hasher: PasswordHasher, stored) -> None:
    assert asyncio.run(hasher.verify("anything", stored)) is False


def test_dummy_hash_never_matches_user_input(hasher: PasswordHasher) -> None:
    assert asyncio.run(hasher.verify("", hasher.dummy_hash)) is False
    assert asyncio.run(hasher.verify("password", hasher.dummy_hash)) is False


def test_long_password_is_accepted(hasher: PasswordHasher) -> None:
    long_pw = "A1!" + "x" * 200
    hashed = asyncio.run(hasher.hash(long_pw))
    assert asyncio.run(hasher.verify(long_pw, hashed)) is True


def test_tokens_with_shared_prefix_do_not_cross_verify(hasher: PasswordHasher) -> None:
    """Two JWTs for the same user share a long header+claims prefix."""
    prefix = "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9." + "a" * 100
    first, second = prefix + ".one", prefix + ".two"
    hashed = asyncio.run(hasher.hash_token(first))
    assert asyncio.run(hasher.verify_token(first, hashed)) is True
    assert asyncio.run(hasher.verify_token(second, hashed)) is False


def test_verify_token_without_stored_hash(hasher: PasswordHasher) -> None:
    assert asyncio.run(hasher.verify_token("tok", None)) is False
