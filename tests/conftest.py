"""
tests/conftest.py -- Shared test fixtures for NexStack integration tests.

This module provides:
  - make_store(): isolated named shared-memory SQLite UserStore
  - make_service(): AuthService wired to a store with a fast bcrypt cost
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - api: module-scoped TestClient plus the store and the three seeded accounts
  - client: the same TestClient with an empty cookie jar for each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

The signing secrets must be in the environment before any auth/core/api
import: Settings has no defaults for them and api modules read settings at
import time.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("ACCESS_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("REFRESH_SECRET", "test-refresh-secret-0123456789abcdef")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_auth
from auth.hashing import PasswordHasher
from auth.models import Role
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings

ADMIN_PASSWORD = "Admin123!"
CLIENT_PASSWORD = "Client123!"
TEAM_PASSWORD = "Team1234!"


@dataclass
class Account:
    id: str
    email: str
    password: str
    role: Role


@dataclass
class ApiHarness:
    client: TestClient
    store: UserStore
    admin: Account
    client_user: Account
    team: Account


# ---------------------------------------------------------------------------
# Store / service helpers
# ---------------------------------------------------------------------------


def make_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def make_service(store: UserStore, allow_registration: bool = True) -> AuthService:
    settings = get_settings()
    return AuthService(
        store,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        TokenIssuer(settings),
        allow_registration=allow_registration,
    )


def create_account(service: AuthService, email: str, password: str, role: Role, name: str = "Test User") -> Account:
    user_id = asyncio.run(service.create_user(email=email, password=password, name=name, role=role))
    return Account(id=user_id, email=email, password=password, role=role)


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Runs the real component wiring against the pre-created test store so
    TestClient routes see an isolated DB rather than the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_auth(app, user_store)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiHarness, None, None]:
    """Yield a TestClient on the real app with three seeded accounts.

    One store per test module, named after the module, so tests in different
    modules never see each other's users.
    """
    store = make_store(request.module.__name__.rsplit(".", 1)[-1])
    service = make_service(store)
    admin = create_account(service, "admin@x.com", ADMIN_PASSWORD, Role.ADMIN, name="Admin")
    client_user = create_account(service, "client@x.com", CLIENT_PASSWORD, Role.CLIENT, name="Client")
    team = create_account(service, "team@x.com", TEAM_PASSWORD, Role.TEAM, name="Team")

    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, store=store, admin=admin, client_user=client_user, team=team)

    store.close()


@pytest.fixture
def client(api: ApiHarness) -> Generator[TestClient, None, None]:
    """The module's TestClient with an empty cookie jar."""
    api.client.cookies.clear()
    yield api.client
    api.client.cookies.clear()


@pytest.fixture
def login_as(client: TestClient):
    """Return a helper that logs an account in; cookies land in the client's jar."""

    def _login(account: Account, password: str | None = None):
        return client.post("/auth/login", json={"email": account.email, "password": password or account.password})

    return _login
