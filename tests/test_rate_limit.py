"""
tests/test_rate_limit.py -- Throttling on the auth routes and the global limit.

The shared limiter is built disabled for the test session (RATE_LIMIT_ENABLED
=false in conftest). The throttle fixture switches it on for one test and
empties its in-memory counters on both sides so tests stay independent.

Coverage:
  - /auth/login: 5 attempts per minute, failed attempts included; the 6th is 429
  - /auth/register and /auth/refresh: same per-route limit
  - 429 uses the ErrorResponse envelope with Retry-After
  - routes without their own limit fall under the global default (middleware path)
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter

LOGIN_LIMIT = 5
GLOBAL_LIMIT = 100


@pytest.fixture
def throttle() -> Generator[None, None, None]:
    limiter.reset()
    limiter.enabled = True
    yield
    limiter.enabled = False
    limiter.reset()


def _assert_rate_limited(resp) -> None:
    assert resp.status_code == 429, resp.text
    assert resp.json()["error"]["code"] == "rate_limited"
    assert resp.json()["error"]["message"] == "Too many requests."
    assert resp.headers["retry-after"] == "60"


class TestLoginThrottle:
    def test_sixth_failed_login_is_throttled(self, api, client: TestClient, throttle) -> None:
        """Brute force: wrong passwords count toward the limit."""
        codes = [
            client.post("/auth/login", json={"email": api.admin.email, "password": "Wrong123!"}).status_code
            for _ in range(LOGIN_LIMIT)
        ]
        assert codes == [401] * LOGIN_LIMIT

        resp = client.post("/auth/login", json={"email": api.admin.email, "password": "Wrong123!"})
        _assert_rate_limited(resp)

    def test_throttle_blocks_correct_password_too(self, api, client: TestClient, login_as, throttle) -> None:
        for _ in range(LOGIN_LIMIT):
            login_as(api.team, password="Wrong123!")
        resp = login_as(api.team)
        _assert_rate_limited(resp)
        assert resp.headers.get_list("set-cookie") == []

    def test_logins_under_the_limit_pass(self, api, client: TestClient, login_as, throttle) -> None:
        for _ in range(LOGIN_LIMIT):
            client.cookies.clear()
            assert login_as(api.client_user).status_code == 200


class TestOtherAuthThrottles:
    def test_register_is_throttled(self, client: TestClient, throttle) -> None:
        for i in range(LOGIN_LIMIT):
            client.cookies.clear()
            resp = client.post(
                "/auth/register",
                json={"email": f"throttled{i}@x.com", "password": "Throttle1!", "name": "T"},
            )
            assert resp.status_code == 201, resp.text
        resp = client.post(
            "/auth/register",
            json={"email": "throttled.last@x.com", "password": "Throttle1!", "name": "T"},
        )
        _assert_rate_limited(resp)

    def test_refresh_is_throttled(self, api, client: TestClient, login_as, throttle) -> None:
        assert login_as(api.team).status_code == 200
        for _ in range(LOGIN_LIMIT):
            assert client.post("/auth/refresh").status_code == 200
        _assert_rate_limited(client.post("/auth/refresh"))


class TestGlobalLimit:
    def test_unlimited_route_falls_under_global_default(self, client: TestClient, throttle) -> None:
        """/auth/logout has no limit of its own; the middleware applies the global one."""
        for _ in range(GLOBAL_LIMIT):
            assert client.post("/auth/logout").status_code == 401
        _assert_rate_limited(client.post("/auth/logout"))

    def test_exempt_route_is_never_throttled(self, client: TestClient, throttle) -> None:
        for _ in range(GLOBAL_LIMIT + 1):
            assert client.get("/health").status_code == 200

    def test_disabled_limiter_never_throttles(self, api, client: TestClient) -> None:
        for _ in range(LOGIN_LIMIT + 2):
            resp = client.post("/auth/login", json={"email": api.admin.email, "password": "Wrong123!"})
            assert resp.status_code == 401
