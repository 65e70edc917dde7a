"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 response with status and version
  - No authentication required even though the route sits behind the access guard
  - A garbage access cookie does not turn the public route into a 401
"""

from __future__ import annotations

from auth.cookies import ACCESS_COOKIE


def test_health_returns_200(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_health_no_auth_required(client):
    """Health endpoint is accessible without any cookies."""
    assert len(client.cookies) == 0
    assert client.get("/health").status_code == 200


def test_health_ignores_invalid_cookie(client):
    client.cookies.set(ACCESS_COOKIE, "garbage")
    assert client.get("/health").status_code == 200


def test_unknown_route_404(client):
    resp = client.get("/no-such-route")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"
