"""
tests/test_rbac.py -- Guard layer tests on a purpose-built FastAPI app.

A small app keeps the route table explicit: one route per marker combination.
The real AuthError handler from api.main is registered so responses carry the
production error envelope.

Coverage:
  - @roles allow-list: member 200, non-member 403, no cookie 401
  - No role hierarchy: admin is refused on a client-only route
  - @public: 200 without cookies even behind a router-level guard
  - No marker: any authenticated role
  - Guard state and identity left on request.state
  - roles() with no arguments is a programming error
"""

from __future__ import annotations

import asyncio

import pytest
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.testclient import TestClient

from api.main import auth_error_handler
from auth.cookies import ACCESS_COOKIE, REFRESH_COOKIE
from auth.errors import AuthError
from auth.guards import GuardState, access_guard, current_identity, is_public, public, required_roles, roles
from auth.models import AuthenticatedIdentity, Role
from auth.tokens import TokenIssuer
from core.config import get_settings

router = APIRouter(dependencies=[Depends(access_guard)])


@router.get("/admin-only")
@roles(Role.ADMIN)
def admin_only(identity: AuthenticatedIdentity = Depends(current_identity)) -> dict:
    return {"id": identity.id}


@router.get("/client-only")
@roles(Role.CLIENT)
def client_only() -> dict:
    return {"ok": True}


@router.get("/staff")
@roles(Role.ADMIN, Role.TEAM)
async def staff() -> dict:
    return {"ok": True}


@router.get("/any")
def any_authenticated(request: Request) -> dict:
    return {"role": request.state.identity.role.value, "state": request.state.auth_state.value}


@router.get("/open")
@public
def open_route(request: Request) -> dict:
    return {"state": request.state.auth_state.value}


def _build_app() -> FastAPI:
    rbac_app = FastAPI()
    rbac_app.state.token_issuer = TokenIssuer(get_settings())
    rbac_app.include_router(router)
    rbac_app.add_exception_handler(AuthError, auth_error_handler)
    return rbac_app


@pytest.fixture(scope="module")
def rbac_client():
    with TestClient(_build_app()) as client:
        yield client


@pytest.fixture
def as_role(rbac_client: TestClient):
    """Return a helper that puts a fresh access token for the given role in the jar."""
    issuer = TokenIssuer(get_settings())

    def _as(role: Role) -> TestClient:
        tokens = asyncio.run(issuer.issue_token_pair(f"user-{role.value}", f"{role.value}@x.com", role))
        rbac_client.cookies.clear()
        rbac_client.cookies.set(ACCESS_COOKIE, tokens.access_token)
        return rbac_client

    yield _as
    rbac_client.cookies.clear()


class TestRoleAllowList:
    def test_admin_route_allows_admin(self, as_role) -> None:
        resp = as_role(Role.ADMIN).get("/admin-only")
        assert resp.status_code == 200
        assert resp.json() == {"id": "user-admin"}

    @pytest.mark.parametrize("role", [Role.CLIENT, Role.TEAM])
    def test_admin_route_forbids_other_roles(self, as_role, role: Role) -> None:
        resp = as_role(role).get("/admin-only")
        assert resp.status_code == 403
        assert resp.json()["error"] == {"code": "forbidden", "message": "Forbidden", "detail": None}

    def test_admin_route_without_cookie_401(self, rbac_client: TestClient) -> None:
        rbac_client.cookies.clear()
        assert rbac_client.get("/admin-only").status_code == 401

    def test_admin_does_not_inherit_client_permissions(self, as_role) -> None:
        assert as_role(Role.ADMIN).get("/client-only").status_code == 403
        assert as_role(Role.CLIENT).get("/client-only").status_code == 200

    def test_multi_role_allow_list(self, as_role) -> None:
        assert as_role(Role.ADMIN).get("/staff").status_code == 200
        assert as_role(Role.TEAM).get("/staff").status_code == 200
        assert as_role(Role.CLIENT).get("/staff").status_code == 403


class TestUnmarkedAndPublic:
    @pytest.mark.parametrize("role", list(Role))
    def test_unmarked_route_accepts_any_role(self, as_role, role: Role) -> None:
        resp = as_role(role).get("/any")
        assert resp.status_code == 200
        assert resp.json() == {"role": role.value, "state": GuardState.AUTHORIZED.value}

    def test_public_route_without_cookie(self, rbac_client: TestClient) -> None:
        rbac_client.cookies.clear()
        resp = rbac_client.get("/open")
        assert resp.status_code == 200
        assert resp.json() == {"state": "authorized"}

    def test_public_route_ignores_garbage_cookie(self, rbac_client: TestClient) -> None:
        rbac_client.cookies.clear()
        rbac_client.cookies.set(ACCESS_COOKIE, "garbage")
        assert rbac_client.get("/open").status_code == 200
        rbac_client.cookies.clear()

    def test_refresh_token_does_not_pass_access_guard(self, rbac_client: TestClient) -> None:
        issuer = TokenIssuer(get_settings())
        tokens = asyncio.run(issuer.issue_token_pair("user-admin", "admin@x.com", Role.ADMIN))
        rbac_client.cookies.clear()
        rbac_client.cookies.set(REFRESH_COOKIE, tokens.refresh_token)
        assert rbac_client.get("/any").status_code == 401
        rbac_client.cookies.clear()


class TestMarkers:
    def test_roles_requires_at_least_one_role(self) -> None:
        with pytest.raises(ValueError):
            roles()

    def test_markers_are_plain_attributes(self) -> None:
        assert is_public(open_route)
        assert not is_public(admin_only)
        assert required_roles(staff) == frozenset({Role.ADMIN, Role.TEAM})
        assert required_roles(any_authenticated) is None
