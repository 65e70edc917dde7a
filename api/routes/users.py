"""
api/routes/users.py -- User management REST endpoints.

Routes:
  GET    /users                  -- list users (admin)
  PATCH  /users/profile          -- update own name/email (any authenticated)
  PATCH  /users/change-password  -- change own password (any authenticated)
  GET    /users/{id}             -- user detail (admin)
  POST   /users                  -- create user (admin)
  PATCH  /users/{id}             -- update role/name/email, reset password (admin)
  DELETE /users/{id}             -- soft delete (admin)

Security:
  Router-level access_guard: every route needs a valid access token.
  @roles(Role.ADMIN) narrows the admin routes; there is no role hierarchy.
  /profile and /change-password are declared before /{id} so the literal
  paths win the match.
  An admin cannot delete their own account.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import ChangePasswordRequest, MessageResponse, ProfileUpdate, UserAdminUpdate, UserCreate, UserResponse
from auth.guards import access_guard, current_identity, roles
from auth.models import AuthenticatedIdentity, Role, User
from auth.service import AuthService
from auth.store import UserStore

# Auth policy:
# - every route: requires access token (router-level access_guard)
# - list / detail / create / update / delete: admin only
router = APIRouter(dependencies=[Depends(access_guard)])


# ---------------------------------------------------------------------------
# Self-service (any authenticated role)
# ---------------------------------------------------------------------------


@router.patch("/users/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    identity: AuthenticatedIdentity = Depends(current_identity),
) -> UserResponse:
    """Update the caller's own name and/or email."""
    user_store: UserStore = request.app.state.user_store
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    _apply_updates(user_store, identity.id, updates)
    return _user_to_response(user_store.find_by_id(identity.id))


@router.patch("/users/change-password", response_model=MessageResponse)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: AuthenticatedIdentity = Depends(current_identity),
) -> MessageResponse:
    """Change the caller's password. 400 if the current password is wrong."""
    service: AuthService = request.app.state.auth_service
    await service.change_password(identity.id, body.current_password, body.password)
    return MessageResponse(message="Password updated successfully")


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
@roles(Role.ADMIN)
def list_users(request: Request) -> list[UserResponse]:
    """List all live users. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.get("/users/{user_id}", response_model=UserResponse)
@roles(Role.ADMIN)
def get_user(request: Request, user_id: str) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    return _user_to_response(user_store.find_by_id(user_id))


@router.post("/users", response_model=UserResponse, status_code=201)
@roles(Role.ADMIN)
async def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Create an account with any role. Admin only."""
    service: AuthService = request.app.state.auth_service
    user_id = await service.create_user(email=body.email, password=body.password, name=body.name, role=body.role)
    return _user_to_response(await service.resolve_identity(user_id))


@router.patch("/users/{user_id}", response_model=UserResponse)
@roles(Role.ADMIN)
async def update_user(request: Request, user_id: str, body: UserAdminUpdate) -> UserResponse:
    """Update a user's fields. A password here is a reset: no current password needed."""
    service: AuthService = request.app.state.auth_service
    user_store: UserStore = request.app.state.user_store

    if await service.resolve_identity(user_id) is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )

    updates = body.model_dump(exclude_none=True, exclude={"password"})
    if not updates and body.password is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    if updates:
        _apply_updates(user_store, user_id, updates)
    if body.password is not None:
        await service.reset_password(user_id, body.password)
    return _user_to_response(await service.resolve_identity(user_id))


@router.delete("/users/{user_id}", status_code=204)
@roles(Role.ADMIN)
def delete_user(
    request: Request,
    user_id: str,
    identity: AuthenticatedIdentity = Depends(current_identity),
) -> Response:
    """Soft-delete a user. The row stays for audit; the email stays reserved."""
    if user_id == identity.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    user_store: UserStore = request.app.state.user_store
    if not user_store.soft_delete(user_id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _apply_updates(user_store: UserStore, user_id: str, updates: dict) -> None:
    try:
        updated = user_store.update_fields(user_id, **updates)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that email already exists."},
        ) from exc
    if not updated:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )


def _user_to_response(user: User | None) -> UserResponse:
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return UserResponse.from_user(user)
