"""User management routes."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr, Field

from knolib_identity.core.auth.types import DEFAULT_ROLE, Role, UserView
from knolib_identity.core.auth.users import UserAdminService
from knolib_identity.entrypoints.api.deps import get_user_admin
from knolib_identity.entrypoints.api.middleware.jwt_auth import RequireAdmin

router = APIRouter(prefix="/users", tags=["users"])

# Annotated types for dependency injection
UserAdminDep = Annotated[UserAdminService, Depends(get_user_admin)]


class UserListResponse(BaseModel):
    """Response for listing users."""

    users: list[UserView]
    total: int


class CreateUserRequest(BaseModel):
    """Request to create a user."""

    email: EmailStr
    password: str
    name: str | None = Field(None, max_length=100)
    role: Role = DEFAULT_ROLE
    is_active: bool = True


class UpdateUserRequest(BaseModel):
    """Request to update a user."""

    name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    role: Role | None = None
    is_active: bool | None = None
    password: str | None = None


@router.get("", response_model=UserListResponse)
async def list_users(auth: RequireAdmin, admin: UserAdminDep) -> UserListResponse:
    """List all users."""
    users = await admin.list_users(auth)
    return UserListResponse(users=[UserView.from_user(u) for u in users], total=len(users))


@router.post("", response_model=UserView, status_code=201)
async def create_user(body: CreateUserRequest, auth: RequireAdmin, admin: UserAdminDep) -> UserView:
    """Create a password account."""
    user = await admin.create_user(
        auth,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        is_active=body.is_active,
    )
    return UserView.from_user(user)


@router.put("/{user_id}", response_model=UserView)
async def update_user(
    user_id: UUID,
    body: UpdateUserRequest,
    auth: RequireAdmin,
    admin: UserAdminDep,
) -> UserView:
    """Update a user's profile, role, status or password."""
    user = await admin.update_user(
        auth,
        user_id,
        name=body.name,
        email=body.email,
        role=body.role,
        is_active=body.is_active,
        password=body.password,
    )
    return UserView.from_user(user)


@router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: UUID, auth: RequireAdmin, admin: UserAdminDep) -> Response:
    """Deactivate a user. Accounts are never removed."""
    await admin.deactivate_user(auth, user_id)
    return Response(status_code=204)
