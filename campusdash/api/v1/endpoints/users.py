"""
User lookup & management endpoints.

- GET /users/{id}: any authenticated user; students only see themselves.
- Listing requires ``view:all-users``; PATCH requires ``manage:users``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from campusdash.api.v1.deps import get_current_user, get_user_directory, require_permission
from campusdash.core.exceptions import AuthorizationError, NotFoundError
from campusdash.models.user import User
from campusdash.schemas.user import Role, UserAdminUpdate, UserPublic
from campusdash.services.users import UserDirectory

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[UserPublic])
async def list_users(
    users: UserDirectory = Depends(get_user_directory),
    _user: User = Depends(require_permission("view:all-users")),
) -> list[UserPublic]:
    """All active users."""
    return [users.public_view(u) for u in await users.list_active()]


@router.get("/role/{role}", response_model=list[UserPublic])
async def list_users_by_role(
    role: Role,
    users: UserDirectory = Depends(get_user_directory),
    _user: User = Depends(require_permission("view:all-users")),
) -> list[UserPublic]:
    return [users.public_view(u) for u in await users.find_by_role(role)]


@router.get("/{user_id}", response_model=UserPublic)
async def read_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> UserPublic:
    if current_user.role == "student" and current_user.id != user_id:
        raise AuthorizationError("You can only view your own profile")
    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return users.public_view(user)


@router.patch("/{user_id}", response_model=UserPublic)
async def manage_user(
    user_id: int,
    body: UserAdminUpdate,
    users: UserDirectory = Depends(get_user_directory),
    admin: User = Depends(require_permission("manage:users")),
) -> UserPublic:
    """Change another user's role or active flag."""
    patch = body.model_dump(exclude_none=True)
    admin_id = admin.id
    user = await users.update(user_id, patch)
    logger.warning("ADMIN %s updated user %s: %s", admin_id, user_id, sorted(patch))
    return users.public_view(user)
