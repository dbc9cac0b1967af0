"""
Profile endpoints — the caller's own account.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from campusdash.api.v1.deps import get_current_user, get_tokens, get_user_directory
from campusdash.core.exceptions import ValidationError
from campusdash.core.security import TokenService
from campusdash.models.user import User
from campusdash.schemas.user import (
    AvatarResponse,
    AvatarUpload,
    MessageResponse,
    PasswordChange,
    ProfileResponse,
    ProfileUpdate,
)
from campusdash.services.users import UserDirectory

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
async def read_profile(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    return ProfileResponse(user=UserDirectory.public_view(current_user))


@router.put("", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> ProfileResponse:
    """Update name / email / bio. Omitted fields are left untouched."""
    patch = body.model_dump(exclude_unset=True, exclude_none=True)
    user = await users.update(current_user.id, patch)
    return ProfileResponse(message="Profile updated successfully", user=users.public_view(user))


@router.put("/password", response_model=ProfileResponse)
async def change_password(
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
    tokens: TokenService = Depends(get_tokens),
) -> ProfileResponse:
    """Change password; tokens issued before the change stop working."""
    user = await users.change_password(current_user.id, body.current_password, body.new_password)
    return ProfileResponse(
        message="Password changed successfully",
        user=users.public_view(user),
        token=tokens.issue_for(user),
    )


@router.post("/avatar", response_model=AvatarResponse)
async def upload_avatar(
    body: AvatarUpload,
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> AvatarResponse:
    if not body.avatar:
        raise ValidationError({"avatar": "Avatar data is required"}, message="Upload failed")
    user = await users.update(current_user.id, {"avatar": body.avatar})
    return AvatarResponse(message="Avatar uploaded successfully", avatar=user.avatar)


@router.delete("/avatar", response_model=MessageResponse)
async def delete_avatar(
    current_user: User = Depends(get_current_user),
    users: UserDirectory = Depends(get_user_directory),
) -> MessageResponse:
    await users.update(current_user.id, {"avatar": ""})
    return MessageResponse(message="Avatar removed successfully")
