"""Pydantic schemas for users, auth and profile requests.

Wire format is camelCase; fields accept either casing on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["student", "teacher", "admin"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Public view ─────────────────────────────────────────────────────
class UserPublic(CamelModel):
    id: int
    name: str
    email: str
    role: str
    bio: str
    avatar: str
    join_date: datetime | None
    last_active: datetime | None
    is_active: bool


# ── Requests ────────────────────────────────────────────────────────
class RegisterRequest(CamelModel):
    name: str
    email: str
    password: str
    role: Role = "student"


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdate(CamelModel):
    name: str | None = None
    email: str | None = None
    bio: str | None = None


class PasswordChange(CamelModel):
    current_password: str
    new_password: str


class AvatarUpload(CamelModel):
    avatar: str


class UserAdminUpdate(CamelModel):
    role: Role | None = None
    is_active: bool | None = None


# ── Responses ───────────────────────────────────────────────────────
class AuthResponse(CamelModel):
    success: bool = True
    message: str
    user: UserPublic
    token: str


class ProfileResponse(CamelModel):
    success: bool = True
    message: str | None = None
    user: UserPublic | None = None
    token: str | None = None


class AvatarResponse(CamelModel):
    success: bool = True
    message: str
    avatar: str


class MessageResponse(CamelModel):
    success: bool = True
    message: str
