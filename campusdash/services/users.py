"""
User directory — validated storage of user accounts.

Every write goes through the same explicit steps: validate the incoming
fields, hash the password only when one is supplied, then persist.
Email addresses are stored lowercase, so uniqueness is case-insensitive.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campusdash.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from campusdash.core.permissions import ROLES
from campusdash.core.security import CredentialStore
from campusdash.models.user import User
from campusdash.schemas.user import UserPublic

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^\w+(?:[.-]\w+)*@\w+(?:[.-]\w+)*\.\w{2,3}$")

NAME_MAX = 50
BIO_MAX = 500
EMAIL_MAX = 320
PASSWORD_MIN = 8

UPDATABLE_FIELDS = frozenset({"name", "email", "bio", "avatar", "password", "role", "is_active"})


def normalise_email(email: str) -> str:
    return email.strip().lower()


def _validate(values: Mapping[str, Any]) -> dict[str, Any]:
    """Check every supplied field; return cleaned values or raise with all violations."""
    errors: dict[str, str] = {}
    cleaned: dict[str, Any] = {}

    if "name" in values:
        name = values["name"]
        if not isinstance(name, str) or not name.strip():
            errors["name"] = "Name is required"
        elif len(name.strip()) > NAME_MAX:
            errors["name"] = f"Name cannot be more than {NAME_MAX} characters"
        else:
            cleaned["name"] = name.strip()

    if "email" in values:
        email = values["email"]
        if not isinstance(email, str) or not email.strip():
            errors["email"] = "Email is required"
        else:
            email = normalise_email(email)
            if len(email) > EMAIL_MAX or not _EMAIL_RE.match(email):
                errors["email"] = "Please enter a valid email"
            else:
                cleaned["email"] = email

    if "password" in values:
        password = values["password"]
        if not isinstance(password, str) or len(password) < PASSWORD_MIN:
            errors["password"] = f"Password must be at least {PASSWORD_MIN} characters long"
        else:
            cleaned["password"] = password

    if "role" in values:
        if values["role"] not in ROLES:
            errors["role"] = f"Role must be one of: {', '.join(ROLES)}"
        else:
            cleaned["role"] = values["role"]

    if "bio" in values:
        bio = values["bio"] if values["bio"] is not None else ""
        if not isinstance(bio, str) or len(bio) > BIO_MAX:
            errors["bio"] = f"Bio cannot be more than {BIO_MAX} characters"
        else:
            cleaned["bio"] = bio

    if "avatar" in values:
        avatar = values["avatar"] if values["avatar"] is not None else ""
        if not isinstance(avatar, str):
            errors["avatar"] = "Avatar must be a string"
        else:
            cleaned["avatar"] = avatar

    if "is_active" in values:
        if not isinstance(values["is_active"], bool):
            errors["is_active"] = "isActive must be a boolean"
        else:
            cleaned["is_active"] = values["is_active"]

    if errors:
        raise ValidationError(errors)
    return cleaned


class UserDirectory:
    def __init__(self, session: AsyncSession, credentials: CredentialStore) -> None:
        self._session = session
        self._credentials = credentials

    # ── Writes ──────────────────────────────────────────────────────
    async def create(
        self,
        name: str,
        email: str,
        password: str,
        role: str = "student",
    ) -> User:
        cleaned = _validate({"name": name, "email": email, "password": password, "role": role})

        if await self.find_by_email(cleaned["email"]) is not None:
            raise ConflictError("Resource already exists")

        hashed = await self._credentials.hash_async(cleaned.pop("password"))
        user = User(hashed_password=hashed, **cleaned)
        self._session.add(user)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            # lost a race with a concurrent registration
            await self._session.rollback()
            logger.info("Concurrent registration for an existing email rejected")
            raise ConflictError("Resource already exists") from exc
        await self._session.refresh(user)
        logger.info("User %s registered (role=%s)", user.id, user.role)
        return user

    async def update(self, user_id: int, patch: Mapping[str, Any]) -> User:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError({key: "Field cannot be updated" for key in sorted(unknown)})

        user = await self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        cleaned = _validate(patch)

        new_email = cleaned.get("email")
        if new_email is not None and new_email != user.email:
            other = await self.find_by_email(new_email)
            if other is not None and other.id != user.id:
                raise ConflictError("Resource already exists")

        if "password" in cleaned:
            user.hashed_password = await self._credentials.hash_async(cleaned.pop("password"))
            user.password_changed_at = datetime.now(timezone.utc)

        for key, value in cleaned.items():
            setattr(user, key, value)

        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise ConflictError("Resource already exists") from exc
        await self._session.refresh(user)
        return user

    async def change_password(self, user_id: int, current: str, new: str) -> User:
        user = await self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not await self._credentials.verify_async(current, user.hashed_password):
            raise ValidationError(
                {"currentPassword": "Current password is incorrect"},
                message="Password change failed",
            )
        if await self._credentials.verify_async(new, user.hashed_password):
            raise ValidationError(
                {"newPassword": "New password must be different from current password"},
                message="Password change failed",
            )
        return await self.update(user_id, {"password": new})

    async def touch_last_active(self, user_id: int) -> None:
        """Stamp ``last_active``; failures are logged, never raised."""
        try:
            await self._session.execute(
                update(User)
                .where(User.id == user_id)
                .values(last_active=datetime.now(timezone.utc))
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Could not update last_active for user %s: %s", user_id, exc)
            await self._session.rollback()

    # ── Reads ───────────────────────────────────────────────────────
    async def authenticate(self, email: str, password: str) -> User | None:
        """The matching user, or ``None`` for an unknown email or wrong password."""
        user = await self.find_by_email(email)
        if user is None:
            return None
        if not await self._credentials.verify_async(password, user.hashed_password):
            return None
        return user

    async def login(self, email: str, password: str) -> User:
        """Check credentials and mark the user active; raise on any failure."""
        user = await self.authenticate(email, password)
        if user is None:
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")
        await self.touch_last_active(user.id)
        return user

    async def find_by_email(self, email: str) -> User | None:
        result = await self._session.execute(
            select(User).where(User.email == normalise_email(email))
        )
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> User | None:
        return await self._session.get(User, user_id)

    async def find_by_role(self, role: str) -> list[User]:
        result = await self._session.execute(
            select(User)
            .where(User.role == role, User.is_active.is_(True))
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def list_active(self) -> list[User]:
        result = await self._session.execute(
            select(User).where(User.is_active.is_(True)).order_by(User.id)
        )
        return list(result.scalars().all())

    async def count_active(self, role: str | None = None, since: datetime | None = None) -> int:
        """Count active users, optionally of one *role* or seen after *since*."""
        stmt = select(func.count(User.id)).where(User.is_active.is_(True))
        if role is not None:
            stmt = stmt.where(User.role == role)
        if since is not None:
            stmt = stmt.where(User.last_active >= since)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def count_created_since(self, since: datetime) -> int:
        result = await self._session.execute(
            select(func.count(User.id)).where(User.created_at >= since)
        )
        return result.scalar() or 0

    async def count_by_role(self) -> dict[str, int]:
        result = await self._session.execute(
            select(User.role, func.count(User.id))
            .where(User.is_active.is_(True))
            .group_by(User.role)
        )
        counts = {role: 0 for role in ROLES}
        for role, count in result.all():
            counts[role] = count
        return counts

    # ── Views ───────────────────────────────────────────────────────
    @staticmethod
    def public_view(user: User) -> UserPublic:
        return UserPublic(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            bio=user.bio or "",
            avatar=user.avatar or "",
            join_date=user.created_at,
            last_active=user.last_active,
            is_active=bool(user.is_active),
        )
