"""
User model — identity, profile & role.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from campusdash.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(50), nullable=False)  # type: ignore[assignment]
    # always stored lowercase
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="student",
        server_default="student",
        index=True,
    )  # student | teacher | admin
    bio: str = Column(String(500), nullable=False, default="", server_default="")  # type: ignore[assignment]
    avatar: str = Column(String, nullable=False, default="", server_default="")  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true", index=True)  # type: ignore[assignment]
    email_verified: bool = Column(Boolean, default=False, server_default="false")  # type: ignore[assignment]
    last_active: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]
    password_changed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    reset_password_token: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    reset_password_expires: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )
