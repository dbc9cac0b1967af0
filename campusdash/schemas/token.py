"""Pydantic schemas for JWT tokens."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class TokenClaims(BaseModel):
    """Identity carried inside an access token."""

    id: int
    email: str
    role: str
    name: str
    issued_at: datetime | None = None

    def identity(self) -> dict[str, object]:
        return self.model_dump(exclude={"issued_at"})
