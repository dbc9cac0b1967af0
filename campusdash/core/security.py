"""
Password hashing (bcrypt) and JWT issuance / verification.

Both services are plain objects built once in ``create_app()`` and handed
to the request layer through ``app.state``.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from campusdash.core.config import settings
from campusdash.core.exceptions import CredentialError, TokenError, TokenErrorKind
from campusdash.schemas.token import TokenClaims

_BEARER_PREFIX = "Bearer "


# ── Passwords ───────────────────────────────────────────────────────
class CredentialStore:
    """bcrypt hashing with a fixed work factor.

    Hashing is deliberately slow; use the ``*_async`` variants from request
    handlers so the event loop keeps serving other requests meanwhile.
    """

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds or settings.BCRYPT_ROUNDS
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=self.rounds,
        )

    def hash(self, plaintext: str) -> str:
        if not plaintext:
            raise CredentialError("Cannot hash an empty password")
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        if not hashed:
            raise CredentialError("Missing password hash")
        try:
            return self._context.verify(plaintext or "", hashed)
        except (ValueError, TypeError) as exc:
            raise CredentialError("Unrecognised password hash") from exc

    async def hash_async(self, plaintext: str) -> str:
        return await asyncio.to_thread(self.hash, plaintext)

    async def verify_async(self, plaintext: str, hashed: str) -> bool:
        return await asyncio.to_thread(self.verify, plaintext, hashed)


# ── JWT tokens ──────────────────────────────────────────────────────
class TokenService:
    def __init__(
        self,
        secret: str | None = None,
        algorithm: str | None = None,
        ttl: timedelta | None = None,
    ) -> None:
        self._secret = secret or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM
        self.ttl = ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def issue(self, claims: TokenClaims, ttl: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "id": claims.id,
            "email": claims.email,
            "role": claims.role,
            "name": claims.name,
            "iat": now,
            "exp": now + (ttl if ttl is not None else self.ttl),
            "type": "access",
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def issue_for(self, user: Any, ttl: timedelta | None = None) -> str:
        """Issue a token for anything shaped like a ``User`` row."""
        return self.issue(
            TokenClaims(id=user.id, email=user.email, role=user.role, name=user.name),
            ttl=ttl,
        )

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise TokenError(TokenErrorKind.EXPIRED) from exc
        except JWTError as exc:
            raise TokenError(TokenErrorKind.INVALID) from exc

        if payload.get("type") != "access":
            raise TokenError(TokenErrorKind.INVALID, "Unexpected token type")
        try:
            return TokenClaims(
                id=payload["id"],
                email=payload["email"],
                role=payload["role"],
                name=payload["name"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenError(TokenErrorKind.INVALID, "Incomplete token claims") from exc

    @staticmethod
    def extract_from_header(header_value: str | None) -> str:
        """Return the token from an exact ``Bearer <token>`` header value."""
        if not header_value or not header_value.startswith(_BEARER_PREFIX):
            raise TokenError(
                TokenErrorKind.MALFORMED_HEADER,
                "Authorization header must start with Bearer",
            )
        token = header_value[len(_BEARER_PREFIX):]
        if not token or " " in token:
            raise TokenError(TokenErrorKind.MALFORMED_HEADER)
        return token
