"""
FastAPI dependencies — database session, services and the auth gate.

The gate runs per request: read the ``Authorization`` header, verify the
token, load the user, reject inactive accounts and stale tokens, touch
``last_active`` and attach an ``AuthContext`` to ``request.state``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campusdash.core.exceptions import AuthorizationError, DomainError, TokenError
from campusdash.core.permissions import can_role, has_permission
from campusdash.core.security import CredentialStore, TokenService
from campusdash.db.session import async_session_factory
from campusdash.models.user import User
from campusdash.schemas.token import TokenClaims
from campusdash.services.charts import ChartSource
from campusdash.services.dashboards import DashboardStore
from campusdash.services.users import UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    user: User
    claims: TokenClaims


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Services (built once in create_app, held on app.state) ─────────
def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_chart_source(request: Request) -> ChartSource:
    return request.app.state.chart_source


def get_user_directory(
    db: AsyncSession = Depends(get_db),
    credentials: CredentialStore = Depends(get_credentials),
) -> UserDirectory:
    return UserDirectory(db, credentials)


def get_dashboard_store(
    db: AsyncSession = Depends(get_db),
    users: UserDirectory = Depends(get_user_directory),
) -> DashboardStore:
    return DashboardStore(db, users)


# ── Auth gate ───────────────────────────────────────────────────────
def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _issued_before_password_change(claims: TokenClaims, user: User) -> bool:
    if user.password_changed_at is None or claims.issued_at is None:
        return False
    # iat only has second precision
    changed = int(_as_utc(user.password_changed_at).timestamp())
    return int(claims.issued_at.timestamp()) < changed


async def authenticate(
    request: Request,
    authorization: str | None,
    users: UserDirectory,
    tokens: TokenService,
    required: bool = True,
) -> AuthContext | None:
    """Resolve the caller's identity; ``None`` only when anonymous and not *required*."""
    if authorization is None:
        if required:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="No authorization header provided",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return None

    token = tokens.extract_from_header(authorization)
    claims = tokens.verify(token)

    user = await users.find_by_id(claims.id)
    if user is None or not user.is_active or _issued_before_password_change(claims, user):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    await users.touch_last_active(user.id)

    ctx = AuthContext(user=user, claims=claims)
    request.state.auth = ctx
    return ctx


async def get_auth_context(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    users: UserDirectory = Depends(get_user_directory),
    tokens: TokenService = Depends(get_tokens),
) -> AuthContext:
    ctx = await authenticate(request, authorization, users, tokens, required=True)
    if ctx is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication failed")
    return ctx


async def get_current_user(ctx: AuthContext = Depends(get_auth_context)) -> User:
    return ctx.user


async def get_optional_auth(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    users: UserDirectory = Depends(get_user_directory),
    tokens: TokenService = Depends(get_tokens),
) -> AuthContext | None:
    """Same pipeline as the required gate, but every failure means anonymous."""
    try:
        return await authenticate(request, authorization, users, tokens, required=False)
    except TokenError as exc:
        logger.debug("Optional auth ignored token (%s)", exc.kind.value)
    except (HTTPException, DomainError) as exc:
        logger.info("Optional auth error: %s", exc)
    except Exception as exc:
        logger.warning("Optional auth failed, continuing anonymously: %s", exc)
    return None


def require_role(*roles: str) -> Callable[..., Awaitable[User]]:
    """Dependency admitting only callers whose role is one of *roles*."""

    async def _guard(user: User = Depends(get_current_user)) -> User:
        if not can_role(user.role, roles):
            raise AuthorizationError(f"Required role: {' or '.join(roles)}")
        return user

    return _guard


def require_permission(permission: str) -> Callable[..., Awaitable[User]]:
    """Dependency admitting only callers whose role grants *permission*."""

    async def _guard(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user.role, permission):
            raise AuthorizationError(f"Required permission: {permission}")
        return user

    return _guard
