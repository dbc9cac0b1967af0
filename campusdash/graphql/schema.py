"""
GraphQL API — the same operations as the REST routes, served by strawberry.

The request context is built with the optional auth gate: resolvers that
need an identity check ``context["auth"]`` themselves.
"""

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import strawberry
from fastapi import Depends, Request
from graphql import GraphQLError
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.extensions import MaskErrors
from strawberry.fastapi import GraphQLRouter
from strawberry.scalars import JSON
from strawberry.types import Info

from campusdash.api.v1.deps import (
    AuthContext,
    get_chart_source,
    get_dashboard_store,
    get_db,
    get_optional_auth,
    get_tokens,
    get_user_directory,
)
from campusdash.api.v1.endpoints.health import database_status
from campusdash.core.config import settings
from campusdash.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from campusdash.core.permissions import can_role, has_permission
from campusdash.core.security import TokenService
from campusdash.schemas import dashboard as dash
from campusdash.schemas.user import UserPublic
from campusdash.services.charts import ChartSource
from campusdash.services.dashboards import (
    DashboardStore,
    charts_of,
    metrics_of,
    recent_activity_of,
)
from campusdash.services.users import UserDirectory

logger = logging.getLogger(__name__)


# ── Types ───────────────────────────────────────────────────────────
@strawberry.enum
class UserRole(Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else ""


@strawberry.type(name="User")
class UserType:
    id: strawberry.ID
    name: str
    email: str
    role: UserRole
    bio: str
    avatar: str
    join_date: str
    last_active: str
    is_active: bool

    @classmethod
    def from_public(cls, view: UserPublic) -> "UserType":
        return cls(
            id=strawberry.ID(str(view.id)),
            name=view.name,
            email=view.email,
            role=UserRole(view.role),
            bio=view.bio,
            avatar=view.avatar,
            join_date=_iso(view.join_date),
            last_active=_iso(view.last_active),
            is_active=view.is_active,
        )


@strawberry.type
class DashboardMetrics:
    total_users: int
    active_users: int
    weekly_signups: int
    revenue: float


@strawberry.type
class WeeklyActivity:
    date: str
    teachers: int
    students: int
    signups: int


@strawberry.type
class MonthlyGrowth:
    month: str
    growth: int
    revenue: float


@strawberry.type
class RoleDistribution:
    role: str
    count: int
    percentage: int


@strawberry.type
class RoleCount:
    role: str
    count: int


@strawberry.type
class RecentActivity:
    user_id: strawberry.ID
    action: str
    timestamp: str
    details: Optional[JSON]


@strawberry.type
class AdminMetrics:
    total_users: int
    active_users: int
    weekly_signups: int
    revenue: float
    role_distribution: list[RoleCount]


@strawberry.type
class SystemHealth:
    uptime: float
    database_status: str
    version: str


@strawberry.type
class TeachingStats:
    total_students: int
    active_students: int
    courses_taught: int
    average_grade: str


@strawberry.type
class DashboardData:
    metrics: DashboardMetrics
    weekly_activity: list[WeeklyActivity]
    monthly_growth: list[MonthlyGrowth]
    role_distribution: list[RoleDistribution]
    recent_activity: list[RecentActivity]


@strawberry.type
class AdminDashboardData:
    metrics: AdminMetrics
    weekly_activity: list[WeeklyActivity]
    monthly_growth: list[MonthlyGrowth]
    role_distribution: list[RoleDistribution]
    recent_activity: list[RecentActivity]
    system_health: SystemHealth


@strawberry.type
class TeacherDashboardData:
    metrics: DashboardMetrics
    weekly_activity: list[WeeklyActivity]
    monthly_growth: list[MonthlyGrowth]
    role_distribution: list[RoleDistribution]
    recent_activity: list[RecentActivity]
    teaching_stats: TeachingStats


@strawberry.type
class AuthResponse:
    success: bool
    message: str
    user: Optional[UserType] = None
    token: Optional[str] = None


@strawberry.type
class ProfileResponse:
    success: bool
    message: Optional[str] = None
    user: Optional[UserType] = None
    token: Optional[str] = None


@strawberry.type
class DashboardResponse:
    success: bool
    data: Optional[DashboardData] = None


@strawberry.type
class AdminDashboardResponse:
    success: bool
    data: Optional[AdminDashboardData] = None


@strawberry.type
class TeacherDashboardResponse:
    success: bool
    data: Optional[TeacherDashboardData] = None


@strawberry.input
class RegisterInput:
    name: str
    email: str
    password: str
    role: UserRole = UserRole.STUDENT


@strawberry.input
class LoginInput:
    email: str
    password: str


@strawberry.input
class UpdateProfileInput:
    name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None


@strawberry.input
class ChangePasswordInput:
    current_password: str
    new_password: str


@strawberry.input
class UploadAvatarInput:
    avatar: str


# ── Conversions ─────────────────────────────────────────────────────
def _metrics(m: dash.DashboardMetrics) -> DashboardMetrics:
    return DashboardMetrics(
        total_users=m.total_users,
        active_users=m.active_users,
        weekly_signups=m.weekly_signups,
        revenue=m.revenue,
    )


def _activity(entries: list[dash.ActivityEntry]) -> list[RecentActivity]:
    return [
        RecentActivity(
            user_id=strawberry.ID(str(e.user)),
            action=e.action,
            timestamp=_iso(e.timestamp),
            details=e.details,
        )
        for e in entries
    ]


def _chart_fields(charts: dash.DashboardCharts) -> dict[str, Any]:
    return {
        "weekly_activity": [WeeklyActivity(**w.model_dump()) for w in charts.weekly_activity],
        "monthly_growth": [MonthlyGrowth(**g.model_dump()) for g in charts.monthly_growth],
        "role_distribution": [RoleDistribution(**r.model_dump()) for r in charts.role_distribution],
    }


# ── Context helpers ─────────────────────────────────────────────────
def _auth(info: Info) -> AuthContext:
    ctx: Optional[AuthContext] = info.context["auth"]
    if ctx is None:
        raise AuthenticationError("Authentication required")
    return ctx


def _require_role(info: Info, *roles: str) -> AuthContext:
    ctx = _auth(info)
    if not can_role(ctx.user.role, roles):
        raise AuthorizationError(f"Required role: {' or '.join(roles)}")
    return ctx


def _users(info: Info) -> UserDirectory:
    return info.context["users"]


def _store(info: Info) -> DashboardStore:
    return info.context["dashboards"]


def _public(info: Info, user: Any) -> UserType:
    return UserType.from_public(_users(info).public_view(user))


# ── Query ───────────────────────────────────────────────────────────
@strawberry.type
class Query:
    @strawberry.field
    async def me(self, info: Info) -> Optional[UserType]:
        return _public(info, _auth(info).user)

    @strawberry.field
    async def profile(self, info: Info) -> ProfileResponse:
        return ProfileResponse(success=True, user=_public(info, _auth(info).user))

    @strawberry.field
    async def user(self, info: Info, id: strawberry.ID) -> Optional[UserType]:
        ctx = _auth(info)
        try:
            user_id = int(id)
        except ValueError as exc:
            raise NotFoundError("User not found") from exc
        if ctx.user.role == "student" and ctx.user.id != user_id:
            raise AuthorizationError("Access denied")
        user = await _users(info).find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return _public(info, user)

    @strawberry.field
    async def dashboard(self, info: Info) -> DashboardResponse:
        ctx = _auth(info)
        source: ChartSource = info.context["chart_source"]
        row = await _store(info).refresh_for(ctx.user.id, ctx.user.role, source)
        return DashboardResponse(
            success=True,
            data=DashboardData(
                metrics=_metrics(metrics_of(row)),
                recent_activity=_activity(recent_activity_of(row, limit=10)),
                **_chart_fields(charts_of(row)),
            ),
        )

    @strawberry.field
    async def admin_dashboard(self, info: Info) -> AdminDashboardResponse:
        ctx = _require_role(info, "admin")
        store = _store(info)
        row = await store.get_or_create(ctx.user.id)
        stats = await store.aggregate_admin_stats()
        request: Request = info.context["request"]
        health = SystemHealth(
            uptime=round(time.monotonic() - request.app.state.started_at, 3),
            database_status=await database_status(info.context["db"]),
            version=settings.VERSION,
        )
        return AdminDashboardResponse(
            success=True,
            data=AdminDashboardData(
                metrics=AdminMetrics(
                    total_users=stats.total_users,
                    active_users=stats.active_users,
                    weekly_signups=stats.weekly_signups,
                    revenue=stats.revenue,
                    role_distribution=[
                        RoleCount(role=r.role, count=r.count) for r in stats.role_distribution
                    ],
                ),
                recent_activity=_activity(recent_activity_of(row, limit=20)),
                system_health=health,
                **_chart_fields(charts_of(row)),
            ),
        )

    @strawberry.field
    async def teacher_dashboard(self, info: Info) -> TeacherDashboardResponse:
        ctx = _require_role(info, "teacher", "admin")
        source: ChartSource = info.context["chart_source"]
        student_count = await _users(info).count_active(role="student")
        teaching = dash.TeachingStats.model_validate(source.teaching_stats(student_count))
        row = await _store(info).get_or_create(ctx.user.id)
        return TeacherDashboardResponse(
            success=True,
            data=TeacherDashboardData(
                metrics=DashboardMetrics(
                    total_users=student_count,
                    active_users=teaching.active_students,
                    weekly_signups=source.weekly_signups(),
                    revenue=0,
                ),
                recent_activity=_activity(recent_activity_of(row, limit=10)),
                teaching_stats=TeachingStats(**teaching.model_dump()),
                **_chart_fields(charts_of(row)),
            ),
        )

    @strawberry.field
    async def users(self, info: Info) -> list[UserType]:
        ctx = _auth(info)
        if not has_permission(ctx.user.role, "view:all-users"):
            raise AuthorizationError("Admin access required")
        return [_public(info, u) for u in await _users(info).list_active()]

    @strawberry.field
    async def users_by_role(self, info: Info, role: UserRole) -> list[UserType]:
        ctx = _auth(info)
        if not has_permission(ctx.user.role, "view:all-users"):
            raise AuthorizationError("Admin access required")
        return [_public(info, u) for u in await _users(info).find_by_role(role.value)]


# ── Mutation ────────────────────────────────────────────────────────
@strawberry.type
class Mutation:
    @strawberry.mutation
    async def register(self, info: Info, input: RegisterInput) -> AuthResponse:
        users = _users(info)
        tokens: TokenService = info.context["tokens"]
        user = await users.create(
            name=input.name,
            email=input.email,
            password=input.password,
            role=input.role.value,
        )
        return AuthResponse(
            success=True,
            message="User registered successfully",
            user=_public(info, user),
            token=tokens.issue_for(user),
        )

    @strawberry.mutation
    async def login(self, info: Info, input: LoginInput) -> AuthResponse:
        tokens: TokenService = info.context["tokens"]
        user = await _users(info).login(input.email, input.password)
        return AuthResponse(
            success=True,
            message="Login successful",
            user=_public(info, user),
            token=tokens.issue_for(user),
        )

    @strawberry.mutation
    async def logout(self, info: Info) -> ProfileResponse:
        _auth(info)
        return ProfileResponse(success=True, message="Logout successful")

    @strawberry.mutation
    async def update_profile(self, info: Info, input: UpdateProfileInput) -> ProfileResponse:
        ctx = _auth(info)
        patch = {
            key: value
            for key, value in (("name", input.name), ("email", input.email), ("bio", input.bio))
            if value is not None
        }
        user = await _users(info).update(ctx.user.id, patch)
        return ProfileResponse(
            success=True,
            message="Profile updated successfully",
            user=_public(info, user),
        )

    @strawberry.mutation
    async def change_password(self, info: Info, input: ChangePasswordInput) -> ProfileResponse:
        ctx = _auth(info)
        tokens: TokenService = info.context["tokens"]
        user = await _users(info).change_password(
            ctx.user.id, input.current_password, input.new_password
        )
        return ProfileResponse(
            success=True,
            message="Password changed successfully",
            token=tokens.issue_for(user),
        )

    @strawberry.mutation
    async def upload_avatar(self, info: Info, input: UploadAvatarInput) -> ProfileResponse:
        ctx = _auth(info)
        if not input.avatar:
            raise ValidationError({"avatar": "Avatar data is required"}, message="Upload failed")
        user = await _users(info).update(ctx.user.id, {"avatar": input.avatar})
        return ProfileResponse(
            success=True,
            message="Avatar uploaded successfully",
            user=_public(info, user),
        )

    @strawberry.mutation
    async def delete_avatar(self, info: Info) -> ProfileResponse:
        ctx = _auth(info)
        user = await _users(info).update(ctx.user.id, {"avatar": ""})
        return ProfileResponse(
            success=True,
            message="Avatar removed successfully",
            user=_public(info, user),
        )

    @strawberry.mutation
    async def add_activity(
        self,
        info: Info,
        action: str,
        details: Optional[JSON] = None,
    ) -> ProfileResponse:
        ctx = _auth(info)
        if not action.strip():
            raise ValidationError({"action": "Action is required"})
        entry = dash.ActivityEntry(
            user=ctx.user.id,
            action=action,
            details=details,
            timestamp=datetime.now(timezone.utc),
        )
        await _store(info).append_activity(ctx.user.id, entry)
        return ProfileResponse(success=True, message="Activity logged successfully")


# ── Error masking ───────────────────────────────────────────────────
_PUBLIC_ERRORS = (
    ValidationError,
    ConflictError,
    NotFoundError,
    AuthenticationError,
    AuthorizationError,
)


def _should_mask(error: GraphQLError) -> bool:
    original = error.original_error
    if original is None or isinstance(original, _PUBLIC_ERRORS):
        return False
    logger.error("GraphQL resolver error: %s", original, exc_info=original)
    return True


class MaskInternalErrors(MaskErrors):
    """Hide everything but domain errors behind a generic message."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(should_mask_error=_should_mask, error_message="Request failed")


schema = strawberry.Schema(
    query=Query,
    mutation=Mutation,
    extensions=[MaskInternalErrors],
)


# ── FastAPI wiring ──────────────────────────────────────────────────
async def get_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    auth: Optional[AuthContext] = Depends(get_optional_auth),
    users: UserDirectory = Depends(get_user_directory),
    dashboards: DashboardStore = Depends(get_dashboard_store),
    tokens: TokenService = Depends(get_tokens),
    chart_source: ChartSource = Depends(get_chart_source),
) -> dict[str, Any]:
    return {
        "request": request,
        "auth": auth,
        "users": users,
        "dashboards": dashboards,
        "db": db,
        "tokens": tokens,
        "chart_source": chart_source,
    }


def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(schema, context_getter=get_context)
