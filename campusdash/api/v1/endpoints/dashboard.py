"""
Dashboard endpoints — per-role metrics, charts and the activity feed.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campusdash.api.v1.deps import (
    get_chart_source,
    get_current_user,
    get_dashboard_store,
    get_db,
    get_user_directory,
    require_role,
)
from campusdash.api.v1.endpoints.health import database_status
from campusdash.core.config import settings
from campusdash.models.user import User
from campusdash.schemas.dashboard import (
    ActivityEntry,
    ActivityRequest,
    AdminDashboardData,
    AdminDashboardResponse,
    DashboardData,
    DashboardMetrics,
    DashboardResponse,
    SystemHealth,
    TeacherDashboardData,
    TeacherDashboardResponse,
    TeachingStats,
)
from campusdash.schemas.user import MessageResponse
from campusdash.services.charts import ChartSource
from campusdash.services.dashboards import (
    DashboardStore,
    charts_of,
    metrics_of,
    recent_activity_of,
)
from campusdash.services.users import UserDirectory

router = APIRouter(prefix="/dashboard", tags=["dashboard"])
logger = logging.getLogger(__name__)


@router.get("", response_model=DashboardResponse)
async def read_dashboard(
    current_user: User = Depends(get_current_user),
    store: DashboardStore = Depends(get_dashboard_store),
    source: ChartSource = Depends(get_chart_source),
) -> DashboardResponse:
    """Refresh the caller's dashboard and return it with the last 10 activities."""
    dashboard = await store.refresh_for(current_user.id, current_user.role, source)
    return DashboardResponse(
        data=DashboardData(
            metrics=metrics_of(dashboard),
            charts=charts_of(dashboard),
            recent_activity=recent_activity_of(dashboard, limit=10),
        )
    )


@router.get("/admin", response_model=AdminDashboardResponse)
async def read_admin_dashboard(
    request: Request,
    current_user: User = Depends(require_role("admin")),
    store: DashboardStore = Depends(get_dashboard_store),
    db: AsyncSession = Depends(get_db),
) -> AdminDashboardResponse:
    dashboard = await store.get_or_create(current_user.id)
    stats = await store.aggregate_admin_stats()
    health = SystemHealth(
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        database_status=await database_status(db),
        version=settings.VERSION,
    )
    return AdminDashboardResponse(
        data=AdminDashboardData(
            metrics=stats,
            charts=charts_of(dashboard),
            recent_activity=recent_activity_of(dashboard, limit=20),
            system_health=health,
        )
    )


@router.get("/teacher", response_model=TeacherDashboardResponse)
async def read_teacher_dashboard(
    current_user: User = Depends(require_role("teacher", "admin")),
    store: DashboardStore = Depends(get_dashboard_store),
    users: UserDirectory = Depends(get_user_directory),
    source: ChartSource = Depends(get_chart_source),
) -> TeacherDashboardResponse:
    student_count = await users.count_active(role="student")
    teaching = TeachingStats.model_validate(source.teaching_stats(student_count))
    dashboard = await store.get_or_create(current_user.id)
    return TeacherDashboardResponse(
        data=TeacherDashboardData(
            metrics=DashboardMetrics(
                total_users=student_count,
                active_users=teaching.active_students,
                weekly_signups=source.weekly_signups(),
                revenue=0,
            ),
            charts=charts_of(dashboard),
            recent_activity=recent_activity_of(dashboard, limit=10),
            teaching_stats=teaching,
        )
    )


@router.post("/activity", response_model=MessageResponse)
async def add_activity(
    body: ActivityRequest,
    current_user: User = Depends(get_current_user),
    store: DashboardStore = Depends(get_dashboard_store),
) -> MessageResponse:
    entry = ActivityEntry(
        user=current_user.id,
        action=body.action,
        details=body.details,
        timestamp=datetime.now(timezone.utc),
    )
    await store.append_activity(current_user.id, entry)
    return MessageResponse(message="Activity logged successfully")
