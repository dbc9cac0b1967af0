"""
Dashboard record store — per-user cached metrics, chart snapshots and a
capped recent-activity feed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campusdash.models.dashboard import MAX_RECENT_ACTIVITY, Dashboard
from campusdash.schemas.dashboard import (
    ActivityEntry,
    AdminStats,
    DashboardCharts,
    DashboardMetrics,
    RoleCount,
)
from campusdash.services.charts import ChartSource, role_distribution
from campusdash.services.users import UserDirectory

logger = logging.getLogger(__name__)

REVENUE_PER_USER = 10
ACTIVITY_WINDOW = timedelta(days=7)

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


# ── Row → schema helpers ────────────────────────────────────────────
def metrics_of(dashboard: Dashboard) -> DashboardMetrics:
    return DashboardMetrics.model_validate(dashboard.metrics or {})


def charts_of(dashboard: Dashboard) -> DashboardCharts:
    return DashboardCharts.model_validate(dashboard.charts or {})


def recent_activity_of(dashboard: Dashboard, limit: int | None = None) -> list[ActivityEntry]:
    entries = dashboard.recent_activity or []
    if limit is not None:
        entries = entries[:limit]
    return [ActivityEntry.model_validate(e) for e in entries]


class DashboardStore:
    def __init__(self, session: AsyncSession, users: UserDirectory) -> None:
        self._session = session
        self._users = users

    async def _find(self, user_id: int, for_update: bool = False) -> Dashboard | None:
        stmt = select(Dashboard).where(Dashboard.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: int) -> Dashboard:
        """Fetch the user's dashboard, creating it on first access.

        Concurrent first accesses may both attempt the insert; the unique
        index on ``user_id`` keeps exactly one row and the loser re-fetches.
        """
        dashboard = await self._find(user_id)
        if dashboard is not None:
            return dashboard

        dialect = self._session.get_bind().dialect.name
        upsert = _UPSERT_DIALECTS.get(dialect)
        if upsert is not None:
            stmt = upsert(Dashboard).values(user_id=user_id).on_conflict_do_nothing(
                index_elements=[Dashboard.user_id]
            )
            result = await self._session.execute(stmt)
            await self._session.commit()
            if result.rowcount == 0:
                logger.info("Race condition handled for dashboard of user %s", user_id)
        else:
            try:
                await self._session.execute(insert(Dashboard).values(user_id=user_id))
                await self._session.commit()
            except IntegrityError:
                await self._session.rollback()
                logger.info("Race condition handled for dashboard of user %s", user_id)

        dashboard = await self._find(user_id)
        if dashboard is None:
            raise RuntimeError(f"Dashboard for user {user_id} vanished after insert")
        return dashboard

    async def _locked(self, user_id: int) -> Dashboard:
        """Load the dashboard for a read-modify-write, holding its write lock.

        Touching the row first opens the write transaction; SQLite ignores
        ``FOR UPDATE`` and would otherwise let concurrent writers interleave.
        """
        await self.get_or_create(user_id)
        await self._session.execute(
            update(Dashboard)
            .where(Dashboard.user_id == user_id)
            .values(last_updated=datetime.now(timezone.utc))
        )
        dashboard = await self._find(user_id, for_update=True)
        if dashboard is None:
            raise RuntimeError(f"Dashboard for user {user_id} vanished while locked")
        return dashboard

    async def append_activity(self, user_id: int, entry: ActivityEntry) -> Dashboard:
        """Prepend *entry*, keeping only the newest ``MAX_RECENT_ACTIVITY``."""
        dashboard = await self._locked(user_id)

        entries = [entry.model_dump(mode="json", by_alias=True)]
        entries.extend(dashboard.recent_activity or [])
        dashboard.recent_activity = entries[:MAX_RECENT_ACTIVITY]
        dashboard.last_updated = datetime.now(timezone.utc)
        await self._session.commit()
        return dashboard

    async def replace_metrics_and_charts(
        self,
        user_id: int,
        metrics: DashboardMetrics,
        charts: DashboardCharts,
    ) -> Dashboard:
        dashboard = await self._locked(user_id)

        dashboard.metrics = metrics.model_dump(mode="json", by_alias=True)
        dashboard.charts = charts.model_dump(mode="json", by_alias=True)
        dashboard.last_updated = datetime.now(timezone.utc)
        await self._session.commit()
        return dashboard

    async def aggregate_admin_stats(self) -> AdminStats:
        """Site-wide figures computed from the user table at call time."""
        since = datetime.now(timezone.utc) - ACTIVITY_WINDOW
        # one AsyncSession cannot run statements concurrently
        total_users = await self._users.count_active()
        active_users = await self._users.count_active(since=since)
        weekly_signups = await self._users.count_created_since(since)
        by_role = await self._users.count_by_role()

        return AdminStats(
            total_users=total_users,
            active_users=active_users,
            weekly_signups=weekly_signups,
            role_distribution=[RoleCount(role=r, count=c) for r, c in by_role.items()],
            revenue=total_users * REVENUE_PER_USER,
        )

    async def refresh_for(self, user_id: int, role: str, source: ChartSource) -> Dashboard:
        """Regenerate charts and role-scoped metrics for one user's dashboard."""
        counts = await self._users.count_by_role()
        charts = DashboardCharts.model_validate(
            {
                "weeklyActivity": source.weekly_activity(),
                "monthlyGrowth": source.monthly_growth(),
                "roleDistribution": role_distribution(counts),
            }
        )

        if role == "admin":
            stats = await self.aggregate_admin_stats()
            metrics = DashboardMetrics(
                total_users=stats.total_users,
                active_users=stats.active_users,
                weekly_signups=stats.weekly_signups,
                revenue=stats.revenue,
            )
        else:
            # students and teachers get coarse figures and no revenue
            total = await self._users.count_active()
            metrics = DashboardMetrics(
                total_users=total,
                active_users=int(total * 0.8),
                weekly_signups=source.weekly_signups(),
                revenue=0,
            )

        return await self.replace_metrics_and_charts(user_id, metrics, charts)
