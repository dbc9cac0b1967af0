"""
Dashboard model — one row per user caching metrics, chart snapshots and
the recent-activity feed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer

from campusdash.db.base import Base

MAX_RECENT_ACTIVITY = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def empty_metrics() -> dict:
    return {"totalUsers": 0, "activeUsers": 0, "weeklySignups": 0, "revenue": 0}


def empty_charts() -> dict:
    return {"weeklyActivity": [], "monthlyGrowth": [], "roleDistribution": []}


class Dashboard(Base):
    __tablename__ = "dashboards"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    # unique index is what keeps get-or-create from producing duplicates
    user_id: int = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
        index=True,
    )
    metrics: dict = Column(JSON, nullable=False, default=empty_metrics)  # type: ignore[assignment]
    charts: dict = Column(JSON, nullable=False, default=empty_charts)  # type: ignore[assignment]
    # newest first, {user, action, details, timestamp}
    recent_activity: list = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    last_updated: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utcnow,
        index=True,
    )
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )
