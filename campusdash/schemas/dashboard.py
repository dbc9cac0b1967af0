"""Pydantic schemas for dashboard payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from campusdash.schemas.user import CamelModel


class DashboardMetrics(CamelModel):
    total_users: int = Field(default=0, ge=0)
    active_users: int = Field(default=0, ge=0)
    weekly_signups: int = Field(default=0, ge=0)
    revenue: float = Field(default=0, ge=0)


class WeeklyActivity(CamelModel):
    date: str
    teachers: int
    students: int
    signups: int


class MonthlyGrowth(CamelModel):
    month: str
    growth: int
    revenue: float


class RoleShare(CamelModel):
    role: str
    count: int
    percentage: int


class DashboardCharts(CamelModel):
    weekly_activity: list[WeeklyActivity] = Field(default_factory=list)
    monthly_growth: list[MonthlyGrowth] = Field(default_factory=list)
    role_distribution: list[RoleShare] = Field(default_factory=list)


class ActivityEntry(CamelModel):
    user: int
    action: str
    details: Any = None
    timestamp: datetime


class RoleCount(CamelModel):
    role: str
    count: int


class AdminStats(CamelModel):
    total_users: int
    active_users: int
    weekly_signups: int
    role_distribution: list[RoleCount]
    revenue: float


class TeachingStats(CamelModel):
    total_students: int
    active_students: int
    courses_taught: int
    average_grade: str


class SystemHealth(CamelModel):
    uptime: float
    database_status: str
    version: str


class ActivityRequest(CamelModel):
    action: str = Field(min_length=1, max_length=200)
    details: dict[str, Any] | None = None


class DashboardData(CamelModel):
    metrics: DashboardMetrics
    charts: DashboardCharts
    recent_activity: list[ActivityEntry]


class AdminDashboardData(CamelModel):
    metrics: AdminStats
    charts: DashboardCharts
    recent_activity: list[ActivityEntry]
    system_health: SystemHealth


class TeacherDashboardData(DashboardData):
    teaching_stats: TeachingStats


class DashboardResponse(CamelModel):
    success: bool = True
    data: DashboardData


class AdminDashboardResponse(CamelModel):
    success: bool = True
    data: AdminDashboardData


class TeacherDashboardResponse(CamelModel):
    success: bool = True
    data: TeacherDashboardData
