"""
Chart data for dashboards.

Weekly activity, monthly growth, signups and teaching figures are
placeholder numbers; they come from a ``ChartSource`` so the dashboard
store can be exercised with a fixed source. Role distribution is computed
from real user counts.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Protocol

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun")
_ROLE_LABELS = (("student", "Students"), ("teacher", "Teachers"), ("admin", "Admins"))


class ChartSource(Protocol):
    def weekly_activity(self) -> list[dict]: ...

    def monthly_growth(self) -> list[dict]: ...

    def weekly_signups(self) -> int: ...

    def teaching_stats(self, student_count: int) -> dict: ...


class RandomChartSource:
    """Mock figures in the same ranges the frontend was designed around."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def weekly_activity(self) -> list[dict]:
        return [
            {
                "date": day,
                "teachers": self._rng.randint(10, 29),
                "students": self._rng.randint(30, 79),
                "signups": self._rng.randint(5, 19),
            }
            for day in _DAYS
        ]

    def monthly_growth(self) -> list[dict]:
        return [
            {
                "month": month,
                "growth": self._rng.randint(10, 39),
                "revenue": self._rng.randint(20000, 69999),
            }
            for month in _MONTHS
        ]

    def weekly_signups(self) -> int:
        return self._rng.randint(10, 59)

    def teaching_stats(self, student_count: int) -> dict:
        return {
            "totalStudents": student_count,
            "activeStudents": int(student_count * 0.85),
            "coursesTaught": self._rng.randint(5, 14),
            "averageGrade": f"{self._rng.uniform(80, 100):.1f}",
        }


def role_distribution(counts: Mapping[str, int]) -> list[dict]:
    """Per-role share of active users, percentages rounded to whole numbers."""
    total = sum(counts.get(role, 0) for role, _ in _ROLE_LABELS)
    return [
        {
            "role": label,
            "count": counts.get(role, 0),
            "percentage": round(counts.get(role, 0) / total * 100) if total else 0,
        }
        for role, label in _ROLE_LABELS
    ]
