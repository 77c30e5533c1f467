"""
tests/test_analytics.py — Analytics Bucketing Tests
====================================================
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from syntora.database.models import AchievementHistory
from syntora.engine.analytics import (
    build_buckets,
    lookback_start,
    monthly_buckets,
    weekly_buckets,
)
from syntora.services.analytics_service import get_analytics

TODAY = date(2024, 1, 10)   # a Wednesday; its week starts Sunday 2024-01-07


def _day(day: date, points: int, tasks: int, productivity: float):
    return SimpleNamespace(
        date=day, points_earned=points, tasks_completed=tasks,
        productivity_score=productivity,
    )


@pytest.fixture
def history():
    return [
        _day(date(2023, 12, 15), 60, 4, 6),
        _day(date(2024, 1, 2), 40, 2, 4),
        _day(date(2024, 1, 8), 20, 1, 2),
        _day(date(2024, 1, 9), 30, 2, 3),
    ]


class TestWeekly:
    def test_buckets_start_on_sunday_oldest_first(self, history):
        weeks = weekly_buckets(history, 2, TODAY)
        assert [w["week_start"] for w in weeks] == ["2023-12-31", "2024-01-07"]

    def test_totals(self, history):
        previous, current = weekly_buckets(history, 2, TODAY)

        assert previous["total_points"] == 40
        assert previous["days_active"] == 1
        assert previous["average_productivity"] == 4

        assert current["total_points"] == 50
        assert current["total_tasks"] == 3
        assert current["days_active"] == 2
        assert current["average_productivity"] == pytest.approx(2.5)

    def test_empty_weeks_are_emitted(self):
        weeks = weekly_buckets([], 4, TODAY)
        assert len(weeks) == 4
        assert all(w["days_active"] == 0 and w["average_productivity"] == 0 for w in weeks)


class TestMonthly:
    def test_calendar_months(self, history):
        december, january = monthly_buckets(history, 2, TODAY)

        assert december["month_start"] == "2023-12-01"
        assert december["total_points"] == 60
        assert december["best_day_points"] == 60

        assert january["month_start"] == "2024-01-01"
        assert january["total_points"] == 90
        assert january["days_active"] == 3
        assert january["best_day_points"] == 40


class TestLookback:
    def test_weekly_start(self):
        assert lookback_start("weekly", 2, TODAY) == date(2023, 12, 31)

    def test_monthly_start_crosses_year(self):
        assert lookback_start("monthly", 3, TODAY) == date(2023, 11, 1)

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            lookback_start("daily", 1, TODAY)
        with pytest.raises(ValueError):
            build_buckets("daily", [], 1, TODAY)


class TestGetAnalytics:
    def _unlock(self, session, achievement_id: str, when: datetime) -> None:
        session.add(AchievementHistory(
            user_id="user-1", achievement_id=achievement_id,
            achievement_name=achievement_id.title(), points_awarded=10, unlocked_at=when,
        ))

    def test_achievements_limited_to_lookback_window(self, db_engine):
        # Four weeks back from TODAY starts on Sunday 2023-12-17
        with Session(db_engine) as session:
            self._unlock(session, "first_task", datetime(2023, 6, 1, 9, tzinfo=UTC))
            self._unlock(session, "mindful_start", datetime(2023, 12, 17, 9, tzinfo=UTC))
            self._unlock(session, "task_master_10", datetime(2024, 1, 9, 8, tzinfo=UTC))
            session.commit()

        result = get_analytics(db_engine, "user-1", "weekly", 4, TODAY)

        assert [a["achievement_id"] for a in result["achievements"]] == [
            "task_master_10", "mindful_start",
        ]
        assert len(result["analytics"]) == 4
        assert result["currentStats"] is None

    def test_rejects_out_of_range_lookback(self, db_engine):
        with pytest.raises(ValueError):
            get_analytics(db_engine, "user-1", "weekly", 61, TODAY)
