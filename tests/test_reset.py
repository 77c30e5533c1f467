"""
tests/test_reset.py — Unit Tests for Daily Reset Planning
==========================================================

Pure planning only; the persisted reset is covered in
test_gamification_service.py.
"""

from __future__ import annotations

from datetime import date

from syntora.database.models import ResetState
from syntora.engine.events import StatsSnapshot
from syntora.engine.reset import (
    build_history_entry,
    compute_streak,
    plan_daily_reset,
    reset_state,
)


def _snapshot(**overrides) -> StatsSnapshot:
    values = {
        "user_id": "user-1",
        "last_active_date": "2024-01-01",
        "today_points": 40,
        "combo": 2,
        "streak_count": 3,
        "best_streak": 3,
        "total_days_active": 10,
    }
    values.update(overrides)
    return StatsSnapshot(**values)


class TestResetState:
    def test_same_day_is_up_to_date(self):
        assert reset_state(_snapshot(), date(2024, 1, 1)) is ResetState.UP_TO_DATE

    def test_other_day_needs_reset(self):
        assert reset_state(_snapshot(), date(2024, 1, 2)) is ResetState.NEEDS_RESET


class TestPlanDailyReset:
    def test_consecutive_day_continues_streak(self):
        plan = plan_daily_reset(_snapshot(), date(2024, 1, 2))

        assert plan.history is not None
        assert plan.history.date == date(2024, 1, 1)
        assert plan.history.points_earned == 40
        assert plan.previous_day_points == 40
        assert plan.today_points == 0
        assert plan.combo == 0
        assert plan.all_day_complete is False
        assert plan.streak_count == 4
        assert plan.best_streak == 4
        assert plan.streak_continued is True
        assert plan.last_active_date == "2024-01-02"
        assert plan.total_days_active == 11

    def test_gap_resets_streak_but_archives_day(self):
        plan = plan_daily_reset(_snapshot(), date(2024, 1, 5))

        assert plan.streak_count == 0
        assert plan.best_streak == 3
        assert plan.streak_continued is False
        assert plan.history is not None
        assert plan.history.date == date(2024, 1, 1)
        assert plan.history.points_earned == 40

    def test_same_day_is_a_noop(self):
        assert plan_daily_reset(_snapshot(), date(2024, 1, 1)) is None

    def test_idle_yesterday_breaks_streak(self):
        plan = plan_daily_reset(_snapshot(today_points=0), date(2024, 1, 2))

        assert plan.history is None
        assert plan.streak_count == 0
        assert plan.best_streak == 3

    def test_stats_values_cover_written_columns(self):
        values = plan_daily_reset(_snapshot(), date(2024, 1, 2)).stats_values()
        assert values == {
            "today_points": 0,
            "combo": 0,
            "all_day_complete": False,
            "last_active_date": "2024-01-02",
            "total_days_active": 11,
            "streak_count": 4,
            "best_streak": 4,
        }


class TestStreak:
    def test_best_streak_is_never_lowered(self):
        snap = _snapshot(streak_count=5, best_streak=9)
        assert compute_streak(snap, date(2024, 1, 2)) == (6, 9, True)
        assert compute_streak(snap, date(2024, 1, 9)) == (0, 9, False)

    def test_streak_never_exceeds_best(self):
        for today in (date(2024, 1, 2), date(2024, 1, 3)):
            streak, best, _ = compute_streak(_snapshot(), today)
            assert streak <= best


class TestHistoryEntry:
    def test_derived_columns(self):
        entry = build_history_entry(_snapshot(today_points=40, combo=4, all_day_complete=True))
        assert entry.tasks_completed == 2         # 40 // 15
        assert entry.xp_gained == 80
        assert entry.productivity_score == 4
        assert entry.energy_level == 5
        assert entry.max_combo == 4
        assert entry.all_day_completed is True

    def test_productivity_is_capped(self):
        assert build_history_entry(_snapshot(today_points=250)).productivity_score == 10

    def test_no_entry_for_zero_points(self):
        assert build_history_entry(_snapshot(today_points=0)) is None

    def test_row_mapping(self):
        row = build_history_entry(_snapshot()).as_row()
        assert row["user_id"] == "user-1"
        assert row["date"] == date(2024, 1, 1)
        assert row["points_earned"] == 40
