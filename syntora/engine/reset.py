"""
syntora.engine.reset — Daily Reset Planning
============================================

Pure calculation for the day-boundary transition ``NEEDS_RESET → UP_TO_DATE``.
Given the pre-reset stats and the current calendar date, decides:

1. whether a reset is due at all (idempotence: same day → no plan),
2. the history row that archives the finished day (only if it earned points),
3. the streak outcome,
4. the fresh counters for the new day.

Streak rules, with ``yesterday = today - 1``:

- last active yesterday *and* points earned → streak + 1, best = max(best, streak)
- last active yesterday with zero points → streak broken (0)
- last active any other day (a gap) → streak broken (0)

The service applies the plan atomically; nothing here touches the DB.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from syntora.constants import (
    DEFAULT_ENERGY_LEVEL,
    HISTORY_XP_PER_POINT,
    MAX_PRODUCTIVITY_SCORE,
    POINTS_PER_PRODUCTIVITY_UNIT,
    POINTS_PER_TASK_ESTIMATE,
)
from syntora.database.models import ResetState
from syntora.engine.events import StatsSnapshot

__all__ = [
    "HistoryEntry",
    "ResetPlan",
    "build_history_entry",
    "compute_streak",
    "plan_daily_reset",
    "reset_state",
]


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """Values archived to ``daily_stats_history`` for one finished day."""

    user_id: str
    date: date
    points_earned: int
    tasks_completed: int
    max_combo: int
    all_day_completed: bool
    xp_gained: int
    productivity_score: int
    energy_level: int = DEFAULT_ENERGY_LEVEL

    def as_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "date": self.date,
            "points_earned": self.points_earned,
            "tasks_completed": self.tasks_completed,
            "max_combo": self.max_combo,
            "all_day_completed": self.all_day_completed,
            "xp_gained": self.xp_gained,
            "productivity_score": self.productivity_score,
            "energy_level": self.energy_level,
        }


@dataclass(frozen=True, slots=True)
class ResetPlan:
    """Everything the service writes for one reset."""

    previous_date: str
    previous_day_points: int
    history: HistoryEntry | None
    last_active_date: str
    streak_count: int
    best_streak: int
    total_days_active: int
    streak_continued: bool
    today_points: int = 0
    combo: int = 0
    all_day_complete: bool = False

    def stats_values(self) -> dict:
        """Column → value mapping for the ``gaming_stats`` update."""
        return {
            "today_points": self.today_points,
            "combo": self.combo,
            "all_day_complete": self.all_day_complete,
            "last_active_date": self.last_active_date,
            "total_days_active": self.total_days_active,
            "streak_count": self.streak_count,
            "best_streak": self.best_streak,
        }


def reset_state(snapshot: StatsSnapshot, today: date) -> ResetState:
    if snapshot.last_active_date == today.isoformat():
        return ResetState.UP_TO_DATE
    return ResetState.NEEDS_RESET


def build_history_entry(snapshot: StatsSnapshot) -> HistoryEntry | None:
    """Archive row for the day being closed, or None if it earned nothing."""
    points = snapshot.today_points
    if points <= 0:
        return None
    return HistoryEntry(
        user_id=snapshot.user_id,
        date=date.fromisoformat(snapshot.last_active_date),
        points_earned=points,
        tasks_completed=points // POINTS_PER_TASK_ESTIMATE,
        max_combo=snapshot.combo,
        all_day_completed=snapshot.all_day_complete,
        xp_gained=points * HISTORY_XP_PER_POINT,
        productivity_score=min(
            MAX_PRODUCTIVITY_SCORE, points // POINTS_PER_PRODUCTIVITY_UNIT,
        ),
    )


def compute_streak(snapshot: StatsSnapshot, today: date) -> tuple[int, int, bool]:
    """Return (streak_count, best_streak, continued) after closing the day."""
    yesterday = (today - timedelta(days=1)).isoformat()
    if snapshot.last_active_date == yesterday and snapshot.today_points > 0:
        streak = snapshot.streak_count + 1
        return streak, max(snapshot.best_streak, streak), True
    # Gap of 2+ days, or an active day that earned nothing
    return 0, max(snapshot.best_streak, snapshot.streak_count), False


def plan_daily_reset(snapshot: StatsSnapshot, today: date) -> ResetPlan | None:
    """Plan the reset for *today*, or return None if it already happened."""
    if reset_state(snapshot, today) is ResetState.UP_TO_DATE:
        return None

    streak, best, continued = compute_streak(snapshot, today)
    return ResetPlan(
        previous_date=snapshot.last_active_date,
        previous_day_points=snapshot.today_points,
        history=build_history_entry(snapshot),
        last_active_date=today.isoformat(),
        streak_count=streak,
        best_streak=best,
        total_days_active=snapshot.total_days_active + 1,
        streak_continued=continued,
    )
