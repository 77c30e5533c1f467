"""
syntora.engine.events — Engine inputs
======================================

The two values every engine stage works from:

- :class:`TaskCompletionEvent` — a task transition (completed / un-completed),
  normalized before any points are calculated.
- :class:`StatsSnapshot` — an immutable copy of a user's ``gaming_stats`` row,
  so the engine never holds a live ORM object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from syntora.database.models import TaskPriority

if TYPE_CHECKING:
    from syntora.config import GamificationConfig
    from syntora.database.models import GamingStats, Task

__all__ = ["StatsSnapshot", "TaskCompletionEvent", "base_points"]


# ---------------------------------------------------------------------------
# TaskCompletionEvent: the accrual envelope
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TaskCompletionEvent:
    """A single task transition.

    ``completed`` is the state the task moved *to*: True for a completion,
    False for an un-completion.
    """

    user_id: str
    task_id: str
    priority: TaskPriority = TaskPriority.MEDIUM
    show_gratitude: bool = False
    completed: bool = True
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_task(
        cls, task: Task, *, completed: bool, timestamp: datetime | None = None,
    ) -> TaskCompletionEvent:
        return cls(
            user_id=task.user_id,
            task_id=task.id,
            priority=TaskPriority(task.priority),
            show_gratitude=bool(task.show_gratitude),
            completed=completed,
            timestamp=timestamp or datetime.now(UTC),
        )


def base_points(event: TaskCompletionEvent, cfg: GamificationConfig) -> int:
    """Point value of the task itself, before any combo bonus.

    Gratitude/spiritual tasks carry the bonus value regardless of priority.
    """
    if event.show_gratitude:
        return cfg.gratitude_points
    return {
        TaskPriority.HIGH: cfg.high_priority_points,
        TaskPriority.MEDIUM: cfg.medium_priority_points,
        TaskPriority.LOW: cfg.low_priority_points,
    }[event.priority]


# ---------------------------------------------------------------------------
# StatsSnapshot: immutable view of a gaming_stats row
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    """Pre-mutation values of a user's stats, as read in one transaction."""

    user_id: str
    last_active_date: str
    today_points: int = 0
    combo: int = 0
    all_day_complete: bool = False
    last_completed_at: datetime | None = None
    streak_count: int = 0
    best_streak: int = 0
    total_days_active: int = 0
    level: int = 1
    xp: int = 0
    xp_to_next: int = 100

    @classmethod
    def from_row(cls, stats: GamingStats) -> StatsSnapshot:
        return cls(
            user_id=stats.user_id,
            last_active_date=stats.last_active_date,
            today_points=stats.today_points or 0,
            combo=stats.combo or 0,
            all_day_complete=bool(stats.all_day_complete),
            last_completed_at=stats.last_completed_at,
            streak_count=stats.streak_count or 0,
            best_streak=stats.best_streak or 0,
            total_days_active=stats.total_days_active or 0,
            level=stats.level or 1,
            xp=stats.xp or 0,
            xp_to_next=stats.xp_to_next or 100,
        )
