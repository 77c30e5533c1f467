"""
syntora.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- gaming_stats         — One mutable gamification row per user
- daily_stats_history  — Append-only archive of closed-out days
- tasks                — The user's task list (source of completions)
- achievement_history  — First time each catalog achievement unlocked
"""

from __future__ import annotations

import datetime as dt
import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from syntora.constants import DEFAULT_LEVEL, DEFAULT_VOLUME


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Syntora ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TaskPriority(enum.StrEnum):
    """Task priority; drives the base point value of a completion."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ResetState(enum.StrEnum):
    """Where a stats row sits in the daily reset cycle."""
    NEEDS_RESET = "needs_reset"
    UP_TO_DATE = "up_to_date"


def _new_task_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# GamingStats: one row per user
# ---------------------------------------------------------------------------
class GamingStats(Base):
    __tablename__ = "gaming_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Daily counters
    today_points: Mapped[int] = mapped_column(Integer, default=0)
    combo: Mapped[int] = mapped_column(Integer, default=0)
    all_day_complete: Mapped[bool] = mapped_column(Boolean, default=False)
    last_active_date: Mapped[str] = mapped_column(String(10), nullable=False)
    last_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    # Streaks
    streak_count: Mapped[int] = mapped_column(Integer, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, default=0)
    total_days_active: Mapped[int] = mapped_column(Integer, default=0)

    # Progression
    level: Mapped[int] = mapped_column(Integer, default=DEFAULT_LEVEL)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    xp_to_next: Mapped[int] = mapped_column(Integer, default=100)

    # Presentation preferences
    sound_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    volume: Mapped[int] = mapped_column(Integer, default=DEFAULT_VOLUME)
    animations_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    # Bumped on every write; updates are compare-and-swap on this column
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_gaming_stats_user"),
    )

    def __repr__(self) -> str:
        return (
            f"<GamingStats user={self.user_id!r} lvl={self.level} "
            f"today={self.today_points} streak={self.streak_count}>"
        )


# ---------------------------------------------------------------------------
# DailyStatsHistory: append-only archive, one row per user-day
# ---------------------------------------------------------------------------
class DailyStatsHistory(Base):
    __tablename__ = "daily_stats_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0)
    tasks_completed: Mapped[int] = mapped_column(Integer, default=0)
    max_combo: Mapped[int] = mapped_column(Integer, default=0)
    all_day_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    xp_gained: Mapped[int] = mapped_column(Integer, default=0)
    productivity_score: Mapped[float] = mapped_column(Float, default=0)
    energy_level: Mapped[int] = mapped_column(Integer, default=5)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_history_user_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<DailyStatsHistory user={self.user_id!r} date={self.date} "
            f"points={self.points_earned}>"
        )


# ---------------------------------------------------------------------------
# Task: source of completion events
# ---------------------------------------------------------------------------
class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_task_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    show_gratitude: Mapped[bool] = mapped_column(Boolean, default=False)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=TaskPriority.MEDIUM.value
    )
    category: Mapped[str | None] = mapped_column(String(100), default=None)
    due_date: Mapped[date | None] = mapped_column(Date, default=None)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_tasks_user_completed", "user_id", "completed"),
        Index("ix_tasks_user_due", "user_id", "due_date"),
    )

    def __repr__(self) -> str:
        return f"<Task id={self.id} title={self.title!r} done={self.completed}>"


# ---------------------------------------------------------------------------
# AchievementHistory: first unlock of each catalog achievement
# ---------------------------------------------------------------------------
class AchievementHistory(Base):
    __tablename__ = "achievement_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(50), nullable=False)
    achievement_name: Mapped[str] = mapped_column(String(200), nullable=False)
    achievement_icon: Mapped[str | None] = mapped_column(String(20), default=None)
    points_awarded: Mapped[int] = mapped_column(Integer, default=0)
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "achievement_id", name="uq_achievement_history_user_achievement",
        ),
        Index("ix_achievement_history_unlocked", "user_id", "unlocked_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AchievementHistory user={self.user_id!r} "
            f"achievement={self.achievement_id!r}>"
        )
