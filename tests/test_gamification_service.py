"""
tests/test_gamification_service.py — Gamification Service Integration Tests
=============================================================================
Service-level tests for task completion, the daily reset and preferences,
including idempotency and the compare-and-swap retry path.

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

import logging
from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import seed_stats
from syntora.database.models import (
    AchievementHistory,
    DailyStatsHistory,
    GamingStats,
    Task,
)
from syntora.services import gamification_service as gs
from syntora.services import task_service
from syntora.services.errors import (
    StatsConflictError,
    StatsNotFoundError,
    TaskNotFoundError,
)

USER = "user-1"


def _task(engine, user_id: str = USER, **kwargs) -> str:
    kwargs.setdefault("title", "Write report")
    return task_service.create_task(engine, user_id=user_id, **kwargs).id


def _stats(engine, user_id: str = USER) -> GamingStats | None:
    with Session(engine) as session:
        return session.scalar(select(GamingStats).where(GamingStats.user_id == user_id))


def _history_count(engine, user_id: str = USER) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count()).select_from(DailyStatsHistory)
            .where(DailyStatsHistory.user_id == user_id)
        )


# ===========================================================================
# Task completion
# ===========================================================================
class TestCompleteTask:
    def test_first_gratitude_task_creates_stats(self, service, db_engine):
        task_id = _task(db_engine, show_gratitude=True)

        outcome = service.complete_task(USER, task_id)

        assert outcome.changed is True
        assert outcome.result.points == 25
        stats = _stats(db_engine)
        assert stats is not None
        assert stats.today_points == 25
        assert stats.combo == 1
        assert stats.last_active_date == "2024-01-01"
        assert stats.version == 2   # created at 1, one accrual write

    def test_notification_published_after_commit(self, service, db_engine, hub):
        task_id = _task(db_engine, show_gratitude=True)

        outcome = service.complete_task(USER, task_id)

        recent = hub.recent(USER)
        assert recent == [outcome.notification]
        names = {a.name for a in outcome.notification.achievements}
        assert {"Getting Started", "Mindful Start"} <= names
        # base 37 XP plus the two unlock rewards
        assert outcome.notification.xp == 37 + 10 + 25

    def test_unlocks_are_recorded_once(self, service, db_engine):
        first = _task(db_engine)
        service.complete_task(USER, first)
        service.uncomplete_task(USER, first)
        again = service.complete_task(USER, first)

        assert again.notification.achievements == ()
        with Session(db_engine) as session:
            ids = session.scalars(select(AchievementHistory.achievement_id)).all()
        assert ids == ["first_task"]

    def test_completing_twice_is_a_noop(self, service, db_engine, hub):
        task_id = _task(db_engine)
        service.complete_task(USER, task_id)

        second = service.complete_task(USER, task_id)

        assert second.changed is False
        assert second.notification is None
        assert len(hub.recent(USER)) == 1
        assert _stats(db_engine).today_points == 15

    def test_today_points_is_sum_of_awarded_points(self, service, db_engine, clock):
        awarded = []
        for _ in range(5):
            task_id = _task(db_engine)
            awarded.append(service.complete_task(USER, task_id).result.points)
            clock.advance(minutes=5)

        assert awarded == [15, 15, 15, 20, 20]
        stats = _stats(db_engine)
        assert stats.today_points == sum(awarded)
        assert stats.combo == 5

    def test_combo_restarts_after_window(self, service, db_engine, clock):
        service.complete_task(USER, _task(db_engine))
        clock.advance(hours=2)
        outcome = service.complete_task(USER, _task(db_engine))
        assert outcome.result.combo == 1

    def test_all_day_bonus(self, service, db_engine):
        today = date(2024, 1, 1)
        first = _task(db_engine, due_date=today)
        second = _task(db_engine, due_date=today)

        one = service.complete_task(USER, first)
        two = service.complete_task(USER, second)

        assert one.notification.all_day_complete is False
        assert two.notification.all_day_complete is True
        assert two.result.xp_gained >= 100
        assert _stats(db_engine).all_day_complete is True

    def test_unknown_task(self, service):
        with pytest.raises(TaskNotFoundError):
            service.complete_task(USER, "missing")

    def test_other_users_task(self, service, db_engine):
        task_id = _task(db_engine, user_id="someone-else")
        with pytest.raises(TaskNotFoundError):
            service.complete_task(USER, task_id)

    def test_stale_day_is_closed_first(self, service, db_engine):
        seed_stats(db_engine, last_active_date="2023-12-31", today_points=30, streak_count=2,
                   best_streak=2)

        service.complete_task(USER, _task(db_engine))

        stats = _stats(db_engine)
        assert stats.today_points == 15
        assert stats.last_active_date == "2024-01-01"
        assert stats.streak_count == 3
        assert _history_count(db_engine) == 1

    def test_unrecorded_streak_unlock_is_recorded(self, service, db_engine):
        seed_stats(db_engine, streak_count=3, best_streak=3)

        outcome = service.complete_task(USER, _task(db_engine))

        names = {a.name for a in outcome.notification.achievements}
        assert names == {"Getting Started", "Daily Grind"}
        assert outcome.result.xp_gained == 22 + 10 + 30


class TestUncompleteTask:
    def test_reverses_base_points(self, service, db_engine):
        a, b = _task(db_engine), _task(db_engine, priority="high")
        service.complete_task(USER, a)
        service.complete_task(USER, b)

        outcome = service.uncomplete_task(USER, b)

        assert outcome.changed is True
        assert outcome.result.points == -20
        stats = _stats(db_engine)
        assert stats.today_points == 15
        assert stats.combo == 0
        assert task_service.get_task(db_engine, USER, b).completed is False

    def test_open_task_is_a_noop(self, service, db_engine):
        outcome = service.uncomplete_task(USER, _task(db_engine))
        assert outcome.changed is False

    def test_toggling_gives_back_xp(self, service, db_engine):
        task_id = _task(db_engine)
        for _ in range(6):
            service.complete_task(USER, task_id)
            service.uncomplete_task(USER, task_id)

        stats = _stats(db_engine)
        assert stats.today_points == 0
        assert stats.level == 1
        assert stats.xp == 10   # only the one-time first_task reward stays

    def test_losing_all_day_complete_revokes_bonus(self, service, db_engine):
        seed_stats(db_engine, xp_to_next=1000)
        task_id = _task(db_engine, due_date=date(2024, 1, 1))

        service.complete_task(USER, task_id)
        assert _stats(db_engine).xp == 22 + 10 + 100
        service.uncomplete_task(USER, task_id)

        stats = _stats(db_engine)
        assert stats.all_day_complete is False
        assert stats.xp == 10


class TestOptimisticConcurrency:
    def test_lost_race_is_retried(self, service, db_engine, monkeypatch):
        task_id = _task(db_engine)
        calls = []
        real = gs.GamificationService._compare_and_swap

        def flaky(session, stats, values, **guards):
            calls.append(values)
            if len(calls) == 1:
                raise gs._Conflict()
            return real(session, stats, values, **guards)

        monkeypatch.setattr(service, "_compare_and_swap", flaky)

        outcome = service.complete_task(USER, task_id)

        assert len(calls) == 2
        assert outcome.changed is True
        stats = _stats(db_engine)
        assert stats.today_points == 15
        assert stats.version == 2

    def test_gives_up_after_max_retries(self, service, db_engine, monkeypatch):
        task_id = _task(db_engine)

        def always_conflict(session, stats, values, **guards):
            raise gs._Conflict()

        monkeypatch.setattr(service, "_compare_and_swap", always_conflict)

        with pytest.raises(StatsConflictError) as exc_info:
            service.complete_task(USER, task_id)
        assert exc_info.value.attempts == 3
        assert task_service.get_task(db_engine, USER, task_id).completed is False

    def test_stale_version_does_not_match(self, service, db_engine):
        seed_stats(db_engine)
        with Session(db_engine) as session:
            row = session.scalar(select(GamingStats))
            stale = SimpleNamespace(id=row.id, version=row.version - 1)
            with pytest.raises(gs._Conflict):
                gs.GamificationService._compare_and_swap(session, stale, {"combo": 3})

    def test_reset_guard_rejects_moved_day(self, service, db_engine):
        seed_stats(db_engine)
        with Session(db_engine) as session:
            row = session.scalar(select(GamingStats))
            with pytest.raises(gs._Conflict):
                gs.GamificationService._compare_and_swap(
                    session, row, {"combo": 0}, last_active_date="2023-12-31",
                )

    def test_concurrent_reset_lands_once(self, service, db_engine, clock, monkeypatch):
        seed_stats(db_engine, today_points=40, streak_count=1, best_streak=1,
                   total_days_active=5)
        clock.set_date(date(2024, 1, 2))
        real = gs.GamificationService._compare_and_swap
        raced, competing = [], []

        def racing(session, stats, values, **guards):
            if not raced:
                raced.append(True)
                # Another worker commits the same reset between our read and write
                competing.append(service.daily_reset(USER))
            return real(session, stats, values, **guards)

        monkeypatch.setattr(service, "_compare_and_swap", racing)

        outcome = service.daily_reset(USER)

        assert competing[0].performed is True
        assert outcome.performed is False
        assert outcome.message == "Already reset today"
        stats = _stats(db_engine)
        assert stats.total_days_active == 6
        assert stats.streak_count == 2
        assert stats.version == 2
        assert _history_count(db_engine) == 1


# ===========================================================================
# Daily reset
# ===========================================================================
class TestDailyReset:
    def test_consecutive_day(self, service, db_engine, clock):
        seed_stats(db_engine, today_points=40, streak_count=3, best_streak=3)
        clock.set_date(date(2024, 1, 2))

        outcome = service.daily_reset(USER)

        assert outcome.performed is True
        assert outcome.message == "Daily reset completed successfully"
        assert outcome.previous_day_points == 40
        assert outcome.stats.today_points == 0
        assert outcome.stats.streak_count == 4
        assert outcome.stats.last_active_date == "2024-01-02"
        with Session(db_engine) as session:
            entry = session.scalar(select(DailyStatsHistory))
        assert entry.date == date(2024, 1, 1)
        assert entry.points_earned == 40

    def test_gap_breaks_streak(self, service, db_engine, clock):
        seed_stats(db_engine, today_points=40, streak_count=3, best_streak=3)
        clock.set_date(date(2024, 1, 5))

        outcome = service.daily_reset(USER)

        assert outcome.stats.streak_count == 0
        assert outcome.stats.best_streak == 3
        assert _history_count(db_engine) == 1

    def test_second_reset_same_day_is_a_noop(self, service, db_engine, clock):
        seed_stats(db_engine, today_points=40, streak_count=3, best_streak=3)
        clock.set_date(date(2024, 1, 2))
        first = service.daily_reset(USER)

        second = service.daily_reset(USER)

        assert second.performed is False
        assert second.message == "Already reset today"
        assert second.previous_day_points == 0
        assert second.stats.streak_count == first.stats.streak_count
        assert second.stats.version == first.stats.version
        assert _history_count(db_engine) == 1

    def test_missing_stats(self, service):
        with pytest.raises(StatsNotFoundError):
            service.daily_reset(USER)

    def test_history_failure_does_not_block_reset(self, service, db_engine, clock, caplog):
        seed_stats(db_engine, today_points=40, streak_count=3, best_streak=3)
        with Session(db_engine) as session:
            # Same (user, date) already archived: the insert will violate the unique key
            session.add(DailyStatsHistory(user_id=USER, date=date(2024, 1, 1), points_earned=5))
            session.commit()
        clock.set_date(date(2024, 1, 2))

        with caplog.at_level(logging.ERROR):
            outcome = service.daily_reset(USER)

        assert outcome.performed is True
        assert outcome.stats.today_points == 0
        assert outcome.stats.streak_count == 4
        assert _history_count(db_engine) == 1
        assert "Failed to archive" in caplog.text

    def test_streak_unlock_recorded_at_reset(self, service, db_engine, clock, hub):
        seed_stats(db_engine, today_points=30, streak_count=2, best_streak=2)
        clock.set_date(date(2024, 1, 2))

        outcome = service.daily_reset(USER)

        assert outcome.stats.streak_count == 3
        assert outcome.stats.xp == 30   # Daily Grind reward
        assert [a.name for a in outcome.notification.achievements] == ["Daily Grind"]
        assert hub.recent(USER) == [outcome.notification]

        service.complete_task(USER, _task(db_engine))

        with Session(db_engine) as session:
            rows = {
                row.achievement_id: row.unlocked_at
                for row in session.scalars(select(AchievementHistory))
            }
        assert set(rows) == {"daily_grind_3", "first_task"}
        assert rows["daily_grind_3"] is not None
        by_id = {a.id: a for a in service.achievements_for_user(USER)}
        assert by_id["daily_grind_3"].unlocked_at is not None

    def test_reset_all_users(self, service, db_engine, clock):
        seed_stats(db_engine, "a", today_points=10)
        seed_stats(db_engine, "b", today_points=0)
        seed_stats(db_engine, "c", last_active_date="2024-01-02")
        clock.set_date(date(2024, 1, 2))

        summary = service.reset_all_users()

        assert summary == {"checked": 3, "reset": 2, "failed": 0}
        assert _stats(db_engine, "a").streak_count == 1
        assert _stats(db_engine, "b").streak_count == 0

    def test_today_follows_configured_timezone(self, db_engine, hub, clock):
        from syntora.config import GamificationConfig

        tokyo = gs.GamificationService(
            db_engine, GamificationConfig(timezone="Asia/Tokyo"), hub=hub, clock=clock,
        )
        clock.set_date(date(2024, 1, 1), hour=20)   # 05:00 next day in Tokyo
        assert tokyo.today() == date(2024, 1, 2)


# ===========================================================================
# Preferences & reads
# ===========================================================================
class TestSettings:
    def test_update_persists(self, service, db_engine):
        stats = service.update_settings(USER, sound_enabled=False, volume=40)
        assert stats.sound_enabled is False
        assert stats.volume == 40
        assert stats.animations_enabled is True
        assert _stats(db_engine).volume == 40

    def test_volume_range(self, service):
        with pytest.raises(ValueError):
            service.update_settings(USER, volume=150)


class TestReads:
    def test_get_or_create_is_idempotent(self, service, db_engine):
        first = service.get_or_create_stats(USER)
        second = service.get_or_create_stats(USER)
        assert first.id == second.id
        assert first.xp_to_next == 100
        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(GamingStats)) == 1

    def test_achievements_for_user_include_unlock_time(self, service, db_engine, clock):
        service.complete_task(USER, _task(db_engine))
        by_id = {a.id: a for a in service.achievements_for_user(USER)}
        assert by_id["first_task"].unlocked
        assert by_id["first_task"].unlocked_at is not None

    def test_stats_to_dict(self, service):
        d = gs.stats_to_dict(service.get_or_create_stats(USER))
        assert d["user_id"] == USER
        assert d["level"] == 1
        assert d["today_points"] == 0

    def test_tasks_are_listed_per_user(self, db_engine):
        _task(db_engine, category="work")
        _task(db_engine, category="home")
        _task(db_engine, user_id="other")
        work = task_service.list_tasks(db_engine, USER, category="work")
        assert [t.category for t in work] == ["work"]
        assert len(task_service.list_tasks(db_engine, USER)) == 2
        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(Task)) == 3
