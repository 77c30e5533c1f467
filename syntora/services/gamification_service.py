"""
syntora.services.gamification_service — Stats Persistence & Daily Reset
========================================================================

The one object that writes ``gaming_stats``.  Routes and the scheduler get
an instance injected instead of sharing module-level state.

Write discipline:

- Every stats write is a compare-and-swap on ``gaming_stats.version``.
  A lost race rolls the whole attempt back and recomputes from fresh
  values (up to ``max_write_retries``).
- Within a process, writes for the same user are additionally serialized
  by a per-user lock so the common case never conflicts.
- A task completion flips the task (``completed = false → true``, guarded
  in the WHERE clause) and updates stats in the same transaction, so a
  task transition produces at most one accrual and one notification.
- The daily reset guards its update with ``last_active_date`` as well, so
  at most one reset per user per day lands even across processes.  The
  history row is written in a SAVEPOINT: if it fails the day still resets.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from syntora.config import GamificationConfig
from syntora.constants import DEFAULT_LEVEL, DEFAULT_VOLUME, xp_for_level
from syntora.database.models import (
    AchievementHistory,
    DailyStatsHistory,
    GamingStats,
    ResetState,
    Task,
)
from syntora.engine.accrual import (
    AccrualResult,
    apply_xp,
    calculate_accrual,
    calculate_reversal,
)
from syntora.engine.achievements import (
    ACHIEVEMENT_DEFINITIONS,
    Achievement,
    AchievementDefinition,
    evaluate_achievements,
    newly_unlocked,
)
from syntora.engine.events import StatsSnapshot, TaskCompletionEvent
from syntora.engine.reset import HistoryEntry, plan_daily_reset, reset_state
from syntora.services.errors import StatsConflictError, StatsNotFoundError
from syntora.services.notifications import (
    AchievementNotice,
    LevelUpNotice,
    NotificationHub,
    XpNotification,
)
from syntora.services.task_service import get_owned_task, query_tasks

logger = logging.getLogger(__name__)

ALREADY_RESET_MESSAGE = "Already reset today"
RESET_DONE_MESSAGE = "Daily reset completed successfully"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------
@dataclass
class CompletionOutcome:
    """Result of a task completion or un-completion.

    ``changed`` is False when the task was already in the requested state;
    nothing was written and no notification was emitted.
    """

    task: Task
    stats: GamingStats
    changed: bool
    result: AccrualResult | None = None
    notification: XpNotification | None = None


@dataclass
class ResetOutcome:
    message: str
    stats: GamingStats
    previous_day_points: int
    performed: bool
    notification: XpNotification | None = None


class _Conflict(Exception):
    """Internal: a compare-and-swap lost; the attempt must be retried."""


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def stats_to_dict(stats: GamingStats) -> dict:
    return {
        "id": stats.id,
        "user_id": stats.user_id,
        "level": stats.level,
        "xp": stats.xp,
        "xp_to_next": stats.xp_to_next,
        "today_points": stats.today_points,
        "streak_count": stats.streak_count,
        "best_streak": stats.best_streak,
        "combo": stats.combo,
        "all_day_complete": stats.all_day_complete,
        "total_days_active": stats.total_days_active,
        "last_active_date": stats.last_active_date,
        "sound_enabled": stats.sound_enabled,
        "volume": stats.volume,
        "animations_enabled": stats.animations_enabled,
        "version": stats.version,
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class GamificationService:
    """Accrual, reversal, daily reset and preferences for ``gaming_stats``.

    Parameters
    ----------
    engine : SQLAlchemy engine.
    cfg : Gameplay tuning.
    hub : Where completion notifications are published.
    clock : Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        engine: Engine,
        cfg: GamificationConfig,
        *,
        hub: NotificationHub | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.engine = engine
        self.cfg = cfg
        self.hub = hub or NotificationHub()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tz = ZoneInfo(cfg.timezone)
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # -------------------------------------------------------------------
    # Time
    # -------------------------------------------------------------------
    def now(self) -> datetime:
        value = self._clock()
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def today(self) -> date:
        """Current calendar date in the configured reset timezone."""
        return self.now().astimezone(self._tz).date()

    def _user_lock(self, user_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock

    # -------------------------------------------------------------------
    # Stats rows
    # -------------------------------------------------------------------
    def _new_stats(self, user_id: str) -> GamingStats:
        return GamingStats(
            user_id=user_id,
            today_points=0,
            combo=0,
            all_day_complete=False,
            last_active_date=self.today().isoformat(),
            streak_count=0,
            best_streak=0,
            total_days_active=0,
            level=DEFAULT_LEVEL,
            xp=0,
            xp_to_next=xp_for_level(DEFAULT_LEVEL, self.cfg),
            sound_enabled=True,
            volume=DEFAULT_VOLUME,
            animations_enabled=True,
            version=1,
        )

    @staticmethod
    def _select_stats(session: Session, user_id: str) -> GamingStats | None:
        return session.scalar(select(GamingStats).where(GamingStats.user_id == user_id))

    def _load_or_create(self, session: Session, user_id: str) -> GamingStats:
        """Fetch the user's stats row, inserting the default row on first use."""
        stats = self._select_stats(session, user_id)
        if stats is not None:
            return stats

        stats = self._new_stats(user_id)
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(stats)
                session.flush()
        except IntegrityError:
            # Another session created the row first; use theirs
            stats = self._select_stats(session, user_id)
            if stats is None:
                raise
        else:
            logger.info("Gaming stats initialised for user %s", user_id)
        return stats

    def get_stats(self, user_id: str) -> GamingStats | None:
        with Session(self.engine, expire_on_commit=False) as session:
            return self._select_stats(session, user_id)

    def get_or_create_stats(self, user_id: str) -> GamingStats:
        with Session(self.engine, expire_on_commit=False) as session:
            stats = self._load_or_create(session, user_id)
            session.commit()
            return stats

    @staticmethod
    def _compare_and_swap(session: Session, stats: GamingStats, values: dict, **guards) -> None:
        """Apply *values* only if the row still has the version we read.

        Extra equality *guards* (column=value) are added to the WHERE clause.
        Raises :class:`_Conflict` if no row matched.
        """
        stmt = (
            update(GamingStats)
            .where(GamingStats.id == stats.id, GamingStats.version == stats.version)
            .values(**values, version=stats.version + 1)
            .execution_options(synchronize_session=False)
        )
        for column, expected in guards.items():
            stmt = stmt.where(getattr(GamingStats, column) == expected)
        if session.execute(stmt).rowcount != 1:
            raise _Conflict()

    def _with_retries(self, user_id: str, attempt: Callable[[], object]):
        retries = max(self.cfg.max_write_retries, 1)
        for n in range(1, retries + 1):
            with self._user_lock(user_id):
                try:
                    return attempt()
                except _Conflict:
                    logger.warning(
                        "Stats write conflict for user %s (attempt %d/%d)",
                        user_id, n, retries,
                    )
        raise StatsConflictError(user_id, retries)

    # -------------------------------------------------------------------
    # Achievements
    # -------------------------------------------------------------------
    @staticmethod
    def _unlock_times(session: Session, user_id: str) -> dict[str, datetime]:
        rows = session.execute(
            select(AchievementHistory.achievement_id, AchievementHistory.unlocked_at)
            .where(AchievementHistory.user_id == user_id)
        ).all()
        return {row.achievement_id: row.unlocked_at for row in rows}

    def achievements_for_user(self, user_id: str) -> list[Achievement]:
        """The catalog evaluated against the user's current tasks and stats."""
        with Session(self.engine) as session:
            tasks = query_tasks(session, user_id)
            stats = self._select_stats(session, user_id)
            snapshot = StatsSnapshot.from_row(stats) if stats is not None else None
            return evaluate_achievements(
                ACHIEVEMENT_DEFINITIONS,
                tasks,
                stats=snapshot,
                unlocked_at=self._unlock_times(session, user_id),
            )

    def _pending_unlocks(
        self, session: Session, user_id: str, snapshot: StatsSnapshot,
    ) -> list[AchievementDefinition]:
        """Achievements unlocked by *snapshot* and the current tasks, not yet recorded."""
        achievements = evaluate_achievements(
            ACHIEVEMENT_DEFINITIONS, query_tasks(session, user_id), stats=snapshot,
        )
        return newly_unlocked(achievements, self._unlock_times(session, user_id))

    def _record_unlocks(
        self, session: Session, user_id: str, definitions: list[AchievementDefinition],
        when: datetime,
    ) -> list[AchievementDefinition]:
        """Insert achievement_history rows; returns the ones actually recorded."""
        recorded: list[AchievementDefinition] = []
        for definition in definitions:
            try:
                with session.begin_nested():
                    session.add(AchievementHistory(
                        user_id=user_id,
                        achievement_id=definition.id,
                        achievement_name=definition.title,
                        achievement_icon=definition.icon,
                        points_awarded=definition.xp_reward,
                        unlocked_at=when,
                    ))
                    session.flush()
            except IntegrityError:
                logger.info(
                    "Achievement %s already recorded for user %s", definition.id, user_id,
                )
                continue
            recorded.append(definition)
        return recorded

    # -------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------
    def _all_due_today_complete(self, session: Session, user_id: str) -> bool:
        due_today = query_tasks(session, user_id, due_on=self.today())
        return bool(due_today) and all(t.completed for t in due_today)

    def _flip_task(self, session: Session, task: Task, *, completed: bool, when: datetime) -> bool:
        """Conditionally move *task* to *completed*; False if it was already there."""
        result = session.execute(
            update(Task)
            .where(
                Task.id == task.id,
                Task.user_id == task.user_id,
                Task.completed.is_(not completed),
            )
            .values(completed=completed, completed_at=when if completed else None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        session.refresh(task)
        return True

    def _ensure_current_day(self, user_id: str) -> None:
        stats = self.get_stats(user_id)
        if stats is not None and reset_state(
            StatsSnapshot.from_row(stats), self.today(),
        ) is ResetState.NEEDS_RESET:
            self.daily_reset(user_id)

    def complete_task(self, user_id: str, task_id: str) -> CompletionOutcome:
        """Mark a task complete and accrue its points, combo and XP.

        Closes out a stale day first so points always land on today.
        Raises :class:`TaskNotFoundError` for unknown tasks and
        :class:`StatsConflictError` if concurrent writers keep winning.
        """
        self._ensure_current_day(user_id)
        outcome: CompletionOutcome = self._with_retries(
            user_id, lambda: self._try_complete(user_id, task_id),
        )
        if outcome.notification is not None:
            self.hub.publish(outcome.notification)
        return outcome

    def _try_complete(self, user_id: str, task_id: str) -> CompletionOutcome:
        now = self.now()
        with Session(self.engine, expire_on_commit=False) as session:
            task = get_owned_task(session, user_id, task_id)
            stats = self._load_or_create(session, user_id)
            if task.completed:
                session.commit()
                return CompletionOutcome(task=task, stats=stats, changed=False)

            snapshot = StatsSnapshot.from_row(stats)
            if not self._flip_task(session, task, completed=True, when=now):
                # Someone else completed it between our read and write
                session.commit()
                session.refresh(task)
                return CompletionOutcome(task=task, stats=stats, changed=False)

            unlocked = self._pending_unlocks(session, user_id, snapshot)

            all_done = self._all_due_today_complete(session, user_id)
            bonus_xp = sum(d.xp_reward for d in unlocked)
            if all_done and not snapshot.all_day_complete:
                bonus_xp += self.cfg.all_day_bonus_xp

            event = TaskCompletionEvent.from_task(task, completed=True, timestamp=now)
            result = calculate_accrual(snapshot, event, self.cfg, bonus_xp=bonus_xp)

            try:
                self._compare_and_swap(session, stats, {
                    "today_points": result.today_points,
                    "combo": result.combo,
                    "level": result.level,
                    "xp": result.xp,
                    "xp_to_next": result.xp_to_next,
                    "last_completed_at": now,
                    "all_day_complete": all_done,
                })
            except _Conflict:
                session.rollback()
                raise

            recorded = self._record_unlocks(session, user_id, unlocked, now)
            session.commit()
            session.refresh(stats)

        logger.info(
            "Task %s completed by %s: +%d points, +%d XP, combo %d",
            task_id, user_id, result.points, result.xp_gained, result.combo,
        )
        notification = XpNotification(
            user_id=user_id,
            task_id=task_id,
            xp=result.xp_gained,
            points=result.points,
            combo=result.combo,
            achievements=tuple(
                AchievementNotice(name=d.title, icon=d.icon, points=d.xp_reward)
                for d in recorded
            ),
            level_up=LevelUpNotice(result.new_level) if result.new_level else None,
            all_day_complete=all_done and not snapshot.all_day_complete,
            created_at=now,
        )
        return CompletionOutcome(
            task=task, stats=stats, changed=True, result=result, notification=notification,
        )

    def uncomplete_task(self, user_id: str, task_id: str) -> CompletionOutcome:
        """Reopen a completed task: takes back its base points and their XP, breaks the combo."""
        self._ensure_current_day(user_id)
        return self._with_retries(user_id, lambda: self._try_uncomplete(user_id, task_id))

    def _try_uncomplete(self, user_id: str, task_id: str) -> CompletionOutcome:
        now = self.now()
        with Session(self.engine, expire_on_commit=False) as session:
            task = get_owned_task(session, user_id, task_id)
            stats = self._load_or_create(session, user_id)
            if not task.completed or not self._flip_task(
                session, task, completed=False, when=now,
            ):
                session.commit()
                return CompletionOutcome(task=task, stats=stats, changed=False)

            snapshot = StatsSnapshot.from_row(stats)
            all_done = self._all_due_today_complete(session, user_id)
            revoked = 0
            if snapshot.all_day_complete and not all_done:
                revoked = self.cfg.all_day_bonus_xp
            event = TaskCompletionEvent.from_task(task, completed=False, timestamp=now)
            result = calculate_reversal(snapshot, event, self.cfg, bonus_xp=revoked)

            try:
                self._compare_and_swap(session, stats, {
                    "today_points": result.today_points,
                    "combo": result.combo,
                    "xp": result.xp,
                    "all_day_complete": all_done,
                })
            except _Conflict:
                session.rollback()
                raise

            session.commit()
            session.refresh(stats)

        logger.info(
            "Task %s reopened by %s: %d points, %d XP",
            task_id, user_id, result.points, result.xp_gained,
        )
        return CompletionOutcome(task=task, stats=stats, changed=True, result=result)

    # -------------------------------------------------------------------
    # Daily reset
    # -------------------------------------------------------------------
    def _archive_day(self, session: Session, entry: HistoryEntry) -> bool:
        """Best-effort history insert; a failure never blocks the reset."""
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(DailyStatsHistory(**entry.as_row()))
                session.flush()
        except SQLAlchemyError:
            logger.exception(
                "Failed to archive %s for user %s; continuing with reset",
                entry.date, entry.user_id,
            )
            return False
        return True

    def daily_reset(self, user_id: str) -> ResetOutcome:
        """Close out the user's previous day, idempotently.

        Returns the current stats unchanged if the reset already happened
        today.  Raises :class:`StatsNotFoundError` if the user has no stats.
        """
        outcome: ResetOutcome = self._with_retries(user_id, lambda: self._try_reset(user_id))
        if outcome.notification is not None:
            self.hub.publish(outcome.notification)
        return outcome

    def _try_reset(self, user_id: str) -> ResetOutcome:
        now = self.now()
        today = self.today()
        with Session(self.engine, expire_on_commit=False) as session:
            stats = self._select_stats(session, user_id)
            if stats is None:
                raise StatsNotFoundError(user_id)

            snapshot = StatsSnapshot.from_row(stats)
            plan = plan_daily_reset(snapshot, today)
            if plan is None:
                return ResetOutcome(
                    message=ALREADY_RESET_MESSAGE,
                    stats=stats,
                    previous_day_points=0,
                    performed=False,
                )

            # A continued streak can unlock the consecutive-day achievements
            unlocked = self._pending_unlocks(
                session, user_id, replace(snapshot, **plan.stats_values()),
            )
            values = plan.stats_values()
            bonus_xp = sum(d.xp_reward for d in unlocked)
            if bonus_xp:
                level, xp, xp_to_next = apply_xp(
                    snapshot.level, snapshot.xp, snapshot.xp_to_next, bonus_xp, self.cfg,
                )
                values.update(level=level, xp=xp, xp_to_next=xp_to_next)

            try:
                self._compare_and_swap(
                    session, stats, values, last_active_date=plan.previous_date,
                )
            except _Conflict:
                session.rollback()
                raise

            if plan.history is not None:
                self._archive_day(session, plan.history)
            recorded = self._record_unlocks(session, user_id, unlocked, now)

            session.commit()
            session.refresh(stats)

        logger.info(
            "Daily reset for %s: %s → %s, %d points archived, streak %d (%s)",
            user_id, plan.previous_date, plan.last_active_date,
            plan.previous_day_points, plan.streak_count,
            "continued" if plan.streak_continued else "reset",
        )
        notification = None
        if recorded:
            notification = XpNotification(
                user_id=user_id,
                task_id=None,
                xp=bonus_xp,
                points=0,
                reason="Streak milestone",
                achievements=tuple(
                    AchievementNotice(name=d.title, icon=d.icon, points=d.xp_reward)
                    for d in recorded
                ),
                level_up=(
                    LevelUpNotice(stats.level) if stats.level > snapshot.level else None
                ),
                created_at=now,
            )
        return ResetOutcome(
            message=RESET_DONE_MESSAGE,
            stats=stats,
            previous_day_points=plan.previous_day_points,
            performed=True,
            notification=notification,
        )

    def reset_all_users(self) -> dict[str, int]:
        """Run the daily reset for every stats row (the scheduled job).

        One user's failure is logged and does not stop the others.
        """
        with Session(self.engine) as session:
            user_ids = list(session.scalars(select(GamingStats.user_id)).all())

        summary = {"checked": len(user_ids), "reset": 0, "failed": 0}
        for user_id in user_ids:
            try:
                if self.daily_reset(user_id).performed:
                    summary["reset"] += 1
            except Exception:
                summary["failed"] += 1
                logger.exception("Daily reset failed for user %s", user_id)
        return summary

    # -------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------
    def update_settings(
        self,
        user_id: str,
        *,
        sound_enabled: bool | None = None,
        volume: int | None = None,
        animations_enabled: bool | None = None,
    ) -> GamingStats:
        """Update presentation preferences stored on the stats row."""
        values: dict = {}
        if sound_enabled is not None:
            values["sound_enabled"] = sound_enabled
        if volume is not None:
            if not 0 <= volume <= 100:
                raise ValueError("volume must be between 0 and 100")
            values["volume"] = volume
        if animations_enabled is not None:
            values["animations_enabled"] = animations_enabled

        def _attempt() -> GamingStats:
            with Session(self.engine, expire_on_commit=False) as session:
                stats = self._load_or_create(session, user_id)
                if values:
                    try:
                        self._compare_and_swap(session, stats, values)
                    except _Conflict:
                        session.rollback()
                        raise
                session.commit()
                session.refresh(stats)
                return stats

        return self._with_retries(user_id, _attempt)
