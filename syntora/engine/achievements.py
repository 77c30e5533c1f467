"""
syntora.engine.achievements — Achievement Catalog & Evaluator
==============================================================

Handler-registry implementation of achievement progress.  The catalog is
static and process-wide; the view models are a pure projection of
``(definitions, tasks, stats)`` recomputed on every read.  Nothing here is
persisted, so evaluating twice with the same input yields identical output.

Each achievement id maps to a handler returning the raw counter for that
achievement.  Ids without a handler use the default ``completed // 3``.

This module is pure calculation with no database I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from syntora.database.models import TaskPriority

if TYPE_CHECKING:
    from syntora.engine.events import StatsSnapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementDefinition:
    """One entry of the static catalog."""

    id: str
    title: str
    description: str
    icon: str
    category: str
    difficulty: str
    target: int
    xp_reward: int = 0
    special_effects: tuple[str, ...] = ()
    hidden: bool = False

    def __post_init__(self) -> None:
        if self.target < 1:
            raise ValueError(
                f"Achievement {self.id!r} has target {self.target}; targets must be >= 1"
            )


@dataclass(frozen=True, slots=True)
class Achievement:
    """View model: a definition plus the user's computed state."""

    definition: AchievementDefinition
    progress: int
    unlocked: bool
    unlocked_at: datetime | None = None

    @property
    def id(self) -> str:
        return self.definition.id

    def to_dict(self) -> dict[str, Any]:
        d = self.definition
        return {
            "id": d.id,
            "title": d.title,
            "description": d.description,
            "icon": d.icon,
            "category": d.category,
            "difficulty": d.difficulty,
            "target": d.target,
            "xp_reward": d.xp_reward,
            "special_effects": list(d.special_effects),
            "hidden": d.hidden,
            "progress": self.progress,
            "unlocked": self.unlocked,
            "unlocked_at": self.unlocked_at.isoformat() if self.unlocked_at else None,
        }


def _a(id, title, description, icon, category, difficulty, target, xp_reward,
       effects, hidden=False) -> AchievementDefinition:
    return AchievementDefinition(
        id=id, title=title, description=description, icon=icon,
        category=category, difficulty=difficulty, target=target,
        xp_reward=xp_reward, special_effects=tuple(effects), hidden=hidden,
    )


ACHIEVEMENT_DEFINITIONS: tuple[AchievementDefinition, ...] = (
    # Productivity
    _a("first_task", "Getting Started", "Complete your first task",
       "🎯", "productivity", "bronze", 1, 10, ["confetti"]),
    _a("task_master_10", "Task Master", "Complete 10 tasks",
       "⚡", "productivity", "bronze", 10, 50, ["confetti", "level_glow"]),
    _a("task_warrior_50", "Task Warrior", "Complete 50 tasks",
       "⚔️", "productivity", "silver", 50, 150, ["epic_confetti", "achievement_sound"]),
    _a("task_legend_100", "Task Legend", "Complete 100 tasks",
       "👑", "productivity", "gold", 100, 300, ["legendary_animation", "golden_glow"]),
    _a("productivity_god", "Productivity God", "Complete 500 tasks",
       "🏆", "productivity", "legendary", 500, 1000,
       ["divine_animation", "screen_shake", "rainbow_confetti"]),

    # Consistency
    _a("daily_grind_3", "Daily Grind", "Complete tasks for 3 consecutive days",
       "🔥", "consistency", "bronze", 3, 30, ["flame_effect"]),
    _a("week_warrior", "Week Warrior", "Complete tasks for 7 consecutive days",
       "💪", "consistency", "silver", 7, 100, ["power_surge", "muscle_flex"]),
    _a("unstoppable_30", "Unstoppable", "Complete tasks for 30 consecutive days",
       "🚀", "consistency", "gold", 30, 500, ["rocket_launch", "space_particles"]),
    _a("consistency_legend", "Consistency Legend", "Complete tasks for 100 consecutive days",
       "💎", "consistency", "platinum", 100, 1500, ["diamond_sparkle", "eternal_flame"]),

    # Wellness
    _a("mindful_start", "Mindful Start", "Complete your first spiritual/gratitude task",
       "🧘", "wellness", "bronze", 1, 25, ["zen_particles", "peaceful_glow"]),
    _a("gratitude_master", "Gratitude Master", "Complete 25 spiritual/gratitude tasks",
       "🙏", "wellness", "silver", 25, 200, ["blessing_rain", "golden_light"]),
    _a("spiritual_warrior", "Spiritual Warrior", "Complete 100 spiritual/gratitude tasks",
       "✨", "wellness", "gold", 100, 750, ["starlight_cascade", "divine_aura"]),
    _a("zen_master", "Zen Master", "Achieve perfect work-life balance for a week",
       "☯️", "wellness", "platinum", 7, 400, ["yin_yang_rotation", "harmony_waves"]),

    # Goals
    _a("project_starter", "Project Starter", "Create your first project",
       "📋", "goals", "bronze", 1, 20, ["blueprint_unfold"]),
    _a("project_finisher", "Project Finisher", "Complete your first project",
       "🎯", "goals", "silver", 1, 100, ["target_hit", "victory_fanfare"]),
    _a("deadline_destroyer", "Deadline Destroyer", "Complete 10 tasks before their due date",
       "⏰", "goals", "silver", 10, 150, ["clock_explosion", "time_mastery"]),
    _a("high_priority_hero", "High Priority Hero", "Complete 20 high-priority tasks",
       "🦸", "goals", "gold", 20, 250, ["hero_cape", "power_surge"]),

    # Special
    _a("night_owl", "Night Owl", "Complete a task after 10 PM",
       "🦉", "special", "bronze", 1, 15, ["moon_glow", "owl_hoot"], hidden=True),
    _a("early_bird", "Early Bird", "Complete a task before 6 AM",
       "🌅", "special", "bronze", 1, 15, ["sunrise_glow", "bird_chirp"], hidden=True),
    _a("lightning_round", "Lightning Round", "Complete 10 tasks in one hour",
       "⚡", "special", "gold", 10, 300, ["lightning_strike", "speed_lines"]),
    _a("perfectionist", "The Perfectionist",
       "Rate 5 tasks as maximum difficulty and complete them",
       "💎", "special", "platinum", 5, 400, ["crystal_formation", "perfection_aura"]),
    _a("comeback_king", "Comeback King", "Complete a task that was overdue by more than a week",
       "👑", "special", "silver", 1, 100, ["phoenix_rise", "redemption_glow"], hidden=True),
    _a("multitasker", "Master Multitasker", "Have tasks in 5 different categories",
       "🎭", "special", "silver", 5, 120, ["juggling_balls", "rainbow_trail"]),
    _a("focus_master", "Focus Master", "Complete a 2-hour focus session without interruption",
       "🎯", "special", "gold", 1, 250, ["laser_focus", "concentration_aura"]),
    _a("habit_builder", "Habit Builder", "Maintain a daily habit for 21 consecutive days",
       "🏗️", "special", "gold", 21, 350, ["building_blocks", "foundation_solid"]),
)

ACHIEVEMENT_CATEGORIES: dict[str, dict[str, str]] = {
    "productivity": {"name": "Productivity", "color": "blue", "icon": "⚡"},
    "consistency": {"name": "Consistency", "color": "orange", "icon": "🔥"},
    "wellness": {"name": "Wellness", "color": "green", "icon": "🧘"},
    "goals": {"name": "Goals", "color": "purple", "icon": "🎯"},
    "special": {"name": "Special", "color": "pink", "icon": "✨"},
}


def get_definition(achievement_id: str) -> AchievementDefinition | None:
    for definition in ACHIEVEMENT_DEFINITIONS:
        if definition.id == achievement_id:
            return definition
    return None


# ---------------------------------------------------------------------------
# Task aggregates: the counters handlers read
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TaskAggregates:
    """Cumulative counters over a user's task list.

    Parameters
    ----------
    completed : Completed tasks.
    gratitude_completed : Completed tasks flagged as gratitude/spiritual.
    high_priority_completed : Completed high-priority tasks.
    categories : Distinct non-empty categories across all tasks.
    on_time_completed : Completed tasks finished on or before their due date.
    """

    completed: int = 0
    gratitude_completed: int = 0
    high_priority_completed: int = 0
    categories: frozenset[str] = field(default_factory=frozenset)
    on_time_completed: int = 0

    @classmethod
    def from_tasks(cls, tasks: Iterable[Any]) -> TaskAggregates:
        completed = gratitude = high = on_time = 0
        categories: set[str] = set()
        for task in tasks:
            if task.category:
                categories.add(task.category)
            if not task.completed:
                continue
            completed += 1
            if task.show_gratitude:
                gratitude += 1
            if task.priority == TaskPriority.HIGH:
                high += 1
            if (
                task.due_date is not None
                and task.completed_at is not None
                and task.completed_at.date() <= task.due_date
            ):
                on_time += 1
        return cls(
            completed=completed,
            gratitude_completed=gratitude,
            high_priority_completed=high,
            categories=frozenset(categories),
            on_time_completed=on_time,
        )


# ---------------------------------------------------------------------------
# Progress handlers: pure functions (aggregates, stats) → raw count
# ---------------------------------------------------------------------------
ProgressHandler = Callable[[TaskAggregates, "StatsSnapshot | None"], int]


def _completed(agg: TaskAggregates, stats: StatsSnapshot | None) -> int:
    return agg.completed


def _gratitude(agg: TaskAggregates, stats: StatsSnapshot | None) -> int:
    return agg.gratitude_completed


def _high_priority(agg: TaskAggregates, stats: StatsSnapshot | None) -> int:
    return agg.high_priority_completed


def _categories(agg: TaskAggregates, stats: StatsSnapshot | None) -> int:
    return len(agg.categories)


def _on_time(agg: TaskAggregates, stats: StatsSnapshot | None) -> int:
    return agg.on_time_completed


def _best_streak(agg: TaskAggregates, stats: StatsSnapshot | None) -> int:
    """Consecutive-day achievements read the best streak from stats.

    Without stats there is no streak information, so progress is 0.
    """
    if stats is None:
        return 0
    return max(stats.best_streak, stats.streak_count)


def _default_progress(agg: TaskAggregates, stats: StatsSnapshot | None) -> int:
    return agg.completed // 3


PROGRESS_HANDLERS: dict[str, ProgressHandler] = {
    "first_task": _completed,
    "task_master_10": _completed,
    "task_warrior_50": _completed,
    "task_legend_100": _completed,
    "productivity_god": _completed,
    "mindful_start": _gratitude,
    "gratitude_master": _gratitude,
    "spiritual_warrior": _gratitude,
    "high_priority_hero": _high_priority,
    "multitasker": _categories,
    "deadline_destroyer": _on_time,
    "daily_grind_3": _best_streak,
    "week_warrior": _best_streak,
    "unstoppable_30": _best_streak,
    "consistency_legend": _best_streak,
}


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------
def iter_achievements(
    definitions: Iterable[AchievementDefinition],
    tasks: Iterable[Any],
    *,
    stats: StatsSnapshot | None = None,
    unlocked_at: Mapping[str, datetime] | None = None,
) -> Iterator[Achievement]:
    """Yield one :class:`Achievement` per definition, in catalog order.

    Parameters
    ----------
    definitions : The catalog to project (usually ``ACHIEVEMENT_DEFINITIONS``).
    tasks : Task records (ORM rows or anything with the same attributes).
    stats : Optional stats snapshot for streak-based achievements.
    unlocked_at : Known first-unlock timestamps keyed by achievement id.
    """
    agg = TaskAggregates.from_tasks(tasks)
    unlocked_at = unlocked_at or {}
    for definition in definitions:
        handler = PROGRESS_HANDLERS.get(definition.id, _default_progress)
        raw = max(handler(agg, stats), 0)
        progress = min(raw, definition.target)
        unlocked = progress >= definition.target
        yield Achievement(
            definition=definition,
            progress=progress,
            unlocked=unlocked,
            unlocked_at=unlocked_at.get(definition.id) if unlocked else None,
        )


def evaluate_achievements(
    definitions: Iterable[AchievementDefinition],
    tasks: Iterable[Any],
    *,
    stats: StatsSnapshot | None = None,
    unlocked_at: Mapping[str, datetime] | None = None,
) -> list[Achievement]:
    """List form of :func:`iter_achievements`."""
    return list(iter_achievements(
        definitions, list(tasks), stats=stats, unlocked_at=unlocked_at,
    ))


def newly_unlocked(
    achievements: Iterable[Achievement], recorded: Iterable[str],
) -> list[AchievementDefinition]:
    """Unlocked definitions whose id is not among the *recorded* unlocks.

    Achievements that became unlocked outside a completion (a streak
    extended by the daily reset, a new task category) count until recorded.
    """
    already = set(recorded)
    earned = [a.definition for a in achievements if a.unlocked and a.id not in already]
    for definition in earned:
        logger.info("Achievement unlocked: %s", definition.id)
    return earned
