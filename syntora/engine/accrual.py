"""
syntora.engine.accrual — Point & XP Accrual Pipeline
=====================================================

Pure calculation, no DB I/O.  The service layer reads a
:class:`StatsSnapshot`, runs one of the functions below, and writes the
resulting fields back in a single compare-and-swap update.

Pipeline stages (completion):
  TaskCompletionEvent → Base Points → Combo → Combo Bonus → XP → Level-up → AccrualResult

Combo rule: a completion continues the chain when the previous completion
happened at most ``combo_window_minutes`` earlier; otherwise the chain
restarts at 1.  Un-completing a task and the daily reset both set it to 0.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from syntora.constants import xp_for_level
from syntora.engine.events import StatsSnapshot, TaskCompletionEvent, base_points

if TYPE_CHECKING:
    from syntora.config import GamificationConfig

logger = logging.getLogger(__name__)

__all__ = [
    "AccrualResult",
    "apply_xp",
    "calculate_accrual",
    "calculate_reversal",
    "combo_bonus",
    "next_combo",
]


# ---------------------------------------------------------------------------
# AccrualResult: output of the pipeline
# ---------------------------------------------------------------------------
@dataclass
class AccrualResult:
    """New stats values plus the deltas that produced them."""

    points: int = 0
    xp_gained: int = 0
    combo: int = 0
    today_points: int = 0
    level: int = 1
    xp: int = 0
    xp_to_next: int = 100
    leveled_up: bool = False
    new_level: int | None = None
    last_completed_at: datetime | None = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Stage: combo
# ---------------------------------------------------------------------------
def next_combo(
    snapshot: StatsSnapshot, event: TaskCompletionEvent, cfg: GamificationConfig,
) -> int:
    """Combo value after *event* under the time-window rule."""
    if snapshot.combo <= 0 or snapshot.last_completed_at is None:
        return 1
    gap = _as_utc(event.timestamp) - _as_utc(snapshot.last_completed_at)
    # A negative gap means events arrived out of order; keep the chain
    if gap <= timedelta(minutes=cfg.combo_window_minutes):
        return snapshot.combo + 1
    return 1


def combo_bonus(prior_combo: int, cfg: GamificationConfig) -> int:
    """Bonus points for completing a task while a combo of *prior_combo* is live."""
    if prior_combo >= cfg.combo_bonus_threshold:
        return cfg.combo_bonus
    return 0


# ---------------------------------------------------------------------------
# Stage: XP + level-up
# ---------------------------------------------------------------------------
def apply_xp(
    level: int, xp: int, xp_to_next: int, gained: int, cfg: GamificationConfig,
) -> tuple[int, int, int]:
    """Add *gained* XP and roll over as many levels as it pays for.

    XP is tracked within the current level: crossing ``xp_to_next`` carries
    the remainder into the next level, whose threshold comes from
    :func:`~syntora.constants.xp_for_level`.

    Returns (level, xp, xp_to_next).
    """
    if xp_to_next <= 0:
        xp_to_next = xp_for_level(level, cfg)
    xp += gained
    while xp >= xp_to_next:
        xp -= xp_to_next
        level += 1
        xp_to_next = xp_for_level(level, cfg)
    return level, xp, xp_to_next


# ---------------------------------------------------------------------------
# Full pipelines
# ---------------------------------------------------------------------------
def calculate_accrual(
    snapshot: StatsSnapshot,
    event: TaskCompletionEvent,
    cfg: GamificationConfig,
    *,
    bonus_xp: int = 0,
) -> AccrualResult:
    """Run the completion pipeline for one task.

    Parameters
    ----------
    snapshot : stats before this completion
    event : the completion (``event.completed`` must be True)
    cfg : gameplay tuning
    bonus_xp : extra XP granted alongside this completion (all-day bonus)
    """
    if not event.completed:
        raise ValueError("calculate_accrual expects a completion event")

    combo = next_combo(snapshot, event, cfg)
    points = base_points(event, cfg) + combo_bonus(combo - 1, cfg)
    xp_gained = math.floor(points * cfg.xp_multiplier) + bonus_xp

    level, xp, xp_to_next = apply_xp(
        snapshot.level, snapshot.xp, snapshot.xp_to_next, xp_gained, cfg,
    )
    leveled_up = level > snapshot.level

    if leveled_up:
        logger.debug(
            "User %s levelled %d → %d", snapshot.user_id, snapshot.level, level,
        )

    return AccrualResult(
        points=points,
        xp_gained=xp_gained,
        combo=combo,
        today_points=snapshot.today_points + points,
        level=level,
        xp=xp,
        xp_to_next=xp_to_next,
        leveled_up=leveled_up,
        new_level=level if leveled_up else None,
        last_completed_at=event.timestamp,
    )


def calculate_reversal(
    snapshot: StatsSnapshot,
    event: TaskCompletionEvent,
    cfg: GamificationConfig,
    *,
    bonus_xp: int = 0,
) -> AccrualResult:
    """Undo what completing the task earned.

    Base points are removed, clamped so ``today_points`` never goes
    negative.  The XP those base points paid, plus *bonus_xp* (an all-day
    bonus the day no longer qualifies for), is taken back from the current
    level only: XP stops at 0 and the level never drops.  The combo chain
    is broken.
    """
    points = base_points(event, cfg)
    removed = min(points, snapshot.today_points)
    xp_lost = min(math.floor(points * cfg.xp_multiplier) + bonus_xp, snapshot.xp)
    return AccrualResult(
        points=-removed,
        xp_gained=-xp_lost,
        combo=0,
        today_points=snapshot.today_points - removed,
        level=snapshot.level,
        xp=snapshot.xp - xp_lost,
        xp_to_next=snapshot.xp_to_next,
        last_completed_at=snapshot.last_completed_at,
    )
