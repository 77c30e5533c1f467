"""
syntora.constants — Shared Constants & Helpers
================================================

Single source of truth for the point table, history estimates and the
leveling formula.  Import from here instead of duplicating in the engine,
services and API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from syntora.config import GamificationConfig

# ---------------------------------------------------------------------------
# Daily history estimates (archived at reset time)
# ---------------------------------------------------------------------------
POINTS_PER_TASK_ESTIMATE = 15
HISTORY_XP_PER_POINT = 2
MAX_PRODUCTIVITY_SCORE = 10
POINTS_PER_PRODUCTIVITY_UNIT = 10
DEFAULT_ENERGY_LEVEL = 5

# ---------------------------------------------------------------------------
# Fresh stats row
# ---------------------------------------------------------------------------
DEFAULT_LEVEL = 1
DEFAULT_VOLUME = 75


# ---------------------------------------------------------------------------
# Leveling formula: THE single canonical implementation
# ---------------------------------------------------------------------------
def xp_for_level(level: int, cfg: GamificationConfig | None = None) -> int:
    """XP needed to advance *from* ``level`` to ``level + 1``.

    Uses the exponential formula::

        required = level_base * (level_factor ** (level - 1))

    so level 1 needs 100 XP, level 2 needs 150, level 3 needs 225 with
    the defaults.  Falls back to (100, 1.5) if no config is given.
    """
    if cfg is not None:
        base = cfg.level_base
        factor = cfg.level_factor
    else:
        base = 100
        factor = 1.5
    return int(base * (factor ** (max(level, 1) - 1)))
