"""
syntora.config — YAML Configuration Loader
===========================================

**Why this file exists:**
Secrets (database URL, JWT signing secret) come from the environment.
Everything else, the app identity and all gameplay tuning (point values,
combo window, leveling curve, reset timezone), is read from ``config.yaml``
into frozen dataclasses so the engine never touches raw dicts.

Usage::

    from syntora.config import load_config

    cfg = load_config()                    # reads ./config.yaml by default
    print(cfg.app_name)                    # "Syntora"
    print(cfg.gamification.combo_window_minutes)  # 60
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


# ---------------------------------------------------------------------------
# Gameplay tuning
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GamificationConfig:
    """Tuning knobs for the accrual engine and the daily reset.

    Every field has a default matching the behaviour users already know
    from the dashboard, so a ``config.yaml`` only needs to list overrides.
    """

    # Points per completed task
    gratitude_points: int = 25
    high_priority_points: int = 20
    medium_priority_points: int = 15
    low_priority_points: int = 10

    # Combo
    combo_window_minutes: int = 60
    combo_bonus_threshold: int = 3
    combo_bonus: int = 5

    # XP / levels
    xp_multiplier: float = 1.5
    level_base: int = 100
    level_factor: float = 1.5
    all_day_bonus_xp: int = 100

    # Daily reset
    timezone: str = "UTC"
    reset_hour: int = 0
    reset_minute: int = 0

    # Optimistic concurrency
    max_write_retries: int = 3


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SyntoraConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str = "Syntora"

    # Dashboard
    api_port: int = 8000

    # Run the daily-reset scheduler inside the API process
    scheduler_enabled: bool = False

    # Notifications kept per user for polling clients
    notification_buffer_size: int = 50

    gamification: GamificationConfig = field(default_factory=GamificationConfig)

    @classmethod
    def default(cls) -> SyntoraConfig:
        return cls()


def _build_gamification(raw: dict | None) -> GamificationConfig:
    if not raw:
        return GamificationConfig()
    defaults = {f.name: f.default for f in fields(GamificationConfig)}
    unknown = set(raw) - set(defaults)
    if unknown:
        raise KeyError(f"Unknown gamification settings: {', '.join(sorted(unknown))}")

    values: dict = {}
    for key, value in raw.items():
        # Coerce through the default's type so "60" and 60 both work
        values[key] = type(defaults[key])(value)
    return GamificationConfig(**values)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> SyntoraConfig:
    """Read *path* and return a :class:`SyntoraConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to the
        ``SYNTORA_CONFIG`` env var, then ``config.yaml`` in the current
        working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If the ``gamification`` section contains an unknown key.
    """
    config_path = Path(path or os.getenv("SYNTORA_CONFIG") or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return SyntoraConfig(
        app_name=raw.get("app_name", "Syntora"),
        api_port=int(raw.get("api_port", 8000)),
        scheduler_enabled=bool(raw.get("scheduler_enabled", False)),
        notification_buffer_size=int(raw.get("notification_buffer_size", 50)),
        gamification=_build_gamification(raw.get("gamification")),
    )


def load_config_or_default() -> SyntoraConfig:
    """Like :func:`load_config`, but falls back to built-in defaults.

    Only an *implicit* missing ``config.yaml`` is tolerated; a path named
    by ``SYNTORA_CONFIG`` must exist.
    """
    if not os.getenv("SYNTORA_CONFIG") and not Path(DEFAULT_CONFIG_PATH).exists():
        logger.warning("No %s found; using built-in defaults", DEFAULT_CONFIG_PATH)
        return SyntoraConfig.default()
    return load_config()
