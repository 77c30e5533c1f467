"""
syntora.services.analytics_service — Analytics Read Model
==========================================================

Reads ``daily_stats_history`` for the requested lookback window and rolls
it up via :mod:`syntora.engine.analytics`.  Also returns the user's
achievement unlocks recorded in the same window and their current stats
row.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from syntora.database.models import AchievementHistory, DailyStatsHistory, GamingStats
from syntora.engine.analytics import PERIODS, build_buckets, lookback_start
from syntora.services.gamification_service import stats_to_dict

MAX_LOOKBACK = 60


def _achievement_to_dict(row: AchievementHistory) -> dict:
    return {
        "achievement_id": row.achievement_id,
        "achievement_name": row.achievement_name,
        "achievement_icon": row.achievement_icon,
        "points_awarded": row.points_awarded,
        "unlocked_at": row.unlocked_at.isoformat() if row.unlocked_at else None,
    }


def get_analytics(
    engine: Engine,
    user_id: str,
    period: str = "weekly",
    lookback: int = 12,
    today: date | None = None,
) -> dict:
    """Bucketed history, unlocked achievements and current stats for a user.

    ``currentStats`` is ``None`` when the user has never been active.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown analytics period: {period!r}")
    if not 1 <= lookback <= MAX_LOOKBACK:
        raise ValueError(f"lookback must be between 1 and {MAX_LOOKBACK}")
    today = today or date.today()
    since = lookback_start(period, lookback, today)

    with Session(engine) as session:
        history = session.scalars(
            select(DailyStatsHistory)
            .where(
                DailyStatsHistory.user_id == user_id,
                DailyStatsHistory.date >= since,
            )
            .order_by(DailyStatsHistory.date)
        ).all()
        achievements = session.scalars(
            select(AchievementHistory)
            .where(
                AchievementHistory.user_id == user_id,
                AchievementHistory.unlocked_at >= datetime.combine(since, time.min, tzinfo=UTC),
            )
            .order_by(AchievementHistory.unlocked_at.desc())
        ).all()
        stats = session.scalar(select(GamingStats).where(GamingStats.user_id == user_id))

        return {
            "analytics": build_buckets(period, history, lookback, today),
            "achievements": [_achievement_to_dict(a) for a in achievements],
            "currentStats": stats_to_dict(stats) if stats is not None else None,
        }
