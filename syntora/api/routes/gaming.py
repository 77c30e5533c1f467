"""
syntora.api.routes.gaming — Stats, daily reset, preferences & notifications
=============================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from syntora.api.deps import CurrentUser, get_service
from syntora.database.engine import run_db
from syntora.services.errors import StatsConflictError, StatsNotFoundError
from syntora.services.gamification_service import GamificationService, stats_to_dict

router = APIRouter(tags=["gaming"])
logger = logging.getLogger(__name__)


class SettingsUpdate(BaseModel):
    sound_enabled: bool | None = None
    volume: int | None = Field(default=None, ge=0, le=100)
    animations_enabled: bool | None = None


# ---------------------------------------------------------------------------
# POST /supabase/functions/daily-reset
# ---------------------------------------------------------------------------
@router.post("/supabase/functions/daily-reset")
async def daily_reset(
    user_id: CurrentUser,
    service: GamificationService = Depends(get_service),
):
    """Close out the caller's previous day.  Safe to call repeatedly."""
    try:
        outcome = await run_db(service.daily_reset, user_id)
    except StatsNotFoundError:
        return JSONResponse(status_code=404, content={"error": "No gaming stats found"})
    except Exception:
        logger.exception("Daily reset failed for user %s", user_id)
        return JSONResponse(status_code=500, content={"error": "Failed to reset daily stats"})

    return {
        "message": outcome.message,
        "stats": stats_to_dict(outcome.stats),
        "previousDayPoints": outcome.previous_day_points,
    }


# ---------------------------------------------------------------------------
# /gaming
# ---------------------------------------------------------------------------
@router.get("/gaming/stats")
async def get_stats(
    user_id: CurrentUser,
    service: GamificationService = Depends(get_service),
):
    stats = await run_db(service.get_or_create_stats, user_id)
    return stats_to_dict(stats)


@router.patch("/gaming/settings")
def update_settings(
    body: SettingsUpdate,
    user_id: CurrentUser,
    service: GamificationService = Depends(get_service),
):
    """Sound, volume and animation preferences."""
    try:
        stats = service.update_settings(user_id, **body.model_dump(exclude_none=True))
    except StatsConflictError as exc:
        raise HTTPException(409, str(exc))
    return stats_to_dict(stats)


@router.get("/gaming/notifications")
def recent_notifications(
    user_id: CurrentUser,
    limit: int = Query(20, ge=1, le=100),
    service: GamificationService = Depends(get_service),
):
    """Recent XP / level-up / achievement notifications, newest last."""
    return {
        "notifications": [n.to_dict() for n in service.hub.recent(user_id, limit)],
    }
