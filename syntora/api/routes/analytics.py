"""
syntora.api.routes.analytics — Historical analytics
=====================================================
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from syntora.api.deps import CurrentUser, get_service
from syntora.database.engine import run_db
from syntora.services.analytics_service import MAX_LOOKBACK, get_analytics
from syntora.services.gamification_service import GamificationService

router = APIRouter(tags=["analytics"])
logger = logging.getLogger(__name__)


@router.get("/supabase/functions/get-analytics")
async def analytics(
    user_id: CurrentUser,
    period: Literal["weekly", "monthly"] = Query("weekly"),
    lookback: int = Query(12, ge=1, le=MAX_LOOKBACK),
    service: GamificationService = Depends(get_service),
):
    """Weekly or monthly history buckets plus unlocked achievements."""
    try:
        return await run_db(
            get_analytics, service.engine, user_id, period, lookback, service.today(),
        )
    except Exception:
        logger.exception("Analytics failed for user %s", user_id)
        return JSONResponse(status_code=500, content={"error": "Failed to get analytics"})
