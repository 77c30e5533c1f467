"""
syntora.api.routes.achievements — Achievement catalog with live progress
==========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from syntora.api.deps import CurrentUser, get_service
from syntora.engine.achievements import ACHIEVEMENT_CATEGORIES
from syntora.services.gamification_service import GamificationService

router = APIRouter(prefix="/achievements", tags=["achievements"])


@router.get("")
def list_achievements(
    user_id: CurrentUser,
    category: str | None = Query(None),
    include_hidden: bool = Query(False),
    service: GamificationService = Depends(get_service),
):
    """The full catalog evaluated for the caller.

    Hidden achievements are omitted until unlocked unless *include_hidden*.
    """
    if category is not None and category not in ACHIEVEMENT_CATEGORIES:
        raise HTTPException(400, f"Unknown category: {category}")

    achievements = service.achievements_for_user(user_id)
    visible = [
        a for a in achievements
        if (category is None or a.definition.category == category)
        and (include_hidden or a.unlocked or not a.definition.hidden)
    ]
    return {
        "achievements": [a.to_dict() for a in visible],
        "unlocked": sum(1 for a in achievements if a.unlocked),
        "total": len(achievements),
    }
