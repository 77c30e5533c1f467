"""
syntora.api.routes.tasks — Task records & completion transitions
==================================================================
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from syntora.api.deps import CurrentUser, get_service
from syntora.database.engine import run_db
from syntora.database.models import TaskPriority
from syntora.services import task_service
from syntora.services.errors import StatsConflictError, TaskNotFoundError
from syntora.services.gamification_service import (
    CompletionOutcome,
    GamificationService,
    stats_to_dict,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    show_gratitude: bool = False
    category: str | None = None
    due_date: date | None = None


def _outcome_dict(outcome: CompletionOutcome) -> dict:
    return {
        "task": task_service.task_to_dict(outcome.task),
        "stats": stats_to_dict(outcome.stats),
        "changed": outcome.changed,
        "notification": outcome.notification.to_dict() if outcome.notification else None,
    }


@router.get("")
def list_tasks(
    user_id: CurrentUser,
    completed: bool | None = Query(None),
    due_on: date | None = Query(None),
    category: str | None = Query(None),
    service: GamificationService = Depends(get_service),
):
    tasks = task_service.list_tasks(
        service.engine, user_id, completed=completed, due_on=due_on, category=category,
    )
    return [task_service.task_to_dict(t) for t in tasks]


@router.post("", status_code=201)
def create_task(
    body: TaskCreate,
    user_id: CurrentUser,
    service: GamificationService = Depends(get_service),
):
    task = task_service.create_task(service.engine, user_id=user_id, **body.model_dump())
    return task_service.task_to_dict(task)


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    user_id: CurrentUser,
    service: GamificationService = Depends(get_service),
):
    try:
        task_service.delete_task(service.engine, user_id, task_id)
    except TaskNotFoundError:
        raise HTTPException(404, "Task not found")
    return {"ok": True}


@router.post("/{task_id}/complete")
async def complete_task(
    task_id: str,
    user_id: CurrentUser,
    service: GamificationService = Depends(get_service),
):
    """Complete a task and accrue points, combo and XP."""
    try:
        outcome = await run_db(service.complete_task, user_id, task_id)
    except TaskNotFoundError:
        raise HTTPException(404, "Task not found")
    except StatsConflictError as exc:
        raise HTTPException(409, str(exc))
    return _outcome_dict(outcome)


@router.post("/{task_id}/uncomplete")
async def uncomplete_task(
    task_id: str,
    user_id: CurrentUser,
    service: GamificationService = Depends(get_service),
):
    try:
        outcome = await run_db(service.uncomplete_task, user_id, task_id)
    except TaskNotFoundError:
        raise HTTPException(404, "Task not found")
    except StatsConflictError as exc:
        raise HTTPException(409, str(exc))
    return _outcome_dict(outcome)
