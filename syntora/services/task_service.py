"""
syntora.services.task_service — Task Records
=============================================

The task reads the engine consumes (``list_tasks`` is the filterable
task query) plus the small amount of task plumbing needed to drive
completions from the API.  Every query is scoped to the owning user.

Completion state is *not* changed here: that happens inside
:meth:`GamificationService.complete_task` so the task flip and the
stats update share one transaction.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from syntora.database.engine import get_session
from syntora.database.models import Task, TaskPriority
from syntora.services.errors import TaskNotFoundError

logger = logging.getLogger(__name__)


def create_task(
    engine: Engine,
    *,
    user_id: str,
    title: str,
    priority: TaskPriority | str = TaskPriority.MEDIUM,
    show_gratitude: bool = False,
    category: str | None = None,
    due_date: date | None = None,
    description: str | None = None,
) -> Task:
    """Insert a new (incomplete) task and return it detached."""
    with get_session(engine) as session:
        task = Task(
            user_id=user_id,
            title=title,
            priority=TaskPriority(priority).value,
            show_gratitude=show_gratitude,
            category=category,
            due_date=due_date,
            description=description,
            completed=False,
        )
        session.add(task)
        session.flush()
        session.refresh(task)
        session.expunge(task)
    logger.info("Task created: %s for user %s", task.id, user_id)
    return task


def get_owned_task(session: Session, user_id: str, task_id: str) -> Task:
    """Fetch *task_id* if it belongs to *user_id*, else raise."""
    task = session.get(Task, task_id)
    if task is None or task.user_id != user_id:
        raise TaskNotFoundError(task_id)
    return task


def get_task(engine: Engine, user_id: str, task_id: str) -> Task:
    with Session(engine, expire_on_commit=False) as session:
        task = get_owned_task(session, user_id, task_id)
        session.expunge(task)
        return task


def query_tasks(
    session: Session,
    user_id: str,
    *,
    completed: bool | None = None,
    due_on: date | None = None,
    category: str | None = None,
) -> list[Task]:
    """Filtered task list using an existing session."""
    stmt = select(Task).where(Task.user_id == user_id)
    if completed is not None:
        stmt = stmt.where(Task.completed.is_(completed))
    if due_on is not None:
        stmt = stmt.where(Task.due_date == due_on)
    if category is not None:
        stmt = stmt.where(Task.category == category)
    stmt = stmt.order_by(Task.created_at, Task.id)
    return list(session.scalars(stmt).all())


def list_tasks(
    engine: Engine,
    user_id: str,
    *,
    completed: bool | None = None,
    due_on: date | None = None,
    category: str | None = None,
) -> list[Task]:
    """Filtered task list; rows are detached and safe to use after return."""
    with Session(engine, expire_on_commit=False) as session:
        tasks = query_tasks(
            session, user_id, completed=completed, due_on=due_on, category=category,
        )
        session.expunge_all()
        return tasks


def delete_task(engine: Engine, user_id: str, task_id: str) -> None:
    """Delete a task.  Points already earned from it are kept."""
    with get_session(engine) as session:
        task = get_owned_task(session, user_id, task_id)
        session.delete(task)
    logger.info("Task deleted: %s for user %s", task_id, user_id)


def task_to_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "user_id": task.user_id,
        "title": task.title,
        "description": task.description,
        "completed": task.completed,
        "show_gratitude": task.show_gratitude,
        "priority": task.priority,
        "category": task.category,
        "due_date": task.due_date.isoformat() if task.due_date else None,
        "completed_at": task.completed_at.isoformat() if task.completed_at else None,
        "created_at": task.created_at.isoformat() if task.created_at else None,
    }
