"""
syntora.services.errors — Domain exceptions raised by the service layer.

Database failures are not wrapped: ``SQLAlchemyError`` propagates unchanged
and the API turns it into a 500.
"""

from __future__ import annotations


class SyntoraError(Exception):
    """Base class for service-level failures."""


class StatsNotFoundError(SyntoraError):
    """No ``gaming_stats`` row exists for the user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No gaming stats found for user {user_id}")
        self.user_id = user_id


class TaskNotFoundError(SyntoraError):
    """The task does not exist or belongs to another user."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class StatsConflictError(SyntoraError):
    """A compare-and-swap write kept losing to concurrent writers."""

    def __init__(self, user_id: str, attempts: int) -> None:
        super().__init__(
            f"Stats for user {user_id} changed concurrently; gave up after {attempts} attempts"
        )
        self.user_id = user_id
        self.attempts = attempts
