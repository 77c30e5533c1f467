"""
syntora.services.notifications — XP / Level-up / Achievement Fan-out
=====================================================================

The gamification service publishes one :class:`XpNotification` per task
completion, and one per daily reset that unlocks a streak achievement,
*after* the transaction commits.  The hub:

- fans each notification out to registered subscriber callables, and
- keeps a bounded per-user ring buffer so a polling client can fetch
  what it missed (``GET /api/gaming/notifications``).

Architecture:
    One hub per process, injected into the service.  No persistence;
    recent notifications are lost on restart; the durable record of an
    unlock is the ``achievement_history`` table.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


@dataclass(frozen=True, slots=True)
class AchievementNotice:
    name: str
    icon: str | None
    points: int


@dataclass(frozen=True, slots=True)
class LevelUpNotice:
    new_level: int


@dataclass(frozen=True, slots=True)
class XpNotification:
    """What the dashboard needs to celebrate a completion or a streak milestone.

    ``task_id`` is None for notifications raised by the daily reset.
    """

    user_id: str
    task_id: str | None
    xp: int
    points: int
    reason: str = "Task completed"
    combo: int = 0
    achievements: tuple[AchievementNotice, ...] = ()
    level_up: LevelUpNotice | None = None
    all_day_complete: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def achievement(self) -> AchievementNotice | None:
        """First unlocked achievement, the one the toast shows."""
        return self.achievements[0] if self.achievements else None

    def to_dict(self) -> dict[str, Any]:
        first = self.achievement
        return {
            "task_id": self.task_id,
            "xp": self.xp,
            "points": self.points,
            "reason": self.reason,
            "combo": self.combo,
            "achievement": (
                {"name": first.name, "icon": first.icon, "points": first.points}
                if first else None
            ),
            "achievements": [
                {"name": a.name, "icon": a.icon, "points": a.points}
                for a in self.achievements
            ],
            "levelUp": (
                {"newLevel": self.level_up.new_level} if self.level_up else None
            ),
            "allDayComplete": self.all_day_complete,
            "created_at": self.created_at.isoformat(),
        }


Subscriber = Callable[[XpNotification], None]


class NotificationHub:
    """Thread-safe publisher with a per-user ring buffer."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = capacity
        self._recent: dict[str, deque[XpNotification]] = defaultdict(
            lambda: deque(maxlen=self._capacity)
        )
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, notification: XpNotification) -> None:
        with self._lock:
            self._recent[notification.user_id].append(notification)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(notification)
            except Exception:
                logger.exception(
                    "Notification subscriber failed for user %s", notification.user_id,
                )

    def recent(self, user_id: str, limit: int = 20) -> list[XpNotification]:
        """Most recent notifications for *user_id*, newest last."""
        with self._lock:
            snapshot = list(self._recent.get(user_id, ()))
        if limit and len(snapshot) > limit:
            snapshot = snapshot[-limit:]
        return snapshot

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._recent.pop(user_id, None)
