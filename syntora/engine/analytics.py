"""
syntora.engine.analytics — History Buckets
===========================================

Rolls ``daily_stats_history`` rows up into weekly (Sunday-start) or
calendar-month buckets for the analytics dashboard.  Buckets are returned
oldest first; empty buckets are still emitted so charts have a fixed axis.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Any

PERIODS = ("weekly", "monthly")


def _week_start(day: date) -> date:
    # date.weekday(): Monday=0 … Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _shift_month(day: date, months: int) -> date:
    """First day of the month *months* away from *day*'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _summarize(entries: Sequence[Any]) -> dict:
    total_points = sum(e.points_earned or 0 for e in entries)
    total_tasks = sum(e.tasks_completed or 0 for e in entries)
    average = (
        sum(e.productivity_score or 0 for e in entries) / len(entries)
        if entries else 0
    )
    return {
        "total_points": total_points,
        "total_tasks": total_tasks,
        "average_productivity": average,
        "days_active": len(entries),
    }


def _in_range(history: Iterable[Any], start: date, end: date) -> list[Any]:
    return [e for e in history if start <= e.date <= end]


def weekly_buckets(history: Iterable[Any], lookback: int, today: date) -> list[dict]:
    """*lookback* Sunday-to-Saturday weeks ending with the current one."""
    history = list(history)
    current = _week_start(today)
    weeks: list[dict] = []
    for i in range(lookback):
        start = current - timedelta(days=7 * i)
        end = start + timedelta(days=6)
        bucket = {"week_start": start.isoformat()}
        bucket.update(_summarize(_in_range(history, start, end)))
        bucket["week_number"] = i + 1
        weeks.insert(0, bucket)
    return weeks


def monthly_buckets(history: Iterable[Any], lookback: int, today: date) -> list[dict]:
    """*lookback* calendar months ending with the current one."""
    history = list(history)
    months: list[dict] = []
    for i in range(lookback):
        start = _shift_month(today, -i)
        end = start.replace(day=calendar.monthrange(start.year, start.month)[1])
        entries = _in_range(history, start, end)
        bucket = {"month_start": start.isoformat()}
        bucket.update(_summarize(entries))
        bucket["best_day_points"] = max(
            (e.points_earned or 0 for e in entries), default=0,
        )
        months.insert(0, bucket)
    return months


def lookback_start(period: str, lookback: int, today: date) -> date:
    """First date covered by the oldest bucket for *period*."""
    if period == "weekly":
        return _week_start(today) - timedelta(days=7 * (lookback - 1))
    if period == "monthly":
        return _shift_month(today, -(lookback - 1))
    raise ValueError(f"Unknown analytics period: {period!r}")


def build_buckets(
    period: str, history: Iterable[Any], lookback: int, today: date,
) -> list[dict]:
    if period == "weekly":
        return weekly_buckets(history, lookback, today)
    if period == "monthly":
        return monthly_buckets(history, lookback, today)
    raise ValueError(f"Unknown analytics period: {period!r}")
