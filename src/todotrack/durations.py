"""Elapsed-time aggregation over decoded time logs.

"Today" is the local calendar day containing ``now``: an interval is counted
for today when its start falls in [local midnight, next local midnight).
"""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional, Tuple

from todotrack.models import TimeInterval, TimeLog


def day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight, midnight + timedelta(days=1)


def total_minutes(log: TimeLog, is_finished: bool = False, today_only: bool = False,
                  now: Optional[datetime] = None) -> float:
    """Sum worked minutes in ``log``.

    Reversed pairs count by absolute value. An unfinished log with an open
    interval also counts the running time up to ``now``; a finished log only
    counts completed intervals (the ``Total:`` annotation is never summed).
    """
    now = now or datetime.now()
    lower, upper = day_bounds(now)

    def counted(start: datetime) -> bool:
        return not today_only or lower <= start < upper

    total = 0.0
    for entry in log.entries:
        if counted(entry.start):
            total += entry.minutes
    if not is_finished and log.open_start is not None and counted(log.open_start):
        total += TimeInterval(log.open_start, now).minutes
    return total


def estimate(log: TimeLog) -> str:
    return log.estimate or ''


def format_minutes(minutes: float) -> str:
    return f'{minutes:.1f}'
