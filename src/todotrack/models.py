"""Data models for the To Do time tracker.

Task status keys are the raw Graph values ("notStarted", "inProgress",
"completed") so they can be written back without translation. User-facing
labels are rendered by the CLI/theme layer.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

NOT_STARTED = "notStarted"
IN_PROGRESS = "inProgress"
COMPLETED = "completed"

SUMMARY_TITLE = "TodaySummary"


@dataclass(frozen=True)
class TimeInterval:
    """One worked interval; both ends are naive local datetimes."""
    start: datetime
    end: datetime

    @property
    def minutes(self) -> float:
        return abs((self.end - self.start).total_seconds()) / 60.0


@dataclass
class TimeLog:
    """Structured view of a task body used as an append-only time log.

    Fields:
        estimate: Free-text estimate from the first line (None if absent).
        entries: Completed intervals in log order.
        open_start: Start of the interval currently being worked, if any.
            Always the last entry line of the body.
        total: Minutes recorded by the ``Total:`` annotation written when the
            task was finished (None otherwise).
    """
    estimate: Optional[str] = None
    entries: List[TimeInterval] = field(default_factory=list)
    open_start: Optional[datetime] = None
    total: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.open_start is not None


@dataclass(frozen=True)
class TrackedTask:
    """Local index entry produced by a pull of today's tasks."""
    list_id: str
    task_id: str
    title: str
    list_name: str = ""


@dataclass(frozen=True)
class TrackerState:
    working_index: Optional[int] = None


class StartResult(Enum):
    STARTED = "started"
    RESUMED = "resumed"
    ALREADY_DONE = "already-done"


@dataclass(frozen=True)
class TaskDetail:
    """Read-only snapshot returned by ``TaskTracker.display``."""
    task: TrackedTask
    status: str
    importance: str
    body: str
    log: TimeLog
    today_minutes: float
    all_minutes: float


@dataclass(frozen=True)
class SummaryInput:
    task: TrackedTask
    body: str
    status: str
    importance: str


@dataclass(frozen=True)
class SummaryRow:
    title: str
    importance: str
    status: str
    estimate: str
    today_minutes: float
    all_minutes: float


@dataclass
class DailySummary:
    total_count: int = 0
    finished_count: int = 0
    in_progress_count: int = 0
    left_count: int = 0
    total_minutes_today: float = 0.0
    rows: List[SummaryRow] = field(default_factory=list)

    def __str__(self) -> str:
        return (f'Total: {self.total_count}, Finished: {self.finished_count}, '
                f'In progress: {self.in_progress_count}, Left: {self.left_count}')
