"""Tracker logic: today's task index, the working task, start/stop.

States: Idle (no working index) and Working(index). Only start() and stop()
move between them, and only after the store accepted the new task body, so
a failed request never leaves a half-applied transition behind.

The store is any object with the GraphClient coroutine methods used here
(list_task_lists, list_tasks, get_task, update_task, create_event).
"""
from __future__ import annotations
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from todotrack.durations import day_bounds, total_minutes
from todotrack.errors import SOURCE_ERRORS, IndexOutOfRange, InvalidState, SourceUnavailable
from todotrack.models import (
    COMPLETED, IN_PROGRESS, NOT_STARTED, SUMMARY_TITLE,
    StartResult, TaskDetail, TimeInterval, TrackedTask, TrackerState,
)
from todotrack.timelog import append_open_start, append_total, close_open_interval, decode, is_log_line

logger = logging.getLogger(__name__)

EstimatePrompt = Callable[[TrackedTask], str]


def due_today_filter(now: datetime) -> str:
    """OData filter selecting tasks due on the local day containing ``now``."""
    lower, upper = day_bounds(now)
    return (f"dueDateTime/dateTime ge '{lower.isoformat()}' "
            f"and dueDateTime/dateTime lt '{upper.isoformat()}'")


def task_body(raw: Dict[str, Any]) -> str:
    return (raw.get('body') or {}).get('content') or ''


def _clean_estimate(text: Optional[str]) -> str:
    estimate = ' '.join((text or '').split())
    if estimate and is_log_line(estimate):
        # would decode as an entry instead of the estimate
        return f'Estimate: {estimate}'
    return estimate


async def gather_all(*coroutines: Awaitable[Any]) -> List[Any]:
    """Await ``coroutines`` together; once all settle, re-raise the first failure."""
    results = await asyncio.gather(*coroutines, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class TaskTracker:
    def __init__(self, store: Any, ask_estimate: Optional[EstimatePrompt] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 calendar_events: bool = False, calendar_id: Optional[str] = None):
        self.store = store
        self.ask_estimate: EstimatePrompt = ask_estimate or (lambda task: '')
        self.clock = clock
        self.calendar_events = calendar_events
        self.calendar_id = calendar_id
        self._tasks: List[TrackedTask] = []
        self._working: Optional[int] = None

    # -------------------- queries --------------------
    @property
    def tasks(self) -> Tuple[TrackedTask, ...]:
        return tuple(self._tasks)

    @property
    def state(self) -> TrackerState:
        return TrackerState(self._working)

    @property
    def is_working(self) -> bool:
        return self._working is not None

    @property
    def working_task(self) -> Optional[TrackedTask]:
        return self._tasks[self._working] if self._working is not None else None

    def _task_at(self, index: int) -> TrackedTask:
        if index < 0 or index >= len(self._tasks):
            raise IndexOutOfRange(index, len(self._tasks))
        return self._tasks[index]

    # -------------------- store access --------------------
    async def _fetch(self, task: TrackedTask, operation: str) -> Dict[str, Any]:
        try:
            return await self.store.get_task(task.list_id, task.task_id)
        except SOURCE_ERRORS as e:
            raise SourceUnavailable(operation, e) from e

    async def _persist(self, task: TrackedTask, body: str, status: str, operation: str) -> None:
        try:
            await self.store.update_task(task.list_id, task.task_id, body, status)
        except SOURCE_ERRORS as e:
            raise SourceUnavailable(operation, e) from e

    # -------------------- pull --------------------
    async def pull_today(self) -> List[TrackedTask]:
        """Rebuild the local index from every list's tasks due today.

        Lists are read in parallel; the index keeps list order, then task
        order within each list.
        """
        if self._working is not None:
            raise InvalidState('Finish the current task before refreshing.')
        query = due_today_filter(self.clock())
        try:
            task_lists = await self.store.list_task_lists()
            per_list = await gather_all(
                *(self.store.list_tasks(tl['id'], query) for tl in task_lists)
            )
        except SOURCE_ERRORS as e:
            raise SourceUnavailable("pulling today's tasks", e) from e
        pulled: List[TrackedTask] = []
        for task_list, raw_tasks in zip(task_lists, per_list):
            for raw in raw_tasks:
                title = raw.get('title') or '<untitled>'
                if title == SUMMARY_TITLE:
                    continue
                pulled.append(TrackedTask(
                    list_id=task_list['id'],
                    task_id=raw['id'],
                    title=title,
                    list_name=task_list.get('displayName') or '',
                ))
        self._tasks = pulled
        logger.info('pulled %d task(s) due today from %d list(s)', len(pulled), len(task_lists))
        return list(pulled)

    # -------------------- transitions --------------------
    async def start(self, index: int) -> StartResult:
        if self._working is not None:
            raise InvalidState(f'Task #{self._working} is in progress; stop it first.')
        task = self._task_at(index)
        raw = await self._fetch(task, 'starting task')
        status = raw.get('status') or NOT_STARTED
        body = task_body(raw)
        if status == COMPLETED:
            logger.info('%r is already completed', task.title)
            return StartResult.ALREADY_DONE

        log = decode(body)
        if log.is_open:
            if status != IN_PROGRESS:
                logger.warning('%r has an open interval but status %s; marking it inProgress',
                               task.title, status)
                await self._persist(task, body, IN_PROGRESS, 'starting task')
            logger.info('continuing %r (open since %s)', task.title, log.open_start)
            self._working = index
            return StartResult.RESUMED

        if status == NOT_STARTED and log.estimate is None:
            estimate = _clean_estimate(self.ask_estimate(task))
            if estimate:
                body = f'{estimate}\n{body}' if body.strip() else estimate
        body = append_open_start(body, self.clock())
        await self._persist(task, body, IN_PROGRESS, 'starting task')
        self._working = index
        logger.info('started %r', task.title)
        return StartResult.STARTED

    async def stop(self, finished: bool = False) -> TimeInterval:
        """Close the open interval of the working task and return to Idle.

        With ``finished`` the running total is appended and the task is
        completed; otherwise it stays inProgress (paused).
        """
        if self._working is None:
            raise InvalidState('No task is in progress.')
        task = self._tasks[self._working]
        raw = await self._fetch(task, 'stopping task')
        now = self.clock().replace(microsecond=0)
        body = task_body(raw)
        opened = decode(body).open_start
        body = close_open_interval(body, now)
        if finished:
            minutes = total_minutes(decode(body), is_finished=True, now=now)
            body = append_total(body, round(minutes, 1))
        status = COMPLETED if finished else IN_PROGRESS
        await self._persist(task, body, status, 'stopping task')
        self._working = None
        interval = TimeInterval(opened or now, now)
        logger.info('%s %r after %.1f min', 'finished' if finished else 'paused',
                    task.title, interval.minutes)
        if self.calendar_events:
            await self._record_event(task, interval, raw.get('importance') or 'normal')
        return interval

    async def _record_event(self, task: TrackedTask, interval: TimeInterval, importance: str) -> None:
        categories = [task.list_name] if task.list_name else None
        try:
            await self.store.create_event(self.calendar_id, task.title, interval.start,
                                          interval.end, importance, categories)
        except SOURCE_ERRORS as e:
            logger.warning('could not add calendar event for %r: %s', task.title, e)

    # -------------------- display --------------------
    async def display(self, index: int) -> TaskDetail:
        task = self._task_at(index)
        raw = await self._fetch(task, 'displaying task')
        status = raw.get('status') or NOT_STARTED
        body = task_body(raw)
        log = decode(body)
        now = self.clock()
        finished = status == COMPLETED
        return TaskDetail(
            task=task,
            status=status,
            importance=raw.get('importance') or 'normal',
            body=body,
            log=log,
            today_minutes=total_minutes(log, finished, True, now),
            all_minutes=total_minutes(log, finished, False, now),
        )

    def __str__(self) -> str:
        working = self.working_task
        return (f'{len(self._tasks)} task(s) today, '
                f'working on: {working.title if working else "nothing"}')
