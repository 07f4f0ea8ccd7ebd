"""Daily summary: counts, per-task minutes and the fixed-width report.

The rendered report is stored back in To Do as a task titled "TodaySummary"
(due local midnight) and can also be mailed. Nothing is kept locally.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from todotrack.durations import day_bounds, estimate, format_minutes, total_minutes
from todotrack.errors import SOURCE_ERRORS, SourceUnavailable
from todotrack.models import (
    COMPLETED, IN_PROGRESS, NOT_STARTED, SUMMARY_TITLE,
    DailySummary, SummaryInput, SummaryRow, TrackedTask,
)
from todotrack.timelog import decode
from todotrack.tracker import gather_all, task_body

logger = logging.getLogger(__name__)

COLUMN_WIDTHS: Dict[str, int] = {
    'title': 40,
    'importance': 10,
    'status': 10,
    'estimate': 13,
    'today_total': 22,
    'all_total': 20,
}
HEADER_TITLES: Dict[str, str] = {
    'title': 'Title',
    'importance': 'Importance',
    'status': 'Status',
    'estimate': 'Estimate',
    'today_total': 'Today total (min)',
    'all_total': 'All total (min)',
}
SEP = " | "


async def collect(store: Any, tasks: Sequence[TrackedTask]) -> List[SummaryInput]:
    """Fetch every tracked task in parallel; results keep index order."""
    try:
        raws = await gather_all(*(store.get_task(t.list_id, t.task_id) for t in tasks))
    except SOURCE_ERRORS as e:
        raise SourceUnavailable('building summary', e) from e
    return [
        SummaryInput(
            task=task,
            body=task_body(raw),
            status=raw.get('status') or NOT_STARTED,
            importance=raw.get('importance') or 'normal',
        )
        for task, raw in zip(tasks, raws)
    ]


def build(inputs: Sequence[SummaryInput], now: Optional[datetime] = None) -> DailySummary:
    now = now or datetime.now()
    summary = DailySummary(total_count=len(inputs))
    for item in inputs:
        log = decode(item.body)
        finished = item.status == COMPLETED
        today = total_minutes(log, is_finished=finished, today_only=True, now=now)
        overall = total_minutes(log, is_finished=finished, today_only=False, now=now)
        if finished:
            summary.finished_count += 1
        elif item.status == IN_PROGRESS:
            summary.in_progress_count += 1
        summary.total_minutes_today += today
        summary.rows.append(SummaryRow(
            title=item.task.title,
            importance=item.importance,
            status=item.status,
            estimate=estimate(log),
            today_minutes=today,
            all_minutes=overall,
        ))
    summary.left_count = summary.total_count - summary.finished_count - summary.in_progress_count
    return summary


def _line(cells: Dict[str, str]) -> str:
    return SEP.join(cells[key].rjust(width) for key, width in COLUMN_WIDTHS.items())


def render(summary: DailySummary) -> str:
    lines = [
        _line(HEADER_TITLES),
        SEP.join('-' * width for width in COLUMN_WIDTHS.values()),
    ]
    for row in summary.rows:
        lines.append(_line({
            'title': row.title,
            'importance': row.importance,
            'status': row.status,
            'estimate': row.estimate,
            'today_total': format_minutes(row.today_minutes),
            'all_total': format_minutes(row.all_minutes),
        }))
    lines.append('')
    lines.append(f'{summary}, Worked today: {format_minutes(summary.total_minutes_today)} min')
    return '\n'.join(lines)


async def default_list_id(store: Any) -> str:
    """Id of the list Graph marks as ``defaultList`` (falls back to the first)."""
    try:
        task_lists = await store.list_task_lists()
    except SOURCE_ERRORS as e:
        raise SourceUnavailable('finding the default task list', e) from e
    if not task_lists:
        raise SourceUnavailable('finding the default task list', LookupError('no task lists'))
    for task_list in task_lists:
        if task_list.get('wellknownListName') == 'defaultList':
            return task_list['id']
    return task_lists[0]['id']


async def publish(store: Any, text: str, list_id: Optional[str] = None,
                  now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now()
    list_id = list_id or await default_list_id(store)
    midnight, _ = day_bounds(now)
    try:
        created = await store.create_task(list_id, SUMMARY_TITLE, text, IN_PROGRESS, midnight)
    except SOURCE_ERRORS as e:
        raise SourceUnavailable('saving summary', e) from e
    logger.info('summary saved as task %s', created.get('id'))
    return created


async def mail(store: Any, text: str, recipient: str, now: Optional[datetime] = None) -> None:
    now = now or datetime.now()
    try:
        await store.send_mail(f'{SUMMARY_TITLE} {now.date().isoformat()}', text, recipient)
    except SOURCE_ERRORS as e:
        raise SourceUnavailable('mailing summary', e) from e
