from datetime import datetime

import pytest

from todotrack.durations import day_bounds, estimate, format_minutes, total_minutes
from todotrack.models import TimeInterval, TimeLog


def interval(start, end):
    return TimeInterval(datetime.fromisoformat(start), datetime.fromisoformat(end))


def test_total_minutes_sums_completed_intervals():
    log = TimeLog(entries=[
        interval('2024-01-01T09:00:00', '2024-01-01T09:30:00'),
        interval('2024-01-01T10:00:00', '2024-01-01T10:15:30'),
    ])
    assert total_minutes(log, now=datetime(2024, 1, 1, 12)) == pytest.approx(45.5)


def test_reversed_pair_counts_as_positive():
    log = TimeLog(entries=[interval('2024-01-01T10:00:00', '2024-01-01T09:00:00')])
    assert total_minutes(log, now=datetime(2024, 1, 1, 12)) == pytest.approx(60.0)


def test_today_only_excludes_interval_started_yesterday():
    log = TimeLog(entries=[interval('2024-01-01T23:59:00', '2024-01-02T00:10:00')])
    assert total_minutes(log, today_only=True, now=datetime(2024, 1, 2, 0, 0, 1)) == 0.0
    assert total_minutes(log, today_only=True, now=datetime(2024, 1, 1, 12)) == pytest.approx(11.0)
    assert total_minutes(log, today_only=False, now=datetime(2024, 1, 2, 0, 0, 1)) == pytest.approx(11.0)


def test_open_interval_counts_only_while_unfinished():
    log = TimeLog(
        entries=[interval('2024-01-01T09:00:00', '2024-01-01T09:30:00')],
        open_start=datetime(2024, 1, 1, 11, 0),
    )
    now = datetime(2024, 1, 1, 11, 20)
    assert total_minutes(log, is_finished=False, now=now) == pytest.approx(50.0)
    assert total_minutes(log, is_finished=True, now=now) == pytest.approx(30.0)


def test_total_annotation_is_never_summed():
    log = TimeLog(entries=[interval('2024-01-01T09:00:00', '2024-01-01T09:30:00')], total=999.0)
    assert total_minutes(log, is_finished=True, now=datetime(2024, 1, 1, 12)) == pytest.approx(30.0)


def test_empty_log_is_zero():
    assert total_minutes(TimeLog(), today_only=True, now=datetime(2024, 1, 1)) == 0.0


def test_day_bounds():
    lower, upper = day_bounds(datetime(2024, 2, 29, 17, 45, 3, 12))
    assert lower == datetime(2024, 2, 29)
    assert upper == datetime(2024, 3, 1)


def test_estimate_and_format():
    assert estimate(TimeLog()) == ''
    assert estimate(TimeLog(estimate='30')) == '30'
    assert format_minutes(12.345) == '12.3'
