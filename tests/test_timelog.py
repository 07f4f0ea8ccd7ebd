"""Tests for the task-body time log codec."""
from datetime import datetime

import pytest

from todotrack.errors import InvalidState
from todotrack.models import TimeInterval, TimeLog
from todotrack.timelog import (
    append_open_start, append_total, close_open_interval, decode, encode, is_log_line,
    parse_timestamp,
)


def dt(text):
    return datetime.fromisoformat(text)


def test_decode_estimate_intervals_and_open_start():
    body = """30 min
2024-01-01T09:00:00 2024-01-01T09:45:00
2024-01-01T10:00:00 2024-01-01T10:15:00
2024-01-01T13:00:00"""
    log = decode(body)
    assert log.estimate == '30 min'
    assert log.entries == [
        TimeInterval(dt('2024-01-01T09:00:00'), dt('2024-01-01T09:45:00')),
        TimeInterval(dt('2024-01-01T10:00:00'), dt('2024-01-01T10:15:00')),
    ]
    assert log.open_start == dt('2024-01-01T13:00:00')
    assert log.is_open
    assert log.total is None


def test_decode_finished_log_reads_total_annotation():
    log = decode('1h\n2024-01-01T09:00:00 2024-01-01T10:00:00\nTotal: 60.0 min')
    assert log.total == 60.0
    assert not log.is_open
    assert len(log.entries) == 1


def test_decode_skips_malformed_lines_without_raising():
    body = """estimate
not a timestamp line
2024-01-01T09:00:00 2024-01-01T09:30:00 extra
2024-13-01T09:00:00 2024-01-01T09:30:00
2024-01-01T11:00:00 2024-01-01T11:30:00

"""
    log = decode(body)
    assert log.estimate == 'estimate'
    assert log.entries == [TimeInterval(dt('2024-01-01T11:00:00'), dt('2024-01-01T11:30:00'))]
    assert log.open_start is None


def test_decode_drops_lone_start_that_is_not_last():
    log = decode('2024-01-01T08:00:00\n2024-01-01T09:00:00 2024-01-01T09:30:00')
    assert log.open_start is None
    assert log.estimate is None
    assert len(log.entries) == 1


@pytest.mark.parametrize('body', [None, '', '\n\n  \n'])
def test_decode_empty_body(body):
    assert decode(body) == TimeLog()


def test_parse_timestamp_converts_offsets_to_naive_local():
    value = parse_timestamp('2024-01-01T09:00:00Z')
    assert value is not None and value.tzinfo is None
    assert parse_timestamp('30') is None
    assert parse_timestamp('2024-01-01') is None


def test_round_trip():
    log = TimeLog(
        estimate='2 pomodoros',
        entries=[
            TimeInterval(dt('2024-01-01T09:00:00'), dt('2024-01-01T09:25:00')),
            TimeInterval(dt('2024-01-01T10:30:00'), dt('2024-01-01T10:00:00')),
        ],
        open_start=dt('2024-01-01T11:00:00'),
    )
    assert decode(encode(log)) == log

    finished = TimeLog(estimate='15', entries=log.entries, total=55.0)
    assert decode(encode(finished)) == finished


def test_append_open_start_on_empty_and_estimate_bodies():
    now = datetime(2024, 1, 1, 9, 0, 0, 123456)
    assert append_open_start('', now) == '2024-01-01T09:00:00'
    assert append_open_start('30\n', now) == '30\n2024-01-01T09:00:00'


def test_append_open_start_rejects_open_log():
    with pytest.raises(InvalidState):
        append_open_start('30\n2024-01-01T09:00:00', datetime(2024, 1, 1, 10, 0))


def test_close_open_interval_completes_last_line():
    body = '30\n2024-01-01T09:00:00\n'
    closed = close_open_interval(body, datetime(2024, 1, 1, 9, 40))
    assert closed == '30\n2024-01-01T09:00:00 2024-01-01T09:40:00'
    assert not decode(closed).is_open


@pytest.mark.parametrize('body', ['', '30', '30\n2024-01-01T09:00:00 2024-01-01T09:30:00'])
def test_close_open_interval_requires_open_line(body):
    with pytest.raises(InvalidState):
        close_open_interval(body, datetime(2024, 1, 1, 10, 0))


def test_append_total_replaces_previous_annotation():
    body = '30\n2024-01-01T09:00:00 2024-01-01T09:30:00\nTotal: 10.0 min'
    updated = append_total(body, 30.0)
    assert updated.count('Total:') == 1
    assert updated.endswith('Total: 30.0 min')


def test_close_open_interval_keeps_note_typed_below_open_line():
    body = '30\n2024-01-01T08:00:00\nremember to ping Bob'
    assert decode(body).is_open
    closed = close_open_interval(body, datetime(2024, 1, 1, 9, 0))
    assert closed == '30\n2024-01-01T08:00:00 2024-01-01T09:00:00\nremember to ping Bob'
    log = decode(closed)
    assert not log.is_open
    assert log.entries == [TimeInterval(dt('2024-01-01T08:00:00'), dt('2024-01-01T09:00:00'))]


@pytest.mark.parametrize('line, expected', [
    ('2024-01-01T10:00', True),
    ('2024-01-01T10:00 2024-01-01T11:00', True),
    ('Total: 5 min', True),
    ('2024-01-01T10:00 tomorrow', False),
    ('45', False),
])
def test_is_log_line(line, expected):
    assert is_log_line(line) is expected
