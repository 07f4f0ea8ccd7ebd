"""Codec for the time log kept in a task body.

Body layout (one item per line, blank lines ignored)::

    <estimate>                              optional, first line only
    2024-01-01T09:00:00 2024-01-01T09:45:00 completed interval
    2024-01-01T13:10:00                     open interval, last entry only
    Total: 45.0 min                         written when the task is finished

Decoding is lenient: lines that fit none of the shapes above are skipped,
never raised. The append/close helpers work on the raw text so that whatever
the user typed into the body survives a round trip through the tracker.
"""
from __future__ import annotations
import logging
import re
from datetime import datetime
from typing import List, Optional

from todotrack.errors import InvalidState
from todotrack.models import TimeInterval, TimeLog

logger = logging.getLogger(__name__)

TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d{1,6})?)?(?:Z|[+-]\d{2}:\d{2})?$"
)
TOTAL_RE = re.compile(r"^total:\s*(\d+(?:\.\d+)?)\s*min$", re.IGNORECASE)


def parse_timestamp(token: str) -> Optional[datetime]:
    """Parse one ISO-8601 token into a naive local datetime (None if invalid).

    Offset-aware values are converted to local time before the offset is
    dropped, so every timestamp the tracker compares is naive local time.
    """
    if not TIMESTAMP_RE.match(token):
        return None
    if token.endswith('Z'):
        token = token[:-1] + '+00:00'
    try:
        value = datetime.fromisoformat(token)
    except ValueError:
        return None
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def format_total(minutes: float) -> str:
    return f'Total: {minutes:.1f} min'


def _stamp(now: datetime) -> str:
    # stored stamps carry whole seconds only
    return format_timestamp(now.replace(microsecond=0))


def _parse_tokens(line: str) -> Optional[List[datetime]]:
    tokens = line.split()
    if not tokens or len(tokens) > 2:
        return None
    stamps = [parse_timestamp(t) for t in tokens]
    if any(s is None for s in stamps):
        return None
    return stamps  # type: ignore[return-value]


def decode(body: Optional[str]) -> TimeLog:
    log = TimeLog()
    lines = [ln.strip() for ln in (body or '').splitlines() if ln.strip()]
    for pos, line in enumerate(lines):
        total = TOTAL_RE.match(line)
        if total:
            log.total = float(total.group(1))
            continue
        stamps = _parse_tokens(line)
        if stamps is not None:
            if log.open_start is not None:
                logger.debug('dropping unterminated start %s followed by more entries',
                             format_timestamp(log.open_start))
                log.open_start = None
            if len(stamps) == 2:
                log.entries.append(TimeInterval(stamps[0], stamps[1]))
            else:
                log.open_start = stamps[0]
            continue
        if pos == 0:
            log.estimate = line
            continue
        logger.debug('skipping malformed time log line %r', line)
    return log


def encode(log: TimeLog) -> str:
    """Render a TimeLog back to body text.

    ``decode(encode(log)) == log`` holds when the estimate is a single
    non-timestamp line and ``total`` carries at most one decimal.
    """
    lines: List[str] = []
    if log.estimate:
        lines.append(log.estimate)
    for entry in log.entries:
        lines.append(f'{format_timestamp(entry.start)} {format_timestamp(entry.end)}')
    if log.open_start is not None:
        lines.append(format_timestamp(log.open_start))
    if log.total is not None:
        lines.append(format_total(log.total))
    return '\n'.join(lines)


def append_open_start(body: Optional[str], now: datetime) -> str:
    if decode(body).is_open:
        raise InvalidState('Time log already has an open interval.')
    text = (body or '').rstrip()
    stamp = _stamp(now)
    return f'{text}\n{stamp}' if text else stamp


def is_log_line(line: str) -> bool:
    """True when ``line`` would decode as an interval, an open start or a total."""
    line = line.strip()
    return bool(TOTAL_RE.match(line)) or _parse_tokens(line) is not None


def close_open_interval(body: Optional[str], now: datetime) -> str:
    """Complete the open start line in place.

    The open start is the last timestamp line, as in ``decode``; notes typed
    below it are skipped and stay where they are.
    """
    lines = (body or '').rstrip().splitlines()
    for pos in range(len(lines) - 1, -1, -1):
        stamps = _parse_tokens(lines[pos].strip())
        if stamps is None:
            continue
        if len(stamps) == 1:
            lines[pos] = f'{lines[pos].strip()} {_stamp(now)}'
            return '\n'.join(lines)
        break
    raise InvalidState('Time log has no open interval to close.')


def append_total(body: Optional[str], minutes: float) -> str:
    """Append the ``Total:`` annotation, replacing an earlier one."""
    lines = [ln for ln in (body or '').rstrip().splitlines()
             if not TOTAL_RE.match(ln.strip())]
    lines.append(format_total(minutes))
    return '\n'.join(lines)
