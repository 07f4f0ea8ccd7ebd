"""Color & style helpers for the console.

Decisions:
- Truecolor preferred; falls back to the 256-color cube if unsupported.
- Disabled when stdout is not a TTY unless FORCE_COLOR=1; NO_COLOR disables.
- Palette overrides come from TODOTRACK_PRIMARY / TODOTRACK_NOT_STARTED /
  TODOTRACK_IN_PROGRESS / TODOTRACK_COMPLETED (env var > .env > default).
"""
from __future__ import annotations
import os, sys
from pathlib import Path
from typing import Dict

from todotrack.models import COMPLETED, IN_PROGRESS, NOT_STARTED
from todotrack.settings import read_env_file, truthy

_FORCE = truthy(os.environ.get("FORCE_COLOR"), False)
_NO_COLOR = os.environ.get("NO_COLOR") is not None
_ENABLE = (_FORCE or sys.stdout.isatty()) and not _NO_COLOR
_USE_TRUECOLOR = _ENABLE and any(tok in os.environ.get("COLORTERM", "").lower()
                                 for tok in ("truecolor", "24bit"))

HEX_DEFAULTS: Dict[str, str] = {
    'TODOTRACK_PRIMARY': '#476EAE',
    'TODOTRACK_NOT_STARTED': '#48B3AF',
    'TODOTRACK_IN_PROGRESS': '#F6FF99',
    'TODOTRACK_COMPLETED': '#A7E399',
}


def _code(part: str) -> str:
    return f"\033[{part}m" if _ENABLE else ''


def _valid_hex(value: str) -> bool:
    h = value.lstrip('#')
    return len(h) == 6 and all(c in '0123456789abcdefABCDEF' for c in h)


def _fg(hex_code: str) -> str:
    """ANSI foreground sequence for a hex color (truecolor or xterm-256)."""
    if not _ENABLE:
        return ''
    h = hex_code.lstrip('#')
    r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    if _USE_TRUECOLOR:
        return f"\033[38;2;{r};{g};{b}m"
    r6, g6, b6 = (int(round(x / 255 * 5)) for x in (r, g, b))
    return f"\033[38;5;{16 + 36 * r6 + 6 * g6 + b6}m"


def _palette() -> Dict[str, str]:
    overrides = read_env_file(Path.cwd() / '.env')
    resolved: Dict[str, str] = {}
    for key, default in HEX_DEFAULTS.items():
        value = os.environ.get(key) or overrides.get(key, '')
        resolved[key] = '#' + value.lstrip('#') if _valid_hex(value) else default
    return resolved


RESET = _code('0')
BOLD = _code('1')

_PALETTE = _palette()
PRIMARY = _fg(_PALETTE['TODOTRACK_PRIMARY'])

STATUS_COLOR: Dict[str, str] = {
    NOT_STARTED: _fg(_PALETTE['TODOTRACK_NOT_STARTED']),
    IN_PROGRESS: _fg(_PALETTE['TODOTRACK_IN_PROGRESS']),
    COMPLETED: _fg(_PALETTE['TODOTRACK_COMPLETED']),
}
STATUS_LABEL: Dict[str, str] = {
    NOT_STARTED: 'TO DO',
    IN_PROGRESS: 'IN-PROGRESS',
    COMPLETED: 'DONE',
}

HEADER_COLOR = PRIMARY
INDEX_COLOR = PRIMARY + BOLD
WORKING_COLOR = BOLD


def color(text: str, *styles: str) -> str:
    if not _ENABLE:
        return text
    return ''.join(styles) + text + RESET


def status_text(status: str) -> str:
    return color(STATUS_LABEL.get(status, status), STATUS_COLOR.get(status, ''))
