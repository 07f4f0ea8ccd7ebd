"""Application settings.

Decisions:
- Every setting comes from a TODOTRACK_* environment variable.
- An optional project .env file supplies values the environment lacks
  (priority: real env var > .env file > default).
- The default client id is the public client registered for the Graph
  console tutorial; tenant "common" accepts work and personal accounts.
"""
from __future__ import annotations
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from todotrack.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = '72000ad4-3e42-4653-ac5e-e6bc7d28c773'
DEFAULT_TENANT_ID = 'common'
DEFAULT_SCOPES = (
    'user.read',
    'mail.readwrite',
    'mail.send',
    'tasks.readwrite',
    'calendars.readwrite',
)
DEFAULT_TOKEN_CACHE = Path.home() / '.todotrack' / 'token_cache.json'

KNOWN_KEYS = {
    'TODOTRACK_CLIENT_ID', 'TODOTRACK_TENANT_ID', 'TODOTRACK_SCOPES',
    'TODOTRACK_SUMMARY_LIST_ID', 'TODOTRACK_CALENDAR_ID', 'TODOTRACK_CALENDAR_EVENTS',
    'TODOTRACK_TIME_ZONE', 'TODOTRACK_TOKEN_CACHE', 'TODOTRACK_LOG_LEVEL',
    'TODOTRACK_PRIMARY', 'TODOTRACK_NOT_STARTED', 'TODOTRACK_IN_PROGRESS', 'TODOTRACK_COMPLETED',
}


def truthy(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def read_env_file(path: Path) -> Dict[str, str]:
    """Read KEY=VALUE lines for known keys; unknown keys and junk are ignored."""
    values: Dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = line.split('=', 1)
        k = k.strip()
        v = v.strip().strip('"').strip("'")
        if k in KNOWN_KEYS:
            values[k] = v
        else:
            logger.debug('ignoring unknown key %s in %s', k, path)
    return values


def _split_scopes(raw: str) -> List[str]:
    return [s for s in re.split(r'[\s,]+', raw) if s]


@dataclass(frozen=True)
class AppSettings:
    client_id: str = DEFAULT_CLIENT_ID
    tenant_id: str = DEFAULT_TENANT_ID
    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    summary_list_id: Optional[str] = None
    calendar_id: Optional[str] = None
    calendar_events: bool = True
    time_zone: str = 'UTC'
    token_cache: Path = DEFAULT_TOKEN_CACHE
    log_level: str = 'WARNING'

    @property
    def authority(self) -> str:
        return f'https://login.microsoftonline.com/{self.tenant_id}'


def load_settings(environ: Optional[Mapping[str, str]] = None,
                  env_file: Optional[Path] = None) -> AppSettings:
    environ = os.environ if environ is None else environ
    file_values = read_env_file(env_file or Path.cwd() / '.env')

    def get(key: str) -> Optional[str]:
        value = environ.get(key)
        if value is None or value == '':
            value = file_values.get(key)
        return value or None

    client_id = get('TODOTRACK_CLIENT_ID') or DEFAULT_CLIENT_ID
    if not client_id.strip():
        raise ConfigError('TODOTRACK_CLIENT_ID cannot be empty')
    scopes_raw = get('TODOTRACK_SCOPES')
    scopes = _split_scopes(scopes_raw) if scopes_raw else list(DEFAULT_SCOPES)
    if not scopes:
        raise ConfigError('TODOTRACK_SCOPES cannot be empty')
    log_level = (get('TODOTRACK_LOG_LEVEL') or 'WARNING').upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f'Unknown log level: {log_level}')
    cache = get('TODOTRACK_TOKEN_CACHE')
    return AppSettings(
        client_id=client_id.strip(),
        tenant_id=get('TODOTRACK_TENANT_ID') or DEFAULT_TENANT_ID,
        scopes=scopes,
        summary_list_id=get('TODOTRACK_SUMMARY_LIST_ID'),
        calendar_id=get('TODOTRACK_CALENDAR_ID'),
        calendar_events=truthy(get('TODOTRACK_CALENDAR_EVENTS'), True),
        time_zone=get('TODOTRACK_TIME_ZONE') or 'UTC',
        token_cache=Path(cache).expanduser() if cache else DEFAULT_TOKEN_CACHE,
        log_level=log_level,
    )
