from pathlib import Path

import pytest

from todotrack.errors import ConfigError
from todotrack.settings import DEFAULT_CLIENT_ID, DEFAULT_SCOPES, load_settings, truthy


def test_defaults_without_env(tmp_path):
    settings = load_settings(environ={}, env_file=tmp_path / 'missing.env')
    assert settings.client_id == DEFAULT_CLIENT_ID
    assert settings.tenant_id == 'common'
    assert settings.scopes == list(DEFAULT_SCOPES)
    assert settings.calendar_events is True
    assert settings.summary_list_id is None
    assert settings.log_level == 'WARNING'
    assert settings.authority == 'https://login.microsoftonline.com/common'


def test_env_file_values_and_env_priority(tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text(
        "# comment\n"
        "TODOTRACK_CLIENT_ID=from-file\n"
        "TODOTRACK_TENANT_ID='contoso'\n"
        "TODOTRACK_SCOPES=user.read, tasks.readwrite\n"
        "TODOTRACK_CALENDAR_EVENTS=off\n"
        "UNRELATED=1\n"
        "garbage line\n"
    )
    settings = load_settings(environ={'TODOTRACK_CLIENT_ID': 'from-env',
                                      'TODOTRACK_TOKEN_CACHE': '~/cache.json'},
                             env_file=env_file)
    assert settings.client_id == 'from-env'
    assert settings.tenant_id == 'contoso'
    assert settings.scopes == ['user.read', 'tasks.readwrite']
    assert settings.calendar_events is False
    assert settings.token_cache == Path('~/cache.json').expanduser()


def test_unknown_log_level_is_rejected(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(environ={'TODOTRACK_LOG_LEVEL': 'chatty'}, env_file=tmp_path / 'none')


@pytest.mark.parametrize('value,expected', [
    (None, True), ('1', True), ('yes', True), ('0', False), ('Off', False), ('', False),
])
def test_truthy(value, expected):
    assert truthy(value) is expected
