"""
Tests for environment-driven configuration.
"""

from pathlib import Path

import pytest

from jira_config import DEFAULT_CACHE_DIR, JiraConfig
from jira_errors import ConfigError

BASE_ENV = {
    'JIRA_URL': 'https://example.atlassian.net/',
    'JIRA_EMAIL': 'me@example.com',
    'JIRA_API_TOKEN': 'secret',
}


def test_minimal_env_uses_defaults():
    config = JiraConfig.from_env(BASE_ENV)

    assert config.jira_url == 'https://example.atlassian.net'
    assert config.cache_dir == DEFAULT_CACHE_DIR
    assert config.max_pages == 100
    assert config.timeout == 30.0
    assert config.log_level == 'WARNING'


def test_overrides(tmp_path):
    config = JiraConfig.from_env(dict(
        BASE_ENV,
        JIRA_CACHE_DIR=str(tmp_path),
        JIRA_MAX_PAGES='5',
        JIRA_TIMEOUT='2.5',
        JIRA_LOG_LEVEL='debug',
    ))

    assert config.db_path == Path(tmp_path) / 'jira_cache.db'
    assert config.log_path == Path(tmp_path) / 'jira-view.log'
    assert config.max_pages == 5
    assert config.timeout == 2.5
    assert config.log_level == 'DEBUG'


@pytest.mark.parametrize('env', [
    {},
    dict(BASE_ENV, JIRA_URL='http://example.atlassian.net'),
    dict(BASE_ENV, JIRA_API_TOKEN=''),
    {k: v for k, v in BASE_ENV.items() if k != 'JIRA_EMAIL'},
    dict(BASE_ENV, JIRA_MAX_PAGES='lots'),
    dict(BASE_ENV, JIRA_MAX_PAGES='0'),
    dict(BASE_ENV, JIRA_TIMEOUT='-1'),
])
def test_invalid_env_raises(env):
    with pytest.raises(ConfigError):
        JiraConfig.from_env(env)
