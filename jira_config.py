#!/usr/bin/env python3

"""
Jira View Config - Environment-driven settings

Reads the same JIRA_URL variable as the rest of the tooling plus the
credentials and tuning knobs needed by the HTTPS client and the cache.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from jira_errors import ConfigError

DEFAULT_CACHE_DIR = Path.home() / '.cache' / 'jira-view'
DEFAULT_MAX_PAGES = 100
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class JiraConfig:
    """
    Settings for one Jira site.

    Attributes:
        jira_url: Site base URL (must be https)
        email: Account e-mail used for basic auth
        api_token: API token paired with the e-mail
        cache_dir: Directory holding the SQLite store and log file
        max_pages: Safety bound for page-following
        timeout: Per-request timeout in seconds
        log_level: Logging level name for the log file
    """
    jira_url: str
    email: str
    api_token: str
    cache_dir: Path = DEFAULT_CACHE_DIR
    max_pages: int = DEFAULT_MAX_PAGES
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = 'WARNING'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'JiraConfig':
        """
        Build config from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Raises:
            ConfigError: If a required variable is missing or malformed
        """
        env = os.environ if environ is None else environ

        jira_url = env.get('JIRA_URL', '').strip().rstrip('/')
        if not jira_url:
            raise ConfigError("JIRA_URL is not set")
        if not jira_url.startswith('https://'):
            raise ConfigError(f"JIRA_URL must use https: {jira_url}")

        email = env.get('JIRA_EMAIL', '').strip()
        api_token = env.get('JIRA_API_TOKEN', '').strip()
        if not email or not api_token:
            raise ConfigError("JIRA_EMAIL and JIRA_API_TOKEN must both be set")

        cache_dir = Path(env['JIRA_CACHE_DIR']).expanduser() if env.get('JIRA_CACHE_DIR') else DEFAULT_CACHE_DIR

        return cls(
            jira_url=jira_url,
            email=email,
            api_token=api_token,
            cache_dir=cache_dir,
            max_pages=_parse_number(env, 'JIRA_MAX_PAGES', DEFAULT_MAX_PAGES, int),
            timeout=_parse_number(env, 'JIRA_TIMEOUT', DEFAULT_TIMEOUT, float),
            log_level=env.get('JIRA_LOG_LEVEL', 'WARNING').upper(),
        )

    @property
    def db_path(self) -> Path:
        return self.cache_dir / 'jira_cache.db'

    @property
    def log_path(self) -> Path:
        return self.cache_dir / 'jira-view.log'


def _parse_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value
