#!/usr/bin/env python3

"""
Jira View Errors - Typed failures shared by every layer

Library modules raise these; only the interaction loop (JiraApp) catches
them, shows the message to the operator and keeps its last stable state.
"""

from typing import Optional


class JiraViewError(Exception):
    """Base class for all jira-view failures."""


class ConfigError(JiraViewError):
    """Missing or invalid configuration value."""


class TransportError(JiraViewError):
    """Network/HTTPS failure or a non-2xx response."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class DecodeError(JiraViewError):
    """Response body does not match the expected shape."""


class PaginationError(JiraViewError):
    """Page chain exceeded the safety bound or is malformed."""


class StoreError(JiraViewError):
    """Base class for persistent store failures."""


class StoreNotFoundError(StoreError):
    """A sub-resource was requested for a record that was never persisted."""

    def __init__(self, resource: str, key: str):
        super().__init__(f"No {resource} record for {key}")
        self.resource = resource
        self.key = key


class StoreIOError(StoreError):
    """Underlying store (SQLite) failure."""


class SchemaError(JiraViewError):
    """A transition declares a screen but no usable field was found."""
