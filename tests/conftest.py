"""
Shared test fixtures for jira-view tests.

Provides mocked transport, temporary stores and canned Jira payloads.
"""

import time

import pytest
from unittest.mock import MagicMock

from jira_cache import TicketCache
from jira_keys import KeyConfig
from jira_models import CommentSet, Project, Ticket, Transition
from jira_pagination import Paginator
from jira_sqlite_cache import JiraSQLiteCache

JIRA_URL = 'https://example.atlassian.net'


def make_ticket_data(key='PROJ-1', summary='Fix login', status='To Do', parent=None, issuelinks=None):
    """Raw ticket payload as returned by the API (no comments fetched)."""
    fields = {
        'summary': summary,
        'status': {'name': status},
        'issuetype': {'name': 'Task'},
        'priority': {'name': 'Medium'},
        'assignee': {'displayName': 'Ada Lovelace'},
        'labels': ['backend'],
        'issuelinks': issuelinks or [],
        'updated': '2024-01-15T10:30:00.000+0000',
    }
    if parent is not None:
        fields['parent'] = parent
    return {'key': key, 'fields': fields}


def make_linked_issue(key, summary='Linked work', status='In Progress'):
    return {
        'key': key,
        'fields': {
            'summary': summary,
            'status': {'name': status},
            'priority': {'name': 'High'},
            'issuetype': {'name': 'Bug'},
        },
    }


def make_comments_data(*texts):
    """Raw comment collection payload with rendered bodies."""
    return {
        'comments': [
            {
                'id': str(i + 1),
                'author': {'displayName': 'Grace Hopper'},
                'body': {'type': 'doc', 'version': 1, 'content': [
                    {'type': 'paragraph', 'content': [{'type': 'text', 'text': text}]}
                ]},
                'renderedBody': f'<p>{text}</p>',
                'created': '2024-01-16T09:00:00.000+0000',
            }
            for i, text in enumerate(texts)
        ],
        'startAt': 0,
        'maxResults': 50,
        'total': len(texts),
    }


def make_transition(transition_id, name, has_screen=False, fields=None, to=None):
    data = {'id': transition_id, 'name': name, 'hasScreen': has_screen, 'to': {'name': to or name}}
    if fields is not None:
        data['fields'] = fields
    return Transition.model_validate(data)


def select_field(*values, name='Resolution'):
    """A select-type transition field schema with the given allowed values."""
    return {
        'required': True,
        'name': name,
        'schema': {
            'type': 'option',
            'custom': 'com.atlassian.jira.plugin.system.customfieldtypes:select',
            'customId': 10100,
        },
        'allowedValues': [{'id': str(i + 1), 'value': v} for i, v in enumerate(values)],
    }


@pytest.fixture
def key_config():
    return KeyConfig()


@pytest.fixture
def ticket():
    return Ticket.model_validate(make_ticket_data())


@pytest.fixture
def store(tmp_path):
    """
    Temporary SQLite store.

    Thread Safety: Each test gets an isolated database file.
    """
    store = JiraSQLiteCache(tmp_path / 'cache' / 'jira_cache.db')
    yield store
    store.close()


@pytest.fixture
def mock_client():
    """
    Mock JiraClient that returns canned responses.

    Returns:
        MagicMock: get_comments/get_ticket/get_transitions preconfigured
    """
    client = MagicMock()
    client.get_comments.return_value = CommentSet.model_validate(make_comments_data('First!', 'Second'))
    client.get_ticket.side_effect = lambda key: Ticket.model_validate(make_ticket_data(key, status='Done'))
    client.get_transitions.return_value.transitions = [
        make_transition('11', 'Start Progress', to='In Progress'),
        make_transition('31', 'Done', has_screen=True, fields={
            'customfield_10100': select_field('Fixed', "Won't Fix", 'Duplicate'),
        }),
    ]
    client.browse_url.side_effect = lambda key: f'{JIRA_URL}/browse/{key}'
    return client


@pytest.fixture
def slow_mock_client(mock_client):
    """
    Mock JiraClient whose comment fetch is slow.

    Used for testing that concurrent cache misses collapse into one fetch.
    """
    comments = mock_client.get_comments.return_value

    def slow_get_comments(key, start_at=0):
        time.sleep(0.3)
        return comments

    mock_client.get_comments.side_effect = slow_get_comments
    return mock_client


@pytest.fixture
def ticket_cache(store, mock_client, paginator):
    return TicketCache(store, mock_client, paginator)


@pytest.fixture
def paginator():
    return Paginator(max_pages=10)


@pytest.fixture
def projects():
    return [Project(key='PROJ', name='Project'), Project(key='OPS', name='Operations')]


@pytest.fixture
def thread_error_collector():
    """
    Collect errors from background threads.

    Returns:
        tuple: (collect_function, errors_list)
    """
    errors = []

    def collect(error):
        errors.append(error)

    yield collect, errors

    if errors:
        pytest.fail(f"Background thread errors: {errors}")


# Mark configurations for pytest
def pytest_configure(config):
    """Configure custom pytest marks."""
    config.addinivalue_line(
        "markers", "stress: mark test as stress test (deselect with '-m \"not stress\"')"
    )
    config.addinivalue_line(
        "markers", "threading: mark test as threading/concurrency test"
    )
