#!/usr/bin/env python3

"""
Jira API - Authenticated HTTPS transport for the Jira REST API

Thin layer over a requests session: resolves paths to URLs, refuses
anything that is not https, raises typed errors, and decodes bodies into
the models in jira_models. No retries happen here; callers own that policy.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote, urlencode

import requests
from pydantic import BaseModel, ValidationError
from requests.adapters import HTTPAdapter

from jira_errors import DecodeError, TransportError
from jira_models import (
    CommentSet,
    PagedCollection,
    Project,
    SearchPage,
    Ticket,
    TransitionsResponse,
)
from jira_utils import text_to_adf

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)

API_PREFIX = '/rest/api/3/'

TICKET_FIELDS = [
    'summary', 'status', 'priority', 'issuetype', 'assignee', 'reporter',
    'creator', 'labels', 'components', 'parent', 'issuelinks', 'project', 'updated',
]


class JiraClient:
    """
    HTTPS client bound to one Jira site and one set of credentials.

    Holds no state between calls apart from the pooled session.
    """

    def __init__(self, base_url: str, email: str, api_token: str, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        """
        Args:
            base_url: Site URL, e.g. 'https://company.atlassian.net'
            email: Account e-mail for basic auth
            api_token: API token for basic auth
            timeout: Per-request timeout in seconds
            session: Optional pre-built session (tests)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = session or requests.Session()
        # Explicit zero retries: retry policy belongs to callers
        adapter = HTTPAdapter(max_retries=0)
        self.session.mount('https://', adapter)
        self.session.auth = (email, api_token)
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'jira-view/0.1.0',
        })

    @classmethod
    def from_config(cls, config) -> 'JiraClient':
        return cls(config.jira_url, config.email, config.api_token, timeout=config.timeout)

    # ===== Transport =====

    def url_for(self, path_or_url: str) -> str:
        """Resolve an API path (or absolute URL) to a full URL."""
        if '://' in path_or_url:
            return path_or_url
        if path_or_url.startswith('/rest/'):
            return self.base_url + path_or_url
        return self.base_url + API_PREFIX + path_or_url.lstrip('/')

    def _request(self, method: str, path_or_url: str, payload: Optional[dict] = None) -> requests.Response:
        url = self.url_for(path_or_url)
        if not url.lower().startswith('https://'):
            raise TransportError(f"Refusing non-https request: {url}", url=url)

        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise TransportError(f"{method} {url} failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            detail = _error_detail(response)
            logger.warning("%s %s -> %s %s", method, url, response.status_code, detail)
            raise TransportError(
                f"{method} {url} returned {response.status_code}: {detail}",
                status_code=response.status_code,
                url=url,
            )
        return response

    def fetch(self, path_or_url: str) -> str:
        """GET and return the raw response body."""
        return self._request('GET', path_or_url).text

    def fetch_typed(self, path_or_url: str, model: Type[M]) -> M:
        """
        GET and decode the body into `model`.

        Raises:
            TransportError: Network failure or non-2xx status
            DecodeError: Body is not JSON or does not match the model
        """
        body = self.fetch(path_or_url)
        return decode(body, model)

    def post(self, path: str, payload: dict) -> Dict[str, Any]:
        """POST JSON; an empty body (204) yields {}."""
        response = self._request('POST', path, payload)
        return _json_or_empty(response)

    # ===== Jira resources =====

    def get_ticket(self, ticket_key: str, fields: Optional[List[str]] = None) -> Ticket:
        field_list = ','.join(fields or TICKET_FIELDS)
        return self.fetch_typed(f"issue/{quote(ticket_key)}?fields={field_list}", Ticket)

    def get_comments(self, ticket_key: str, start_at: int = 0, max_results: int = 100) -> CommentSet:
        """One page of a ticket's comments; TicketCache gathers the rest."""
        query = urlencode({'startAt': start_at, 'maxResults': max_results, 'expand': 'renderedBody'})
        return self.fetch_typed(f"issue/{quote(ticket_key)}/comment?{query}", CommentSet)

    def get_transitions(self, ticket_key: str) -> TransitionsResponse:
        return self.fetch_typed(
            f"issue/{quote(ticket_key)}/transitions?expand=transitions.fields",
            TransitionsResponse,
        )

    def do_transition(self, ticket_key: str, request) -> None:
        """Submit a TransitionRequest (id, resolved field, comment)."""
        self.post(f"issue/{quote(ticket_key)}/transitions", request.to_payload())

    def add_comment(self, ticket_key: str, text: str) -> Dict[str, Any]:
        return self.post(f"issue/{quote(ticket_key)}/comment", {'body': text_to_adf(text)})

    def first_projects_page(self) -> PagedCollection[Project]:
        return self.fetch_typed('project/search', PagedCollection[Project])

    def fetch_projects_page(self, url: str) -> PagedCollection[Project]:
        return self.fetch_typed(url, PagedCollection[Project])

    def search_url(self, jql: str, fields: Optional[List[str]] = None, next_page_token: Optional[str] = None,
                   max_results: int = 100) -> str:
        params = {
            'jql': jql,
            'fields': ','.join(fields or TICKET_FIELDS),
            'maxResults': max_results,
        }
        if next_page_token:
            params['nextPageToken'] = next_page_token
        return self.url_for('search/jql?' + urlencode(params, quote_via=quote))

    def search_page(self, url: str, jql: str, fields: Optional[List[str]] = None) -> PagedCollection[Ticket]:
        """Fetch one search page and wrap it in the common pagination envelope."""
        page = self.fetch_typed(url, SearchPage)
        next_url = self.search_url(jql, fields, page.next_page_token) if page.next_page_token else None
        return page.to_paged(next_url)

    def browse_url(self, ticket_key: str) -> str:
        return f"{self.base_url}/browse/{ticket_key}"


def decode(body: str, model: Type[M]) -> M:
    """Decode a JSON body into `model`, mapping every failure to DecodeError."""
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"Unexpected {model.__name__} payload: {e}") from e
    except ValueError as e:
        raise DecodeError(f"Invalid JSON for {model.__name__}: {e}") from e


def _json_or_empty(response: requests.Response) -> Dict[str, Any]:
    if not response.text.strip():
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise DecodeError(f"Invalid JSON response: {e}") from e


def _error_detail(response: requests.Response) -> str:
    """Pull Jira's errorMessages/errors out of a failed response, if present."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:200]
    if not isinstance(body, dict):
        return str(body)[:200]
    if body.get('errorMessages'):
        return body['errorMessages'][0]
    if body.get('errors'):
        return "; ".join(f"{k}: {v}" for k, v in body['errors'].items())
    return json.dumps(body)[:200]
