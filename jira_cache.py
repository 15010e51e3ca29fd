#!/usr/bin/env python3

"""
Jira Cache - Cache-aside access to ticket data

Sits between the UI controllers and the API: reads go to the persistent
store first and fall back to the API on a miss, writing the fetched data
back as a merge before returning it. This is the only component that
writes ticket records.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional

from jira_errors import StoreNotFoundError
from jira_models import CommentSet, Project, Ticket
from jira_pagination import Paginator

logger = logging.getLogger(__name__)

TICKETS = 'tickets'
PROJECTS = 'projects'


class TicketCache:
    """
    Cache-aside adapter over JiraSQLiteCache + JiraClient.

    Thread Safety:
    - get_comments(): single-flight per ticket key. Concurrent misses for
      the same key produce one fetch; the others wait and then read the
      cached result. Different keys never block each other.
    - _key_locks registry is guarded by _registry_lock, which is only held
      for the dict lookup, never across I/O.
    - All writes are store merges, so concurrent writers to different
      fields of one record do not clobber each other.
    """

    def __init__(self, store, client, paginator=None):
        """
        Args:
            store: JiraSQLiteCache (select/merge)
            client: JiraClient (API transport)
            paginator: Paginator bounding comment paging (default limits if omitted)
        """
        self.store = store
        self.client = client
        self.paginator = paginator or Paginator()
        self._registry_lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def _single_flight(self, ticket_key: str):
        with self._registry_lock:
            lock = self._key_locks.setdefault(ticket_key, threading.Lock())
        with lock:
            yield

    # ===== Reads =====

    def get_comments(self, ticket_key: str) -> CommentSet:
        """
        Return a ticket's comments, fetching them on first use.

        Raises:
            StoreNotFoundError: Ticket was never written to the store
            StoreIOError: Underlying store failure
            TransportError / DecodeError: Fetch failed on a cache miss
            PaginationError: Comment pages ended short of their total
        """
        with self._single_flight(ticket_key):
            record = self.store.select(TICKETS, ticket_key)
            if record is None:
                raise StoreNotFoundError(TICKETS, ticket_key)

            cached = record.get('fields', {}).get('comment')
            if cached is not None:
                logger.debug("comments cache hit for %s", ticket_key)
                return CommentSet.model_validate(cached)

            logger.info("comments cache miss for %s, fetching", ticket_key)
            # Only a complete collection is written back
            comments = self.paginator.collect_comments(
                lambda start_at: self.client.get_comments(ticket_key, start_at=start_at)
            )
            self.store.merge(TICKETS, ticket_key, {
                'fields': {'comment': comments.model_dump(mode='json', by_alias=True)}
            })
            return comments

    def cached_tickets(self, project_key: Optional[str] = None) -> List[Ticket]:
        tickets = [Ticket.model_validate(r) for r in self.store.select_all(TICKETS)]
        if project_key:
            prefix = f"{project_key}-"
            tickets = [t for t in tickets if t.key.startswith(prefix)]
        return tickets

    def cached_projects(self) -> List[Project]:
        return [Project.model_validate(r) for r in self.store.select_all(PROJECTS)]

    # ===== Writes =====

    def put_tickets(self, tickets: Iterable[Ticket]) -> int:
        """Merge fetched tickets into the store, keeping any cached comments."""
        count = 0
        for ticket in tickets:
            self.store.merge(TICKETS, ticket.key, ticket.to_record())
            count += 1
        return count

    def put_projects(self, projects: Iterable[Project]) -> int:
        count = 0
        for project in projects:
            self.store.merge(PROJECTS, project.key, project.model_dump(mode='json', by_alias=True))
            count += 1
        return count

    def invalidate_comments(self, ticket_key: str) -> None:
        """Drop cached comments so the next get_comments() is a miss."""
        with self._single_flight(ticket_key):
            if self.store.select(TICKETS, ticket_key) is not None:
                self.store.merge(TICKETS, ticket_key, {'fields': {'comment': None}})

    def refresh_ticket(self, ticket_key: str) -> Ticket:
        """Refetch a ticket and merge it over the cached record."""
        ticket = self.client.get_ticket(ticket_key)
        self.store.merge(TICKETS, ticket.key, ticket.to_record())
        return ticket
