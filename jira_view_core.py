"""
Jira View Controllers - Business Logic for TUI Application

This module provides pure business logic controllers with zero curses dependencies.
All controllers are designed to be fully testable.

Design Principles:
1. Key events are handled strictly one at a time by JiraApp
2. Controllers talk to the API and the cache; widgets only hold view state
3. Every typed failure (JiraViewError) stops at JiraApp.handle_key and is
   shown through the error slot; the previous stable state stays on screen
4. Locks live in the cache layer and are never held across network I/O

Controllers:
- ProjectController: Project list loading (paginated) and caching
- TicketController: Ticket search, comments, transitions and comment posting
- JiraApp: Interaction context holding focus and per-widget state
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from jira_errors import JiraViewError
from jira_keys import Key, KeyConfig
from jira_models import CommentSet, Project, Ticket, Transition
from jira_transition import TransitionRequest, TransitionState, TransitionView
from jira_utils import calculate_days_since_update, get_status_letter, open_in_browser
from jira_widgets import (
    CommentsPopupState,
    CommentsPopupView,
    ListCursor,
    ParentRow,
    RelationRow,
    RelationState,
    comment_lines,
    parent_rows,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def project_jql(project_key: str) -> str:
    return f'project = "{project_key}" ORDER BY updated DESC'


class ProjectController:
    """
    Loads the project list.

    Thread Safety:
    - load_projects(): Safe from any thread; the cache layer serializes writes
    - cached_projects(): Read-only, safe from any thread
    """

    def __init__(self, client, cache, paginator):
        """
        Initialize ProjectController.

        Args:
            client: JiraClient (API transport)
            cache: TicketCache (store adapter)
            paginator: Paginator (follows nextPage chains)
        """
        self.client = client
        self.cache = cache
        self.paginator = paginator

    def load_projects(self, progress_callback: Optional[ProgressCallback] = None) -> List[Project]:
        """
        Fetch every project page from the API and persist the result.

        Raises:
            TransportError / DecodeError / PaginationError: Fetch failed; nothing persisted
        """
        first_page = self.client.first_projects_page()
        projects = self.paginator.follow(first_page, self.client.fetch_projects_page, progress_callback)
        self.cache.put_projects(projects)
        logger.info("Loaded %d projects", len(projects))
        return projects

    def cached_projects(self) -> List[Project]:
        return self.cache.cached_projects()

    def get_projects(self, force_refresh: bool = False) -> List[Project]:
        """Cached projects, falling back to the API when empty or forced."""
        if not force_refresh:
            projects = self.cached_projects()
            if projects:
                return projects
        return self.load_projects()


class TicketController:
    """
    Handles operations on tickets.

    Transitions are fetched fresh every time (they depend on the ticket's
    current status) and never persisted. Comments always go through the
    cache-aside adapter.
    """

    def __init__(self, client, cache, paginator):
        self.client = client
        self.cache = cache
        self.paginator = paginator

    def search_tickets(self, project_key: str, progress_callback: Optional[ProgressCallback] = None) -> List[Ticket]:
        """
        Fetch all tickets of a project (every search page) and persist them.

        Raises:
            TransportError / DecodeError / PaginationError: Search failed; nothing persisted
        """
        jql = project_jql(project_key)
        first_page = self.client.search_page(self.client.search_url(jql), jql)
        tickets = self.paginator.follow(
            first_page,
            lambda url: self.client.search_page(url, jql),
            progress_callback,
        )
        self.cache.put_tickets(tickets)
        logger.info("Loaded %d tickets for %s", len(tickets), project_key)
        return tickets

    def get_tickets(self, project_key: str, force_refresh: bool = False) -> List[Ticket]:
        """Cached tickets of a project, falling back to a search when empty or forced."""
        if not force_refresh:
            tickets = self.cache.cached_tickets(project_key)
            if tickets:
                return tickets
        return self.search_tickets(project_key)

    def get_comments(self, ticket_key: str) -> CommentSet:
        return self.cache.get_comments(ticket_key)

    def get_transitions(self, ticket_key: str) -> List[Transition]:
        return self.client.get_transitions(ticket_key).transitions

    def submit_transition(self, ticket_key: str, request: TransitionRequest) -> None:
        self.client.do_transition(ticket_key, request)
        logger.info("Transitioned %s (transition %s)", ticket_key, request.transition_id)

    def add_comment(self, ticket_key: str, text: str) -> None:
        self.client.add_comment(ticket_key, text)
        logger.info("Commented on %s", ticket_key)

    def refresh_ticket(self, ticket_key: str, comments_changed: bool = False) -> Tuple[Ticket, CommentSet]:
        """
        Bring a ticket up to date after a change was posted.

        Cached comments are dropped first when the change added one, so the
        returned comments include it.

        Returns:
            (refreshed ticket, its comments)
        """
        if comments_changed:
            self.cache.invalidate_comments(ticket_key)
        ticket = self.cache.refresh_ticket(ticket_key)
        return ticket, self.cache.get_comments(ticket_key)

    def browse_url(self, ticket_key: str) -> str:
        return self.client.browse_url(ticket_key)


class Focus(Enum):
    PROJECTS = 'projects'
    TICKETS = 'tickets'
    RELATION = 'relation'
    TRANSITION = 'transition'
    COMMENTS = 'comments'


# Panes cycled by focus_next; TRANSITION/COMMENTS are modal popups
PANE_ORDER = (Focus.PROJECTS, Focus.TICKETS, Focus.RELATION)

TicketRow = Tuple[str, str, str, str, str]


def ticket_row(ticket: Ticket) -> TicketRow:
    """(status letter, key, summary, status, age) for the ticket list."""
    fields = ticket.fields
    _, age = calculate_days_since_update(fields.updated)
    return (
        get_status_letter(fields.status.name),
        ticket.key,
        fields.summary,
        fields.status.name,
        age,
    )


@dataclass(frozen=True)
class AppView:
    """Everything the renderer needs for one frame."""
    focus: Focus
    projects: Tuple[Tuple[str, str], ...]
    project_selected: Optional[int]
    project_key: Optional[str]
    tickets: Tuple[TicketRow, ...]
    ticket_selected: Optional[int]
    ticket: Optional[Ticket]
    comments: Tuple[str, ...]
    relations: Tuple[RelationRow, ...]
    relation_selected: Optional[int]
    parent: Tuple[ParentRow, ...]
    transition: TransitionView
    comments_popup: CommentsPopupView
    error: Optional[str]
    status: Optional[str]


class JiraApp:
    """
    Interaction context for one session.

    Holds explicit state for each component and processes one key event
    at a time via handle_key(). Widgets raise push_transition/push_comment;
    the app performs the submission and resets the widget afterwards.

    Thread Safety: Not thread-safe. Owned by the UI thread.
    """

    def __init__(
        self,
        projects: ProjectController,
        tickets: TicketController,
        jira_url: str,
        key_config: Optional[KeyConfig] = None,
        opener: Callable[[str], bool] = open_in_browser,
    ):
        self.project_controller = projects
        self.ticket_controller = tickets
        self.key_config = key_config or KeyConfig()
        self.opener = opener

        self.focus = Focus.PROJECTS
        self.projects: List[Project] = []
        self.project_cursor = ListCursor()
        self.project_key: Optional[str] = None
        self.tickets: List[Ticket] = []
        self.ticket_cursor = ListCursor()
        self.comments: Optional[CommentSet] = None

        self.transition = TransitionState(self.key_config)
        self.relation = RelationState(self.key_config, jira_url)
        self.comments_popup = CommentsPopupState(self.key_config)

        self.error: Optional[str] = None
        self.status: Optional[str] = None
        self.should_quit = False

    # ===== Loading =====

    def start(self, project_key: Optional[str] = None, force_refresh: bool = False):
        """Load projects (and optionally open one). Failures land in error."""
        self._guarded(self._start, project_key, force_refresh)

    def _start(self, project_key: Optional[str], force_refresh: bool):
        self.projects = self.project_controller.get_projects(force_refresh)
        self.project_cursor.reset(len(self.projects))
        if project_key:
            for index, project in enumerate(self.projects):
                if project.key == project_key:
                    self.project_cursor.selected = index
                    break
            self._open_project(project_key, force_refresh)

    def _open_project(self, project_key: str, force_refresh: bool = False, selected: Optional[int] = None):
        """Load a project's tickets; nothing changes unless the selected ticket's comments load too."""
        tickets = self.ticket_controller.get_tickets(project_key, force_refresh)
        index = None
        if tickets:
            index = 0 if selected is None else min(selected, len(tickets) - 1)
        ticket = tickets[index] if index is not None else None
        comments = self._fetch_comments(ticket)

        self.project_key = project_key
        self.tickets = tickets
        self.ticket_cursor.reset(len(tickets))
        self.ticket_cursor.selected = index
        self.focus = Focus.TICKETS
        self.status = f"{project_key}: {len(tickets)} tickets"
        self._show_ticket(ticket, comments)

    def selected_project(self) -> Optional[Project]:
        return self.project_cursor.pick(self.projects)

    def selected_ticket(self) -> Optional[Ticket]:
        return self.ticket_cursor.pick(self.tickets)

    def _fetch_comments(self, ticket: Optional[Ticket]) -> Optional[CommentSet]:
        if ticket is None:
            return None
        return self.ticket_controller.get_comments(ticket.key)

    def _select_ticket(self, index: int):
        ticket = self.tickets[index]
        comments = self._fetch_comments(ticket)
        self.ticket_cursor.selected = index
        self._show_ticket(ticket, comments)

    def _show_ticket(self, ticket: Optional[Ticket], comments: Optional[CommentSet]):
        self.relation.update(ticket)
        self.transition.update(())
        self.comments = comments

    def _replace_ticket(self, ticket: Ticket):
        for index, existing in enumerate(self.tickets):
            if existing.key == ticket.key:
                self.tickets[index] = ticket
                return

    # ===== Key handling =====

    def handle_key(self, key: Key) -> bool:
        """
        Process one key event.

        Returns:
            False once the user asked to quit
        """
        self.error = None
        self._guarded(self._dispatch, key)
        return not self.should_quit

    def _guarded(self, action: Callable, *args):
        try:
            action(*args)
            self._flush_pending()
        except JiraViewError as e:
            logger.warning("%s", e)
            self.error = str(e)
            # A failed submission is not retried on the next key
            self.transition.push_transition = False
            self.comments_popup.push_comment = False

    def _dispatch(self, key: Key):
        kc = self.key_config

        if self.focus is Focus.TRANSITION:
            if not self.transition.handle_key(key).is_consumed() and (key in kc.esc or key in kc.quit):
                self.transition.reset()
                self.focus = Focus.TICKETS
            return

        if self.focus is Focus.COMMENTS:
            if not self.comments_popup.handle_key(key).is_consumed() and (key in kc.esc or key in kc.quit):
                self.comments_popup.reset()
                self.focus = Focus.TICKETS
            return

        if key in kc.quit:
            self.should_quit = True
        elif key in kc.focus_next:
            position = PANE_ORDER.index(self.focus)
            self.focus = PANE_ORDER[(position + 1) % len(PANE_ORDER)]
        elif key in kc.refresh:
            self._refresh()
        elif key in kc.open_browser:
            self._open_browser()
        elif key in kc.transition and self.selected_ticket() is not None:
            self._open_transitions()
        elif key in kc.comment and self.selected_ticket() is not None:
            self.comments_popup.reset()
            self.focus = Focus.COMMENTS
        elif self.focus is Focus.PROJECTS:
            self._projects_key(key)
        elif self.focus is Focus.TICKETS:
            self._tickets_key(key)
        else:
            self.relation.handle_key(key)

    def _projects_key(self, key: Key):
        if self.project_cursor.navigate(key, self.key_config):
            return
        if key in self.key_config.enter:
            project = self.selected_project()
            if project is not None:
                self._open_project(project.key)

    def _tickets_key(self, key: Key):
        before = self.ticket_cursor.selected
        if not self.ticket_cursor.navigate(key, self.key_config):
            return
        target = self.ticket_cursor.selected
        # The cursor only moves once the target's comments are in
        self.ticket_cursor.selected = before
        if target != before:
            self._select_ticket(target)

    def _open_transitions(self):
        ticket = self.selected_ticket()
        transitions = self.ticket_controller.get_transitions(ticket.key)
        self.transition.update(transitions)
        self.focus = Focus.TRANSITION

    def _open_browser(self):
        if self.focus is Focus.RELATION:
            url = self.relation.browse_url()
        else:
            ticket = self.selected_ticket()
            url = self.ticket_controller.browse_url(ticket.key) if ticket else None
        if url and not self.opener(url):
            self.status = f"Could not open {url}"

    def _refresh(self):
        if self.focus is Focus.PROJECTS or self.project_key is None:
            self.projects = self.project_controller.load_projects()
            self.project_cursor.reset(len(self.projects))
            self.status = f"{len(self.projects)} projects"
            return
        self._open_project(self.project_key, force_refresh=True, selected=self.ticket_cursor.selected)

    # ===== Submissions =====

    def _flush_pending(self):
        ticket = self.selected_ticket()
        if self.transition.push_transition and ticket is not None:
            request = self.transition.submission()
            name = self.transition.selected_transition().name
            self.ticket_controller.submit_transition(ticket.key, request)
            # Posted: the popup closes even if the refresh below fails
            self.transition.reset()
            self.focus = Focus.TICKETS
            self.status = f"{ticket.key}: {name}"
            self._refresh_ticket(ticket.key, comments_changed=bool(request.comment))

        if self.comments_popup.push_comment and ticket is not None:
            self.ticket_controller.add_comment(ticket.key, self.comments_popup.comment_text())
            self.comments_popup.reset()
            self.focus = Focus.TICKETS
            self.status = f"{ticket.key}: comment added"
            self._refresh_ticket(ticket.key, comments_changed=True)

    def _refresh_ticket(self, ticket_key: str, comments_changed: bool):
        """Reload a ticket after a successful post; a failure here is reported on its own."""
        try:
            refreshed, comments = self.ticket_controller.refresh_ticket(ticket_key, comments_changed)
        except JiraViewError as e:
            logger.warning("Refreshing %s failed: %s", ticket_key, e)
            self.error = f"{self.status}, but refreshing {ticket_key} failed: {e}"
            return
        self._replace_ticket(refreshed)
        self._show_ticket(refreshed, comments)

    # ===== Rendering =====

    def render(self) -> AppView:
        """Read-only snapshot of the whole app for one frame."""
        ticket = self.selected_ticket()
        return AppView(
            focus=self.focus,
            projects=tuple((p.key, p.name or '') for p in self.projects),
            project_selected=self.project_cursor.selected,
            project_key=self.project_key,
            tickets=tuple(ticket_row(t) for t in self.tickets),
            ticket_selected=self.ticket_cursor.selected,
            ticket=ticket,
            comments=tuple(comment_lines(self.comments)),
            relations=tuple(self.relation.rows()),
            relation_selected=self.relation.cursor.selected,
            parent=tuple(parent_rows(ticket)),
            transition=self.transition.snapshot(),
            comments_popup=self.comments_popup.snapshot(),
            error=self.error,
            status=self.status,
        )
