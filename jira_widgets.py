#!/usr/bin/env python3

"""
Jira Widgets - View state for list panes and popups (no curses)

Each widget is an explicit state object owned by JiraApp and handed to the
renderer as read-only rows; nothing here draws or touches the network.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TypeVar

from jira_keys import BACKSPACE, ESC, ENTER, EventState, InputMode, Key, KeyConfig, KeyKind
from jira_models import CommentSet, IssueLink, Ticket
from jira_utils import adf_to_text, strip_html

T = TypeVar('T')

RelationRow = Tuple[str, str, str, str, str, str]
ParentRow = Tuple[str, str, str, str, str]


class ListCursor:
    """
    Selection cursor over a list of `length` items.

    selected is None only for an empty list; every movement is clamped to [0, length-1] and is a no-op on an empty list.
    """

    def __init__(self, length: int = 0):
        self.length = 0
        self.selected: Optional[int] = None
        self.reset(length)

    def reset(self, length: int):
        self.length = max(length, 0)
        self.selected = 0 if self.length else None

    def next(self, lines: int = 1):
        if self.selected is None or not self.length:
            return
        self.selected = min(self.selected + lines, self.length - 1)

    def previous(self, lines: int = 1):
        if self.selected is None or not self.length:
            return
        self.selected = max(self.selected - lines, 0)

    def top(self):
        if self.length:
            self.selected = 0

    def bottom(self):
        if self.length:
            self.selected = self.length - 1

    def pick(self, items: Sequence[T]) -> Optional[T]:
        if self.selected is None or self.selected >= len(items):
            return None
        return items[self.selected]

    def navigate(self, key: Key, key_config: KeyConfig) -> bool:
        """Apply a navigation key. Returns True if the key was a navigation key."""
        if key in key_config.scroll_down:
            self.next(1)
        elif key in key_config.scroll_up:
            self.previous(1)
        elif key in key_config.scroll_down_multiple_lines:
            self.next(key_config.page_size)
        elif key in key_config.scroll_up_multiple_lines:
            self.previous(key_config.page_size)
        elif key in key_config.scroll_to_top:
            self.top()
        elif key in key_config.scroll_to_bottom:
            self.bottom()
        else:
            return False
        return True


def _name(named) -> str:
    return named.name if named is not None else ''


class RelationState:
    """Navigable table of a ticket's issue links."""

    def __init__(self, key_config: KeyConfig, jira_url: str):
        self.key_config = key_config
        self.jira_url = jira_url.rstrip('/')
        self.links: List[IssueLink] = []
        self.cursor = ListCursor()

    def update(self, ticket: Optional[Ticket]):
        self.links = list(ticket.fields.issuelinks) if ticket else []
        self.cursor.reset(len(self.links))

    def selected(self) -> Optional[IssueLink]:
        return self.cursor.pick(self.links)

    def rows(self) -> List[RelationRow]:
        """(relation, key, summary, priority, type, status) per link."""
        rows = []
        for link in self.links:
            issue = link.linked_issue
            rows.append((
                link.relation,
                issue.key,
                issue.fields.summary,
                _name(issue.fields.priority),
                issue.fields.issuetype.name,
                issue.fields.status.name,
            ))
        return rows

    def browse_url(self) -> Optional[str]:
        link = self.selected()
        if link is None:
            return None
        return f"{self.jira_url}/browse/{link.linked_issue.key}"

    def handle_key(self, key: Key) -> EventState:
        if self.cursor.navigate(key, self.key_config):
            return EventState.CONSUMED
        return EventState.NOT_CONSUMED


def parent_rows(ticket: Optional[Ticket]) -> List[ParentRow]:
    """Zero or one (key, summary, priority, type, status) row for the ticket's parent."""
    if ticket is None or ticket.fields.parent is None:
        return []
    parent = ticket.fields.parent
    return [(
        parent.key,
        parent.fields.summary,
        _name(parent.fields.priority),
        parent.fields.issuetype.name,
        parent.fields.status.name,
    )]


def comment_lines(comments: Optional[CommentSet]) -> List[str]:
    """Flatten a comment set into display lines: header then body per comment."""
    if comments is None:
        return []
    lines = []
    for comment in comments.comments:
        author = comment.author.display_name if comment.author else 'Unknown'
        lines.append(f"{author} ({comment.created[:10]}):")
        if comment.rendered_body:
            body = strip_html(comment.rendered_body)
        else:
            body = adf_to_text(comment.body) if isinstance(comment.body, dict) else str(comment.body or '')
        lines.extend(f"  {line}" for line in body.splitlines() or [''])
    return lines


class CommentsPopupState:
    """
    Comment-entry popup.

    Normal mode: 'e' starts editing, 'P' pushes the recorded messages.
    Editing mode: characters/backspace edit the input, Enter records the
    input as a message and clears it, Esc returns to normal mode.
    """

    def __init__(self, key_config: KeyConfig):
        self.key_config = key_config
        self.input = ''
        self.input_mode = InputMode.NORMAL
        self.messages: List[str] = []
        self.push_comment = False

    def reset(self):
        self.input = ''
        self.input_mode = InputMode.NORMAL
        self.messages = []
        self.push_comment = False

    def comment_text(self) -> str:
        """Recorded messages (plus any unrecorded input) joined into one comment."""
        parts = list(self.messages)
        if self.input.strip():
            parts.append(self.input)
        return '\n'.join(parts).strip()

    def snapshot(self) -> 'CommentsPopupView':
        return CommentsPopupView(self.input, self.input_mode, tuple(self.messages))

    def handle_key(self, key: Key) -> EventState:
        if self.input_mode is InputMode.EDITING:
            if key.kind is KeyKind.CHAR:
                self.input += key.char
            elif key == BACKSPACE:
                self.input = self.input[:-1]
            elif key == ESC:
                self.input_mode = InputMode.NORMAL
            elif key == ENTER:
                self.messages.append(self.input)
                self.input = ''
            else:
                return EventState.NOT_CONSUMED
            return EventState.CONSUMED

        if key in self.key_config.edit:
            self.input_mode = InputMode.EDITING
            return EventState.CONSUMED
        if key in self.key_config.push:
            if self.comment_text():
                self.push_comment = True
            return EventState.CONSUMED
        return EventState.NOT_CONSUMED


@dataclass(frozen=True)
class CommentsPopupView:
    input: str
    input_mode: InputMode
    messages: Tuple[str, ...]
