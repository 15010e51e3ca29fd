#!/usr/bin/env python3

"""
Jira TUI - Terminal User Interface for interactive ticket viewing
Provides a split-pane interface with vim keybindings for browsing projects,
tickets, relations and comments, and for transitioning and commenting.

All behavior lives in JiraApp (jira_view_core); this module only decodes
curses key codes into Key events and draws AppView snapshots.
"""

import atexit
import logging
import signal
import sys
import textwrap
from typing import List, Optional, Sequence

import click

from jira_api import JiraClient
from jira_cache import TicketCache
from jira_config import JiraConfig
from jira_errors import JiraViewError
from jira_keys import (
    BACKSPACE, DOWN, END, ENTER, ESC, HOME, PAGE_DOWN, PAGE_UP, TAB, UP,
    InputMode, Key,
)
from jira_pagination import Paginator
from jira_sqlite_cache import JiraSQLiteCache
from jira_utils import truncate
from jira_view_core import AppView, Focus, JiraApp, ProjectController, TicketController

# Try to import curses, gracefully handle if not available
try:
    import curses
    CURSES_AVAILABLE = True
except ImportError:
    CURSES_AVAILABLE = False

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def setup_logging(config: JiraConfig):
    """Send logs to the cache directory; the terminal belongs to curses."""
    config.cache_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(config.log_path),
        level=getattr(logging, config.log_level, logging.WARNING),
        format=LOG_FORMAT,
    )


def decode_key(code: int) -> Optional[Key]:
    """Translate a curses getch() code into a Key, or None for keys we ignore."""
    special = {
        10: ENTER,
        13: ENTER,
        27: ESC,
        9: TAB,
        8: BACKSPACE,
        127: BACKSPACE,
        curses.KEY_ENTER: ENTER,
        curses.KEY_BACKSPACE: BACKSPACE,
        curses.KEY_UP: UP,
        curses.KEY_DOWN: DOWN,
        curses.KEY_PPAGE: PAGE_UP,
        curses.KEY_NPAGE: PAGE_DOWN,
        curses.KEY_HOME: HOME,
        curses.KEY_END: END,
    }
    if code in special:
        return special[code]
    if 32 <= code < 127:
        return Key.ch(chr(code))
    return None


class JiraTUI:
    """Interactive Terminal UI for Jira with vim keybindings."""

    def __init__(self, app: JiraApp, use_colors: bool):
        self.app = app
        self.use_colors = use_colors
        self.show_help = False
        self.curses_initialized = False  # Track if curses is active
        self._original_sigint_handler = None  # Store original signal handler

    def _cleanup_curses(self):
        """Ensure curses is properly cleaned up."""
        if CURSES_AVAILABLE and self.curses_initialized:
            try:
                curses.endwin()
            except curses.error:
                pass
            self.curses_initialized = False

    def _sigint_handler(self, signum, frame):
        """Handle Ctrl+C gracefully."""
        self._cleanup_curses()
        if self._original_sigint_handler:
            signal.signal(signal.SIGINT, self._original_sigint_handler)
        sys.exit(0)

    def run(self, project_key: Optional[str] = None, force_refresh: bool = False) -> int:
        """
        Run the interactive TUI or fallback to basic mode.

        Args:
            project_key: Project to open on startup
            force_refresh: Reload from Jira instead of the cache

        Returns:
            Exit code (0 for success)
        """
        if not CURSES_AVAILABLE:
            return self._run_fallback(project_key, force_refresh)

        # Register cleanup handlers
        atexit.register(self._cleanup_curses)
        self._original_sigint_handler = signal.signal(signal.SIGINT, self._sigint_handler)

        try:
            return curses.wrapper(self._curses_main, project_key, force_refresh)
        except KeyboardInterrupt:
            self._cleanup_curses()
            return 0
        except Exception as e:
            self._cleanup_curses()
            logger.exception("TUI crashed")
            print(f"❌ Error in TUI: {e}", file=sys.stderr)
            return 1
        finally:
            # Restore original signal handler
            if self._original_sigint_handler:
                signal.signal(signal.SIGINT, self._original_sigint_handler)
            atexit.unregister(self._cleanup_curses)

    def _run_fallback(self, project_key: Optional[str], force_refresh: bool) -> int:
        """Fallback mode when curses is not available - print the ticket list."""
        print("Running in basic mode (curses not available)...")
        print()

        self.app.start(project_key, force_refresh)
        view = self.app.render()
        if view.error:
            print(f"❌ {view.error}", file=sys.stderr)
            return 1

        if view.project_key is None:
            for key, name in view.projects:
                print(f"{key:<12} {name}")
            return 0

        for letter, key, summary, status, age in view.tickets:
            print(f"[{letter}] {key:<12} {age:>6}  {summary}  ({status})")
        return 0

    def _curses_main(self, stdscr, project_key: Optional[str], force_refresh: bool):
        """Main curses loop."""
        self.curses_initialized = True

        curses.curs_set(0)  # Hide cursor
        stdscr.timeout(100)  # Non-blocking input with 100ms timeout

        if curses.has_colors():
            curses.start_color()
            curses.use_default_colors()
            curses.init_pair(1, curses.COLOR_GREEN, -1)    # Green
            curses.init_pair(2, curses.COLOR_YELLOW, -1)   # Yellow
            curses.init_pair(3, curses.COLOR_BLUE, -1)     # Blue
            curses.init_pair(4, curses.COLOR_RED, -1)      # Red
            curses.init_pair(5, curses.COLOR_CYAN, -1)     # Cyan
        else:
            self.use_colors = False

        stdscr.addstr(0, 0, "Loading projects...")
        stdscr.refresh()
        self.app.start(project_key, force_refresh)

        while True:
            height, width = stdscr.getmaxyx()
            stdscr.erase()
            self._draw(stdscr, self.app.render(), height, width)
            stdscr.refresh()

            code = stdscr.getch()
            if code == -1:
                continue
            if code == curses.KEY_RESIZE:
                continue

            key = decode_key(code)
            if key is None:
                continue

            if self.show_help:
                self.show_help = False
                continue
            if key == Key.ch('?') and self.app.focus not in (Focus.TRANSITION, Focus.COMMENTS):
                self.show_help = True
                continue

            if not self.app.handle_key(key):
                return 0

    # ===== Drawing =====

    def _draw(self, stdscr, view: AppView, height: int, width: int):
        if height < 5 or width < 20:
            self._addstr(stdscr, 0, 0, "Terminal too small", width)
            return

        left_width = max(width // 3, 20)
        body_height = height - 2

        title = " jira-view"
        if view.project_key:
            title += f"  {view.project_key}"
        self._addstr(stdscr, 0, 0, title.ljust(width), width, curses.A_BOLD | curses.A_REVERSE)

        if view.focus is Focus.PROJECTS or view.project_key is None:
            self._draw_projects(stdscr, view, 1, body_height, left_width - 1)
        else:
            self._draw_tickets(stdscr, view, 1, body_height, left_width - 1)

        for y in range(1, height - 1):
            self._addstr(stdscr, y, left_width - 1, "│", width)

        self._draw_details(stdscr, view, 1, left_width + 1, body_height, width - left_width - 2)

        if view.focus is Focus.TRANSITION:
            self._draw_transition_popup(stdscr, view, height, width)
        elif view.focus is Focus.COMMENTS:
            self._draw_comments_popup(stdscr, view, height, width)

        self._draw_status_bar(stdscr, view, height - 1, width)

        if self.show_help:
            self._draw_help(stdscr, height, width)

    def _draw_list(self, win, y: int, x: int, height: int, width: int, rows: Sequence[str],
                   selected: Optional[int], focused: bool, attrs: Optional[List[int]] = None):
        """Draw rows with the selection kept in view."""
        if height <= 0:
            return
        offset = 0
        if selected is not None and selected >= height:
            offset = selected - height + 1

        for i, row in enumerate(rows[offset:offset + height]):
            index = offset + i
            attr = attrs[index] if attrs else curses.A_NORMAL
            if index == selected:
                attr = curses.A_REVERSE if focused else curses.A_BOLD
            self._addstr(win, y + i, x, truncate(row, width).ljust(width), x + width + 1, attr)

    def _draw_projects(self, stdscr, view: AppView, y: int, height: int, width: int):
        self._addstr(stdscr, y, 0, f" Projects ({len(view.projects)})", width, curses.A_BOLD)
        rows = [f"{key:<10} {name}" for key, name in view.projects]
        self._draw_list(stdscr, y + 1, 0, height - 1, width, rows, view.project_selected,
                        view.focus is Focus.PROJECTS)

    def _draw_tickets(self, stdscr, view: AppView, y: int, height: int, width: int):
        self._addstr(stdscr, y, 0, f" Tickets ({len(view.tickets)})", width, curses.A_BOLD)
        rows = []
        attrs = []
        for letter, key, summary, _status, age in view.tickets:
            rows.append(f"{letter} {key:<10} {age:>5} {summary}")
            attrs.append(self._get_status_color(letter))
        self._draw_list(stdscr, y + 1, 0, height - 1, width, rows, view.ticket_selected,
                        view.focus is Focus.TICKETS, attrs)

    def _draw_details(self, stdscr, view: AppView, y: int, x: int, height: int, width: int):
        """Draw the right pane: fields, parent, relations, comments."""
        ticket = view.ticket
        if ticket is None or width <= 0:
            return

        fields = ticket.fields
        bottom = y + height
        header = f"{ticket.key}: {fields.summary}"
        self._addstr(stdscr, y, x, header, x + width, curses.A_BOLD)
        y += 1

        meta = [
            f"Status: {fields.status.name}",
            f"Type: {fields.issuetype.name}",
            f"Priority: {fields.priority.name if fields.priority else '-'}",
            f"Assignee: {fields.assignee.display_name if fields.assignee else 'Unassigned'}",
        ]
        self._addstr(stdscr, y, x, "  ".join(meta), x + width)
        y += 2

        if view.parent:
            self._addstr(stdscr, y, x, "Parent", x + width, curses.A_BOLD)
            key, summary, priority, issue_type, status = view.parent[0]
            self._addstr(stdscr, y + 1, x, f"{key:<10} {status:<14} {issue_type:<8} {summary}", x + width)
            y += 3

        self._addstr(stdscr, y, x, f"Relations ({len(view.relations)})", x + width, curses.A_BOLD)
        y += 1
        relation_rows = [
            f"{relation:<16} {key:<10} {status:<14} {summary}"
            for relation, key, summary, _priority, _type, status in view.relations
        ]
        relation_height = min(len(relation_rows), max((bottom - y) // 3, 1))
        self._draw_list(stdscr, y, x, relation_height, width, relation_rows,
                        view.relation_selected, view.focus is Focus.RELATION)
        y += relation_height + 1

        self._addstr(stdscr, y, x, "Comments", x + width, curses.A_BOLD)
        y += 1
        for line in view.comments:
            for wrapped in textwrap.wrap(line, width, subsequent_indent='  ') or ['']:
                if y >= bottom:
                    return
                self._addstr(stdscr, y, x, wrapped, x + width)
                y += 1

    def _popup(self, stdscr, lines_needed: int, height: int, width: int, title: str):
        box_height = min(lines_needed + 2, height - 2)
        box_width = min(max(50, width * 2 // 3), width - 2)
        start_y = (height - box_height) // 2
        start_x = (width - box_width) // 2
        try:
            win = stdscr.subwin(box_height, box_width, start_y, start_x)
            win.erase()
            win.box()
            win.addstr(0, 2, f" {title} "[:box_width - 4], curses.A_BOLD)
        except curses.error:
            return None, 0, 0
        return win, box_height - 2, box_width - 4

    def _draw_transition_popup(self, stdscr, view: AppView, height: int, width: int):
        state = view.transition

        if not state.floating_screen:
            rows = [
                f"{t.name} -> {t.to.name}" if t.to else t.name
                for t in state.transitions
            ] or ["(no transitions available)"]
            win, inner_height, inner_width = self._popup(stdscr, len(rows), height, width, "Transition")
            if win is None:
                return
            self._draw_list(win, 1, 2, inner_height, inner_width, rows, state.selected, True)
            return

        rows = [value.label for value in state.allowed_values]
        win, inner_height, inner_width = self._popup(
            stdscr, len(rows) + 3, height, width, state.field_name or "Field")
        if win is None:
            return
        self._draw_list(win, 1, 2, inner_height - 3, inner_width, rows, state.floating_selected,
                        state.input_mode is InputMode.NORMAL)
        mode = "EDIT" if state.input_mode is InputMode.EDITING else "e:comment"
        self._addstr(win, inner_height, 2, f"Comment [{mode}]: {state.comment}", inner_width + 2)

    def _draw_comments_popup(self, stdscr, view: AppView, height: int, width: int):
        popup = view.comments_popup
        win, inner_height, inner_width = self._popup(
            stdscr, len(popup.messages) + 3, height, width, "Add comment (P to post)")
        if win is None:
            return
        y = 1
        for message in popup.messages[-max(inner_height - 2, 0):]:
            self._addstr(win, y, 2, message, inner_width + 2)
            y += 1
        mode = "EDIT" if popup.input_mode is InputMode.EDITING else "e:edit"
        self._addstr(win, inner_height, 2, f"[{mode}] > {popup.input}", inner_width + 2)

    def _get_status_color(self, status_letter: str) -> int:
        """Get curses color pair for a status letter."""
        if not self.use_colors:
            return curses.A_NORMAL
        if status_letter == 'C':
            return curses.color_pair(1)  # Green for done
        elif status_letter in ['B', 'S', 'T']:
            return curses.color_pair(3)  # Blue for backlog
        elif status_letter in ['P', 'R']:
            return curses.color_pair(2)  # Yellow for active
        elif status_letter == 'X':
            return curses.color_pair(4)  # Red for blocked
        return curses.A_NORMAL

    def _draw_status_bar(self, stdscr, view: AppView, y: int, width: int):
        """Draw status bar at bottom showing focus, messages and commands."""
        status_left = f" [{view.focus.name}]"
        if view.ticket_selected is not None and view.focus is Focus.TICKETS:
            status_left += f" {view.ticket_selected + 1}/{len(view.tickets)}"
        message = view.error or view.status
        if message:
            status_left += f" {message}"

        status_right = " q:quit j/k:move tab:pane t:transition c:comment o:browser r:refresh ?:help "
        padding = width - len(status_left) - len(status_right)
        status = status_left + " " * max(0, padding) + status_right

        attr = curses.A_REVERSE
        if view.error and self.use_colors:
            attr |= curses.color_pair(4) | curses.A_BOLD
        self._addstr(stdscr, y, 0, status, width, attr)

    def _draw_help(self, stdscr, height: int, width: int):
        """Draw help overlay."""
        help_text = [
            "JIRA-VIEW - HELP",
            "",
            "Navigation:",
            "  j / ↓      Move down",
            "  k / ↑      Move up",
            "  J / PgDn   Move down 10",
            "  K / PgUp   Move up 10",
            "  g / G      Jump to top / bottom",
            "  Tab        Next pane (projects, tickets, relations)",
            "  Enter      Open project",
            "",
            "Actions:",
            "  t          Transition ticket",
            "  c          Add comment to ticket",
            "  o          Open ticket (or relation) in browser",
            "  r          Refresh current view",
            "  q          Quit",
            "",
            "In popups:",
            "  e          Start typing a comment",
            "  Esc        Stop typing / close",
            "  Enter      Confirm (record line in comment popup)",
            "  P          Post comment",
            "",
            "Press any key to close help",
        ]

        box_width = max(len(line) for line in help_text) + 4
        start_y = max((height - len(help_text) - 2) // 2, 0)
        start_x = max((width - box_width) // 2, 0)

        for i, line in enumerate(help_text):
            attr = curses.A_BOLD if i == 0 else curses.A_NORMAL
            self._addstr(stdscr, start_y + i + 1, start_x + 2, line.ljust(box_width - 4), width, attr)

    def _addstr(self, win, y: int, x: int, text: str, max_x: int, attr: int = 0):
        """addstr clipped to max_x; drawing off-screen is not an error."""
        room = max_x - x - 1
        if room <= 0:
            return
        try:
            win.addstr(y, x, text[:room], attr)
        except curses.error:
            pass


@click.command()
@click.argument('project_key', required=False)
@click.option('--refresh', is_flag=True, help='Reload projects and tickets from Jira instead of the cache')
@click.option('--clear-cache', is_flag=True, help='Clear the local cache and exit')
@click.option('--no-color', is_flag=True, help='Disable colors')
def main(project_key: Optional[str], refresh: bool, clear_cache: bool, no_color: bool):
    """Browse Jira projects and tickets; transition and comment from the terminal."""
    try:
        config = JiraConfig.from_env()
        setup_logging(config)
        store = JiraSQLiteCache.from_config(config)
    except (JiraViewError, OSError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if clear_cache:
        count = store.clear()
        click.echo(f"Cleared {count} cached records")
        return

    client = JiraClient.from_config(config)
    paginator = Paginator(config.max_pages)
    cache = TicketCache(store, client, paginator)
    app = JiraApp(
        ProjectController(client, cache, paginator),
        TicketController(client, cache, paginator),
        config.jira_url,
    )

    tui = JiraTUI(app, use_colors=not no_color)
    sys.exit(tui.run(project_key.upper() if project_key else None, refresh))


if __name__ == '__main__':
    main()
