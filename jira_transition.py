#!/usr/bin/env python3

"""
Jira Transition - Workflow transition selection state machine

Modes:
- NORMAL: browsing the transition list of the selected ticket
- FLOATING_SCREEN: the transition needs a dynamic field resolved first;
  the operator picks one of the field's allowed values and may type a
  comment (input sub-mode NORMAL/EDITING)

The machine never talks to the network. When a transition is ready it
raises push_transition; the owner reads submission(), sends it, and
calls reset().
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from jira_errors import SchemaError
from jira_keys import BACKSPACE, ESC, EventState, InputMode, Key, KeyConfig, KeyKind
from jira_models import AllowedValue, Transition, TransitionField
from jira_utils import text_to_adf
from jira_widgets import ListCursor

logger = logging.getLogger(__name__)


class TransitionMode(Enum):
    NORMAL = 'normal'
    FLOATING_SCREEN = 'floating_screen'


class FieldKind(Enum):
    """Custom-field kinds recognized in a transition's field schema."""
    SELECT = 'select'
    MULTI_SELECT = 'multiselect'
    TEXT = 'text'
    UNRECOGNIZED = 'unrecognized'


_KIND_SUFFIXES = (
    (':select', FieldKind.SELECT),
    (':multiselect', FieldKind.MULTI_SELECT),
    (':textfield', FieldKind.TEXT),
    (':textarea', FieldKind.TEXT),
)


def classify_field(field: TransitionField) -> FieldKind:
    custom = field.field_schema.custom
    if not custom:
        return FieldKind.UNRECOGNIZED
    for suffix, kind in _KIND_SUFFIXES:
        if custom.endswith(suffix):
            return kind
    return FieldKind.UNRECOGNIZED


@dataclass(frozen=True)
class ResolvedField:
    key: str
    kind: FieldKind
    name: Optional[str]
    allowed_values: Tuple[AllowedValue, ...]


def resolve_fields(transition: Transition) -> List[ResolvedField]:
    """Classify every field of the transition's schema, in schema order."""
    resolved = []
    for key, field in (transition.fields or {}).items():
        resolved.append(ResolvedField(
            key=key,
            kind=classify_field(field),
            name=field.name,
            allowed_values=tuple(field.allowed_values or ()),
        ))
    return resolved


def select_field(transition: Transition) -> ResolvedField:
    """
    The field the floating screen resolves: first select-type field with values.

    Raises:
        SchemaError: No such field in the transition's schema
    """
    if not transition.fields:
        raise SchemaError(f"Transition '{transition.name}' needs a screen but has no field schema")
    for field in resolve_fields(transition):
        if field.kind is FieldKind.SELECT and field.allowed_values:
            return field
    raise SchemaError(f"Transition '{transition.name}' needs a screen but has no selectable field")


@dataclass(frozen=True)
class TransitionRequest:
    """What the owner sends to the API once push_transition is raised."""
    transition_id: str
    field_key: Optional[str] = None
    field_value: Optional[str] = None
    comment: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'transition': {'id': self.transition_id}}
        if self.field_key and self.field_value is not None:
            payload['fields'] = {self.field_key: {'value': self.field_value}}
        if self.comment:
            payload['update'] = {'comment': [{'add': {'body': text_to_adf(self.comment)}}]}
        return payload


@dataclass(frozen=True)
class TransitionView:
    """Read-only snapshot for one render cycle."""
    transitions: Tuple[Transition, ...]
    selected: Optional[int]
    floating_screen: bool
    field_name: Optional[str]
    allowed_values: Tuple[AllowedValue, ...]
    floating_selected: Optional[int]
    comment: str
    input_mode: InputMode


class TransitionState:
    """
    Transition list + floating-screen state for the selected ticket.

    Policy: cancelling the floating screen discards the selection AND
    clears the comment buffer; a cancelled transition leaves nothing
    behind for the next one.
    """

    def __init__(self, key_config: KeyConfig, transitions: Sequence[Transition] = ()):
        self.key_config = key_config
        self.transitions: List[Transition] = []
        self.cursor = ListCursor()
        self.floating_cursor = ListCursor()
        self.mode = TransitionMode.NORMAL
        self.input_mode = InputMode.NORMAL
        self.floating_field: Optional[ResolvedField] = None
        self.comment = ''
        self.push_transition = False
        self.resolved_field_key: Optional[str] = None
        self.resolved_value: Optional[str] = None
        self.update(transitions)

    # ===== Lifecycle =====

    def update(self, transitions: Sequence[Transition]):
        """Load a fresh transition list (new ticket selected)."""
        self.transitions = list(transitions)
        self.reset()

    def reset(self):
        """Clear all progress; first transition (if any) selected."""
        self.cursor.reset(len(self.transitions))
        self._close_floating_screen()
        self.comment = ''
        self.push_transition = False
        self.resolved_field_key = None
        self.resolved_value = None

    def _close_floating_screen(self):
        self.mode = TransitionMode.NORMAL
        self.input_mode = InputMode.NORMAL
        self.floating_field = None
        self.floating_cursor.reset(0)

    # ===== Queries =====

    @property
    def floating_values(self) -> Tuple[AllowedValue, ...]:
        return self.floating_field.allowed_values if self.floating_field else ()

    def selected_transition(self) -> Optional[Transition]:
        return self.cursor.pick(self.transitions)

    def selected_allowed_value(self) -> Optional[AllowedValue]:
        return self.floating_cursor.pick(self.floating_values)

    def submission(self) -> Optional[TransitionRequest]:
        """The request to send, or None until push_transition is raised."""
        transition = self.selected_transition()
        if not self.push_transition or transition is None:
            return None
        return TransitionRequest(
            transition_id=transition.id,
            field_key=self.resolved_field_key,
            field_value=self.resolved_value,
            comment=self.comment.strip() or None,
        )

    def snapshot(self) -> TransitionView:
        field = self.floating_field
        return TransitionView(
            transitions=tuple(self.transitions),
            selected=self.cursor.selected,
            floating_screen=self.mode is TransitionMode.FLOATING_SCREEN,
            field_name=(field.name or field.key) if field else None,
            allowed_values=self.floating_values,
            floating_selected=self.floating_cursor.selected,
            comment=self.comment,
            input_mode=self.input_mode,
        )

    # ===== Transitions between states =====

    def confirm(self):
        """
        Confirm the selected transition.

        No screen: ready for submission. Screen: open the floating screen.

        Raises:
            SchemaError: Screen declared but no selectable field found
        """
        transition = self.selected_transition()
        if transition is None:
            return
        if transition.has_screen:
            self.open_floating_screen()
        else:
            self.resolved_field_key = None
            self.resolved_value = None
            self.push_transition = True

    def open_floating_screen(self):
        transition = self.selected_transition()
        if transition is None:
            return
        field = select_field(transition)  # raises before any state changes
        logger.debug("floating screen for %s: field %s (%d values)",
                     transition.name, field.key, len(field.allowed_values))
        self.floating_field = field
        self.floating_cursor.reset(len(field.allowed_values))
        self.input_mode = InputMode.NORMAL
        self.mode = TransitionMode.FLOATING_SCREEN

    def cancel_floating_screen(self):
        self._close_floating_screen()
        self.comment = ''

    def confirm_floating_screen(self):
        # The screen only opens for a field with allowed values, so one is always selected
        value = self.selected_allowed_value()
        self.resolved_field_key = self.floating_field.key
        self.resolved_value = value.label
        self._close_floating_screen()
        self.push_transition = True

    # ===== Key handling =====

    def handle_key(self, key: Key) -> EventState:
        """
        Route one key event.

        Raises:
            SchemaError: From confirm() on a malformed screen schema
        """
        if self.mode is TransitionMode.FLOATING_SCREEN:
            return self._floating_screen_event(key)

        if self.cursor.navigate(key, self.key_config):
            return EventState.CONSUMED
        if key in self.key_config.enter:
            self.confirm()
            return EventState.CONSUMED
        return EventState.NOT_CONSUMED

    def _floating_screen_event(self, key: Key) -> EventState:
        if self.input_mode is InputMode.EDITING:
            if key.kind is KeyKind.CHAR:
                self.comment += key.char
                return EventState.CONSUMED
            if key == BACKSPACE:
                self.comment = self.comment[:-1]
                return EventState.CONSUMED
            if key == ESC:
                self.input_mode = InputMode.NORMAL
                return EventState.CONSUMED

        if self.floating_cursor.navigate(key, self.key_config):
            return EventState.CONSUMED
        if key in self.key_config.esc:
            self.cancel_floating_screen()
            return EventState.CONSUMED
        if key in self.key_config.edit:
            self.input_mode = InputMode.EDITING
            return EventState.CONSUMED
        if key in self.key_config.enter:
            self.confirm_floating_screen()
            return EventState.CONSUMED
        return EventState.NOT_CONSUMED
