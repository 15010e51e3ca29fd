"""
Tests for the transition selection state machine.
"""

import pytest

from jira_errors import SchemaError
from jira_keys import BACKSPACE, DOWN, ENTER, ESC, EventState, InputMode, Key, PAGE_DOWN
from jira_transition import (
    FieldKind,
    TransitionMode,
    TransitionRequest,
    TransitionState,
    classify_field,
    resolve_fields,
    select_field as pick_select_field,
)
from jira_models import TransitionField

from conftest import make_transition, select_field


def press(state, *keys):
    for key in keys:
        state.handle_key(Key.ch(key) if isinstance(key, str) else key)


def type_text(state, text):
    press(state, *text)


@pytest.fixture
def done_transition():
    return make_transition('31', 'Done', has_screen=True, fields={
        'customfield_10100': select_field('Fixed', "Won't Fix", 'Duplicate'),
    })


@pytest.fixture
def state(key_config, done_transition):
    return TransitionState(key_config, [
        make_transition('11', 'Start Progress'),
        make_transition('21', 'Review'),
        done_transition,
    ])


class TestNavigation:

    def test_update_selects_first(self, state):
        assert state.cursor.selected == 0
        assert state.mode is TransitionMode.NORMAL
        assert not state.push_transition

    def test_empty_list_navigation_is_noop(self, key_config):
        state = TransitionState(key_config, [])

        press(state, 'j', 'k', 'G', 'g', PAGE_DOWN)

        assert state.cursor.selected is None
        assert state.selected_transition() is None

    def test_moves_are_clamped(self, state):
        press(state, 'k')
        assert state.cursor.selected == 0

        press(state, 'j', 'j', 'j', 'j')
        assert state.cursor.selected == 2

    def test_page_jump_clamps_to_bottom(self, state):
        press(state, 'J')
        assert state.cursor.selected == 2

        press(state, 'K')
        assert state.cursor.selected == 0

    def test_top_and_bottom(self, state):
        press(state, 'G')
        assert state.cursor.selected == 2
        press(state, 'g')
        assert state.cursor.selected == 0

    def test_arrow_keys_navigate(self, state):
        press(state, DOWN)
        assert state.cursor.selected == 1

    def test_unbound_key_not_consumed(self, state):
        assert state.handle_key(Key.ch('z')) is EventState.NOT_CONSUMED

    def test_update_resets_progress(self, state, key_config):
        press(state, 'j', ENTER)
        assert state.push_transition

        state.update([make_transition('41', 'Reopen')])

        assert state.cursor.selected == 0
        assert not state.push_transition
        assert state.submission() is None


class TestConfirm:

    def test_confirm_without_screen_raises_push(self, state):
        press(state, ENTER)

        assert state.push_transition
        assert state.mode is TransitionMode.NORMAL
        assert state.submission() == TransitionRequest('11')

    def test_single_done_transition_is_ready_immediately(self, key_config):
        state = TransitionState(key_config, [make_transition('1', 'Done', has_screen=False)])

        press(state, ENTER)

        assert state.push_transition
        assert state.mode is TransitionMode.NORMAL
        assert state.floating_field is None
        assert state.submission().transition_id == '1'

    def test_confirm_with_nothing_selected_is_noop(self, key_config):
        state = TransitionState(key_config, [])

        press(state, ENTER)

        assert not state.push_transition
        assert state.mode is TransitionMode.NORMAL

    def test_confirm_with_screen_opens_floating_screen(self, state):
        press(state, 'G', ENTER)

        assert state.mode is TransitionMode.FLOATING_SCREEN
        assert [v.label for v in state.floating_values] == ['Fixed', "Won't Fix", 'Duplicate']
        assert state.floating_cursor.selected == 0
        assert state.floating_field.key == 'customfield_10100'
        assert not state.push_transition

    def test_screen_without_selectable_field_raises_and_keeps_state(self, key_config):
        broken = make_transition('31', 'Done', has_screen=True, fields={
            'customfield_1': {'name': 'Notes', 'schema': {
                'custom': 'com.atlassian.jira.plugin.system.customfieldtypes:textarea'}},
        })
        state = TransitionState(key_config, [broken])

        with pytest.raises(SchemaError):
            state.handle_key(ENTER)

        assert state.mode is TransitionMode.NORMAL
        assert state.floating_field is None
        assert not state.push_transition

    def test_screen_without_field_schema_raises(self, key_config):
        state = TransitionState(key_config, [make_transition('31', 'Done', has_screen=True)])

        with pytest.raises(SchemaError):
            state.confirm()


class TestFloatingScreen:

    def test_navigate_and_confirm_value(self, state):
        press(state, 'G', ENTER, 'j', ENTER)

        assert state.mode is TransitionMode.NORMAL
        assert state.push_transition
        assert state.resolved_value == "Won't Fix"
        assert state.submission() == TransitionRequest('31', 'customfield_10100', "Won't Fix")

    def test_floating_navigation_is_clamped(self, state):
        press(state, 'G', ENTER, 'G', 'j', 'j')
        assert state.floating_cursor.selected == 2

        press(state, 'K')
        assert state.floating_cursor.selected == 0

    def test_comment_editing(self, state):
        press(state, 'G', ENTER, 'e')
        assert state.input_mode is InputMode.EDITING

        type_text(state, 'Shipped it!')
        press(state, BACKSPACE, ESC)

        assert state.comment == 'Shipped it'
        assert state.input_mode is InputMode.NORMAL
        assert state.mode is TransitionMode.FLOATING_SCREEN

    def test_editing_captures_navigation_letters(self, state):
        press(state, 'G', ENTER, 'e')

        type_text(state, 'jjk')

        assert state.comment == 'jjk'
        assert state.floating_cursor.selected == 0

    def test_enter_while_editing_confirms_with_comment(self, state):
        press(state, 'G', ENTER, 'j', 'j', 'e')
        type_text(state, 'dup of PROJ-2')
        press(state, ENTER)

        assert state.submission() == TransitionRequest('31', 'customfield_10100', 'Duplicate', 'dup of PROJ-2')

    def test_cancel_discards_selection_and_comment(self, state):
        press(state, 'G', ENTER, 'j', 'e')
        type_text(state, 'never mind')
        press(state, ESC, ESC)

        assert state.mode is TransitionMode.NORMAL
        assert state.floating_field is None
        assert state.comment == ''
        assert not state.push_transition
        assert state.cursor.selected == 2

    def test_reopen_after_cancel_starts_fresh(self, state):
        press(state, 'G', ENTER, 'j', 'j', ESC, ENTER)

        assert state.floating_cursor.selected == 0
        assert state.comment == ''

    def test_snapshot_reflects_floating_screen(self, state):
        press(state, 'G', ENTER, 'e')
        type_text(state, 'ok')

        view = state.snapshot()

        assert view.floating_screen
        assert view.field_name == 'Resolution'
        assert view.floating_selected == 0
        assert view.comment == 'ok'
        assert view.input_mode is InputMode.EDITING


class TestFieldResolution:

    def test_classify_by_custom_suffix(self):
        def field(custom):
            return TransitionField.model_validate({'schema': {'custom': custom}})

        assert classify_field(field('x:select')) is FieldKind.SELECT
        assert classify_field(field('x:multiselect')) is FieldKind.MULTI_SELECT
        assert classify_field(field('x:textfield')) is FieldKind.TEXT
        assert classify_field(field('x:labels')) is FieldKind.UNRECOGNIZED
        assert classify_field(TransitionField()) is FieldKind.UNRECOGNIZED

    def test_first_select_field_in_schema_order_wins(self):
        transition = make_transition('31', 'Done', has_screen=True, fields={
            'customfield_1': {'schema': {'custom': 'x:textarea'}},
            'customfield_2': select_field('A', 'B'),
            'customfield_3': select_field('C'),
        })

        assert [f.key for f in resolve_fields(transition)] == ['customfield_1', 'customfield_2', 'customfield_3']
        assert pick_select_field(transition).key == 'customfield_2'

    def test_select_field_without_values_is_skipped(self):
        transition = make_transition('31', 'Done', has_screen=True, fields={
            'customfield_1': select_field(),
            'customfield_2': select_field('Only'),
        })

        assert pick_select_field(transition).key == 'customfield_2'

    def test_allowed_value_metadata_kept(self):
        field = TransitionField.model_validate({
            'schema': {'custom': 'x:select'},
            'allowedValues': [{'id': '7', 'value': 'Fixed', 'self': 'https://x/7', 'disabled': False}],
        })

        value = field.allowed_values[0]
        assert value.label == 'Fixed'
        assert value.metadata == {'self': 'https://x/7', 'disabled': False}


class TestTransitionRequest:

    def test_bare_payload(self):
        assert TransitionRequest('11').to_payload() == {'transition': {'id': '11'}}

    def test_payload_with_field_and_comment(self):
        payload = TransitionRequest('31', 'customfield_10100', 'Fixed', 'done').to_payload()

        assert payload['fields'] == {'customfield_10100': {'value': 'Fixed'}}
        body = payload['update']['comment'][0]['add']['body']
        assert body['type'] == 'doc'
        assert body['content'][0]['content'][0]['text'] == 'done'
