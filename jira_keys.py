#!/usr/bin/env python3

"""
Jira Keys - Normalized key events and key bindings

The curses front end decodes raw key codes into Key values; everything
behind it (state machines, controllers) only ever sees Key.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


class KeyKind(Enum):
    CHAR = 'char'
    BACKSPACE = 'backspace'
    ESC = 'esc'
    ENTER = 'enter'
    TAB = 'tab'
    UP = 'up'
    DOWN = 'down'
    PAGE_UP = 'page_up'
    PAGE_DOWN = 'page_down'
    HOME = 'home'
    END = 'end'


@dataclass(frozen=True)
class Key:
    kind: KeyKind
    char: str = ''

    @classmethod
    def ch(cls, char: str) -> 'Key':
        return cls(KeyKind.CHAR, char)

    def __str__(self) -> str:
        if self.kind is KeyKind.CHAR:
            return self.char
        return f"<{self.kind.value}>"


BACKSPACE = Key(KeyKind.BACKSPACE)
ESC = Key(KeyKind.ESC)
ENTER = Key(KeyKind.ENTER)
TAB = Key(KeyKind.TAB)
UP = Key(KeyKind.UP)
DOWN = Key(KeyKind.DOWN)
PAGE_UP = Key(KeyKind.PAGE_UP)
PAGE_DOWN = Key(KeyKind.PAGE_DOWN)
HOME = Key(KeyKind.HOME)
END = Key(KeyKind.END)


def _keys(*keys) -> Tuple[Key, ...]:
    return tuple(Key.ch(k) if isinstance(k, str) else k for k in keys)


@dataclass(frozen=True)
class KeyConfig:
    """Key bindings; each action accepts any of its keys (vim keys + arrows)."""
    scroll_down: Tuple[Key, ...] = field(default_factory=lambda: _keys('j', DOWN))
    scroll_up: Tuple[Key, ...] = field(default_factory=lambda: _keys('k', UP))
    scroll_down_multiple_lines: Tuple[Key, ...] = field(default_factory=lambda: _keys('J', PAGE_DOWN))
    scroll_up_multiple_lines: Tuple[Key, ...] = field(default_factory=lambda: _keys('K', PAGE_UP))
    scroll_to_top: Tuple[Key, ...] = field(default_factory=lambda: _keys('g', HOME))
    scroll_to_bottom: Tuple[Key, ...] = field(default_factory=lambda: _keys('G', END))
    enter: Tuple[Key, ...] = field(default_factory=lambda: _keys(ENTER))
    esc: Tuple[Key, ...] = field(default_factory=lambda: _keys(ESC))
    edit: Tuple[Key, ...] = field(default_factory=lambda: _keys('e'))
    push: Tuple[Key, ...] = field(default_factory=lambda: _keys('P'))
    focus_next: Tuple[Key, ...] = field(default_factory=lambda: _keys(TAB))
    transition: Tuple[Key, ...] = field(default_factory=lambda: _keys('t'))
    comment: Tuple[Key, ...] = field(default_factory=lambda: _keys('c'))
    open_browser: Tuple[Key, ...] = field(default_factory=lambda: _keys('o'))
    refresh: Tuple[Key, ...] = field(default_factory=lambda: _keys('r'))
    quit: Tuple[Key, ...] = field(default_factory=lambda: _keys('q'))

    # Lines moved by the *_multiple_lines actions
    page_size: int = 10


class EventState(Enum):
    CONSUMED = 'consumed'
    NOT_CONSUMED = 'not_consumed'

    def is_consumed(self) -> bool:
        return self is EventState.CONSUMED


class InputMode(Enum):
    NORMAL = 'normal'
    EDITING = 'editing'
