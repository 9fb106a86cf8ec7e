"""Key bindings and key names for terminal input.

Key names: single printable characters as typed ("a", "D", " ", "?"), plus
"up", "down", "left", "right", "enter", "esc", "tab", "shift+tab",
"backspace", "delete", "home", "end" and "ctrl+c".
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from prompt_toolkit.key_binding.key_processor import KeyPress
from prompt_toolkit.keys import Keys

from models import Priority


@dataclass(frozen=True)
class Binding:
    keys: Tuple[str, ...]
    help_key: str
    help_text: str

    def matches(self, key: str) -> bool:
        return key in self.keys


def _bind(keys: Tuple[str, ...], help_key: str, help_text: str):
    return field(default_factory=lambda: Binding(keys, help_key, help_text))


@dataclass(frozen=True)
class KeyMap:
    # navigation
    up: Binding = _bind(("up", "k"), "↑/k", "up")
    down: Binding = _bind(("down", "j"), "↓/j", "down")
    left: Binding = _bind(("left", "h"), "←/h", "left")
    right: Binding = _bind(("right", "l"), "→/l", "right")
    # actions
    add: Binding = _bind(("a",), "a", "add")
    edit: Binding = _bind(("e",), "e", "edit")
    done: Binding = _bind(("D",), "D", "done")
    delete: Binding = _bind(("x",), "x", "delete")
    backward: Binding = _bind(("b",), "b", "backward")
    detail: Binding = _bind(("v",), "v", "detail")
    due: Binding = _bind(("d",), "d", "due date")
    tags: Binding = _bind(("t",), "t", "tags")
    recurrence: Binding = _bind(("r",), "r", "recurrence")
    # view
    toggle_view: Binding = _bind(("tab",), "tab", "switch view")
    select: Binding = _bind(("enter",), "enter", "select")
    toggle_done: Binding = _bind(("A",), "A", "toggle done")
    # filter
    search: Binding = _bind(("/",), "/", "search")
    clear_search: Binding = _bind(("c",), "c", "clear search")
    project: Binding = _bind(("p",), "p", "project")
    theme: Binding = _bind(("T",), "T", "theme")
    # general
    help: Binding = _bind(("?",), "?", "help")
    cancel: Binding = _bind(("esc",), "esc", "cancel")
    quit: Binding = _bind(("q", "ctrl+c"), "q", "quit")

    def short_help(self) -> List[Binding]:
        """Bindings shown in the status bar."""
        return [self.up, self.down, self.select, self.add, self.edit, self.delete, self.project, self.help]


KEYS = KeyMap()

PRIORITY_KEYS = {"0": Priority.NONE, "1": Priority.HIGH, "2": Priority.MEDIUM, "3": Priority.LOW}

_NAMED = {
    Keys.Up: "up",
    Keys.Down: "down",
    Keys.Left: "left",
    Keys.Right: "right",
    Keys.Home: "home",
    Keys.End: "end",
    Keys.Delete: "delete",
    Keys.Enter: "enter",
    Keys.ControlJ: "enter",
    Keys.Tab: "tab",
    Keys.BackTab: "shift+tab",
    Keys.Backspace: "backspace",
    Keys.Escape: "esc",
    Keys.ControlC: "ctrl+c",
}


def key_names(presses: Iterable[KeyPress]) -> List[str]:
    """Map prompt_toolkit key presses to key names.

    Pasted text becomes one key per printable character; keys with no name
    here are dropped.
    """
    keys: List[str] = []
    for press in presses:
        if press.key == Keys.BracketedPaste:
            keys.extend(ch for ch in press.data if is_text(ch))
        elif press.key in _NAMED:
            keys.append(_NAMED[press.key])
        elif not isinstance(press.key, Keys) and is_text(press.key):
            keys.append(press.key)
    return keys


def is_text(key: str) -> bool:
    """True for keys that insert a character in a text field."""
    return len(key) == 1 and key.isprintable()
