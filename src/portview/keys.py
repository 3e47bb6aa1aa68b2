"""Key bindings for portview, using Textual key names."""

from enum import Enum


class Action(Enum):
    """Actions that can be bound to keys."""

    UP = "up"
    DOWN = "down"
    OPEN = "open"
    KILL = "kill"
    LABEL = "label"
    HIDE = "hide"
    REFRESH = "refresh"
    FILTER = "filter"
    HELP = "help"
    QUIT = "quit"
    CONFIRM = "confirm"
    CANCEL = "cancel"


BINDINGS: dict[Action, frozenset[str]] = {
    Action.UP: frozenset({"up", "k"}),
    Action.DOWN: frozenset({"down", "j"}),
    Action.OPEN: frozenset({"o", "enter"}),
    Action.KILL: frozenset({"x"}),
    Action.LABEL: frozenset({"l"}),
    Action.HIDE: frozenset({"h"}),
    Action.REFRESH: frozenset({"r"}),
    Action.FILTER: frozenset({"slash"}),
    Action.HELP: frozenset({"question_mark"}),
    Action.QUIT: frozenset({"q", "ctrl+c"}),
    Action.CONFIRM: frozenset({"y"}),
    Action.CANCEL: frozenset({"n", "escape"}),
}

# (keys, description) pairs shown in the help panel
HELP_ENTRIES: list[tuple[str, str]] = [
    ("j/k, ↑/↓", "Navigate"),
    ("o, enter", "Open in browser"),
    ("x", "Kill process"),
    ("l", "Edit label"),
    ("h", "Hide port"),
    ("r", "Refresh"),
    ("/", "Filter"),
    ("?", "Toggle help"),
    ("q", "Quit"),
]

HINTS = "j/k:nav  o:open  x:kill  l:label  h:hide  /:filter  ?:help  q:quit"


def matches(key: str, action: Action) -> bool:
    """Check whether a key name is bound to an action."""
    return key in BINDINGS[action]
