"""Interaction state machine for portview.

The Controller holds everything the view needs and turns messages (key
presses, ticks, completed background work) into state changes plus a list
of effects for the caller to execute. It performs no I/O itself and is only
ever driven from the event loop, one message at a time.
"""

import logging
import time
from dataclasses import replace
from enum import Enum
from pathlib import Path

from portview import keys
from portview.config import Config
from portview.keys import Action
from portview.messages import (
    ConfigSaved,
    Effect,
    Kill,
    KillCompleted,
    KeyPress,
    Message,
    OpenBrowser,
    Quit,
    SaveConfig,
    Scan,
    ScanCompleted,
    ScheduleTick,
    Tick,
)
from portview.models import Server
from portview.reconcile import apply_filter, clamp_cursor, reconcile

logger = logging.getLogger(__name__)

LABEL_CHAR_LIMIT = 30


class Mode(Enum):
    """Interaction modes."""

    NORMAL = "normal"
    FILTER = "filter"
    LABEL = "label"
    CONFIRM_KILL = "confirm_kill"
    HELP = "help"


class LineInput:
    """Single-line text editor used for label entry."""

    def __init__(self, char_limit: int = LABEL_CHAR_LIMIT, placeholder: str = "") -> None:
        """
        Initialize the LineInput.

        Args:
            char_limit: Maximum length of the text.
            placeholder: Hint shown while the text is empty.
        """
        self.char_limit = char_limit
        self.placeholder = placeholder
        self._value = ""
        self._position = 0

    @property
    def value(self) -> str:
        """Get the current text."""
        return self._value

    @property
    def position(self) -> int:
        """Get the cursor position within the text."""
        return self._position

    def set_value(self, value: str) -> None:
        """Replace the text and move the cursor to the end."""
        self._value = value[: self.char_limit]
        self._position = len(self._value)

    def handle(self, event: KeyPress) -> bool:
        """Apply an editing key. Returns True if the key was consumed."""
        value, pos = self._value, self._position

        if event.key == "left":
            self._position = max(0, pos - 1)
        elif event.key == "right":
            self._position = min(len(value), pos + 1)
        elif event.key in ("home", "ctrl+a"):
            self._position = 0
        elif event.key in ("end", "ctrl+e"):
            self._position = len(value)
        elif event.key == "backspace":
            if pos > 0:
                self._value = value[: pos - 1] + value[pos:]
                self._position = pos - 1
        elif event.key == "delete":
            self._value = value[:pos] + value[pos + 1:]
        elif event.key == "ctrl+u":
            self._value = value[pos:]
            self._position = 0
        elif event.key == "ctrl+k":
            self._value = value[:pos]
        elif event.is_printable:
            room = self.char_limit - len(value)
            text = event.character[:room]
            self._value = value[:pos] + text + value[pos:]
            self._position = pos + len(text)
        else:
            return False
        return True


class Controller:
    """
    Mode-based controller for the server list.

    ``servers`` is the known set (labels merged, hidden ports removed) and
    ``visible`` is the subset that survives the text filter, in display order.
    Scans are coalesced: while one is in flight, further requests are folded
    into a single follow-up scan.
    """

    def __init__(self, config: Config, config_path: str | Path) -> None:
        """
        Initialize the Controller.

        Args:
            config: Loaded configuration.
            config_path: Where label and hidden-port changes are saved.
        """
        self.config = config
        self.config_path = Path(config_path)
        self.mode = Mode.NORMAL
        self.servers: list[Server] = []
        self.visible: list[Server] = []
        self.cursor = 0
        self.filter_text = ""
        self.label_input = LineInput(placeholder="label")
        self.error: str | None = None
        self.last_refresh: float | None = None
        self.scan_in_flight = False
        self.scan_pending = False

    @property
    def selected(self) -> Server | None:
        """Get the server under the cursor, if any."""
        if not self.visible:
            return None
        return self.visible[self.cursor]

    def start(self) -> list[Effect]:
        """Effects to run when the application starts."""
        return [*self._request_scan(), ScheduleTick(self.config.refresh_interval)]

    def handle(self, message: Message) -> list[Effect]:
        """Process one message and return the effects it triggers."""
        if isinstance(message, KeyPress):
            return self._handle_key(message)
        if isinstance(message, Tick):
            return [*self._request_scan(), ScheduleTick(self.config.refresh_interval)]
        if isinstance(message, ScanCompleted):
            return self._handle_scan_completed(message)
        if isinstance(message, KillCompleted):
            if message.error:
                self.error = f"kill {message.pid}: {message.error}"
            return self._request_scan()
        if isinstance(message, ConfigSaved):
            if message.error:
                self.error = message.error
            return []
        return []

    # Scanning

    def _request_scan(self) -> list[Effect]:
        if self.scan_in_flight:
            self.scan_pending = True
            return []
        self.scan_in_flight = True
        return [Scan()]

    def _handle_scan_completed(self, message: ScanCompleted) -> list[Effect]:
        self.scan_in_flight = False

        if message.error:
            self.error = message.error
        else:
            self.error = None
            self.servers = reconcile(message.servers, self.config)
            self.last_refresh = time.monotonic()
            self.apply_filter()

        if self.scan_pending:
            self.scan_pending = False
            return self._request_scan()
        return []

    def apply_filter(self) -> None:
        """Recompute the visible set from the known set and clamp the cursor."""
        self.visible = apply_filter(self.servers, self.filter_text)
        self.cursor = clamp_cursor(self.cursor, len(self.visible))

    # Keys

    def _handle_key(self, event: KeyPress) -> list[Effect]:
        handler = {
            Mode.NORMAL: self._handle_normal_key,
            Mode.FILTER: self._handle_filter_key,
            Mode.CONFIRM_KILL: self._handle_confirm_kill_key,
            Mode.LABEL: self._handle_label_key,
            Mode.HELP: self._handle_help_key,
        }[self.mode]
        return handler(event)

    def _handle_normal_key(self, event: KeyPress) -> list[Effect]:
        key = event.key

        if keys.matches(key, Action.QUIT):
            return [Quit()]
        if keys.matches(key, Action.DOWN):
            self.cursor = clamp_cursor(self.cursor + 1, len(self.visible))
            return []
        if keys.matches(key, Action.UP):
            self.cursor = clamp_cursor(self.cursor - 1, len(self.visible))
            return []
        if keys.matches(key, Action.FILTER):
            self.mode = Mode.FILTER
            return []
        if keys.matches(key, Action.HELP):
            self.mode = Mode.HELP
            return []
        if keys.matches(key, Action.REFRESH):
            return self._request_scan()

        selected = self.selected
        if selected is None:
            return []

        if keys.matches(key, Action.KILL):
            self.mode = Mode.CONFIRM_KILL
            return []
        if keys.matches(key, Action.LABEL):
            self.mode = Mode.LABEL
            self.label_input.set_value(self.config.label_for(selected.port))
            return []
        if keys.matches(key, Action.OPEN):
            return [OpenBrowser(selected.port)]
        if keys.matches(key, Action.HIDE):
            return self._toggle_hidden(selected.port)
        return []

    def _handle_filter_key(self, event: KeyPress) -> list[Effect]:
        if event.key in ("escape", "enter"):
            self.mode = Mode.NORMAL
        elif event.key == "backspace":
            if self.filter_text:
                self.filter_text = self.filter_text[:-1]
                self.apply_filter()
        elif event.is_printable:
            self.filter_text += event.character
            self.apply_filter()
        return []

    def _handle_confirm_kill_key(self, event: KeyPress) -> list[Effect]:
        if keys.matches(event.key, Action.CONFIRM):
            self.mode = Mode.NORMAL
            selected = self.selected
            if selected is None:
                return []
            logger.info("Killing pid %d on port %d", selected.pid, selected.port)
            return [Kill(selected.pid)]
        if keys.matches(event.key, Action.CANCEL):
            self.mode = Mode.NORMAL
        return []

    def _handle_label_key(self, event: KeyPress) -> list[Effect]:
        if event.key == "escape":
            self.mode = Mode.NORMAL
            return []
        if event.key == "enter":
            self.mode = Mode.NORMAL
            selected = self.selected
            if selected is None:
                return []
            return self._set_label(selected.port, self.label_input.value)

        self.label_input.handle(event)
        return []

    def _handle_help_key(self, event: KeyPress) -> list[Effect]:
        self.mode = Mode.NORMAL
        return []

    # Config changes

    def _set_label(self, port: int, label: str) -> list[Effect]:
        if label:
            self.config = self.config.with_label(port, label)
        else:
            self.config = self.config.without_label(port)

        self.servers = [replace(s, label=label) if s.port == port else s for s in self.servers]
        self.visible = [replace(s, label=label) if s.port == port else s for s in self.visible]
        return [SaveConfig(self.config_path, self.config)]

    def _toggle_hidden(self, port: int) -> list[Effect]:
        self.config = self.config.with_hidden_toggled(port)
        self.servers = reconcile(self.servers, self.config)
        self.apply_filter()
        return [SaveConfig(self.config_path, self.config)]
