"""Messages consumed and effects emitted by the interaction controller.

Messages flow into ``Controller.handle``. Effects flow out of it and are
executed off the event loop; their completion comes back as a message.
"""

from dataclasses import dataclass, field
from pathlib import Path

from portview.config import Config
from portview.models import Server


# Messages


@dataclass(slots=True, frozen=True)
class KeyPress:
    """A key pressed by the user, named the way Textual names keys."""

    key: str
    character: str | None = None

    @property
    def is_printable(self) -> bool:
        """Check whether the key produces printable text."""
        return bool(self.character) and self.character.isprintable()


@dataclass(slots=True, frozen=True)
class Tick:
    """The refresh interval elapsed."""


@dataclass(slots=True, frozen=True)
class ScanCompleted:
    """Result of a background scan."""

    servers: list[Server] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True, frozen=True)
class KillCompleted:
    """Result of delivering a termination signal."""

    pid: int
    error: str | None = None


@dataclass(slots=True, frozen=True)
class ConfigSaved:
    """Result of persisting the configuration."""

    error: str | None = None


Message = KeyPress | Tick | ScanCompleted | KillCompleted | ConfigSaved


# Effects


@dataclass(slots=True, frozen=True)
class Quit:
    """Exit the application."""


@dataclass(slots=True, frozen=True)
class Scan:
    """Run a scan followed by health probing."""


@dataclass(slots=True, frozen=True)
class ScheduleTick:
    """Deliver a Tick after the given number of seconds."""

    interval: float


@dataclass(slots=True, frozen=True)
class Kill:
    """Send a termination signal to a process."""

    pid: int


@dataclass(slots=True, frozen=True)
class OpenBrowser:
    """Open http://localhost:<port> with the default handler."""

    port: int


@dataclass(slots=True, frozen=True)
class SaveConfig:
    """Persist a configuration snapshot."""

    path: Path
    config: Config


Effect = Quit | Scan | ScheduleTick | Kill | OpenBrowser | SaveConfig
