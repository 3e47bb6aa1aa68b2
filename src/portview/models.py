"""Data models for portview."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Server:
    """Immutable snapshot of a TCP server listening on localhost."""

    port: int
    pid: int = 0
    process: str = ""
    command: str = ""
    state: str = ""  # Always 'LISTEN' once discovered
    label: str = ""
    healthy: bool = False
