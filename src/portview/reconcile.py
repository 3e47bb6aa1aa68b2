"""Merging scan results with stored labels, hidden ports and the text filter."""

from collections.abc import Collection, Mapping
from dataclasses import replace

from portview.config import Config
from portview.models import Server


def merge_labels(servers: list[Server], labels: Mapping[int, str]) -> list[Server]:
    """Apply stored labels by port. Servers without a stored label are unchanged."""
    return [
        replace(s, label=labels[s.port]) if s.port in labels else s
        for s in servers
    ]


def filter_hidden(servers: list[Server], hidden: Collection[int] | None) -> list[Server]:
    """Drop servers whose port is hidden, preserving order."""
    if not hidden:
        return list(servers)
    return [s for s in servers if s.port not in hidden]


def matches(server: Server, text: str) -> bool:
    """
    Check whether a server matches the filter text.

    Process name and label match case-insensitively; the port matches
    as a plain substring of its decimal form.
    """
    lower = text.lower()
    return (
        lower in server.process.lower()
        or lower in server.label.lower()
        or text in str(server.port)
    )


def apply_filter(servers: list[Server], text: str) -> list[Server]:
    """Return the servers visible under the filter text."""
    if not text:
        return list(servers)
    return [s for s in servers if matches(s, text)]


def clamp_cursor(cursor: int, length: int) -> int:
    """Clamp a cursor index into a list of the given length."""
    if length <= 0:
        return 0
    return max(0, min(cursor, length - 1))


def reconcile(servers: list[Server], config: Config) -> list[Server]:
    """Merge labels then drop hidden ports, producing the known set."""
    return filter_hidden(merge_labels(servers, config.labels), config.hidden)
