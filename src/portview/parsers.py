"""Parsers for the raw listings portview reads from the operating system.

Every function here is pure: it takes the text a platform tool produced and
returns normalized values. Lines that do not fit the expected shape are
skipped without raising.
"""

import string

from portview.models import Server

LISTEN = "LISTEN"

# Marker lsof appends to the NAME column of listening sockets.
LSOF_LISTEN_MARKER = "(LISTEN)"

# TCP_LISTEN as written in the st column of /proc/net/tcp.
PROC_LISTEN_STATE = "0A"

HEX_DIGITS = frozenset(string.hexdigits)


def _parse_decimal(text: str) -> int | None:
    """Parse plain ASCII digits such as ``8080``, or return None."""
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def _parse_hex(text: str) -> int | None:
    """Parse bare hex digits such as ``1F90``, or return None."""
    if not text or any(c not in HEX_DIGITS for c in text):
        return None
    return int(text, 16)


def _data_lines(text: str) -> list[str]:
    """Return the lines after the header, or an empty list."""
    lines = text.strip().splitlines()
    return lines[1:]


def _port_after_last_colon(address: str) -> int | None:
    """Extract the port from 'host:port', '*:port' or '[::1]:port'."""
    host, sep, port = address.rpartition(":")
    if not sep:
        return None
    return _parse_decimal(port)


def parse_lsof(output: str) -> list[Server] | None:
    """
    Parse the output of ``lsof -iTCP -sTCP:LISTEN -nP``.

    A listening line looks like::

        node  1234 user  12u  IPv4 0x1234  0t0  TCP *:8080 (LISTEN)

    Returns None when the output is empty, header-only, or has no valid lines.
    """
    servers: list[Server] = []

    for line in _data_lines(output):
        # COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME (LISTEN)
        fields = line.split()
        if len(fields) < 10:
            continue

        pid = _parse_decimal(fields[1])
        if pid is None:
            continue

        if fields[-1] != LSOF_LISTEN_MARKER:
            continue

        port = _port_after_last_colon(fields[-2])
        if port is None:
            continue

        servers.append(Server(port=port, pid=pid, process=fields[0], state=LISTEN))

    return servers or None


def parse_proc_net_tcp(content: str) -> list[Server] | None:
    """
    Parse the contents of ``/proc/net/tcp``.

    Only records in the LISTEN state are kept. Ports are hex encoded
    (``1F90`` is 8080). PIDs are not present in this table.
    """
    servers: list[Server] = []

    for line in _data_lines(content):
        fields = line.split()
        if len(fields) < 4:
            continue

        if fields[3] != PROC_LISTEN_STATE:
            continue

        parts = fields[1].split(":")
        if len(parts) != 2:
            continue
        port = _parse_hex(parts[1])
        if port is None:
            continue

        servers.append(Server(port=port, state=LISTEN))

    return servers or None


def _extract_ss_pid(fields: list[str]) -> int:
    """Find ``pid=NNNN`` in the trailing ss columns, 0 when absent."""
    joined = " ".join(fields)
    marker = "pid="
    idx = joined.find(marker)
    if idx < 0:
        return 0

    rest = joined[idx + len(marker):]
    end = min((i for i in (rest.find(","), rest.find(")")) if i >= 0), default=-1)
    if end < 0:
        return 0

    return _parse_decimal(rest[:end]) or 0


def parse_ss(output: str) -> dict[int, int]:
    """
    Parse ``ss -tlnp`` output into a port -> PID map.

    Example data lines::

        LISTEN 0 128 0.0.0.0:8080 0.0.0.0:* users:(("node",pid=1234,fd=12))
        LISTEN 0 128    [::]:22     [::]:*  users:(("sshd",pid=567,fd=3))
    """
    port_pids: dict[int, int] = {}

    for line in _data_lines(output):
        fields = line.split()
        if len(fields) < 5:
            continue

        port = _port_after_last_colon(fields[3])
        if port is None:
            continue

        pid = _extract_ss_pid(fields[4:])
        if pid > 0:
            port_pids[port] = pid

    return port_pids


def parse_ps(output: str) -> tuple[str, str] | None:
    """Split ``ps -o comm=,args=`` output into (comm, args)."""
    line = output.strip()
    if not line:
        return None
    comm, _, args = line.partition(" ")
    return comm, args.strip()
