"""Shared fixtures for portview tests."""

import socket
from collections.abc import Iterator

import pytest

from portview.models import Server


@pytest.fixture
def sample_servers() -> list[Server]:
    """Three servers as a scan would return them."""
    return [
        Server(port=8080, pid=1234, process="node", command="node server.js", state="LISTEN", healthy=True),
        Server(port=3000, pid=5678, process="python", command="python app.py", state="LISTEN"),
        Server(port=443, pid=9012, process="nginx", command="nginx -g daemon off", state="LISTEN", healthy=True),
    ]


@pytest.fixture
def listener() -> Iterator[int]:
    """A live TCP listener on 127.0.0.1; yields its port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(16)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


@pytest.fixture
def closed_port() -> int:
    """A port on 127.0.0.1 with nothing listening."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
