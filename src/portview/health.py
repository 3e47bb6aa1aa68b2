"""Concurrent TCP liveness probing."""

import socket
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from portview.models import Server

PROBE_HOST = "127.0.0.1"
MAX_PROBE_WORKERS = 64


def probe(port: int, timeout: float) -> bool:
    """Return True if a TCP connection to localhost:port succeeds within timeout."""
    try:
        with socket.create_connection((PROBE_HOST, port), timeout=timeout):
            return True
    except (OSError, OverflowError):
        return False


def check_health(
    servers: list[Server],
    timeout: float,
    max_workers: int | None = None,
) -> list[Server]:
    """
    Probe every server concurrently and return copies with ``healthy`` set.

    The input list is never modified. Results are index-aligned with the
    input. Each probe is capped at ``timeout`` seconds. Probes run in batches
    of at most ``max_workers``, so the worst case is about
    ``ceil(len(servers) / max_workers) * timeout``: one timeout for up to
    MAX_PROBE_WORKERS servers, longer beyond that.

    Args:
        servers: Servers to probe.
        timeout: Per-probe connect timeout in seconds.
        max_workers: Upper bound on concurrent probes. Defaults to one
            per server, capped at MAX_PROBE_WORKERS.
    """
    if not servers:
        return []

    workers = max_workers or min(len(servers), MAX_PROBE_WORKERS)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="HealthProbe") as pool:
        results = list(pool.map(lambda s: probe(s.port, timeout), servers))

    return [replace(s, healthy=ok) for s, ok in zip(servers, results)]
