"""Discovery of listening TCP servers on the local machine.

Two scanners are provided, one per platform family:

- ``ProcNetScanner`` (Linux) reads /proc/net/tcp, maps ports to PIDs with a
  single ``ss -tlnp`` call and reads process details from /proc/<pid>.
- ``LsofScanner`` (macOS and BSDs) runs ``lsof`` and refines each entry
  with ``ps``.

``new_scanner`` picks the right one for the running platform.
"""

import logging
import subprocess
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from portview.config import PortRange
from portview.errors import ScanError
from portview.models import Server
from portview.parsers import parse_lsof, parse_proc_net_tcp, parse_ps, parse_ss

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 5.0

CommandRunner = Callable[[list[str]], str]


def run_command(args: list[str], timeout: float = DEFAULT_COMMAND_TIMEOUT) -> str:
    """
    Run an external command and return its stdout.

    Raises:
        OSError: If the command cannot be started.
        subprocess.SubprocessError: On a non-zero exit status or timeout.
    """
    result = subprocess.run(
        args,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout,
        check=True,
    )
    return result.stdout


class Scanner(ABC):
    """Discovers TCP servers listening on localhost."""

    def __init__(self, port_range: PortRange, run: CommandRunner = run_command) -> None:
        """
        Initialize the scanner.

        Args:
            port_range: Ports outside this range are dropped from results.
            run: Callable that executes a command and returns its stdout.
        """
        self._port_range = port_range
        self._run = run

    @property
    def port_range(self) -> PortRange:
        """Get the configured port range."""
        return self._port_range

    @abstractmethod
    def scan(self) -> list[Server]:
        """
        Discover listening servers.

        Raises:
            ScanError: If the platform listing source cannot be read.
        """

    def _in_range(self, servers: list[Server]) -> list[Server]:
        return [s for s in servers if self._port_range.contains(s.port)]


class LsofScanner(Scanner):
    """Scanner backed by lsof and ps."""

    LSOF_ARGS = ["lsof", "-iTCP", "-sTCP:LISTEN", "-nP"]

    def scan(self) -> list[Server]:
        try:
            output = self._run(self.LSOF_ARGS)
        except subprocess.CalledProcessError as e:
            # lsof exits 1 without output when nothing is listening
            if e.returncode == 1 and not (e.stdout or "").strip():
                return []
            raise ScanError(f"lsof failed: {e}") from e
        except (OSError, subprocess.SubprocessError) as e:
            raise ScanError(f"lsof failed: {e}") from e

        servers = parse_lsof(output)
        if not servers:
            return []

        resolved = [self._resolve(s) for s in servers]
        return self._in_range(resolved)

    def _resolve(self, server: Server) -> Server:
        """Refine the process name and command line with ps."""
        try:
            output = self._run(["ps", "-p", str(server.pid), "-o", "comm=,args="])
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            logger.debug("ps lookup failed for pid %d: %s", server.pid, e)
            return server

        parsed = parse_ps(output)
        if parsed is None:
            return server

        comm, args = parsed
        process = server.process
        # The longer name is assumed to be the more specific one
        if len(comm) > len(process):
            process = comm
        return replace(server, process=process, command=args or server.command)


class ProcNetScanner(Scanner):
    """Scanner backed by /proc/net/tcp, ss and /proc/<pid>."""

    SS_ARGS = ["ss", "-tlnp"]

    def __init__(
        self,
        port_range: PortRange,
        run: CommandRunner = run_command,
        proc_root: str | Path = "/proc",
    ) -> None:
        """
        Initialize the scanner.

        Args:
            port_range: Ports outside this range are dropped from results.
            run: Callable that executes a command and returns its stdout.
            proc_root: Mount point of procfs.
        """
        super().__init__(port_range, run)
        self._proc_root = Path(proc_root)

    def scan(self) -> list[Server]:
        tcp_table = self._proc_root / "net" / "tcp"
        try:
            content = tcp_table.read_text()
        except (OSError, ValueError) as e:
            raise ScanError(f"reading {tcp_table}: {e}") from e

        servers = parse_proc_net_tcp(content)
        if not servers:
            return []

        port_pids = self._resolve_port_pids()
        resolved = []
        for server in servers:
            pid = port_pids.get(server.port)
            if pid is not None:
                server = replace(
                    server,
                    pid=pid,
                    process=self._read_comm(pid),
                    command=self._read_cmdline(pid),
                )
            resolved.append(server)

        return self._in_range(resolved)

    def _resolve_port_pids(self) -> dict[int, int]:
        """Map listening ports to owning PIDs using a single ss call."""
        try:
            return parse_ss(self._run(self.SS_ARGS))
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            logger.debug("ss lookup failed: %s", e)
            return {}

    def _read_comm(self, pid: int) -> str:
        try:
            data = (self._proc_root / str(pid) / "comm").read_bytes()
        except OSError:
            return ""
        # comm is arbitrary bytes when set through prctl
        return data.decode(errors="replace").strip()

    def _read_cmdline(self, pid: int) -> str:
        try:
            data = (self._proc_root / str(pid) / "cmdline").read_bytes()
        except OSError:
            return ""
        # Arguments are NUL separated
        return data.replace(b"\0", b" ").decode(errors="replace").strip()


def new_scanner(port_range: PortRange, platform: str = sys.platform) -> Scanner:
    """Create the scanner for the given platform."""
    if platform.startswith("linux"):
        return ProcNetScanner(port_range)
    return LsofScanner(port_range)
