"""Side effects requested by the controller.

Each method blocks, so the application runs them in worker threads and
posts the returned message back to the event loop.
"""

import logging
import subprocess
import sys
from pathlib import Path

import psutil

from portview import config as config_store
from portview.config import Config
from portview.errors import PortviewError
from portview.health import check_health
from portview.messages import ConfigSaved, KillCompleted, ScanCompleted
from portview.scanner import Scanner

logger = logging.getLogger(__name__)

DEFAULT_HEALTH_TIMEOUT = 0.5


class EffectRunner:
    """Executes scans, kills, browser launches and config saves."""

    def __init__(
        self,
        health_timeout: float = DEFAULT_HEALTH_TIMEOUT,
        platform: str = sys.platform,
    ) -> None:
        """
        Initialize the EffectRunner.

        Args:
            health_timeout: Per-probe connect timeout in seconds.
            platform: Platform name used to pick the URL opener.
        """
        self.health_timeout = health_timeout
        self.platform = platform

    def scan(self, scanner: Scanner) -> ScanCompleted:
        """Scan for servers and probe their health."""
        try:
            servers = check_health(scanner.scan(), self.health_timeout)
        except PortviewError as e:
            logger.warning("Scan failed: %s", e)
            return ScanCompleted(error=str(e))
        except Exception as e:
            # The controller waits for a ScanCompleted before scanning again
            logger.exception("Unexpected scan failure")
            return ScanCompleted(error=f"scan failed: {str(e) or type(e).__name__}")
        return ScanCompleted(servers=servers)

    def kill(self, pid: int) -> KillCompleted:
        """Send SIGTERM to a process."""
        if pid <= 0:
            # Signalling pid 0 would hit our own process group
            return KillCompleted(pid=pid, error="unknown PID")
        try:
            psutil.Process(pid).terminate()
        except psutil.Error as e:
            logger.warning("Kill of pid %d failed: %s", pid, e)
            return KillCompleted(pid=pid, error=str(e) or type(e).__name__)
        return KillCompleted(pid=pid)

    def open_browser(self, port: int) -> None:
        """Open http://localhost:<port> with the platform's default handler."""
        url = f"http://localhost:{port}"
        opener = "open" if self.platform == "darwin" else "xdg-open"
        try:
            subprocess.Popen(
                [opener, url],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("Could not open %s: %s", url, e)

    def save(self, path: Path, cfg: Config) -> ConfigSaved:
        """Persist the configuration."""
        try:
            config_store.save(path, cfg)
        except PortviewError as e:
            logger.warning("Saving config failed: %s", e)
            return ConfigSaved(error=str(e))
        return ConfigSaved()
