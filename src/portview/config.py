"""Persisted configuration for portview.

The configuration lives in a small YAML document::

    refresh_interval: 3s
    port_range:
      min: 1024
      max: 65535
    labels:
      8080: web-api
    hidden:
      - 22

Config values are immutable. Label and hidden-port changes go through the
``with_*`` methods, which return a new Config, so a snapshot handed to a
background save can never change underneath it.
"""

import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from portview.errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "portview"
CONFIG_FILENAME = "config.yaml"

DEFAULT_REFRESH_INTERVAL = 3.0
DEFAULT_PORT_MIN = 1024
DEFAULT_PORT_MAX = 65535

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

_save_lock = threading.Lock()


@dataclass(slots=True, frozen=True)
class PortRange:
    """Inclusive port range. A zero bound disables that side of the check."""

    min: int = DEFAULT_PORT_MIN
    max: int = DEFAULT_PORT_MAX

    def contains(self, port: int) -> bool:
        """Return True if the port passes the range filter."""
        if self.min == 0 and self.max == 0:
            return True
        return self.min <= port <= self.max


@dataclass(slots=True, frozen=True)
class Config:
    """Immutable portview configuration."""

    refresh_interval: float = DEFAULT_REFRESH_INTERVAL  # Seconds
    port_range: PortRange = field(default_factory=PortRange)
    labels: dict[int, str] = field(default_factory=dict)
    hidden: tuple[int, ...] | None = None

    def label_for(self, port: int) -> str:
        """Get the stored label for a port, or an empty string."""
        return self.labels.get(port, "")

    def with_label(self, port: int, label: str) -> "Config":
        """Return a copy with the label for port set."""
        labels = dict(self.labels)
        labels[port] = label
        return replace(self, labels=labels)

    def without_label(self, port: int) -> "Config":
        """Return a copy with the label for port removed."""
        if port not in self.labels:
            return self
        labels = {p: text for p, text in self.labels.items() if p != port}
        return replace(self, labels=labels)

    def is_hidden(self, port: int) -> bool:
        """Check whether a port is hidden."""
        return self.hidden is not None and port in self.hidden

    def with_hidden_toggled(self, port: int) -> "Config":
        """Return a copy with the port added to, or removed from, hidden."""
        if self.is_hidden(port):
            return replace(self, hidden=tuple(p for p in self.hidden if p != port))
        return replace(self, hidden=(*(self.hidden or ()), port))

    def in_port_range(self, port: int) -> bool:
        """Check whether a port falls inside the configured range."""
        return self.port_range.contains(port)


def default_path() -> Path:
    """
    Get the default config file location.

    Uses $XDG_CONFIG_HOME when set, otherwise ~/.config.
    """
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / APP_NAME / CONFIG_FILENAME


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts bare numbers (seconds) or strings such as '500ms', '3s', '1m30s'.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ConfigError("invalid duration: empty string")
        parts = _DURATION_PART.findall(text)
        if not parts or "".join(n + u for n, u in parts) != text:
            raise ConfigError(f"invalid duration: {value!r}")
        seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)
    else:
        raise ConfigError(f"invalid duration: {value!r}")

    if seconds <= 0:
        raise ConfigError(f"duration must be positive: {value!r}")
    return seconds


def format_duration(seconds: float) -> str:
    """Format seconds as a duration string understood by parse_duration."""
    millis = round(seconds * 1000)
    if millis % 1000:
        return f"{millis}ms"
    total = millis // 1000
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    text = ""
    if hours:
        text += f"{hours}h"
    if minutes:
        text += f"{minutes}m"
    if secs or not text:
        text += f"{secs}s"
    return text


def _to_port(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"invalid {what}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid {what}: {value!r}") from e


def _from_document(data: dict[str, Any]) -> Config:
    """Overlay a parsed YAML mapping onto the defaults."""
    cfg = Config()

    if "refresh_interval" in data:
        cfg = replace(cfg, refresh_interval=parse_duration(data["refresh_interval"]))

    if "port_range" in data:
        raw_range = data["port_range"] or {}
        if not isinstance(raw_range, dict):
            raise ConfigError("port_range must be a mapping")
        port_range = cfg.port_range
        if "min" in raw_range:
            port_range = replace(port_range, min=_to_port(raw_range["min"], "port_range.min"))
        if "max" in raw_range:
            port_range = replace(port_range, max=_to_port(raw_range["max"], "port_range.max"))
        cfg = replace(cfg, port_range=port_range)

    if "labels" in data:
        raw_labels = data["labels"] or {}
        if not isinstance(raw_labels, dict):
            raise ConfigError("labels must be a mapping of port to label")
        labels = {
            _to_port(port, "label port"): "" if label is None else str(label)
            for port, label in raw_labels.items()
        }
        cfg = replace(cfg, labels=labels)

    if "hidden" in data and data["hidden"] is not None:
        raw_hidden = data["hidden"]
        if not isinstance(raw_hidden, list):
            raise ConfigError("hidden must be a list of ports")
        cfg = replace(cfg, hidden=tuple(_to_port(p, "hidden port") for p in raw_hidden))

    return cfg


def _to_document(cfg: Config) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "refresh_interval": format_duration(cfg.refresh_interval),
        "port_range": {"min": cfg.port_range.min, "max": cfg.port_range.max},
        "labels": dict(sorted(cfg.labels.items())),
    }
    if cfg.hidden is not None:
        doc["hidden"] = list(cfg.hidden)
    return doc


def load(path: str | os.PathLike[str]) -> Config:
    """
    Load configuration from a YAML file.

    A missing or empty file yields the defaults. Fields present in the file
    replace the defaults; absent fields keep them.

    Raises:
        ConfigError: If the file cannot be read or is not valid configuration.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No config at %s, using defaults", path)
        return Config()
    except OSError as e:
        raise ConfigError(f"reading {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"parsing {path}: {e}") from e

    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigError(f"parsing {path}: expected a mapping at top level")

    return _from_document(data)


def save(path: str | os.PathLike[str], cfg: Config) -> None:
    """
    Write configuration to a YAML file, replacing any existing file.

    Parent directories are created as needed. Concurrent saves are serialised.

    Raises:
        ConfigError: If the file cannot be written.
    """
    path = Path(path)
    text = yaml.safe_dump(_to_document(cfg), default_flow_style=False, sort_keys=False)

    with _save_lock:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ConfigError(f"saving {path}: {e}") from e

    logger.debug("Saved config to %s", path)
