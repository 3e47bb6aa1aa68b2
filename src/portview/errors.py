"""Exceptions raised by portview."""


class PortviewError(Exception):
    """Base class for portview errors."""


class ScanError(PortviewError):
    """The platform listing source could not be read or executed."""


class ConfigError(PortviewError):
    """The configuration file could not be loaded or saved."""
