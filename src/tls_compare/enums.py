"""
Enumeration types for the TLS stack comparison tool.

These enums provide type-safe constants for probe failure kinds and
logging levels throughout the system.
"""

from enum import Enum


class ErrorKind(Enum):
    """Kind of failure recorded for one strategy against one domain."""

    DNS_RESOLUTION = "dns_resolution"
    CONNECT = "connect"
    HANDSHAKE = "handshake"
    REQUEST = "request"
    TIMEOUT = "timeout"

    @property
    def is_fanned_out(self) -> bool:
        """True for kinds reported identically in every strategy slot."""
        return self in (ErrorKind.DNS_RESOLUTION, ErrorKind.CONNECT, ErrorKind.TIMEOUT)


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        """Numeric severity used for level filtering."""
        return _LEVEL_RANKS[self]


_LEVEL_RANKS = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
