"""
Exception classes for the TLS stack comparison tool.

All exceptions inherit from TLSCompareError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class TLSCompareError(Exception):
    """Base exception for all tls-compare errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(TLSCompareError):
    """Raised when the run configuration is invalid or cannot be loaded."""

    pass


class SetupError(TLSCompareError):
    """Raised when a run cannot start. Always fatal to the whole run."""

    pass


class DomainSourceError(SetupError):
    """Raised when the domain list cannot be opened."""

    pass


class OutputStoreError(SetupError):
    """Raised when the result file cannot be created."""

    pass


class ProbeRequestError(TLSCompareError):
    """Raised when the application-layer probe request fails."""

    pass
