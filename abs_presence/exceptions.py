"""
Exception classes for abs-presence.

Exception Hierarchy:
    PresenceError (base)
        ConfigError - missing or invalid settings at startup
        TransportError - network, timeout or HTTP status failure talking to ABS
        ParseError - ABS response not in the expected shape
        CoverNotFoundError - cover search returned no results
        PresenceChannelError - Discord set/clear failure
"""
from typing import Optional


class PresenceError(Exception):
    """
    Base exception for all abs-presence errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (url, title, ...).
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(PresenceError):
    """Raised at startup when required settings are missing. Fatal."""
    pass


class TransportError(PresenceError):
    """
    Raised when a request to the ABS server fails before a usable response
    arrives: connection refused, DNS, TLS, timeout or a non-2xx status.

    On the sessions call this aborts the current poll cycle only.
    """
    pass


class ParseError(PresenceError):
    """Raised when an ABS response body is not JSON or lacks expected fields."""
    pass


class CoverNotFoundError(PresenceError):
    """Raised when the cover search returns zero results."""
    pass


class PresenceChannelError(PresenceError):
    """Raised when pushing or clearing the Discord presence fails."""
    pass
