"""
Exception classes for the WordPress Remote Manager client.

All exceptions inherit from RemoteManagerError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class RemoteManagerError(Exception):
    """Base exception for all remote manager errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        # Per-namespace failures behind a fallback error, primary first
        self.attempt_errors: tuple = ()
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class ConfigurationError(RemoteManagerError):
    """Raised when the site URL or API key is missing or malformed."""

    pass


class TransportError(RemoteManagerError):
    """Raised on connection failures, DNS errors and HTTP 5xx responses."""

    pass


class RequestTimeoutError(TransportError):
    """Raised when the client-side request timeout fires."""

    pass


class RouteNotFoundError(RemoteManagerError):
    """Raised when WordPress answers with a ``rest_no_route`` envelope."""

    pass


class PluginNotInstalledError(RouteNotFoundError):
    """Raised when neither REST namespace of the plugin is mounted."""

    pass


class HtmlResponseError(RemoteManagerError):
    """Raised when the site returns an HTML page instead of JSON."""

    pass


class RemoteOperationError(RemoteManagerError):
    """Raised when the remote payload itself reports a failure."""

    pass
