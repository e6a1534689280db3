"""
Enumeration types for the WordPress Remote Manager client.

These enums provide type-safe constants for API namespaces, error kinds,
update outcomes and logging levels throughout the system.
"""

from enum import Enum


class ApiNamespace(Enum):
    """REST namespaces exposed by the Remote Manager plugin, in try order."""

    PRIMARY = "wrms/v1"
    LEGACY = "wrm/v1"


class ErrorKind(Enum):
    """Closed set of failure categories reported by API key validation."""

    INVALID_API_KEY = "INVALID_API_KEY"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    PLUGIN_NOT_INSTALLED = "PLUGIN_NOT_INSTALLED"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    TIMEOUT = "TIMEOUT"
    HTML_ERROR_RESPONSE = "HTML_ERROR_RESPONSE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ItemType(Enum):
    """Kind of item an update targets."""

    PLUGIN = "plugin"
    THEME = "theme"
    CORE = "wordpress"


class UpdateStatus(Enum):
    """Lifecycle state of a single update attempt."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT_RECOVERED = "timeout_recovered"
    TIMEOUT_UNRESOLVED = "timeout_unresolved"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
