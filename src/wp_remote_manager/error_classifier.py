"""
Error classification for the WordPress Remote Manager client.

Every failure surfaced by the client is mapped here, and only here, onto the
closed ErrorKind set. Typed exceptions from this package map directly;
foreign exceptions fall back to status-code and message matching.
"""

from typing import Optional

import httpx

from .enums import ErrorKind
from .exceptions import (
    HtmlResponseError,
    RemoteManagerError,
    RequestTimeoutError,
    RouteNotFoundError,
)
from .models import ValidationResult


REMEDIATION_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_API_KEY: (
        "Invalid API key. Please verify the API key in your WordPress admin "
        "(Settings → WP Remote Manager)."
    ),
    ErrorKind.INSUFFICIENT_PERMISSIONS: (
        "API key lacks proper permissions. Please regenerate the key in WordPress admin."
    ),
    ErrorKind.PLUGIN_NOT_INSTALLED: (
        "WordPress Remote Manager plugin not installed or activated. "
        "Please install/activate the latest plugin version."
    ),
    ErrorKind.CONNECTION_FAILED: (
        "Cannot connect to WordPress site. Please check if the website URL is "
        "correct and accessible."
    ),
    ErrorKind.TIMEOUT: (
        "Connection timed out. The WordPress site may be temporarily unavailable "
        "or slow to respond."
    ),
    ErrorKind.HTML_ERROR_RESPONSE: (
        "WordPress site returned an error page instead of API data. The site may "
        "be experiencing issues."
    ),
    ErrorKind.UNKNOWN_ERROR: (
        "API validation failed: {message}. Please check your WordPress site and "
        "plugin configuration."
    ),
}

CONNECTION_ERROR_CODES = frozenset({"ECONNREFUSED", "ENOTFOUND", "connection_failed"})
TIMEOUT_ERROR_CODES = frozenset({"ETIMEDOUT", "ECONNABORTED", "timeout"})
TIMEOUT_MARKERS = ("timeout", "ETIMEDOUT", "ECONNABORTED")


def error_message(error: BaseException) -> str:
    """Best-effort human message of an exception."""
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error)


def error_status_code(error: BaseException) -> Optional[int]:
    """HTTP status attached to an exception, if any."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def error_code(error: BaseException) -> str:
    code = getattr(error, "code", None)
    return code if isinstance(code, str) else ""


def classify_error(error: BaseException) -> ErrorKind:
    """
    Map an exception onto an ErrorKind.

    Rules are evaluated in priority order and the first match wins:
    invalid key, insufficient permissions, plugin missing, connection
    failure, timeout, HTML error page, unknown.

    Args:
        error: Any exception raised by a client call

    Returns:
        The matching ErrorKind
    """
    message = error_message(error)
    status = error_status_code(error)
    code = error_code(error)

    if status == 401 or ("Invalid or incorrect" in message and "API key" in message):
        return ErrorKind.INVALID_API_KEY

    if status == 403 or "Access denied" in message:
        return ErrorKind.INSUFFICIENT_PERMISSIONS

    if (
        isinstance(error, RouteNotFoundError)
        or "plugin endpoints not found" in message
        or "rest_no_route" in message
        or status == 404
    ):
        return ErrorKind.PLUGIN_NOT_INSTALLED

    if (
        isinstance(error, httpx.ConnectError)
        or code in CONNECTION_ERROR_CODES
        or "Cannot connect" in message
    ):
        return ErrorKind.CONNECTION_FAILED

    if (
        isinstance(error, (RequestTimeoutError, httpx.TimeoutException))
        or code in TIMEOUT_ERROR_CODES
        or "timeout" in message.lower()
    ):
        return ErrorKind.TIMEOUT

    if (
        isinstance(error, HtmlResponseError)
        or "<!DOCTYPE" in message
        or "<html" in message
    ):
        return ErrorKind.HTML_ERROR_RESPONSE

    return ErrorKind.UNKNOWN_ERROR


def validation_failure(error: BaseException) -> ValidationResult:
    """Build the structured validation result for a failed key check."""
    kind = classify_error(error)
    text = REMEDIATION_MESSAGES[kind]
    if kind == ErrorKind.UNKNOWN_ERROR:
        text = text.format(message=error_message(error))
    return ValidationResult(valid=False, error=text, code=kind)


def is_timeout_error(
    error: BaseException,
    duration_seconds: float = 0.0,
    threshold_seconds: float = 240.0,
) -> bool:
    """
    Decide whether a failed update should be treated as a timeout.

    An attempt running at least ``threshold_seconds`` counts as a timeout
    even when the error itself carries no recognisable marker. A fallback
    error counts when any of its namespace attempts timed out.
    """
    if isinstance(error, (RequestTimeoutError, httpx.TimeoutException)):
        return True
    message = error_message(error)
    if any(marker in message for marker in TIMEOUT_MARKERS):
        return True
    if error_code(error) in TIMEOUT_ERROR_CODES:
        return True
    attempts = getattr(error, "attempt_errors", ())
    if any(attempt is not error and is_timeout_error(attempt) for attempt in attempts):
        return True
    return duration_seconds >= threshold_seconds


def describe_error(error: BaseException) -> dict:
    """Serializable description used by the CLI and logs."""
    if isinstance(error, RemoteManagerError):
        info = error.to_dict()
    else:
        info = {"error_type": type(error).__name__, "message": error_message(error)}
    info["kind"] = classify_error(error).value
    return info
