"""
Audit Logger module for the WordPress Remote Manager client.

Writes structured entries as JSON lines, human-readable text lines, or both,
drops entries below a minimum level, and masks API keys and other secrets
before anything reaches the output stream.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from .config import LoggingConfig
from .enums import LogLevel


LEVEL_RANK = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}

OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class LogEntry:
    """One structured log record."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }


class AuditLogger:
    """
    Structured logger shared by the client, rate limiter and orchestrator.

    Any mapping key containing one of SENSITIVE_KEYS, or equal to one of
    SENSITIVE_EXACT_KEYS (case-insensitive), has its value replaced by
    MASK_VALUE at any nesting depth, including inside lists. Both API key header spellings match the 'api-key' fragment.
    """

    SENSITIVE_KEYS = frozenset({
        'api_key', 'api-key', 'apikey', 'token', 'access_token', 'secret',
        'private_key', 'password', 'authorization', 'credential',
        'credentials', 'cookie',
    })

    # Matched against the entire key only, so 'author' stays visible
    SENSITIVE_EXACT_KEYS = frozenset({'auth'})

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "both",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Args:
            output_format: 'json', 'text' or 'both'
            output_stream: Destination stream (sys.stderr when omitted)
            min_level: Entries below this level are discarded
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._entries: list[LogEntry] = []

    @classmethod
    def from_config(
        cls,
        config: LoggingConfig,
        output_stream: Optional[TextIO] = None,
    ) -> "AuditLogger":
        """
        Raises:
            ValueError: If the configured level or format is not recognised
        """
        try:
            level = LogLevel(config.level.lower())
        except ValueError:
            raise ValueError(f"Invalid log level: {config.level}") from None
        return cls(config.output_format, output_stream, level)

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def entries(self) -> list[LogEntry]:
        """Copy of the entries written so far."""
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return LEVEL_RANK[level] >= LEVEL_RANK[self._min_level]

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record one entry.

        Returns:
            The written entry, or None when ``level`` is below the minimum
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._entries.append(entry)
        self._write(entry)
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """Record an ERROR entry with the exception and request context."""
        context: dict[str, Any] = dict(additional_data or {})
        if error is not None:
            context.update(
                error_message=str(error),
                error_type=type(error).__name__,
            )
            code = getattr(error, "code", None)
            if code:
                context["error_code"] = code
        if request_url is not None:
            context["request_url"] = request_url
        if response_status_code is not None:
            context["response_status_code"] = response_status_code
        return self.log(LogLevel.ERROR, component, message, context)

    def _is_sensitive(self, key: Any) -> bool:
        lowered = str(key).lower()
        if lowered in self.SENSITIVE_EXACT_KEYS:
            return True
        return any(fragment in lowered for fragment in self.SENSITIVE_KEYS)

    def _mask(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.mask_sensitive_data(value)
        if isinstance(value, list):
            return [self._mask(item) for item in value]
        return value

    def mask_sensitive_data(self, data: dict) -> dict:
        """Return a copy of ``data`` with secret values replaced."""
        return {
            key: self.MASK_VALUE if self._is_sensitive(key) else self._mask(value)
            for key, value in data.items()
        }

    def _write(self, entry: LogEntry) -> None:
        lines = []
        if self._output_format != "text":
            lines.append(self.get_json_output(entry))
        if self._output_format != "json":
            lines.append(self.get_text_output(entry))
        self._stream.write("".join(line + "\n" for line in lines))
        self._stream.flush()

    def get_json_output(self, entry: LogEntry) -> str:
        return json.dumps(entry.to_dict(), ensure_ascii=False, default=str)

    def get_text_output(self, entry: LogEntry) -> str:
        """``[timestamp] LEVEL [component] message {data}``"""
        text = f"[{entry.timestamp}] {entry.level.value.upper()} [{entry.component}] {entry.message}"
        if entry.data:
            text += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
        return text

    def clear_entries(self) -> None:
        self._entries.clear()
