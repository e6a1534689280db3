"""
Data models for the WordPress Remote Manager client.

This module defines the data structures used for site identity, remote
inventory items, update attempts and their outcomes, and validation results.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import ErrorKind, ItemType, UpdateStatus

UNKNOWN_VERSION = "unknown"

PROCESSING_MESSAGE = (
    "Update initiated but taking longer than expected. The {kind} may still be "
    "updating in the background. Please check back in a few minutes."
)


@dataclass(frozen=True)
class RemoteSite:
    """A managed WordPress site; the base URL never ends with a slash."""

    base_url: str
    api_key: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


@dataclass
class InventoryItem:
    """A plugin or theme as reported by the remote site."""

    identifier: str  # plugin path ('dir/file.php') or theme stylesheet
    version: str
    active: bool
    name: str = ""
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_plugin(cls, data: dict) -> "InventoryItem":
        identifier = data.get("plugin") or data.get("plugin_file") or data.get("slug") or ""
        return cls(
            identifier=identifier,
            version=str(data.get("version") or UNKNOWN_VERSION),
            active=bool(data.get("active", False)),
            name=str(data.get("name") or ""),
            raw=data,
        )

    @classmethod
    def from_theme(cls, data: dict) -> "InventoryItem":
        return cls(
            identifier=data.get("stylesheet") or data.get("slug") or "",
            version=str(data.get("version") or UNKNOWN_VERSION),
            active=bool(data.get("active", False)),
            name=str(data.get("name") or ""),
            raw=data,
        )


@dataclass
class ValidationResult:
    """Outcome of an API key validation; never raised, always returned."""

    valid: bool
    error: Optional[str] = None
    code: Optional[ErrorKind] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"valid": self.valid}
        if self.error is not None:
            result["error"] = self.error
        if self.code is not None:
            result["code"] = self.code.value
        return result


@dataclass
class VerificationResult:
    """Result of re-reading an item's version after an update."""

    updated: bool
    current_version: str
    was_expected: Optional[bool] = None


@dataclass
class SiteSnapshot:
    """Aggregated view of a site; parts that failed to load are None."""

    system_info: Optional[Any]
    update_data: Optional[Any]
    plugin_data: Optional[Any]
    theme_data: Optional[Any]
    user_data: Optional[Any]
    last_sync: str
    health_data: Optional[Any] = None

    def to_dict(self) -> dict:
        return {
            "systemInfo": self.system_info,
            "healthData": self.health_data,
            "updateData": self.update_data,
            "pluginData": self.plugin_data,
            "themeData": self.theme_data,
            "userData": self.user_data,
            "lastSync": self.last_sync,
        }


@dataclass
class UpdateAttemptRecord:
    """
    State of a single plugin/theme/core update attempt.

    Created in PENDING state by the orchestrator and finalized into exactly
    one terminal status. Owned by the call that created it.
    """

    item_type: ItemType
    identifier: str
    started_at: str
    old_version: str = UNKNOWN_VERSION
    new_version: str = UNKNOWN_VERSION
    duration_seconds: float = 0.0
    status: UpdateStatus = UpdateStatus.PENDING
    message: str = ""
    item_name: str = ""
    update_data: Optional[Any] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != UpdateStatus.PENDING

    @property
    def succeeded(self) -> bool:
        return self.status in (UpdateStatus.SUCCESS, UpdateStatus.TIMEOUT_RECOVERED)

    @property
    def is_processing(self) -> bool:
        """True when the update may still be running on the remote site."""
        return self.status == UpdateStatus.TIMEOUT_UNRESOLVED

    @property
    def display_name(self) -> str:
        """Human-readable item name for messages."""
        if self.item_name:
            return self.item_name
        if self.item_type == ItemType.CORE:
            return "WordPress"
        if "/" in self.identifier:
            return self.identifier.rsplit("/", 1)[-1].replace(".php", "") or self.identifier
        return self.identifier.replace(".php", "") or self.identifier

    def to_dict(self) -> dict:
        return {
            "type": self.item_type.value,
            "item": self.identifier,
            "name": self.display_name,
            "status": self.status.value,
            "fromVersion": self.old_version,
            "toVersion": self.new_version,
            "duration": round(self.duration_seconds),
            "startedAt": self.started_at,
            "message": self.message,
        }

    def to_response(self) -> tuple[int, dict]:
        """
        Map the outcome onto the HTTP status and body a route layer returns.

        Unresolved timeouts are reported as 202 "processing", never as errors.
        """
        if self.succeeded:
            body = {
                "success": True,
                "message": self.message,
                "fromVersion": self.old_version,
                "toVersion": self.new_version,
                "duration": round(self.duration_seconds),
            }
            if self.status == UpdateStatus.TIMEOUT_RECOVERED:
                body["wasTimeout"] = True
            return 200, body
        if self.is_processing:
            return 202, {
                "success": False,
                "message": self.message,
                "isTimeout": True,
                "status": "processing",
            }
        return 500, {"success": False, "message": self.message}

    def notification_message(self, site_name: str) -> str:
        """Sentence for the user notification emitted after the attempt."""
        name = self.display_name
        if self.succeeded:
            text = (
                f"{name} has been successfully updated from version "
                f"{self.old_version} to {self.new_version} on {site_name}"
            )
            if self.status == UpdateStatus.TIMEOUT_RECOVERED:
                text += " (recovered from timeout)"
            return text + "."
        if self.is_processing:
            return f"{name} update on {site_name} is still processing. Please check back in a few minutes."
        return f"Failed to update {name} on {site_name}. {self.message}".rstrip()
