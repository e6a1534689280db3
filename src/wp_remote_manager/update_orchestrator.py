"""
Update Orchestrator for managed WordPress sites.

This module drives one plugin, theme or core update to a definitive outcome:
1. Snapshot the item's current version
2. Ask the site to perform the update
3. Wait for the site to settle and re-read the version
4. On timeouts, wait again and verify whether the update landed anyway

Updates frequently outlive the HTTP timeout while WordPress keeps applying
them, so a timeout alone is never reported as a failure.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .audit_logger import AuditLogger
from .config import UpdateTimingConfig
from .enums import ItemType, LogLevel, UpdateStatus
from .error_classifier import error_message, is_timeout_error
from .exceptions import RemoteManagerError, RemoteOperationError
from .item_matcher import as_item_list, core_version, find_plugin, find_theme
from .models import PROCESSING_MESSAGE, UNKNOWN_VERSION, UpdateAttemptRecord, VerificationResult
from .rate_limiter import Clock, Sleeper
from .remote_client import RemoteManagerClient


CORE_IDENTIFIER = "wordpress"

_ITEM_TYPE_ALIASES = {
    "plugin": ItemType.PLUGIN,
    "plugins": ItemType.PLUGIN,
    "theme": ItemType.THEME,
    "themes": ItemType.THEME,
    "wordpress": ItemType.CORE,
    "core": ItemType.CORE,
}


def parse_item_type(value: Union[str, ItemType]) -> ItemType:
    if isinstance(value, ItemType):
        return value
    try:
        return _ITEM_TYPE_ALIASES[value.lower()]
    except KeyError:
        raise ValueError(f"Unknown update type: {value}") from None


class UpdateOrchestrator:
    """
    Runs the per-item update protocol against one client (one site).

    Concurrent ``update_item`` calls for the same item are serialized by a
    per-item lock; different items proceed independently.
    """

    def __init__(
        self,
        client: RemoteManagerClient,
        timing: Optional[UpdateTimingConfig] = None,
        logger: Optional[AuditLogger] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            client: Client for the managed site
            timing: Settle/verification delays and the timeout threshold
            logger: Optional audit logger
            clock: Monotonic time source used for attempt durations
            sleep: Awaitable sleep used for the settle and verification delays
        """
        self._client = client
        self._timing = timing or UpdateTimingConfig()
        self._logger = logger
        self._clock = clock
        self._sleep = sleep
        self._locks: dict[tuple[ItemType, str], asyncio.Lock] = {}
        self._lock_users: dict[tuple[ItemType, str], int] = {}

    def get_lock(self, item_type: ItemType, identifier: str) -> asyncio.Lock:
        """Lock held for the whole update of one item."""
        return self._locks.setdefault((item_type, identifier), asyncio.Lock())

    @property
    def lock_count(self) -> int:
        """Number of per-item locks currently tracked."""
        return len(self._locks)

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, "UpdateOrchestrator", message, data)

    async def update_item(
        self,
        item_type: Union[str, ItemType],
        identifier: Optional[str] = None,
    ) -> UpdateAttemptRecord:
        """
        Update one item and return its finalized attempt record.

        Args:
            item_type: 'plugin', 'theme' or 'wordpress' (or an ItemType)
            identifier: Plugin path or theme stylesheet; ignored for core

        Returns:
            Record in SUCCESS, FAILED, TIMEOUT_RECOVERED or TIMEOUT_UNRESOLVED
        """
        kind = parse_item_type(item_type)
        if kind == ItemType.CORE:
            identifier = CORE_IDENTIFIER
        if not identifier:
            raise ValueError(f"An identifier is required for {kind.value} updates")

        key = (kind, identifier)
        lock = self.get_lock(kind, identifier)
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                return await self._run(kind, identifier)
        finally:
            # Drop the lock once no caller holds or awaits it
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                self._locks.pop(key, None)

    async def _run(self, kind: ItemType, identifier: str) -> UpdateAttemptRecord:
        record = UpdateAttemptRecord(
            item_type=kind,
            identifier=identifier,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        start = self._clock()
        self._log(LogLevel.INFO, f"Starting {kind.value} update: {identifier}")

        updates = await self._fetch_updates() if kind == ItemType.PLUGIN else None
        record.old_version, record.item_name = await self._snapshot(kind, identifier, updates)

        try:
            result = await self._client.perform_updates([{"type": kind.value, "items": [identifier]}])
            self._raise_for_rejection(result, identifier)
            record.update_data = result

            await self._sleep(self._timing.settle_delay_seconds)

            # Listing errors here are classified below; only "not found" keeps the old version
            new_version, _ = await self._lookup(kind, identifier, updates)
            record.new_version = new_version or record.old_version
            self._finalize(
                record,
                start,
                UpdateStatus.SUCCESS,
                f"{kind.value.title()} {identifier} updated successfully",
            )
        except RemoteOperationError as e:
            self._finalize(record, start, UpdateStatus.FAILED, e.message)
        except Exception as e:
            duration = self._clock() - start
            if is_timeout_error(e, duration, self._timing.timeout_threshold_seconds):
                await self._recover_from_timeout(record, start, e, updates)
            else:
                self._finalize(
                    record,
                    start,
                    UpdateStatus.FAILED,
                    error_message(e) or f"{kind.value.title()} update failed",
                )

        return record

    async def verify_update(
        self,
        item_type: Union[str, ItemType],
        identifier: str,
        expected_old_version: str,
        updates: Optional[Any] = None,
    ) -> VerificationResult:
        """
        Re-read an item's version and compare it with the pre-update one.

        Never raises; an unreadable listing reports ``updated=False``.
        """
        kind = parse_item_type(item_type)
        if kind == ItemType.PLUGIN:
            return await self._client.verify_plugin_update(identifier, expected_old_version, updates)
        if kind == ItemType.THEME:
            return await self._client.verify_theme_update(identifier, expected_old_version)
        return await self._client.verify_core_update(expected_old_version)

    async def _recover_from_timeout(
        self,
        record: UpdateAttemptRecord,
        start: float,
        error: Exception,
        updates: Optional[Any],
    ) -> None:
        kind = record.item_type
        self._log(
            LogLevel.WARN,
            f"Timeout detected for {kind.value} {record.identifier}, verifying update completion",
            {"expected_old_version": record.old_version, "error_message": error_message(error)},
        )
        await self._sleep(self._timing.verification_delay_seconds)

        verification = await self.verify_update(kind, record.identifier, record.old_version, updates)
        self._log(
            LogLevel.INFO,
            "Verification result",
            {"updated": verification.updated, "current_version": verification.current_version},
        )

        if verification.updated:
            record.new_version = verification.current_version
            self._finalize(
                record,
                start,
                UpdateStatus.TIMEOUT_RECOVERED,
                f"{kind.value.title()} {record.identifier} updated successfully (recovered from timeout)",
            )
            return

        kind_label = "WordPress core" if kind == ItemType.CORE else kind.value
        self._finalize(
            record,
            start,
            UpdateStatus.TIMEOUT_UNRESOLVED,
            PROCESSING_MESSAGE.format(kind=kind_label),
        )

    def _finalize(
        self,
        record: UpdateAttemptRecord,
        start: float,
        status: UpdateStatus,
        message: str,
    ) -> None:
        record.duration_seconds = self._clock() - start
        record.status = status
        record.message = message
        level = LogLevel.ERROR if status == UpdateStatus.FAILED else LogLevel.INFO
        self._log(level, f"Update finished: {record.identifier}", record.to_dict())

    @staticmethod
    def _raise_for_rejection(result: Any, identifier: str) -> None:
        """Raise when the perform call itself reports a failure."""
        if not isinstance(result, dict):
            return
        if result.get("success") is False:
            raise RemoteOperationError(
                code="update_failed",
                message=str(result.get("message") or "Update failed"),
                details={"result": result},
            )
        results = result.get("results")
        if isinstance(results, list):
            for entry in results:
                if isinstance(entry, dict) and entry.get("item") == identifier and entry.get("success") is False:
                    raise RemoteOperationError(
                        code="update_failed",
                        message=str(entry.get("message") or "Update failed"),
                        details={"result": entry},
                    )

    async def _fetch_updates(self) -> Optional[Any]:
        try:
            return await self._client.get_updates()
        except RemoteManagerError as e:
            self._log(LogLevel.WARN, "Could not fetch updates listing", {"error_message": e.message})
            return None

    async def _snapshot(
        self,
        kind: ItemType,
        identifier: str,
        updates: Optional[Any],
    ) -> tuple[str, str]:
        """Pre-update version and display name; unreadable means 'unknown'."""
        try:
            version, name = await self._lookup(kind, identifier, updates)
        except RemoteManagerError as e:
            self._log(
                LogLevel.WARN,
                f"Could not read current version of {identifier}",
                {"error_message": e.message},
            )
            return UNKNOWN_VERSION, ""
        return version or UNKNOWN_VERSION, name

    async def _lookup(
        self,
        kind: ItemType,
        identifier: str,
        updates: Optional[Any],
    ) -> tuple[Optional[str], str]:
        """Current version and display name of an item; (None, '') if not found."""
        if kind == ItemType.CORE:
            return core_version(await self._client.get_status()), "WordPress"

        if kind == ItemType.PLUGIN:
            listing = as_item_list(await self._client.get_plugins(), "plugins")
            match = find_plugin(identifier, listing, updates)
        else:
            listing = as_item_list(await self._client.get_themes(), "themes")
            match = find_theme(identifier, listing)

        if match is None:
            return None, ""
        item = match.inventory
        return (None if item.version == UNKNOWN_VERSION else item.version), item.name
