"""
Remote Manager client for managed WordPress sites.

This module provides an async client for the control-plane REST API mounted
by the WP Remote Manager plugin, with:
- Transparent fallback from the primary to the legacy REST namespace
- Minimum spacing between outgoing requests per client instance
- Detection of soft failures (``rest_no_route`` envelopes, HTML error pages)
- Typed wrappers for status, inventory, activation and update operations
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import httpx

from .audit_logger import AuditLogger
from .config import ClientConfig, SiteConfig
from .enums import ApiNamespace, ItemType, LogLevel
from .error_classifier import validation_failure
from .exceptions import (
    ConfigurationError,
    HtmlResponseError,
    PluginNotInstalledError,
    RemoteManagerError,
    RemoteOperationError,
    RequestTimeoutError,
    RouteNotFoundError,
    TransportError,
)
from .item_matcher import as_item_list, core_version, find_plugin, find_theme
from .models import (
    UNKNOWN_VERSION,
    RemoteSite,
    SiteSnapshot,
    ValidationResult,
    VerificationResult,
)
from .rate_limiter import Clock, IntervalRateLimiter, Sleeper


# Every header name any plugin release has read the key from
API_KEY_HEADERS = ("X-WRMS-API-Key", "X-WRM-API-Key")

HTML_MARKERS = ("<!doctype", "<html")

ROUTE_NOT_FOUND_CODE = "rest_no_route"

HTML_ERROR_MESSAGE = (
    "WordPress returned an HTML error page instead of API response. "
    "This usually indicates a 404, 503, or server error."
)

PLUGIN_NOT_INSTALLED_MESSAGE = (
    "WordPress Remote Manager plugin endpoints not found. Please ensure the WRM "
    "plugin is properly installed and activated on your WordPress site."
)

INVALID_API_KEY_MESSAGE = (
    "Invalid or incorrect WP Remote Manager API key. Please check the API key "
    "and ensure it matches the key generated in your WordPress admin."
)

ACCESS_DENIED_MESSAGE = (
    "Access denied to WP Remote Manager API. The API key may be correct but "
    "lacks proper permissions."
)


class RemoteManagerClient:
    """
    Async client for one managed WordPress site.

    Each request tries the primary namespace first and the legacy namespace
    second; the choice is never cached between requests.
    """

    NAMESPACES = (ApiNamespace.PRIMARY, ApiNamespace.LEGACY)

    def __init__(
        self,
        base_url: str,
        api_key: str,
        config: Optional[ClientConfig] = None,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Site root URL; a trailing slash is stripped
            api_key: Remote Manager API key, sent verbatim
            config: HTTP behaviour (timeouts, spacing, user agent)
            logger: Optional audit logger
            transport: Optional httpx transport (used for tests)
            clock: Monotonic time source for rate limiting
            sleep: Awaitable sleep for rate limiting
        """
        if not base_url or not base_url.strip():
            raise ConfigurationError("missing_url", "WordPress site URL is required")
        if not api_key or not api_key.strip():
            raise ConfigurationError("missing_api_key", "Remote Manager API key is required")

        self._site = RemoteSite(base_url=base_url.strip(), api_key=api_key)
        self._config = config or ClientConfig()
        self._logger = logger
        self._transport = transport
        self._rate_limiter = IntervalRateLimiter(
            interval_seconds=self._config.rate_limit_interval_seconds,
            clock=clock,
            sleep=sleep,
            logger=logger,
        )
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_site_config(cls, site: SiteConfig, **kwargs: Any) -> "RemoteManagerClient":
        return cls(site.url, site.api_key, **kwargs)

    async def __aenter__(self) -> "RemoteManagerClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def site(self) -> RemoteSite:
        return self._site

    @property
    def base_url(self) -> str:
        return self._site.base_url

    @property
    def rate_limiter(self) -> IntervalRateLimiter:
        return self._rate_limiter

    @property
    def headers(self) -> dict[str, str]:
        """Headers sent on every call."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._config.user_agent,
        }
        for name in API_KEY_HEADERS:
            headers[name] = self._site.api_key
        return headers

    def build_url(self, namespace: ApiNamespace, endpoint: str) -> str:
        return f"{self._site.base_url}/wp-json/{namespace.value}{endpoint}"

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                timeout=httpx.Timeout(self._config.request_timeout_seconds),
                verify=self._config.verify_tls,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _log(self, level: LogLevel, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.log(level, "RemoteManagerClient", message, data)

    # ------------------------------------------------------------------
    # Request primitive
    # ------------------------------------------------------------------

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        data: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Call an endpoint, falling back from the primary to the legacy namespace.

        Args:
            endpoint: Path below the namespace, e.g. '/status'
            method: HTTP method
            data: Optional JSON body
            timeout: Optional per-call timeout in seconds

        Returns:
            The parsed response body (JSON value, or text for non-JSON bodies)

        Raises:
            PluginNotInstalledError: If the legacy namespace has no such route
            RemoteManagerError: The legacy attempt's own failure otherwise
        """
        errors: list[RemoteManagerError] = []

        for namespace in self.NAMESPACES:
            url = self.build_url(namespace, endpoint)
            try:
                body = await self._attempt(method, url, data, timeout)
            except RemoteManagerError as e:
                errors.append(e)
                if namespace is ApiNamespace.PRIMARY:
                    self._log(
                        LogLevel.INFO,
                        f"{namespace.name.title()} endpoint failed, trying legacy: {endpoint}",
                        {"url": url, "error_code": e.code, "error_message": e.message},
                    )
                continue
            if namespace is not ApiNamespace.PRIMARY:
                self._log(LogLevel.INFO, f"Legacy endpoint successful: {url}")
            return body

        last_error = errors[-1]
        if self._logger:
            self._logger.log_error(
                "RemoteManagerClient",
                f"Both primary and legacy endpoints failed for {endpoint}",
                error=last_error,
                request_url=self.build_url(ApiNamespace.LEGACY, endpoint),
                response_status_code=last_error.status_code,
            )
        if isinstance(last_error, RouteNotFoundError):
            final: RemoteManagerError = PluginNotInstalledError(
                code="plugin_not_installed",
                message=PLUGIN_NOT_INSTALLED_MESSAGE,
                details={"endpoint": endpoint},
                status_code=last_error.status_code,
            )
            final.attempt_errors = tuple(errors)
            raise final from last_error
        last_error.attempt_errors = tuple(errors)
        raise last_error

    async def _attempt(
        self,
        method: str,
        url: str,
        data: Optional[dict],
        timeout: Optional[float],
    ) -> Any:
        """Dispatch one HTTP call and classify its outcome."""
        await self._rate_limiter.wait_for_slot()
        client = self._ensure_client()
        self._log(LogLevel.DEBUG, f"Making {method} request to {url}")

        kwargs: dict[str, Any] = {}
        if data is not None:
            kwargs["json"] = data
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            effective = timeout if timeout is not None else self._config.request_timeout_seconds
            raise RequestTimeoutError(
                code="timeout",
                message=f"Request to {url} failed: timeout after {effective}s",
                details={"url": url},
            ) from e
        except httpx.ConnectError as e:
            raise TransportError(
                code="connection_failed",
                message=f"Cannot connect to WordPress site at {url}: {e}",
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                code="network_error",
                message=f"Network error for {url}: {e}",
                details={"url": url},
            ) from e

        body = self._parse_body(response)
        self._check_soft_failure(body, response.status_code, url)

        if response.status_code >= 500:
            raise TransportError(
                code="server_error",
                message=f"WordPress site returned HTTP {response.status_code} for {url}",
                details={"url": url},
                status_code=response.status_code,
            )
        return body

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _check_soft_failure(body: Any, status_code: int, url: str) -> None:
        """Raise for successful-looking responses that are really failures."""
        if isinstance(body, dict) and body.get("code") == ROUTE_NOT_FOUND_CODE:
            raise RouteNotFoundError(
                code=ROUTE_NOT_FOUND_CODE,
                message=f"No REST route for {url} ({ROUTE_NOT_FOUND_CODE})",
                details={"url": url, "body": body},
                status_code=status_code,
            )
        if isinstance(body, str):
            lowered = body.lower()
            if any(marker in lowered for marker in HTML_MARKERS):
                raise HtmlResponseError(
                    code="html_error_response",
                    message=HTML_ERROR_MESSAGE,
                    details={"url": url, "preview": body[:200]},
                    status_code=status_code,
                )

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_status(self) -> Any:
        return await self.request("/status")

    async def get_health(self) -> Any:
        return await self.request("/health")

    async def get_updates(self) -> Any:
        """
        Fetch pending updates.

        Unwraps ``{success, updates}`` envelopes; any other shape is
        returned untouched rather than rejected.
        """
        response = await self.request("/updates")
        if isinstance(response, dict):
            if response.get("success") and "updates" in response:
                return response["updates"]
            if any(key in response for key in ("count", "plugins", "themes")):
                return response
        return response

    async def get_plugins(self) -> Any:
        response = await self.request("/plugins")
        if isinstance(response, dict) and response.get("success") and response.get("plugins") is not None:
            return response["plugins"]
        return response

    async def get_themes(self) -> Any:
        response = await self.request("/themes")
        if isinstance(response, dict) and response.get("success") and response.get("themes") is not None:
            return response["themes"]
        return response

    async def get_users(self) -> Any:
        return await self.request("/users")

    async def get_wordpress_data(self) -> SiteSnapshot:
        """
        Gather status, updates, plugins, themes and users in one snapshot.

        Parts that fail are logged and reported as None.
        """
        parts = await asyncio.gather(
            self.get_status(),
            self.get_updates(),
            self.get_plugins(),
            self.get_themes(),
            self.get_users(),
            return_exceptions=True,
        )
        names = ("status", "updates", "plugins", "themes", "users")
        values = []
        for name, part in zip(names, parts):
            if isinstance(part, BaseException):
                if self._logger:
                    self._logger.log_error(
                        "RemoteManagerClient",
                        f"Failed to fetch {name} for snapshot",
                        error=part,
                    )
                values.append(None)
            else:
                values.append(part)

        status, updates, plugins, themes, users = values
        return SiteSnapshot(
            system_info=status,
            update_data=updates,
            plugin_data=plugins,
            theme_data=themes,
            user_data=users,
            last_sync=datetime.now(timezone.utc).isoformat(),
        )

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def activate_theme(self, theme: str) -> Any:
        return await self.request("/themes/activate", "POST", {"theme": theme})

    async def delete_theme(self, theme: str) -> Any:
        return await self.request("/themes/delete", "POST", {"theme": theme})

    async def activate_plugin(self, plugin: str) -> Any:
        return await self.request("/plugins/activate", "POST", {"plugin": plugin})

    async def deactivate_plugin(self, plugin: str) -> Any:
        return await self.request("/plugins/deactivate", "POST", {"plugin": plugin})

    async def install_plugin(self, slug: str) -> Any:
        return await self.request("/plugins/install", "POST", {"plugin": slug})

    async def toggle_maintenance_mode(self, enabled: bool, message: Optional[str] = None) -> Any:
        payload: dict[str, Any] = {"enabled": enabled}
        if message is not None:
            payload["message"] = message
        return await self.request("/maintenance", "POST", payload)

    @staticmethod
    def build_update_payload(updates: Iterable[dict]) -> dict:
        """
        Merge typed update requests into one ``/updates/perform`` body.

        Args:
            updates: Items like ``{"type": "plugin", "items": ["a/a.php"]}``;
                     type is 'plugin', 'theme' or 'wordpress' ('core' accepted)

        Returns:
            Body with ``plugins``, ``themes`` and ``wordpress`` always present
        """
        payload: dict[str, Any] = {"plugins": [], "themes": [], "wordpress": False}
        for update in updates:
            kind = update.get("type")
            items = list(update.get("items") or [])
            if kind == ItemType.PLUGIN.value:
                payload["plugins"].extend(items)
            elif kind == ItemType.THEME.value:
                payload["themes"].extend(items)
            elif kind in (ItemType.CORE.value, "core"):
                payload["wordpress"] = True
        return payload

    async def perform_updates(self, updates: Iterable[dict]) -> Any:
        return await self.request(
            "/updates/perform",
            "POST",
            self.build_update_payload(updates),
            timeout=self._config.update_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Validation and verification
    # ------------------------------------------------------------------

    @staticmethod
    def raise_for_error_envelope(body: Any) -> None:
        """
        Raise for a WordPress error envelope (``{code, message, data: {status}}``).

        Such envelopes arrive with 4xx statuses, which the request
        primitive deliberately returns as ordinary bodies.
        """
        if not isinstance(body, dict) or "code" not in body or "message" not in body:
            return
        data = body.get("data")
        status = data.get("status") if isinstance(data, dict) else None
        if not isinstance(status, int) or status < 400:
            return
        if status == 401 or body.get("code") == "invalid_api_key":
            raise RemoteOperationError(body["code"], INVALID_API_KEY_MESSAGE, {"body": body}, 401)
        if status == 403:
            raise RemoteOperationError(body["code"], ACCESS_DENIED_MESSAGE, {"body": body}, 403)
        raise RemoteOperationError(body["code"], str(body["message"]), {"body": body}, status)

    async def validate_api_key(self) -> ValidationResult:
        """
        Check the API key against the status endpoint.

        Never raises; failures are returned with an ErrorKind and a
        remediation message.
        """
        self._log(LogLevel.INFO, f"Validating API key for: {self._site.base_url}")
        try:
            body = await self.request("/status", timeout=self._config.validation_timeout_seconds)
            self.raise_for_error_envelope(body)
        except Exception as e:
            result = validation_failure(e)
            self._log(
                LogLevel.WARN,
                "API key validation failed",
                {"code": result.code.value if result.code else None, "error_message": str(e)},
            )
            return result
        self._log(LogLevel.INFO, "API key validation successful")
        return ValidationResult(valid=True)

    async def verify_plugin_update(
        self,
        plugin: str,
        expected_version: Optional[str] = None,
        updates: Optional[Any] = None,
    ) -> VerificationResult:
        """Re-read a plugin's version and compare it with the pre-update one."""
        try:
            plugins = await self.get_plugins()
        except RemoteManagerError as e:
            if self._logger:
                self._logger.log_error("RemoteManagerClient", "Failed to verify plugin update", error=e)
            return VerificationResult(updated=False, current_version=UNKNOWN_VERSION)
        match = find_plugin(plugin, as_item_list(plugins, "plugins"), updates)
        if match is None:
            return VerificationResult(updated=False, current_version="not found")
        return self._compare_versions(match.inventory.version, expected_version)

    async def verify_theme_update(
        self,
        theme: str,
        expected_version: Optional[str] = None,
    ) -> VerificationResult:
        """Re-read a theme's version and compare it with the pre-update one."""
        try:
            themes = await self.get_themes()
        except RemoteManagerError as e:
            if self._logger:
                self._logger.log_error("RemoteManagerClient", "Failed to verify theme update", error=e)
            return VerificationResult(updated=False, current_version=UNKNOWN_VERSION)
        match = find_theme(theme, as_item_list(themes, "themes"))
        if match is None:
            return VerificationResult(updated=False, current_version="not found")
        return self._compare_versions(match.inventory.version, expected_version)

    async def verify_core_update(self, expected_version: Optional[str] = None) -> VerificationResult:
        """Re-read the WordPress core version."""
        try:
            status = await self.get_status()
        except RemoteManagerError as e:
            if self._logger:
                self._logger.log_error("RemoteManagerClient", "Failed to verify core update", error=e)
            return VerificationResult(updated=False, current_version=UNKNOWN_VERSION)
        version = core_version(status)
        if version is None:
            return VerificationResult(updated=False, current_version="not found")
        return self._compare_versions(version, expected_version)

    @staticmethod
    def _compare_versions(current: str, expected: Optional[str]) -> VerificationResult:
        # An unreadable current version never counts as a change
        if current == UNKNOWN_VERSION:
            return VerificationResult(updated=False, current_version=current)
        if expected:
            return VerificationResult(
                updated=current != expected,
                current_version=current,
                was_expected=current == expected,
            )
        return VerificationResult(updated=True, current_version=current)
