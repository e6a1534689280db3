"""
WP Remote Manager - resilient client for managed WordPress sites.

This package talks to the control-plane REST API of the WP Remote Manager
plugin, falling back between its primary and legacy namespaces, and drives
plugin, theme and core updates to a definitive outcome even when the remote
update outlives the HTTP timeout.
"""

__version__ = "0.1.0"
__author__ = "AIO Webcare Team"

from wp_remote_manager.exceptions import (
    RemoteManagerError,
    ConfigurationError,
    TransportError,
    RequestTimeoutError,
    RouteNotFoundError,
    PluginNotInstalledError,
    HtmlResponseError,
    RemoteOperationError,
)
from wp_remote_manager.enums import (
    ApiNamespace,
    ErrorKind,
    ItemType,
    UpdateStatus,
    LogLevel,
)
from wp_remote_manager.config import (
    SiteConfig,
    ClientConfig,
    UpdateTimingConfig,
    LoggingConfig,
    SystemConfig,
    load_config_from_file,
    load_config_from_env,
    save_config_to_file,
)
from wp_remote_manager.models import (
    RemoteSite,
    InventoryItem,
    ValidationResult,
    VerificationResult,
    SiteSnapshot,
    UpdateAttemptRecord,
)
from wp_remote_manager.error_classifier import (
    classify_error,
    is_timeout_error,
    REMEDIATION_MESSAGES,
)
from wp_remote_manager.audit_logger import (
    AuditLogger,
    LogEntry,
)
from wp_remote_manager.rate_limiter import (
    IntervalRateLimiter,
)
from wp_remote_manager.item_matcher import (
    ItemMatch,
    find_plugin,
    find_theme,
)
from wp_remote_manager.remote_client import (
    RemoteManagerClient,
)
from wp_remote_manager.update_orchestrator import (
    UpdateOrchestrator,
)
