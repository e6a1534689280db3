"""
Configuration dataclasses for the WordPress Remote Manager client.

This module defines the configuration structures used throughout the system:
site credentials, HTTP client behaviour, update timing, and logging, plus
helpers to load them from a JSON file or from the environment.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_RATE_LIMIT_INTERVAL_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_VALIDATION_TIMEOUT_SECONDS = 15.0
DEFAULT_UPDATE_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "AIO-Webcare-Dashboard/1.0"

# Empirical: time WordPress needs to finish applying an update in the background
DEFAULT_SETTLE_DELAY_SECONDS = 3.0
DEFAULT_VERIFICATION_DELAY_SECONDS = 5.0
DEFAULT_TIMEOUT_THRESHOLD_SECONDS = 240.0


@dataclass
class SiteConfig:
    """Credentials for one managed WordPress site."""

    url: str
    api_key: str


@dataclass
class ClientConfig:
    """HTTP behaviour of the remote manager client."""

    rate_limit_interval_seconds: float = DEFAULT_RATE_LIMIT_INTERVAL_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    validation_timeout_seconds: float = DEFAULT_VALIDATION_TIMEOUT_SECONDS
    update_timeout_seconds: float = DEFAULT_UPDATE_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    verify_tls: bool = True


@dataclass
class UpdateTimingConfig:
    """Delays and thresholds used by the update orchestrator."""

    settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS
    verification_delay_seconds: float = DEFAULT_VERIFICATION_DELAY_SECONDS
    timeout_threshold_seconds: float = DEFAULT_TIMEOUT_THRESHOLD_SECONDS


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    site: Optional[SiteConfig] = None
    client: ClientConfig = field(default_factory=ClientConfig)
    timing: UpdateTimingConfig = field(default_factory=UpdateTimingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def config_to_dict(config: SystemConfig) -> dict:
    """Serialize a SystemConfig to plain JSON-compatible data."""
    return {
        "site": {
            "url": config.site.url,
            "api_key": config.site.api_key,
        } if config.site else None,
        "client": {
            "rate_limit_interval_seconds": config.client.rate_limit_interval_seconds,
            "request_timeout_seconds": config.client.request_timeout_seconds,
            "validation_timeout_seconds": config.client.validation_timeout_seconds,
            "update_timeout_seconds": config.client.update_timeout_seconds,
            "user_agent": config.client.user_agent,
            "verify_tls": config.client.verify_tls,
        },
        "timing": {
            "settle_delay_seconds": config.timing.settle_delay_seconds,
            "verification_delay_seconds": config.timing.verification_delay_seconds,
            "timeout_threshold_seconds": config.timing.timeout_threshold_seconds,
        },
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
    }


def config_from_dict(data: dict) -> SystemConfig:
    """
    Build a SystemConfig from parsed JSON data.

    Missing sections and fields fall back to their defaults.

    Args:
        data: Parsed configuration mapping

    Returns:
        SystemConfig populated from the mapping
    """
    site = None
    site_data = data.get("site")
    if site_data and site_data.get("url") and site_data.get("api_key"):
        site = SiteConfig(url=site_data["url"], api_key=site_data["api_key"])

    client_data = data.get("client") or {}
    client = ClientConfig(
        rate_limit_interval_seconds=float(client_data.get(
            "rate_limit_interval_seconds", DEFAULT_RATE_LIMIT_INTERVAL_SECONDS
        )),
        request_timeout_seconds=float(client_data.get(
            "request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT_SECONDS
        )),
        validation_timeout_seconds=float(client_data.get(
            "validation_timeout_seconds", DEFAULT_VALIDATION_TIMEOUT_SECONDS
        )),
        update_timeout_seconds=float(client_data.get(
            "update_timeout_seconds", DEFAULT_UPDATE_TIMEOUT_SECONDS
        )),
        user_agent=client_data.get("user_agent", DEFAULT_USER_AGENT),
        verify_tls=bool(client_data.get("verify_tls", True)),
    )

    timing_data = data.get("timing") or {}
    timing = UpdateTimingConfig(
        settle_delay_seconds=float(timing_data.get(
            "settle_delay_seconds", DEFAULT_SETTLE_DELAY_SECONDS
        )),
        verification_delay_seconds=float(timing_data.get(
            "verification_delay_seconds", DEFAULT_VERIFICATION_DELAY_SECONDS
        )),
        timeout_threshold_seconds=float(timing_data.get(
            "timeout_threshold_seconds", DEFAULT_TIMEOUT_THRESHOLD_SECONDS
        )),
    )

    logging_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=logging_data.get("level", "info"),
        output_format=logging_data.get("output_format", "text"),
    )

    return SystemConfig(
        site=site,
        client=client,
        timing=timing,
        logging=logging_config,
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None if the file does not exist
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    return config_from_dict(data)


def save_config_to_file(config: SystemConfig, config_path: Path) -> None:
    """Save configuration to a JSON file, creating parent directories."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)


def load_config_from_env(
    base: Optional[SystemConfig] = None,
    dotenv_path: Optional[Path] = None,
) -> SystemConfig:
    """
    Overlay environment variables (and a .env file) onto a configuration.

    Recognised variables: WRM_SITE_URL, WRM_API_KEY, WRM_RATE_LIMIT_INTERVAL,
    WRM_REQUEST_TIMEOUT, WRM_LOG_LEVEL, WRM_LOG_FORMAT.

    Args:
        base: Configuration to start from (defaults are used if None)
        dotenv_path: Optional explicit .env path

    Returns:
        The resulting SystemConfig
    """
    load_dotenv(dotenv_path)
    config = base or SystemConfig()

    url = os.getenv("WRM_SITE_URL", "").strip()
    api_key = os.getenv("WRM_API_KEY", "").strip()
    if url and api_key:
        config.site = SiteConfig(url=url, api_key=api_key)

    interval = os.getenv("WRM_RATE_LIMIT_INTERVAL")
    if interval:
        config.client.rate_limit_interval_seconds = float(interval)

    timeout = os.getenv("WRM_REQUEST_TIMEOUT")
    if timeout:
        config.client.request_timeout_seconds = float(timeout)

    level = os.getenv("WRM_LOG_LEVEL")
    if level:
        config.logging.level = level.lower()

    output_format = os.getenv("WRM_LOG_FORMAT")
    if output_format:
        config.logging.output_format = output_format.lower()

    return config
