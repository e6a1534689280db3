"""
Command-line interface for the WP Remote Manager client.

This module provides the main CLI entry point with commands for:
- status/health/updates/plugins/themes/users: read site state
- validate: check the API key and report a remediation hint
- snapshot: gather all site state at once
- activate-plugin/deactivate-plugin/activate-theme/delete-theme
- update: run the verified update protocol for one item
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .audit_logger import AuditLogger
from .config import SiteConfig, SystemConfig, load_config_from_env, load_config_from_file
from .error_classifier import describe_error
from .exceptions import ConfigurationError, RemoteManagerError
from .remote_client import RemoteManagerClient
from .update_orchestrator import UpdateOrchestrator


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PROCESSING = 2
EXIT_CONFIG_ERROR = 3

READ_COMMANDS = {
    "status": lambda client: client.get_status(),
    "health": lambda client: client.get_health(),
    "updates": lambda client: client.get_updates(),
    "plugins": lambda client: client.get_plugins(),
    "themes": lambda client: client.get_themes(),
    "users": lambda client: client.get_users(),
}

ITEM_COMMANDS = {
    "activate-plugin": lambda client, item: client.activate_plugin(item),
    "deactivate-plugin": lambda client, item: client.deactivate_plugin(item),
    "activate-theme": lambda client, item: client.activate_theme(item),
    "delete-theme": lambda client, item: client.delete_theme(item),
}


def resolve_config(args: argparse.Namespace) -> SystemConfig:
    """
    Build the effective configuration.

    Precedence (lowest first): config file, environment / .env, command-line flags.

    Raises:
        ConfigurationError: If no site URL and API key can be determined
    """
    config = None
    if args.config:
        config = load_config_from_file(Path(args.config))
        if config is None:
            raise ConfigurationError("missing_config", f"Configuration file not found: {args.config}")

    config = load_config_from_env(config)

    url = args.url or (config.site.url if config.site else None)
    api_key = args.api_key or (config.site.api_key if config.site else None)
    if not url or not api_key:
        raise ConfigurationError(
            "missing_site",
            "Site URL and API key are required (--url/--api-key or WRM_SITE_URL/WRM_API_KEY)",
        )
    config.site = SiteConfig(url=url, api_key=api_key)

    if args.log_level:
        config.logging.level = args.log_level
    if args.log_format:
        config.logging.output_format = args.log_format
    return config


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def run_command(args: argparse.Namespace, config: SystemConfig) -> int:
    """
    Execute one CLI command against the configured site.

    Returns:
        Exit code
    """
    logger = AuditLogger.from_config(config.logging)
    async with RemoteManagerClient.from_site_config(
        config.site,
        config=config.client,
        logger=logger,
    ) as client:
        if args.command == "validate":
            result = await client.validate_api_key()
            print_json(result.to_dict())
            return EXIT_OK if result.valid else EXIT_FAILURE

        if args.command == "update":
            orchestrator = UpdateOrchestrator(client, timing=config.timing, logger=logger)
            record = await orchestrator.update_item(args.type, args.item)
            status_code, body = record.to_response()
            print_json({**body, "record": record.to_dict(), "httpStatus": status_code})
            if record.succeeded:
                return EXIT_OK
            return EXIT_PROCESSING if record.is_processing else EXIT_FAILURE

        try:
            if args.command == "snapshot":
                snapshot = await client.get_wordpress_data()
                print_json(snapshot.to_dict())
            elif args.command in READ_COMMANDS:
                print_json(await READ_COMMANDS[args.command](client))
            else:
                print_json(await ITEM_COMMANDS[args.command](client, args.item))
        except RemoteManagerError as e:
            print_json({"success": False, "error": describe_error(e)})
            return EXIT_FAILURE
    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="wp-remote-manager",
        description="Manage a WordPress site through the WP Remote Manager plugin API",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--url", help="WordPress site URL (env: WRM_SITE_URL)")
    parser.add_argument("--api-key", help="Remote Manager API key (env: WRM_API_KEY)")
    parser.add_argument("--config", "-c", help="Path to JSON configuration file")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        help="Minimum log level (env: WRM_LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text", "both"],
        help="Log output format (env: WRM_LOG_FORMAT)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name in READ_COMMANDS:
        subparsers.add_parser(name, help=f"Show site {name}")

    subparsers.add_parser("validate", help="Validate the API key")
    subparsers.add_parser("snapshot", help="Fetch status, updates, plugins, themes and users")

    for name in ITEM_COMMANDS:
        item_parser = subparsers.add_parser(name, help=name.replace("-", " ").capitalize())
        item_parser.add_argument("item", help="Plugin path (dir/file.php) or theme stylesheet")

    update_parser = subparsers.add_parser(
        "update",
        help="Update a plugin, theme or WordPress core and verify the result",
    )
    update_parser.add_argument(
        "type",
        choices=["plugin", "theme", "wordpress"],
        help="What to update",
    )
    update_parser.add_argument(
        "item",
        nargs="?",
        help="Plugin path or theme stylesheet (omit for wordpress)",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    if args.command == "update" and args.type != "wordpress" and not args.item:
        parser.error(f"update {args.type} requires an item")

    try:
        config = resolve_config(args)
        AuditLogger.from_config(config.logging)
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    return asyncio.run(run_command(args, config))


if __name__ == "__main__":
    sys.exit(main())
