"""CLI entry point for the TradingView to Telegram relay.

Usage:
    python -m telegram_alerts [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
import tomllib
from typing import NoReturn

from pydantic import ValidationError

from telegram_alerts import __version__
from telegram_alerts.config import Settings, clear_settings_cache, get_settings
from telegram_alerts.server import WebhookServer
from telegram_alerts.shutdown import GracefulShutdown, ShutdownTimeoutError
from telegram_alerts.telegram import TelegramClient

APP_NAME = "Telegram Alerts"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

# Extra time granted past the server's own drain period before giving up
SHUTDOWN_SLACK_SECONDS = 1.0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="telegram-alerts",
        description="Relay TradingView webhook alerts to a Telegram chat.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m telegram_alerts                        Run with settings from the environment
  python -m telegram_alerts --config config.toml   Overlay settings from a TOML file
  python -m telegram_alerts --config-check         Validate config and exit
  python -m telegram_alerts --port 9000            Listen on another port
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config",
        default=None,
        metavar="PATH",
        help="Path to a TOML configuration file",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without starting the server",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Override listen host (default: from settings)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override listen port (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # httpx logs request URLs, which contain the bot token
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_banner() -> None:
    """Print the application startup banner."""
    print(f"{APP_NAME} v{APP_VERSION}")
    print()


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration with secrets masked."""
    summary = settings.redacted_summary()
    print("Configuration:")
    print(f"  Bot Token: {summary['telegram_bot_token']}")
    print(f"  Chat ID: {summary['telegram_chat_id']}")
    print(f"  API Base URL: {summary['telegram_api_base_url']}")
    print(f"  Listen Address: {summary['listen_address']}")
    print(f"  Delivery Timeout: {summary['delivery_timeout']}s")
    print(f"  Shutdown Timeout: {summary['shutdown_timeout']}s")
    print(f"  Log Level: {summary['log_level']}")
    print()


def validate_config(config_file: str | None = None) -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings(config_file)
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None
    except (OSError, tomllib.TOMLDecodeError, ValueError) as e:
        print(f"Failed to load config: {e}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration and report success."""
    print("Configuration is valid!")
    print()
    print_config_summary(settings)
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def run_server(settings: Settings) -> int:
    """Run the webhook server until a shutdown signal arrives.

    Args:
        settings: Application settings.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    shutdown = GracefulShutdown(timeout=settings.server.shutdown_timeout + SHUTDOWN_SLACK_SECONDS)

    try:
        async with shutdown:
            client = TelegramClient(
                settings.telegram.bot_token.get_secret_value(),
                settings.telegram.chat_id,
                base_url=settings.telegram.api_base_url,
                timeout=settings.telegram.request_timeout,
            )
            shutdown.register_cleanup(client.aclose)

            server = WebhookServer(
                client,
                host=settings.server.host,
                port=settings.server.port,
                delivery_timeout=settings.server.delivery_timeout,
                shutdown_timeout=settings.server.shutdown_timeout,
                client_max_size=settings.server.client_max_size,
            )
            await server.start()

            logger.info("Relay running. Press Ctrl+C to stop.")
            await shutdown.wait()

            logger.info("Shutting down...")
            await shutdown.drain(server.stop())

        return EXIT_SUCCESS
    except ShutdownTimeoutError as e:
        logger.warning("Graceful shutdown failed: %s", e)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Server failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config(args.config)
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    overrides: dict[str, object] = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if overrides:
        server = settings.server.model_copy(update=overrides)
        settings = settings.model_copy(update={"server": server})

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    print_banner()

    if args.config_check:
        sys.exit(run_config_check(settings))

    print_config_summary(settings)

    exit_code = asyncio.run(run_server(settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
