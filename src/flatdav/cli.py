"""CLI entry point for flatdav."""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from flatdav.config import FlatDavConfig, load_config
from flatdav.logging_config import configure_logging
from flatdav.server import create_app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="flatdav",
        description="flatdav - WebDAV server over a flat object store",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("flatdav.yaml"),
        help="Path to YAML configuration file (default: flatdav.yaml)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to (overrides config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides config)",
    )
    parser.add_argument(
        "--backend",
        type=str,
        default=None,
        choices=["memory", "sqlite", "s3"],
        help="Object store backend (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=int,
        default=None,
        help="Graceful shutdown timeout in seconds (default: 30)",
    )
    return parser.parse_args(argv)


def apply_overrides(config: FlatDavConfig, args: argparse.Namespace) -> FlatDavConfig:
    """Apply command-line overrides on top of the loaded configuration."""
    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    if args.backend is not None:
        config.storage.backend = args.backend
    if args.log_level is not None:
        config.server.log_level = args.log_level
    if args.log_format is not None:
        config.server.log_format = args.log_format
    if args.shutdown_timeout is not None:
        config.server.shutdown_timeout = args.shutdown_timeout
    return config


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the flatdav CLI.

    Loads configuration, applies CLI overrides, and starts the server
    using uvicorn. A missing config file is not an error: every setting
    has a default, so flatdav starts with an in-memory store.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    logger = logging.getLogger("flatdav")

    if args.config.exists():
        try:
            config = load_config(args.config)
        except Exception as exc:
            logger.error("Failed to load config: %s", exc)
            sys.exit(1)
    else:
        logger.warning("Config file not found: %s (using defaults)", args.config)
        config = FlatDavConfig()

    apply_overrides(config, args)

    configure_logging(
        level=config.server.log_level,
        fmt=config.server.log_format,
    )

    logger.info(
        "Starting flatdav on %s:%d (backend=%s, auth=%s)",
        config.server.host,
        config.server.port,
        config.storage.backend,
        "on" if config.auth.enabled else "off",
    )

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        timeout_graceful_shutdown=config.server.shutdown_timeout,
        timeout_keep_alive=5,
    )


if __name__ == "__main__":
    main()
