"""
=============================================================================
MINIHTTP CLI ENTRY POINT
=============================================================================

    # Defaults: 127.0.0.1:4221, files from ./test-files
    python -m minihttp

    # Serve uploads/downloads from another directory
    python -m minihttp --directory /tmp/files

    # Different port, more workers, chattier logs
    python -m minihttp --port 8080 --workers 8 --log-level DEBUG

Settings come from, highest priority first: command-line flags, HTTP_*
environment variables (see ServerConfig.from_env), built-in defaults.

Runs until SIGINT (Ctrl+C) or SIGTERM. Exits with status 1 if the
listening socket cannot be bound or the configuration is invalid.

=============================================================================
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig
from .server import create_app


logger = logging.getLogger("minihttp")


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minihttp",
        description="Minimal HTTP/1.1 server with echo, user-agent and file routes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m minihttp                          # Run with defaults
  python -m minihttp --directory ./files      # Serve ./files under /files/
  python -m minihttp --port 8080              # Custom port
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Host to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--directory", "-d",
        default=defaults.directory,
        help=f"Base directory for /files/ (default: {defaults.directory})"
    )

    parser.add_argument(
        "--no-confine",
        action="store_true",
        help="Allow /files/ names that resolve outside --directory"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.max_workers,
        help=f"Maximum concurrent connections (default: {defaults.max_workers})"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttp {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace, defaults: ServerConfig) -> ServerConfig:
    """Overlay parsed arguments onto ``defaults``."""
    workers = max(1, args.workers)
    return ServerConfig(
        host=args.host,
        port=args.port,
        backlog=defaults.backlog,
        buffer_size=defaults.buffer_size,
        timeout=defaults.timeout,
        max_line_size=defaults.max_line_size,
        case_sensitive_headers=defaults.case_sensitive_headers,
        min_workers=min(defaults.min_workers, workers),
        max_workers=workers,
        queue_size=defaults.queue_size,
        directory=args.directory,
        confine_files=not args.no_confine,
        log_level=args.log_level,
    )


def main(argv: Optional[List[str]] = None) -> int:
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"minihttp: invalid environment configuration: {e}", file=sys.stderr)
        return 1

    parser = build_parser(defaults)
    args = parser.parse_args(argv)
    config = config_from_args(args, defaults)

    try:
        server = create_app(config)
    except ValueError as e:
        print(f"minihttp: {e}", file=sys.stderr)
        return 1

    server.setup_logging()
    if not os.path.isdir(config.directory):
        logger.warning(f"Directory {config.directory} does not exist; GET /files/ will 404")

    try:
        server.run(configure_logging=False)
    except OSError as e:
        logger.error(f"Could not start server: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
