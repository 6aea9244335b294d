"""
Command line entry point for the library lending core.

Opens the store (creating tables and seed data when the catalog is empty)
and then serves the MCP tools on stdio.

Usage:
    python -m library_lending              # bootstrap, then serve
    python -m library_lending --init-only  # bootstrap and exit
"""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .config import LibrarySettings
from .database.errors import RepositoryException
from .library import Library
from .server import run_stdio_server

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Library lending server")
    parser.add_argument(
        "--init-only",
        action="store_true",
        help="Create tables and seed data, then exit",
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy URL of the store (overrides LIBRARY_DATABASE_URL / DB_* settings)",
    )
    parser.add_argument(
        "--script",
        type=Path,
        help="Bootstrap from this SQL script instead of the packaged one",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> LibrarySettings:
    """Settings from the environment, with command line overrides on top."""
    overrides = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.script:
        overrides["bootstrap_script"] = args.script
    if args.log_level:
        overrides["log_level"] = args.log_level
    return LibrarySettings(**overrides)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    # Logs go to stderr so stdout stays clean for the stdio transport
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    try:
        library = Library.open(settings, run_bootstrap=True)
    except (RepositoryException, ValueError):
        logger.exception("Could not open the library database")
        return 1

    if args.init_only:
        library.close()
        logger.info("Database initialized")
        return 0

    try:
        run_stdio_server(library, settings)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
