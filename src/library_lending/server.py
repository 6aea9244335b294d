"""Library Lending Server - FastMCP Implementation

Exposes the lending core to MCP clients over stdio: catalog browsing and
search, lending and returning books, and the open/overdue loan lists.

The server shares one :class:`~library_lending.library.Library` with every
tool handler; it is opened (and bootstrapped) before serving and closed on
shutdown.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .config import LibrarySettings, get_settings
from .library import Library, reset_library, set_library
from .tools import all_tools

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "Library lending server. Manages a catalog of books, library members and "
    "loans; a book can be lent to only one member at a time. Use list_books or "
    "search_books to find a book, lend_book and return_book to change loans, "
    "and list_open_loans or list_overdue_loans to review circulation."
)


def create_server(settings: LibrarySettings | None = None) -> FastMCP:
    """Create the FastMCP server and register every tool."""
    settings = settings or get_settings()
    mcp = FastMCP(name=settings.server_name, instructions=INSTRUCTIONS)

    for tool in all_tools:
        logger.debug("Registering tool: %s", tool["name"])
        try:
            mcp.tool(
                name=tool["name"],
                description=tool["description"],
            )(tool["handler"])
        except Exception:
            logger.exception("Failed to register tool %s", tool["name"])
            raise

    logger.info("Registered %d tools", len(all_tools))
    return mcp


def run_stdio_server(library: Library, settings: LibrarySettings | None = None) -> None:
    """Run the MCP server using stdio transport.

    Stdin receives JSON-RPC requests, stdout sends responses, logs go to
    stderr.
    """
    settings = settings or get_settings()
    mcp = create_server(settings)
    set_library(library)

    if settings.log_level != "DEBUG":
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Starting %s on stdio transport", settings.server_name)
    try:
        mcp.run(transport="stdio")
    finally:
        reset_library()
        logger.info("Shutdown complete")
