"""Catalog tools - browse and search the books of the library.

Read-only tools: they never change state, so they publish no events.

Client calls: tool.call("search_books", {"query": "hugo", "search_by": "author"})
"""

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

from ..database.errors import RepositoryException
from ..library import get_library
from ..models.book import Book

logger = logging.getLogger(__name__)


class ListBooksInput(BaseModel):
    """Input schema for listing the catalog."""

    available_only: bool = Field(
        default=False,
        description="Only list books that are currently on the shelf",
    )


class SearchBooksInput(BaseModel):
    """Input schema for catalog search."""

    query: str = Field(
        ...,
        description="Text to look for (substring for title/author, exact for ISBN)",
        min_length=1,
        max_length=255,
        examples=["Petit Prince", "Hugo", "9782070612758"],
    )

    search_by: Literal["title", "author", "isbn"] = Field(
        default="title",
        description="Which book attribute to search",
    )


def format_book_for_tool_response(book: Book) -> dict[str, Any]:
    """Format a book model for tool response."""
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "isbn": book.isbn,
        "publication_year": book.publication_year,
        "publisher": book.publisher,
        "available": book.available,
    }


def _books_response(books: list[Book], empty_message: str) -> dict[str, Any]:
    if not books:
        message = empty_message
    else:
        message = f"Found {len(books)} book(s)"
    return {
        "content": [{"type": "text", "text": message}],
        "data": {"books": [format_book_for_tool_response(book) for book in books]},
    }


async def list_books_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """List every book, or only the available ones."""
    try:
        params = ListBooksInput.model_validate(arguments or {})
    except Exception as e:
        logger.warning("Invalid list parameters: %s", e)
        return {
            "isError": True,
            "content": [{"type": "text", "text": f"Invalid list parameters: {e}"}],
        }

    try:
        books = get_library().books
        found = books.find_all_available() if params.available_only else books.find_all()
    except RepositoryException as e:
        logger.exception("Listing books failed")
        return {
            "isError": True,
            "content": [{"type": "text", "text": f"Listing books failed: {e!s}"}],
        }

    return _books_response(found, "The catalog is empty.")


async def search_books_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Search books by title, author or ISBN."""
    try:
        params = SearchBooksInput.model_validate(arguments)
    except Exception as e:
        logger.warning("Invalid search parameters: %s", e)
        return {
            "isError": True,
            "content": [{"type": "text", "text": f"Invalid search parameters: {e}"}],
        }

    try:
        books = get_library().books
        if params.search_by == "isbn":
            book = books.find_by_isbn(params.query)
            found = [book] if book else []
        elif params.search_by == "author":
            found = books.find_by_author(params.query)
        else:
            found = books.find_by_title(params.query)
    except RepositoryException as e:
        logger.exception("Search execution failed")
        return {
            "isError": True,
            "content": [{"type": "text", "text": f"Search failed: {e!s}"}],
        }

    return _books_response(found, "No books found matching your search criteria.")


list_books = {
    "name": "list_books",
    "description": (
        "List the books of the catalog with their availability. "
        "Set available_only to list only books that can be lent right now."
    ),
    "inputSchema": ListBooksInput.model_json_schema(),
    "handler": list_books_handler,
}

search_books = {
    "name": "search_books",
    "description": (
        "Search the catalog by title or author (case-insensitive substring) "
        "or by exact ISBN."
    ),
    "inputSchema": SearchBooksInput.model_json_schema(),
    "handler": search_books_handler,
}
