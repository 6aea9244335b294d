"""
Tools exposed by the library lending server.

Each tool is a dictionary with its name, description, input schema and async
handler; the server registers everything in ``all_tools``.
"""

from .catalog import list_books, search_books
from .circulation import lend_book, list_open_loans, list_overdue_loans, return_book

all_tools = [
    list_books,
    search_books,
    lend_book,
    return_book,
    list_open_loans,
    list_overdue_loans,
]

__all__ = [
    "all_tools",
    "lend_book",
    "list_books",
    "list_open_loans",
    "list_overdue_loans",
    "return_book",
    "search_books",
]
