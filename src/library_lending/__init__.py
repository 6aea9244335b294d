"""
Library Lending Package.

Persistence and consistency core of a small library-lending manager: books,
members and loans in a relational store, with the rule that a book is lent to
at most one member at a time.

Key Components:
- models: Pydantic value records for books, members and loans
- database: Tables, connection pool, repositories and bootstrapper
- events: In-process publish/subscribe used to refresh views
- services: Lending rules composed on top of the repositories
- library: Opens and closes everything for one process
- tools/server: MCP tools exposing the core over stdio
"""

__version__ = "0.1.0"

from .library import Library

__all__ = [
    "Library",
    "__version__",
]
