"""
Book repository implementation for the library lending core.

Besides the shared CRUD contract this repository offers the catalog
searches used by callers (title, author, exact ISBN, available books) and
``update_availability``, the only partial update of the ``disponible`` flag.

``update_availability`` is meant to be called by the loan repository and by
the manual inventory correction path of the lending service. ``update``
itself is a full-record overwrite: it persists whatever ``available`` value
the caller passed in.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.engine import Connection

from ..models.book import Book
from .engine import safe_execute
from .repository import BaseRepository
from .schema import books_table


class BookRepository(BaseRepository[Book]):
    """Repository for book data access."""

    @property
    def table(self):
        return books_table

    def _from_row(self, row: Mapping[Any, Any]) -> Book:
        # Stored rows are taken as-is; year bounds only apply to new input
        c = books_table.c
        return Book.model_construct(
            id=row[c.id],
            title=row[c.titre],
            author=row[c.auteur],
            isbn=row[c.isbn],
            publication_year=row[c.annee_publication],
            publisher=row[c.editeur],
            available=bool(row[c.disponible]),
        )

    def _to_values(self, entity: Book) -> dict[str, Any]:
        return {
            "titre": entity.title,
            "auteur": entity.author,
            "isbn": entity.isbn,
            "annee_publication": entity.publication_year,
            "editeur": entity.publisher,
            "disponible": entity.available,
        }

    def find_by_title(self, title: str, conn: Connection | None = None) -> list[Book]:
        """
        Books whose title contains ``title`` (case-insensitive).

        Wildcard characters in the query text are matched literally.
        """
        query = select(books_table).where(books_table.c.titre.icontains(title, autoescape=True))
        return self._fetch_all(query, "find books by title", conn)

    def find_by_author(self, author: str, conn: Connection | None = None) -> list[Book]:
        """Books whose author contains ``author`` (case-insensitive)."""
        query = select(books_table).where(books_table.c.auteur.icontains(author, autoescape=True))
        return self._fetch_all(query, "find books by author", conn)

    def find_by_isbn(self, isbn: str, conn: Connection | None = None) -> Book | None:
        """Book with exactly this ISBN, or None."""
        query = select(books_table).where(books_table.c.isbn == isbn)
        return self._fetch_one(query, "find book by ISBN", conn)

    def find_all_available(self, conn: Connection | None = None) -> list[Book]:
        query = select(books_table).where(books_table.c.disponible == True)  # noqa: E712
        return self._fetch_all(query, "find available books", conn)

    def update_availability(
        self, id: int, available: bool, conn: Connection | None = None
    ) -> bool:
        """
        Set the availability flag of one book.

        Args:
            id: Book ID
            available: New availability
            conn: Connection of an enclosing transaction, if any

        Returns:
            True if exactly one row was affected
        """
        statement = (
            update(books_table).where(books_table.c.id == id).values(disponible=available)
        )
        with self.pool.connection(conn) as c:
            result = safe_execute(c, statement, "update book availability")
        return result.rowcount == 1
