"""
Loan repository implementation for the library lending core.

This repository owns the one real invariant of the system: a book is
unavailable exactly while an open loan references it. Every write that can
change that fact also updates the book, on the same connection and in the
same transaction as the loan statement:

1. **insert**: create the loan, mark the book unavailable
2. **return_loan**: record the return date, mark the book available
3. **delete**: remove the loan, mark the book available if the loan was open
4. **update**: release the previously held book, then claim the current one
   if the loan is still open

If the availability update fails, the loan statement is rolled back with it.

The repository does not check that a book is available before lending it, nor
that a loan is still open before returning it; those guards belong to the
caller (see ``services.lending``).

Open loans are rows whose ``date_retour_reelle`` is NULL *or* the empty
string. Both forms are matched in queries and both come out of the model as
``None``.

The "with details" queries resolve each loan's book and member through a
single outer join instead of one lookup per row. A loan whose book or member
row is missing is still returned, with ``book``/``member`` left as None.
"""

import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.engine import Connection

from ..models.loan import Loan
from .book_repository import BookRepository
from .engine import safe_execute
from .member_repository import MemberRepository
from .pool import ConnectionPool
from .repository import BaseRepository
from .schema import books_table, loans_table, members_table

logger = logging.getLogger(__name__)


def _iso(value: str | date) -> str:
    """Normalize a date argument to ISO text, rejecting malformed strings."""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    date.fromisoformat(value)
    return value


class LoanRepository(BaseRepository[Loan]):
    """
    Repository for loans.

    Book and member repositories are injected so the availability side effect
    and the detail hydration go through the same code as every other caller.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        book_repository: BookRepository,
        member_repository: MemberRepository,
    ):
        super().__init__(pool)
        self.book_repository = book_repository
        self.member_repository = member_repository

    @property
    def table(self):
        return loans_table

    def _from_row(self, row: Mapping[Any, Any]) -> Loan:
        c = loans_table.c
        return Loan(
            id=row[c.id],
            book_id=row[c.livre_id],
            member_id=row[c.membre_id],
            loan_date=row[c.date_emprunt],
            expected_return_date=row[c.date_retour_prevue],
            actual_return_date=row[c.date_retour_reelle],
        )

    def _to_values(self, entity: Loan) -> dict[str, Any]:
        return {
            "livre_id": entity.book_id,
            "membre_id": entity.member_id,
            "date_emprunt": entity.loan_date,
            "date_retour_prevue": entity.expected_return_date,
            "date_retour_reelle": entity.actual_return_date,
        }

    # === Detail hydration ===

    def _details_query(self):
        joined = loans_table.outerjoin(
            books_table, loans_table.c.livre_id == books_table.c.id
        ).outerjoin(members_table, loans_table.c.membre_id == members_table.c.id)
        return (
            select(loans_table, books_table, members_table)
            .select_from(joined)
            .order_by(loans_table.c.id)
        )

    def _from_detail_row(self, row: Mapping[Any, Any]) -> Loan:
        loan = self._from_row(row)
        book = None
        if row[books_table.c.id] is not None:
            book = self.book_repository._from_row(row)
        member = None
        if row[members_table.c.id] is not None:
            member = self.member_repository._from_row(row)
        return loan.model_copy(update={"book": book, "member": member})

    def _fetch_details(self, query, operation: str, conn: Connection | None = None) -> list[Loan]:
        with self.pool.connection(conn) as c:
            rows = safe_execute(c, query, operation).all()
        return self._convert_rows(rows, self._from_detail_row, operation)

    @staticmethod
    def _open_clause():
        return or_(
            loans_table.c.date_retour_reelle.is_(None),
            loans_table.c.date_retour_reelle == "",
        )

    # === Writes with the availability side effect ===

    def insert(self, entity: Loan, conn: Connection | None = None) -> Loan:
        """
        Record a new loan and mark its book unavailable.

        Both statements commit together or not at all.

        Raises:
            PersistenceError: The loan row was not created
            ConstraintViolationError: Unknown book or member
        """
        with self.pool.connection(conn) as c:
            created = super().insert(entity, conn=c)
            if not self.book_repository.update_availability(entity.book_id, False, conn=c):
                logger.warning("Loan %s references missing book %s", created.id, entity.book_id)
        logger.info("Loan %s created for book %s", created.id, entity.book_id)
        return created

    def delete(self, id: int, conn: Connection | None = None) -> bool:
        """
        Delete a loan.

        If the loan was still open its book becomes available again; a closed
        loan's book was already made available when it was returned.
        """
        with self.pool.connection(conn) as c:
            loan = super().find_by_id(id, conn=c)
            if loan is None:
                return False

            deleted = super().delete(id, conn=c)
            if deleted and loan.in_progress:
                self.book_repository.update_availability(loan.book_id, True, conn=c)
        return deleted

    def return_loan(
        self, id: int, return_date: str | date, conn: Connection | None = None
    ) -> bool:
        """
        Record the actual return date of a loan and make its book available.

        A loan that already has a return date is simply overwritten.

        Returns:
            False if no row was updated (unknown loan), True otherwise
        """
        return_date = _iso(return_date)
        statement = (
            update(loans_table)
            .where(loans_table.c.id == id)
            .values(date_retour_reelle=return_date)
        )
        with self.pool.connection(conn) as c:
            result = safe_execute(c, statement, "return loan")
            if result.rowcount == 0:
                return False

            loan = super().find_by_id(id, conn=c)
            if loan is not None:
                self.book_repository.update_availability(loan.book_id, True, conn=c)
        logger.info("Loan %s returned on %s", id, return_date)
        return True

    def update(self, entity: Loan, conn: Connection | None = None) -> bool:
        """
        Overwrite a loan's record and move availability with it.

        The book the loan held while open is made available, then the book it
        holds now is marked unavailable if the loan is still open. Changing
        the book or recording a return date therefore keeps every book's
        availability in step, in the same transaction.

        Returns:
            True if exactly one row was affected, False otherwise
        """
        if entity.id is None:
            return False

        with self.pool.connection(conn) as c:
            previous = super().find_by_id(entity.id, conn=c)
            if previous is None:
                return False

            if not super().update(entity, conn=c):
                return False

            if previous.in_progress:
                self.book_repository.update_availability(previous.book_id, True, conn=c)
            if entity.in_progress:
                self.book_repository.update_availability(entity.book_id, False, conn=c)
        logger.info("Loan %s updated", entity.id)
        return True

    # === Queries ===

    def find_by_id(self, id: int, conn: Connection | None = None) -> Loan | None:
        """Loan by ID with its book and member resolved, or None."""
        query = self._details_query().where(loans_table.c.id == id)
        loans = self._fetch_details(query, "find loan by id", conn)
        return loans[0] if loans else None

    def find_by_book_id(self, book_id: int, conn: Connection | None = None) -> list[Loan]:
        query = self._details_query().where(loans_table.c.livre_id == book_id)
        return self._fetch_details(query, "find loans by book", conn)

    def find_by_member_id(self, member_id: int, conn: Connection | None = None) -> list[Loan]:
        query = self._details_query().where(loans_table.c.membre_id == member_id)
        return self._fetch_details(query, "find loans by member", conn)

    def find_all_open(self, conn: Connection | None = None) -> list[Loan]:
        """Loans with no actual return date (NULL or empty string)."""
        query = self._details_query().where(self._open_clause())
        return self._fetch_details(query, "find open loans", conn)

    def find_all_overdue(
        self, today: str | date | None = None, conn: Connection | None = None
    ) -> list[Loan]:
        """
        Open loans whose expected return date is strictly before ``today``.

        ISO ``YYYY-MM-DD`` strings sort chronologically, so the store compares
        them as text.
        """
        today = _iso(today) if today is not None else date.today().isoformat()
        query = self._details_query().where(
            self._open_clause(),
            loans_table.c.date_retour_prevue < today,
        )
        return self._fetch_details(query, "find overdue loans", conn)

    def find_all_with_details(self, conn: Connection | None = None) -> list[Loan]:
        """Every loan with its book and member resolved."""
        return self._fetch_details(self._details_query(), "find loans with details", conn)

    def search(self, text: str, conn: Connection | None = None) -> list[Loan]:
        """
        Loans matching ``text`` on book title, member last or first name
        (case-insensitive), or on any of their dates.

        Blank text matches every loan.
        """
        text = text.strip()
        if not text:
            return self.find_all_with_details(conn)

        query = self._details_query().where(
            or_(
                books_table.c.titre.icontains(text, autoescape=True),
                members_table.c.nom.icontains(text, autoescape=True),
                members_table.c.prenom.icontains(text, autoescape=True),
                loans_table.c.date_emprunt.contains(text, autoescape=True),
                loans_table.c.date_retour_prevue.contains(text, autoescape=True),
                loans_table.c.date_retour_reelle.contains(text, autoescape=True),
            )
        )
        return self._fetch_details(query, "search loans", conn)
