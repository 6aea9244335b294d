"""
Lending service for the library lending core.

The repositories enforce the availability invariant but deliberately do not
guard against misuse: they will lend a book that is already out, or return a
loan twice. This service is the calling layer that does:

1. **Lending**: the book and the member must exist and the book must be
   available before a loan is recorded
2. **Returning**: the loan must exist and still be open
3. **Editing**: a loan moved to another book, or reopened, must not claim a
   book that another loan holds
4. **Notification**: every successful change publishes an event so views
   showing derived data refresh themselves

Each check and the write it guards run on one pooled connection, inside one
transaction.
"""

import logging
from datetime import date, datetime

from ..database.book_repository import BookRepository
from ..database.errors import RepositoryException
from ..database.loan_repository import LoanRepository
from ..database.member_repository import MemberRepository
from ..events import BOOKS_CHANGED, LOANS_VIEW_ACTIVATED, MEMBERS_CHANGED, EventBus
from ..models.book import Book
from ..models.loan import Loan
from ..models.member import Member

logger = logging.getLogger(__name__)


class LendingError(RepositoryException):
    """A lending rule was violated."""


class BookNotFoundError(LendingError):
    """No book with the given ID."""


class MemberNotFoundError(LendingError):
    """No member with the given ID."""


class LoanNotFoundError(LendingError):
    """No loan with the given ID."""


class BookUnavailableError(LendingError):
    """The book is already lent."""


class LoanAlreadyReturnedError(LendingError):
    """The loan already has a return date."""


def _as_iso(value: str | date) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat() if isinstance(value, date) else value


class LendingService:
    """Guards and notifications around the book, member and loan repositories."""

    def __init__(
        self,
        books: BookRepository,
        members: MemberRepository,
        loans: LoanRepository,
        events: EventBus,
    ):
        self.books = books
        self.members = members
        self.loans = loans
        self.events = events

    # === Loans ===

    def lend_book(
        self,
        book_id: int,
        member_id: int,
        loan_date: str | date,
        expected_return_date: str | date,
    ) -> Loan:
        """
        Lend an available book to a member.

        Returns:
            The recorded loan, with its store-assigned ``id``

        Raises:
            ValueError: Malformed dates, or a due date before the loan date
            BookNotFoundError: Unknown book
            MemberNotFoundError: Unknown member
            BookUnavailableError: The book is already lent
        """
        loan = Loan(
            book_id=book_id,
            member_id=member_id,
            loan_date=_as_iso(loan_date),
            expected_return_date=_as_iso(expected_return_date),
        )
        if loan.expected_return_date < loan.loan_date:
            raise ValueError("Expected return date cannot be before the loan date")

        with self.loans.pool.connection() as conn:
            book = self.books.find_by_id(book_id, conn=conn)
            if book is None:
                raise BookNotFoundError(f"Book {book_id} not found")
            if not self.members.exists(member_id, conn=conn):
                raise MemberNotFoundError(f"Member {member_id} not found")
            if not book.available:
                raise BookUnavailableError(f"Book '{book.title}' is already lent")

            created = self.loans.insert(loan, conn=conn)

        logger.info("Book %s lent to member %s (loan %s)", book_id, member_id, created.id)
        self.events.publish(BOOKS_CHANGED, created)
        return created

    def return_book(self, loan_id: int, return_date: str | date | None = None) -> Loan:
        """
        Record the return of an open loan.

        Args:
            loan_id: Loan to close
            return_date: Defaults to today

        Returns:
            The closed loan

        Raises:
            LoanNotFoundError: Unknown loan
            LoanAlreadyReturnedError: The loan already has a return date
            ValueError: Return date before the loan date
        """
        return_date = _as_iso(return_date or date.today())

        with self.loans.pool.connection() as conn:
            loan = self.loans.find_by_id(loan_id, conn=conn)
            if loan is None:
                raise LoanNotFoundError(f"Loan {loan_id} not found")
            if not loan.in_progress:
                raise LoanAlreadyReturnedError(
                    f"Loan {loan_id} was already returned on {loan.actual_return_date}"
                )
            if return_date < loan.loan_date:
                raise ValueError("Return date cannot be before the loan date")

            self.loans.return_loan(loan_id, return_date, conn=conn)

        returned = loan.model_copy(update={"actual_return_date": return_date})
        self.events.publish(BOOKS_CHANGED, returned)
        return returned

    def update_loan(
        self,
        loan_id: int,
        book_id: int,
        member_id: int,
        loan_date: str | date,
        expected_return_date: str | date,
        actual_return_date: str | date | None = None,
    ) -> Loan:
        """
        Change any part of an existing loan.

        The previously held book is released and the new one claimed in the
        same transaction, so moving a loan to another book or recording its
        return through here keeps availability consistent.

        Raises:
            ValueError: Malformed dates, or dates out of order
            LoanNotFoundError: Unknown loan
            BookNotFoundError: Unknown book
            MemberNotFoundError: Unknown member
            BookUnavailableError: The loan stays open on a book lent elsewhere
        """
        updated = Loan(
            id=loan_id,
            book_id=book_id,
            member_id=member_id,
            loan_date=_as_iso(loan_date),
            expected_return_date=_as_iso(expected_return_date),
            actual_return_date=_as_iso(actual_return_date) if actual_return_date else None,
        )
        if updated.expected_return_date < updated.loan_date:
            raise ValueError("Expected return date cannot be before the loan date")
        if updated.actual_return_date and updated.actual_return_date < updated.loan_date:
            raise ValueError("Return date cannot be before the loan date")

        with self.loans.pool.connection() as conn:
            current = self.loans.find_by_id(loan_id, conn=conn)
            if current is None:
                raise LoanNotFoundError(f"Loan {loan_id} not found")
            book = self.books.find_by_id(book_id, conn=conn)
            if book is None:
                raise BookNotFoundError(f"Book {book_id} not found")
            if not self.members.exists(member_id, conn=conn):
                raise MemberNotFoundError(f"Member {member_id} not found")
            held_by_this_loan = current.in_progress and current.book_id == book_id
            if updated.in_progress and not book.available and not held_by_this_loan:
                raise BookUnavailableError(f"Book '{book.title}' is already lent")

            self.loans.update(updated, conn=conn)

        logger.info("Loan %s updated", loan_id)
        self.events.publish(BOOKS_CHANGED, updated)
        return updated

    def search_loans(self, text: str) -> list[Loan]:
        """Loans matching a book title, a member name or a date."""
        return self.loans.search(text)

    def cancel_loan(self, loan_id: int) -> None:
        """
        Delete a loan record, making its book available again if it was open.

        Raises:
            LoanNotFoundError: Unknown loan
        """
        if not self.loans.delete(loan_id):
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        logger.info("Loan %s cancelled", loan_id)
        self.events.publish(BOOKS_CHANGED, loan_id)

    def correct_availability(self, book_id: int, available: bool) -> None:
        """
        Manually override a book's availability (inventory correction).

        No loan is touched, so this can break the availability invariant; it
        exists to repair data that already did.
        """
        if not self.books.update_availability(book_id, available):
            raise BookNotFoundError(f"Book {book_id} not found")
        logger.warning("Availability of book %s manually set to %s", book_id, available)
        self.events.publish(BOOKS_CHANGED, book_id)

    def activate_loans_view(self) -> None:
        """Signal that the loans view came to the front and should reload."""
        self.events.publish(LOANS_VIEW_ACTIVATED)

    # === Catalog ===

    def add_book(self, book: Book) -> Book:
        created = self.books.insert(book)
        self.events.publish(BOOKS_CHANGED, created)
        return created

    def save_book(self, book: Book) -> Book:
        """
        Overwrite a book's record.

        Raises:
            BookNotFoundError: The book has no ID or no longer exists
        """
        if not self.books.update(book):
            raise BookNotFoundError(f"Book {book.id} not found")
        self.events.publish(BOOKS_CHANGED, book)
        return book

    def remove_book(self, book_id: int) -> None:
        """
        Delete a book.

        Raises:
            BookNotFoundError: Unknown book
            ConstraintViolationError: Loans still reference the book
        """
        if not self.books.delete(book_id):
            raise BookNotFoundError(f"Book {book_id} not found")
        self.events.publish(BOOKS_CHANGED, book_id)

    # === Members ===

    def add_member(self, member: Member) -> Member:
        created = self.members.insert(member)
        self.events.publish(MEMBERS_CHANGED, created)
        return created

    def save_member(self, member: Member) -> Member:
        if not self.members.update(member):
            raise MemberNotFoundError(f"Member {member.id} not found")
        self.events.publish(MEMBERS_CHANGED, member)
        return member

    def remove_member(self, member_id: int) -> None:
        if not self.members.delete(member_id):
            raise MemberNotFoundError(f"Member {member_id} not found")
        self.events.publish(MEMBERS_CHANGED, member_id)
