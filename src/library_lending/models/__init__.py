"""
Library lending models.

Plain pydantic v2 value records for the three core entities. They are
frozen: repositories return new instances (``model_copy``) instead of
mutating the ones they were given.

The models represent:
- Book: catalog items with a single availability flag
- Member: people allowed to borrow books
- Loan: a book lent to a member, open until a return date is recorded
"""

from .book import Book
from .loan import Loan
from .member import Member

__all__ = [
    "Book",
    "Loan",
    "Member",
]
