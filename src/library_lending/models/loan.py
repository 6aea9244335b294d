"""
Loan model for the library lending core.

A loan links one book to one member. It stays open (``in_progress``) until an
actual return date is recorded. Dates are ISO ``YYYY-MM-DD`` strings, matching
how they are stored, so plain string comparison orders them correctly.

The store may hold an open loan's return date either as NULL or as an empty
string; both are normalized to ``None`` here.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .book import Book
from .member import Member


def _check_iso_date(value: str, field: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"{field} must be an ISO date (YYYY-MM-DD), got {value!r}") from e
    return value


class Loan(BaseModel):
    """
    Represents a book lent to a member.

    ``book`` and ``member`` are only filled by the "with details" queries of the
    loan repository. They are display copies: changing them persists nothing.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = Field(
        default=None,
        description="Store-assigned identifier",
        gt=0,
    )

    book_id: int = Field(
        ...,
        description="Identifier of the lent book",
        gt=0,
    )

    member_id: int = Field(
        ...,
        description="Identifier of the borrowing member",
        gt=0,
    )

    loan_date: str = Field(
        ...,
        description="Date the book was lent (ISO YYYY-MM-DD)",
        examples=["2024-01-01"],
    )

    expected_return_date: str = Field(
        ...,
        description="Date the book is due back (ISO YYYY-MM-DD)",
        examples=["2024-01-15"],
    )

    actual_return_date: str | None = Field(
        default=None,
        description="Date the book came back; None while the loan is open",
        examples=[None, "2024-01-10"],
    )

    book: Book | None = Field(
        default=None,
        description="Resolved book, display only",
        exclude=True,
    )

    member: Member | None = Field(
        default=None,
        description="Resolved member, display only",
        exclude=True,
    )

    @field_validator("actual_return_date", mode="before")
    @classmethod
    def normalize_return_date(cls, v: str | None) -> str | None:
        """Empty strings mean "not returned yet", same as NULL."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("loan_date", "expected_return_date", "actual_return_date")
    @classmethod
    def validate_iso_date(cls, v: str | None, info) -> str | None:
        if v is None:
            return v
        return _check_iso_date(v, info.field_name)

    @property
    def in_progress(self) -> bool:
        """True while no return date has been recorded."""
        return self.actual_return_date is None

    def is_overdue(self, today: str | None = None) -> bool:
        """Open and past its expected return date."""
        today = today or date.today().isoformat()
        return self.in_progress and self.expected_return_date < today
