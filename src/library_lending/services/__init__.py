"""Business rules composed on top of the repositories."""

from .lending import (
    BookNotFoundError,
    BookUnavailableError,
    LendingError,
    LendingService,
    LoanAlreadyReturnedError,
    LoanNotFoundError,
    MemberNotFoundError,
)

__all__ = [
    "BookNotFoundError",
    "BookUnavailableError",
    "LendingError",
    "LendingService",
    "LoanAlreadyReturnedError",
    "LoanNotFoundError",
    "MemberNotFoundError",
]
