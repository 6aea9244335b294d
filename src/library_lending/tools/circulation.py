"""
Circulation tools for the library lending core.

Tools that lend and return books, and list loans:
1. lend_book: record a loan and mark the book unavailable
2. return_book: close an open loan and put the book back on the shelf
3. list_open_loans / list_overdue_loans: loans with their book and member

State-changing tools go through the lending service, so the same guards
apply (no lending an unavailable book, no returning a loan twice) and views
subscribed to the event bus are notified.
"""

import logging
from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, Field, model_validator

from ..database.errors import RepositoryException
from ..library import get_library
from ..models.loan import Loan
from ..services.lending import LendingError

logger = logging.getLogger(__name__)

DEFAULT_LOAN_DAYS = 14


def _format_error_response(error_type: str, details: str) -> dict[str, Any]:
    """Format error responses consistently across all tools."""
    return {"isError": True, "content": [{"type": "text", "text": f"{error_type}: {details}"}]}


def _log_operation(operation: str, **kwargs) -> None:
    """Log operation details for audit trail."""
    logger.info(
        "Operation: %s | Details: %s", operation, " | ".join(f"{k}={v}" for k, v in kwargs.items())
    )


def format_loan_for_tool_response(loan: Loan) -> dict[str, Any]:
    """Format a loan, with its resolved book and member when present."""
    return {
        "id": loan.id,
        "book_id": loan.book_id,
        "book_title": loan.book.title if loan.book else None,
        "member_id": loan.member_id,
        "member_name": loan.member.full_name if loan.member else None,
        "loan_date": loan.loan_date,
        "expected_return_date": loan.expected_return_date,
        "actual_return_date": loan.actual_return_date,
        "in_progress": loan.in_progress,
        "overdue": loan.is_overdue(),
    }


# =============================================================================
# LEND / RETURN
# =============================================================================


class LendBookInput(BaseModel):
    """Input schema for lending a book."""

    book_id: int = Field(..., description="ID of the book to lend", gt=0)

    member_id: int = Field(..., description="ID of the borrowing member", gt=0)

    loan_date: date | None = Field(
        default=None,
        description="Date of the loan; defaults to today",
        examples=["2024-01-01"],
    )

    expected_return_date: date | None = Field(
        default=None,
        description=f"Due date; defaults to {DEFAULT_LOAN_DAYS} days after the loan date",
        examples=["2024-01-15"],
    )

    @model_validator(mode="after")
    def fill_dates(self) -> "LendBookInput":
        if self.loan_date is None:
            self.loan_date = date.today()
        if self.expected_return_date is None:
            self.expected_return_date = self.loan_date + timedelta(days=DEFAULT_LOAN_DAYS)
        return self


async def lend_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the lend_book tool.

    Args:
        arguments: Raw arguments from the tools/call request

    Returns:
        The recorded loan, or an error the client can show as-is
    """
    try:
        params = LendBookInput.model_validate(arguments)
    except Exception as e:
        logger.warning("Invalid lend parameters: %s", e)
        return _format_error_response("Invalid parameters", str(e))

    _log_operation(
        "lend_book",
        book_id=params.book_id,
        member_id=params.member_id,
        loan_date=params.loan_date,
        expected_return_date=params.expected_return_date,
    )

    try:
        library = get_library()
        loan = library.lending.lend_book(
            params.book_id,
            params.member_id,
            params.loan_date,
            params.expected_return_date,
        )
        loan = library.loans.find_by_id(loan.id) or loan
    except LendingError as e:
        logger.info("Lending refused: %s", e)
        return _format_error_response("Lending refused", str(e))
    except ValueError as e:
        return _format_error_response("Invalid parameters", str(e))
    except RepositoryException as e:
        logger.exception("Lending failed")
        return _format_error_response("Database error", str(e))

    return {
        "content": [
            {
                "type": "text",
                "text": (
                    f"Book {loan.book_id} lent to member {loan.member_id}. "
                    f"Due back on {loan.expected_return_date}."
                ),
            }
        ],
        "data": {"loan": format_loan_for_tool_response(loan)},
    }


class ReturnBookInput(BaseModel):
    """Input schema for returning a book."""

    loan_id: int = Field(..., description="ID of the loan to close", gt=0)

    return_date: date | None = Field(
        default=None,
        description="Date the book came back; defaults to today",
        examples=["2024-01-10"],
    )


async def return_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the return_book tool."""
    try:
        params = ReturnBookInput.model_validate(arguments)
    except Exception as e:
        logger.warning("Invalid return parameters: %s", e)
        return _format_error_response("Invalid parameters", str(e))

    _log_operation("return_book", loan_id=params.loan_id, return_date=params.return_date)

    try:
        loan = get_library().lending.return_book(params.loan_id, params.return_date)
    except LendingError as e:
        logger.info("Return refused: %s", e)
        return _format_error_response("Return refused", str(e))
    except ValueError as e:
        return _format_error_response("Invalid parameters", str(e))
    except RepositoryException as e:
        logger.exception("Return failed")
        return _format_error_response("Database error", str(e))

    return {
        "content": [
            {
                "type": "text",
                "text": f"Loan {loan.id} returned on {loan.actual_return_date}.",
            }
        ],
        "data": {"loan": format_loan_for_tool_response(loan)},
    }


# =============================================================================
# LOAN LISTS
# =============================================================================


class OverdueLoansInput(BaseModel):
    """Input schema for listing overdue loans."""

    as_of: date | None = Field(
        default=None,
        description="Reference date; defaults to today",
    )


def _loans_response(loans: list[Loan], label: str) -> dict[str, Any]:
    message = f"{len(loans)} {label} loan(s)" if loans else f"No {label} loans."
    return {
        "content": [{"type": "text", "text": message}],
        "data": {"loans": [format_loan_for_tool_response(loan) for loan in loans]},
    }


async def list_open_loans_handler(arguments: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    """List loans that have not been returned yet."""
    try:
        library = get_library()
        library.lending.activate_loans_view()
        loans = library.loans.find_all_open()
    except RepositoryException as e:
        logger.exception("Listing open loans failed")
        return _format_error_response("Database error", str(e))

    return _loans_response(loans, "open")


async def list_overdue_loans_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """List open loans past their expected return date."""
    try:
        params = OverdueLoansInput.model_validate(arguments or {})
    except Exception as e:
        logger.warning("Invalid overdue parameters: %s", e)
        return _format_error_response("Invalid parameters", str(e))

    try:
        loans = get_library().loans.find_all_overdue(params.as_of)
    except RepositoryException as e:
        logger.exception("Listing overdue loans failed")
        return _format_error_response("Database error", str(e))

    return _loans_response(loans, "overdue")


lend_book = {
    "name": "lend_book",
    "description": (
        "Lend a book to a member. The book must exist and be available; it becomes "
        "unavailable until the loan is returned. The due date defaults to "
        f"{DEFAULT_LOAN_DAYS} days after the loan date."
    ),
    "inputSchema": LendBookInput.model_json_schema(),
    "handler": lend_book_handler,
}

return_book = {
    "name": "return_book",
    "description": (
        "Record the return of an open loan. The book becomes available again. "
        "A loan that was already returned is refused."
    ),
    "inputSchema": ReturnBookInput.model_json_schema(),
    "handler": return_book_handler,
}

list_open_loans = {
    "name": "list_open_loans",
    "description": "List every loan not yet returned, with book title and member name.",
    "inputSchema": {"type": "object", "properties": {}, "required": []},
    "handler": list_open_loans_handler,
}

list_overdue_loans = {
    "name": "list_overdue_loans",
    "description": (
        "List open loans whose expected return date is before today "
        "(or before as_of when given)."
    ),
    "inputSchema": OverdueLoansInput.model_json_schema(),
    "handler": list_overdue_loans_handler,
}
