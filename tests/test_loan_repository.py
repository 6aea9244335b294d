"""
Tests for the loan repository.

The central property checked throughout: a book is unavailable exactly while
an open loan (no actual return date) references it.
"""

from datetime import date, datetime

import pytest
from sqlalchemy import select

from library_lending.database import ConstraintViolationError, StoreError
from library_lending.database.schema import loans_table
from library_lending.models import Loan


def assert_availability_consistent(book_repo, loan_repo):
    """Every book is unavailable iff an open loan references it."""
    open_book_ids = {loan.book_id for loan in loan_repo.find_all_open()}
    for book in book_repo.find_all():
        assert book.available is (book.id not in open_book_ids), book


def make_loan(book_id, member_id, loan_date="2024-01-01", expected="2024-01-15", **extra):
    return Loan(
        book_id=book_id,
        member_id=member_id,
        loan_date=loan_date,
        expected_return_date=expected,
        **extra,
    )


class TestLendAndReturn:
    """Insert and return keep the book's availability in step."""

    def test_lend_and_return_dune(self, book_repo, loan_repo, dune, alice):
        loan = loan_repo.insert(make_loan(dune.id, alice.id))

        assert loan.id is not None
        assert book_repo.find_by_id(dune.id).available is False
        assert [open_loan.id for open_loan in loan_repo.find_all_open()] == [loan.id]

        assert loan_repo.return_loan(loan.id, "2024-01-10") is True

        assert book_repo.find_by_id(dune.id).available is True
        assert loan_repo.find_all_open() == []
        assert loan_repo.find_by_id(loan.id).actual_return_date == "2024-01-10"
        assert_availability_consistent(book_repo, loan_repo)

    def test_return_accepts_date_objects(self, loan_repo, dune, alice):
        loan = loan_repo.insert(make_loan(dune.id, alice.id))

        assert loan_repo.return_loan(loan.id, date(2024, 1, 12)) is True
        assert loan_repo.find_by_id(loan.id).actual_return_date == "2024-01-12"

    def test_return_rejects_malformed_date(self, loan_repo, dune, alice):
        loan = loan_repo.insert(make_loan(dune.id, alice.id))

        with pytest.raises(ValueError):
            loan_repo.return_loan(loan.id, "12/01/2024")
        assert loan_repo.find_by_id(loan.id).in_progress

    def test_return_unknown_loan(self, loan_repo):
        assert loan_repo.return_loan(999, "2024-01-10") is False

    def test_second_return_overwrites_date(self, book_repo, loan_repo, dune, alice):
        """The repository does not guard against returning twice."""
        loan = loan_repo.insert(make_loan(dune.id, alice.id))
        loan_repo.return_loan(loan.id, "2024-01-10")

        assert loan_repo.return_loan(loan.id, "2024-01-20") is True

        assert loan_repo.find_by_id(loan.id).actual_return_date == "2024-01-20"
        assert book_repo.find_by_id(dune.id).available is True

    def test_insert_closed_loan_still_marks_book_unavailable(self, book_repo, loan_repo, dune, alice):
        """Insert always marks the book unavailable, whatever the loan holds."""
        loan_repo.insert(make_loan(dune.id, alice.id, actual_return_date="2024-01-05"))

        assert book_repo.find_by_id(dune.id).available is False

    def test_unknown_book_rejected(self, loan_repo, alice):
        with pytest.raises(ConstraintViolationError):
            loan_repo.insert(make_loan(999, alice.id))
        assert loan_repo.find_all() == []

    def test_unknown_member_rejected(self, book_repo, loan_repo, dune):
        with pytest.raises(ConstraintViolationError):
            loan_repo.insert(make_loan(dune.id, 999))

        assert loan_repo.find_all() == []
        assert book_repo.find_by_id(dune.id).available is True

    def test_failed_availability_update_rolls_back_loan(
        self, monkeypatch, book_repo, loan_repo, dune, alice
    ):
        def broken(*args, **kwargs):
            raise StoreError("update book availability failed")

        monkeypatch.setattr(book_repo, "update_availability", broken)

        with pytest.raises(StoreError):
            loan_repo.insert(make_loan(dune.id, alice.id))

        assert loan_repo.find_all() == []
        assert book_repo.find_by_id(dune.id).available is True

    def test_operations_release_their_connections(self, pool, loan_repo, dune, alice):
        loan = loan_repo.insert(make_loan(dune.id, alice.id))
        loan_repo.find_all_with_details()
        loan_repo.return_loan(loan.id, "2024-01-10")
        loan_repo.delete(loan.id)

        assert pool.stats().in_use == 0


class TestDeleteLoan:
    """Deleting restores availability only for open loans."""

    def test_delete_open_loan_frees_book(self, book_repo, loan_repo, dune, alice):
        loan = loan_repo.insert(make_loan(dune.id, alice.id))

        assert loan_repo.delete(loan.id) is True

        assert loan_repo.find_by_id(loan.id) is None
        assert book_repo.find_by_id(dune.id).available is True

    def test_delete_closed_loan_leaves_book_alone(self, book_repo, loan_repo, dune, alice):
        first = loan_repo.insert(make_loan(dune.id, alice.id))
        loan_repo.return_loan(first.id, "2024-01-10")
        loan_repo.insert(make_loan(dune.id, alice.id, "2024-02-01", "2024-02-15"))

        assert loan_repo.delete(first.id) is True

        # The second, still open loan keeps the book out
        assert book_repo.find_by_id(dune.id).available is False
        assert_availability_consistent(book_repo, loan_repo)

    def test_delete_unknown_loan(self, loan_repo):
        assert loan_repo.delete(999) is False


class TestLoanQueries:
    """Open, overdue and per-entity queries."""

    @pytest.fixture
    def loans(self, loan_repo, raw_insert, catalog):
        """One returned loan, one open loan, one open loan stored with ''."""
        returned = loan_repo.insert(
            make_loan(catalog["book_1"], catalog["member"], "2023-12-01", "2023-12-15")
        )
        loan_repo.return_loan(returned.id, "2023-12-10")
        open_null = loan_repo.insert(
            make_loan(catalog["book_1"], catalog["member"], "2023-12-20", "2024-01-03")
        )
        open_empty_id = raw_insert(
            loans_table,
            livre_id=catalog["book_2"],
            membre_id=catalog["member"],
            date_emprunt="2023-12-28",
            date_retour_prevue="2024-01-11",
            date_retour_reelle="",
        )
        return {"returned": returned.id, "open_null": open_null.id, "open_empty": open_empty_id}

    def test_find_all_open_matches_null_and_empty(self, loan_repo, loans):
        open_loans = loan_repo.find_all_open()

        assert {loan.id for loan in open_loans} == {loans["open_null"], loans["open_empty"]}
        assert all(loan.actual_return_date is None for loan in open_loans)

    def test_find_all_overdue(self, loan_repo, loans):
        overdue = loan_repo.find_all_overdue("2024-01-05")
        assert [loan.id for loan in overdue] == [loans["open_null"]]

        overdue = loan_repo.find_all_overdue("2024-01-12")
        assert {loan.id for loan in overdue} == {loans["open_null"], loans["open_empty"]}

    def test_due_today_is_not_overdue(self, loan_repo, loans):
        assert loan_repo.find_all_overdue("2024-01-03") == []

    def test_returned_loans_never_overdue(self, loan_repo, loans):
        overdue_ids = {loan.id for loan in loan_repo.find_all_overdue("2030-01-01")}
        assert loans["returned"] not in overdue_ids

    def test_overdue_defaults_to_today(self, loan_repo, loans):
        # All due dates are in the past
        assert len(loan_repo.find_all_overdue()) == 2

    def test_find_by_book_id(self, loan_repo, loans, catalog):
        found = loan_repo.find_by_book_id(catalog["book_1"])
        assert {loan.id for loan in found} == {loans["returned"], loans["open_null"]}

    def test_find_by_member_id(self, loan_repo, loans, catalog):
        assert len(loan_repo.find_by_member_id(catalog["member"])) == 3
        assert loan_repo.find_by_member_id(999) == []

    def test_details_are_resolved(self, loan_repo, loans):
        loan = loan_repo.find_by_id(loans["open_empty"])

        assert loan.book.title == "Nana"
        assert loan.member.full_name == "Marie Martin"
        assert loan.in_progress

    def test_find_all_with_details(self, loan_repo, loans):
        details = loan_repo.find_all_with_details()

        assert [loan.id for loan in details] == sorted(loans.values())
        assert all(loan.book is not None and loan.member is not None for loan in details)

    def test_find_all_is_not_hydrated(self, loan_repo, loans):
        assert all(loan.book is None and loan.member is None for loan in loan_repo.find_all())

    def test_empty_string_stays_in_store(self, engine, loans):
        with engine.connect() as conn:
            stored = conn.execute(
                select(loans_table.c.date_retour_reelle).where(
                    loans_table.c.id == loans["open_empty"]
                )
            ).scalar_one()
        assert stored == ""


class TestAvailabilityInvariant:
    """Random-ish sequences of lend/return/delete keep availability consistent."""

    def test_sequence(self, book_repo, member_repo, loan_repo, catalog):
        b1, b2, member = catalog["book_1"], catalog["book_2"], catalog["member"]

        l1 = loan_repo.insert(make_loan(b1, member))
        assert_availability_consistent(book_repo, loan_repo)

        l2 = loan_repo.insert(make_loan(b2, member))
        assert_availability_consistent(book_repo, loan_repo)

        loan_repo.return_loan(l1.id, "2024-01-05")
        assert_availability_consistent(book_repo, loan_repo)

        loan_repo.delete(l2.id)
        assert_availability_consistent(book_repo, loan_repo)

        l3 = loan_repo.insert(make_loan(b1, member, "2024-02-01", "2024-02-15"))
        loan_repo.delete(l1.id)
        assert_availability_consistent(book_repo, loan_repo)

        loan_repo.return_loan(l3.id, "2024-02-10")
        assert_availability_consistent(book_repo, loan_repo)
        assert all(book.available for book in book_repo.find_all())


class TestUpdateLoan:
    """A full-record update moves availability along with the loan."""

    def test_moving_open_loan_to_another_book(self, book_repo, loan_repo, catalog):
        b1, b2, member = catalog["book_1"], catalog["book_2"], catalog["member"]
        loan = loan_repo.insert(make_loan(b1, member))

        assert loan_repo.update(loan.model_copy(update={"book_id": b2})) is True

        assert book_repo.find_by_id(b1).available is True
        assert book_repo.find_by_id(b2).available is False
        assert_availability_consistent(book_repo, loan_repo)

    def test_setting_return_date_frees_book(self, book_repo, loan_repo, catalog):
        loan = loan_repo.insert(make_loan(catalog["book_1"], catalog["member"]))

        loan_repo.update(loan.model_copy(update={"actual_return_date": "2024-01-10"}))

        assert book_repo.find_by_id(catalog["book_1"]).available is True
        assert loan_repo.find_all_open() == []

    def test_clearing_return_date_reclaims_book(self, book_repo, loan_repo, catalog):
        loan = loan_repo.insert(make_loan(catalog["book_1"], catalog["member"]))
        loan_repo.return_loan(loan.id, "2024-01-10")

        loan_repo.update(loan.model_copy(update={"actual_return_date": None}))

        assert book_repo.find_by_id(catalog["book_1"]).available is False
        assert_availability_consistent(book_repo, loan_repo)

    def test_date_change_keeps_book_out(self, book_repo, loan_repo, catalog):
        loan = loan_repo.insert(make_loan(catalog["book_1"], catalog["member"]))

        loan_repo.update(loan.model_copy(update={"expected_return_date": "2024-02-01"}))

        assert book_repo.find_by_id(catalog["book_1"]).available is False
        assert loan_repo.find_by_id(loan.id).expected_return_date == "2024-02-01"

    def test_update_unknown_loan(self, loan_repo, catalog):
        ghost = make_loan(catalog["book_1"], catalog["member"], id=999)

        assert loan_repo.update(ghost) is False
        assert loan_repo.update(make_loan(catalog["book_1"], catalog["member"])) is False


class TestSearchLoans:
    """Free-text search over titles, member names and dates."""

    @pytest.fixture
    def loans(self, loan_repo, catalog):
        first = loan_repo.insert(
            make_loan(catalog["book_1"], catalog["member"], "2023-12-01", "2023-12-15")
        )
        loan_repo.return_loan(first.id, "2023-12-10")
        second = loan_repo.insert(
            make_loan(catalog["book_2"], catalog["member"], "2024-02-01", "2024-02-15")
        )
        return first, second

    def test_by_book_title(self, loan_repo, loans):
        assert [loan.id for loan in loan_repo.search("germ")] == [loans[0].id]

    def test_by_member_name(self, loan_repo, loans):
        assert len(loan_repo.search("MARIE")) == 2
        assert len(loan_repo.search("martin")) == 2

    def test_by_date(self, loan_repo, loans):
        assert [loan.id for loan in loan_repo.search("2024-02")] == [loans[1].id]
        assert [loan.id for loan in loan_repo.search("12-10")] == [loans[0].id]

    def test_results_are_hydrated(self, loan_repo, loans):
        [found] = loan_repo.search("nana")
        assert found.book.title == "Nana"
        assert found.member.first_name == "Marie"

    def test_blank_text_matches_everything(self, loan_repo, loans):
        assert len(loan_repo.search("  ")) == 2

    def test_no_match(self, loan_repo, loans):
        assert loan_repo.search("zzz") == []


class TestDateArguments:
    """Dates given as objects are stored as plain ISO days."""

    def test_return_with_datetime(self, loan_repo, dune, alice):
        loan = loan_repo.insert(make_loan(dune.id, alice.id))

        loan_repo.return_loan(loan.id, datetime(2024, 1, 12, 18, 30))

        assert loan_repo.find_by_id(loan.id).actual_return_date == "2024-01-12"

    def test_overdue_with_datetime(self, loan_repo, dune, alice):
        loan_repo.insert(make_loan(dune.id, alice.id, "2024-01-01", "2024-01-15"))

        assert loan_repo.find_all_overdue(datetime(2024, 1, 15, 23, 59)) == []
        assert len(loan_repo.find_all_overdue(datetime(2024, 1, 16, 0, 1))) == 1
