"""Test configuration and fixtures for the library lending core.

1. Isolated databases - every test gets its own SQLite file under tmp_path
2. Configuration overrides - settings never read the developer's .env
3. Global state reset - settings, event bus and library singletons

SQLite ``:memory:`` databases are not used: each pooled connection would get
its own private, empty database.
"""

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import insert
from sqlalchemy.engine import Engine

from library_lending.config import LibrarySettings, reset_settings
from library_lending.database import (
    Base,
    BookRepository,
    ConnectionPool,
    LoanRepository,
    MemberRepository,
    create_store_engine,
)
from library_lending.database.schema import books_table, members_table
from library_lending.events import EventBus, reset_event_bus
from library_lending.library import Library, reset_library, set_library
from library_lending.models import Book, Member

# === Global State ===


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, None, None]:
    """Forget process-wide singletons before and after each test."""
    reset_settings()
    reset_event_bus()
    reset_library()
    yield
    reset_library()
    reset_event_bus()
    reset_settings()


# === Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    """Provide a SQLAlchemy database URL for testing."""
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def test_settings(test_database_url: str) -> LibrarySettings:
    """Settings pointing at the test database, ignoring any .env file."""
    return LibrarySettings(
        _env_file=None,
        database_url=test_database_url,
        pool_size=3,
        bootstrap_on_open=False,
    )


@pytest.fixture
def engine(test_database_url: str) -> Generator[Engine, None, None]:
    """Engine over an empty database with every table created."""
    engine = create_store_engine(test_database_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def pool(engine: Engine) -> Generator[ConnectionPool, None, None]:
    pool = ConnectionPool(engine, size=3)
    yield pool
    pool.close_all()


@pytest.fixture
def book_repo(pool: ConnectionPool) -> BookRepository:
    return BookRepository(pool)


@pytest.fixture
def member_repo(pool: ConnectionPool) -> MemberRepository:
    return MemberRepository(pool)


@pytest.fixture
def loan_repo(
    pool: ConnectionPool, book_repo: BookRepository, member_repo: MemberRepository
) -> LoanRepository:
    return LoanRepository(pool, book_repo, member_repo)


# === Sample Data ===


@pytest.fixture
def sample_book() -> Book:
    return Book(
        title="Dune",
        author="Frank Herbert",
        isbn="9780441172719",
        publication_year=1965,
        publisher="Chilton Books",
    )


@pytest.fixture
def sample_member() -> Member:
    return Member(
        last_name="Durand",
        first_name="Alice",
        email="alice.durand@example.com",
        phone="0612345678",
        address="1 rue Victor Hugo, Nantes",
        registration_date="2023-05-10",
    )


@pytest.fixture
def dune(book_repo: BookRepository, sample_book: Book) -> Book:
    """Dune, stored and available."""
    return book_repo.insert(sample_book)


@pytest.fixture
def alice(member_repo: MemberRepository, sample_member: Member) -> Member:
    """Alice Durand, stored."""
    return member_repo.insert(sample_member)


@pytest.fixture
def raw_insert(engine: Engine):
    """Insert rows bypassing the repositories (for data the models would not produce)."""

    def _insert(table, **values):
        with engine.begin() as conn:
            return conn.execute(insert(table).values(**values)).inserted_primary_key[0]

    return _insert


@pytest.fixture
def catalog(raw_insert) -> dict[str, int]:
    """Two books and one member inserted directly."""
    return {
        "book_1": raw_insert(
            books_table, titre="Germinal", auteur="Émile Zola", isbn="111", disponible=True
        ),
        "book_2": raw_insert(
            books_table, titre="Nana", auteur="Émile Zola", isbn="222", disponible=True
        ),
        "member": raw_insert(
            members_table, nom="Martin", prenom="Marie", date_inscription="2023-01-01"
        ),
    }


# === Library Fixtures ===


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def library(test_settings: LibrarySettings, events: EventBus) -> Generator[Library, None, None]:
    """A bootstrapped library over the packaged seed data."""
    library = Library.open(test_settings, events=events, run_bootstrap=True)
    yield library
    library.close()


@pytest.fixture
def global_library(library: Library) -> Library:
    """The seeded library installed as the process-wide one used by tool handlers."""
    set_library(library)
    return library
