"""
Process-level wiring for the library lending core.

A :class:`Library` owns everything one process needs to talk to the store:

1. The SQLAlchemy engine and the bounded connection pool
2. The event bus views subscribe to
3. The book, member and loan repositories
4. The lending service that composes them

It is opened once at startup (optionally bootstrapping the schema and seed
data) and closed once at shutdown, which closes every pooled connection:

```python
with Library.open(settings) as library:
    library.lending.lend_book(book_id, member_id, "2024-01-01", "2024-01-15")
```
"""

import logging

from sqlalchemy import select
from sqlalchemy.engine import Engine

from .config import LibrarySettings, get_settings
from .database.book_repository import BookRepository
from .database.bootstrap import BootstrapReport, bootstrap
from .database.engine import create_store_engine
from .database.errors import RepositoryException
from .database.loan_repository import LoanRepository
from .database.member_repository import MemberRepository
from .database.pool import ConnectionPool
from .events import EventBus
from .services.lending import LendingService

logger = logging.getLogger(__name__)


class Library:
    """
    Owns the engine, pool, event bus, repositories and lending service.

    Build one with :meth:`open`; the constructor only wires parts together.
    """

    def __init__(self, engine: Engine, pool: ConnectionPool, events: EventBus | None = None):
        self.engine = engine
        self.pool = pool
        self.events = events or EventBus()
        self.books = BookRepository(pool)
        self.members = MemberRepository(pool)
        self.loans = LoanRepository(pool, self.books, self.members)
        self.lending = LendingService(self.books, self.members, self.loans, self.events)
        self._closed = False

    @classmethod
    def open(
        cls,
        settings: LibrarySettings | None = None,
        events: EventBus | None = None,
        run_bootstrap: bool | None = None,
    ) -> "Library":
        """
        Create the engine and pool and, unless disabled, bootstrap the store.

        Args:
            settings: Configuration; the process-wide settings when None
            events: Bus to publish on; a fresh one when None
            run_bootstrap: Overrides ``settings.bootstrap_on_open`` when given
        """
        settings = settings or get_settings()
        engine = create_store_engine(settings.get_database_url())
        library = cls(engine, ConnectionPool(engine, settings.pool_size), events)

        should_bootstrap = settings.bootstrap_on_open if run_bootstrap is None else run_bootstrap
        if should_bootstrap:
            try:
                library.bootstrap(settings)
            except Exception:
                library.close()
                raise

        return library

    def bootstrap(self, settings: LibrarySettings | None = None) -> BootstrapReport:
        """Create missing tables and seed an empty catalog."""
        settings = settings or get_settings()
        report = bootstrap(self.pool, settings.bootstrap_script)
        logger.info(
            "Bootstrap complete: %d table(s) created, %d skipped, seeded=%s",
            report.tables_created,
            report.tables_skipped,
            report.seeded,
        )
        return report

    def verify_connection(self) -> bool:
        """
        Check that the store answers a trivial query.

        Returns:
            True if the connection works, False otherwise
        """
        try:
            with self.pool.connection() as conn:
                conn.execute(select(1))
            logger.info("Database connection verified")
            return True
        except RepositoryException:
            logger.exception("Database connection failed")
            return False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Close every pooled connection and dispose of the engine.

        Safe to call more than once.
        """
        if self._closed:
            return
        self.pool.close_all()
        self.engine.dispose()
        self._closed = True
        logger.info("Library closed")

    def __enter__(self) -> "Library":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# Global library instance used by the tool handlers
_library: Library | None = None


def get_library() -> Library:
    """
    Get the process-wide library, opening it from settings on first use.
    """
    global _library  # noqa: PLW0603 - Singleton pattern for the open library

    if _library is None or _library.closed:
        _library = Library.open()

    return _library


def set_library(library: Library | None) -> None:
    """Install an already-open library as the process-wide one."""
    global _library  # noqa: PLW0603
    _library = library


def reset_library() -> None:
    """Close and forget the process-wide library (useful for testing)."""
    global _library  # noqa: PLW0603

    if _library is not None:
        _library.close()
    _library = None
