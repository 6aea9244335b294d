"""
Engine construction and statement helpers.

The engine is created with ``NullPool``: connection reuse is the job of
:class:`~library_lending.database.pool.ConnectionPool`, so every
``engine.connect()`` must open a real DBAPI connection.

``safe_execute`` runs one statement and translates SQLAlchemy failures into
the repository exception hierarchy, so callers only ever see typed errors.
"""

import logging
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Connection, CursorResult, Engine, make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.base import Executable

from .errors import ConstraintViolationError, StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)


def create_store_engine(url: URL | str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for the backing store.

    SQLite gets ``check_same_thread=False`` (pooled connections are handed
    to whichever thread acquires them) and foreign keys switched on.
    """
    url_str = url.render_as_string(hide_password=False) if isinstance(url, URL) else url

    if url_str.startswith("sqlite"):
        database = make_url(url_str).database
        if database and database != ":memory:" and not database.startswith("file:"):
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            url_str,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = create_engine(url_str, poolclass=NullPool, echo=echo)

    logger.info("Database engine created: %s", engine.url)
    return engine


def open_connection(engine: Engine) -> Connection:
    """Open a new store connection, raising StoreUnavailableError on failure."""
    try:
        return engine.connect()
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"Could not connect to {engine.url}: {e!s}") from e


def is_usable(conn: Connection | None) -> bool:
    """True if ``conn`` can still run statements."""
    return conn is not None and not conn.closed and not conn.invalidated


def safe_execute(
    conn: Connection, statement: Executable, operation: str, params=None
) -> CursorResult:
    """
    Execute one statement with typed error handling.

    Args:
        conn: Connection borrowed from the pool
        statement: SQLAlchemy Core statement (always parameterized)
        operation: Description of the operation, for messages and logs
        params: Optional execution parameters

    Raises:
        ConstraintViolationError: Unique or foreign key constraint rejected
        StoreUnavailableError: The connection dropped while executing
        StoreError: Any other database failure
    """
    try:
        if params is None:
            return conn.execute(statement)
        return conn.execute(statement, params)
    except IntegrityError as e:
        logger.warning("Constraint violation during %s: %s", operation, e.orig)
        raise ConstraintViolationError(f"{operation} rejected by the store: {e.orig}") from e
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.exception("Connection lost during %s", operation)
            raise StoreUnavailableError(f"{operation} failed: connection lost") from e
        logger.exception("Database error during %s", operation)
        raise StoreError(f"{operation} failed: {e!s}") from e
    except SQLAlchemyError as e:
        logger.exception("Database error during %s", operation)
        raise StoreError(f"{operation} failed: {e!s}") from e
