"""
Database package for the library lending core.

This package provides:
- SQLAlchemy table definitions (schema.py)
- Engine construction and typed statement execution (engine.py)
- The bounded connection pool (pool.py)
- Book, member and loan repositories
- The schema/seed bootstrapper (bootstrap.py)

Callers never open their own store connection: everything goes through the
repositories, which borrow connections from the pool.
"""

from .book_repository import BookRepository
from .bootstrap import Bootstrapper, BootstrapReport, bootstrap
from .engine import create_store_engine, safe_execute
from .errors import (
    ConstraintViolationError,
    PersistenceError,
    RepositoryException,
    StoreError,
    StoreUnavailableError,
)
from .loan_repository import LoanRepository
from .member_repository import MemberRepository
from .pool import ConnectionPool, PoolStats
from .repository import BaseRepository
from .schema import Base, BookRow, LoanRow, MemberRow

__all__ = [
    "Base",
    "BaseRepository",
    "BookRepository",
    "BookRow",
    "BootstrapReport",
    "Bootstrapper",
    "ConnectionPool",
    "ConstraintViolationError",
    "LoanRepository",
    "LoanRow",
    "MemberRepository",
    "MemberRow",
    "PersistenceError",
    "PoolStats",
    "RepositoryException",
    "StoreError",
    "StoreUnavailableError",
    "bootstrap",
    "create_store_engine",
    "safe_execute",
]
