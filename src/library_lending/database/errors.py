"""Exceptions raised by the persistence layer.

Lookups never raise for a missing row: they return ``None``, ``False`` or an
empty list. Everything below is raised for a store that misbehaved or
refused a statement.
"""


class RepositoryException(Exception):
    """Base exception for repository operations."""


class PersistenceError(RepositoryException):
    """A statement ran but violated an expectation (no rows, no generated id)."""


class StoreUnavailableError(RepositoryException):
    """A connection to the store could not be opened."""


class ConstraintViolationError(RepositoryException):
    """The store rejected a write on an integrity constraint."""


class StoreError(RepositoryException):
    """Any other store-level failure."""
