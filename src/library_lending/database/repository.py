"""
Repository pattern implementation for the library lending core.

This module provides the data access contract shared by the book, member and
loan repositories:

1. **Uniform CRUD**: ``insert``, ``update``, ``delete``, ``find_by_id`` and
   ``find_all`` behave the same for every entity
2. **Scoped connections**: every operation borrows a connection from the
   :class:`ConnectionPool` and gives it back on every exit path
3. **Parameterized SQL only**: statements are SQLAlchemy Core constructs;
   user text never ends up concatenated into SQL
4. **Value records out**: rows are converted to frozen pydantic models

Every public method accepts an optional ``conn``. When given, the call runs
on that connection inside the caller's transaction instead of borrowing its
own; this is how the loan repository keeps a loan and its book's
availability in one transaction.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import Select, Table, delete, func, insert, select, update
from sqlalchemy.engine import Connection

from .engine import safe_execute
from .errors import (
    ConstraintViolationError,
    PersistenceError,
    RepositoryException,
    StoreError,
    StoreUnavailableError,
)
from .pool import ConnectionPool

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=BaseModel)

__all__ = [
    "BaseRepository",
    "ConstraintViolationError",
    "PersistenceError",
    "RepositoryException",
    "StoreError",
    "StoreUnavailableError",
]


class BaseRepository(ABC, Generic[ModelType]):
    """
    Abstract base repository providing common CRUD operations.

    Subclasses declare the table, how a row becomes a model and how a model
    becomes column values; everything else is shared.
    """

    def __init__(self, pool: ConnectionPool):
        """Initialize repository with the shared connection pool."""
        self.pool = pool

    @property
    @abstractmethod
    def table(self) -> Table:
        """Return the Core table backing this repository."""

    @property
    def entity_name(self) -> str:
        return self.table.name

    @abstractmethod
    def _from_row(self, row: Mapping[Any, Any]) -> ModelType:
        """Convert a row mapping (keyed by Column objects) to a model."""

    @abstractmethod
    def _to_values(self, entity: ModelType) -> dict[str, Any]:
        """Column-name → value mapping for insert/update, without ``id``."""

    # === Query helpers ===

    def _convert_rows(self, rows, convert, operation: str) -> list:
        """Apply ``convert`` to each row mapping; unreadable rows raise PersistenceError."""
        try:
            return [convert(row._mapping) for row in rows]
        except ValidationError as e:
            logger.error("Unreadable %s row during %s: %s", self.entity_name, operation, e)
            raise PersistenceError(f"Stored {self.entity_name} row is invalid: {e}") from e

    def _fetch_all(
        self, query: Select, operation: str, conn: Connection | None = None
    ) -> list[ModelType]:
        with self.pool.connection(conn) as c:
            rows = safe_execute(c, query, operation).all()
        return self._convert_rows(rows, self._from_row, operation)

    def _fetch_one(
        self, query: Select, operation: str, conn: Connection | None = None
    ) -> ModelType | None:
        with self.pool.connection(conn) as c:
            row = safe_execute(c, query, operation).first()
        if row is None:
            return None
        return self._convert_rows([row], self._from_row, operation)[0]

    # === CRUD ===

    def insert(self, entity: ModelType, conn: Connection | None = None) -> ModelType:
        """
        Insert a new entity.

        Args:
            entity: Model to persist; its ``id`` is ignored

        Returns:
            A copy of the entity carrying the store-assigned ``id``

        Raises:
            PersistenceError: No row inserted or no identifier generated
            ConstraintViolationError: Unique/foreign key constraint rejected
        """
        statement = insert(self.table).values(**self._to_values(entity))
        with self.pool.connection(conn) as c:
            result = safe_execute(c, statement, f"insert {self.entity_name}")

            if result.rowcount == 0:
                raise PersistenceError(f"Creating {self.entity_name} failed, no rows affected")

            primary_key = result.inserted_primary_key
            if not primary_key or primary_key[0] is None:
                raise PersistenceError(f"Creating {self.entity_name} failed, no id obtained")

        return entity.model_copy(update={"id": int(primary_key[0])})

    def update(self, entity: ModelType, conn: Connection | None = None) -> bool:
        """
        Overwrite the full record identified by ``entity.id``.

        Returns:
            True if exactly one row was affected, False otherwise (including
            when the row does not exist)
        """
        if entity.id is None:
            return False

        statement = (
            update(self.table)
            .where(self.table.c.id == entity.id)
            .values(**self._to_values(entity))
        )
        with self.pool.connection(conn) as c:
            result = safe_execute(c, statement, f"update {self.entity_name}")
        return result.rowcount == 1

    def delete(self, id: int, conn: Connection | None = None) -> bool:
        """
        Delete entity by ID.

        Returns:
            True if deleted, False if not found
        """
        statement = delete(self.table).where(self.table.c.id == id)
        with self.pool.connection(conn) as c:
            result = safe_execute(c, statement, f"delete {self.entity_name}")
        return result.rowcount == 1

    def find_by_id(self, id: int, conn: Connection | None = None) -> ModelType | None:
        """Get entity by ID, or None if not found."""
        query = select(self.table).where(self.table.c.id == id)
        return self._fetch_one(query, f"find {self.entity_name} by id", conn)

    def find_all(self, conn: Connection | None = None) -> list[ModelType]:
        """All entities, in whatever order the store returns them."""
        return self._fetch_all(select(self.table), f"find all {self.entity_name}", conn)

    def count(self, conn: Connection | None = None) -> int:
        query = select(func.count()).select_from(self.table)
        with self.pool.connection(conn) as c:
            return safe_execute(c, query, f"count {self.entity_name}").scalar_one()

    def exists(self, id: int, conn: Connection | None = None) -> bool:
        query = select(func.count()).select_from(self.table).where(self.table.c.id == id)
        with self.pool.connection(conn) as c:
            return safe_execute(c, query, f"check {self.entity_name} existence").scalar_one() > 0
