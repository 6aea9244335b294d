"""
Bounded connection pool for the library lending store.

The pool keeps ``size`` slots. Each slot either is empty or holds a live
SQLAlchemy ``Connection``, and has a parallel in-use flag:

- ``acquire`` hands out the first free slot, lazily (re)opening its
  connection when the slot is empty or its connection was closed.
- When every slot is in use the pool does not wait: it opens a temporary
  *overflow* connection that is not tracked and is closed on release.
- ``release`` clears a tracked slot's flag (the connection stays open for
  reuse) or closes an overflow connection.

A single lock serializes ``acquire``, ``release`` and ``close_all`` so that
two callers can never claim the same slot. Statement execution happens
outside the lock.

Repositories use :meth:`ConnectionPool.connection`, which guarantees release
on every exit path:

```python
with pool.connection() as conn:
    conn.execute(stmt)
# committed and released, or rolled back and released
```
"""

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager

from pydantic import BaseModel
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .engine import is_usable, open_connection
from .errors import StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 10


class PoolStats(BaseModel):
    """Snapshot of pool bookkeeping."""

    size: int
    open_slots: int
    in_use: int


class ConnectionPool:
    """
    Fixed-size pool of store connections with untracked overflow.

    Not a queue: ``acquire`` never blocks waiting for a slot.
    """

    def __init__(self, engine: Engine, size: int = DEFAULT_POOL_SIZE):
        if size < 1:
            raise ValueError("Pool size must be >= 1")
        self.engine = engine
        self.size = size
        self._slots: list[Connection | None] = [None] * size
        self._in_use: list[bool] = [False] * size
        self._lock = threading.Lock()

    def acquire(self) -> Connection:
        """
        Borrow a connection.

        Returns a tracked connection when a slot is free, otherwise a new
        overflow connection.

        Raises:
            StoreUnavailableError: No connection could be opened at all
        """
        with self._lock:
            for index in range(self.size):
                if self._in_use[index]:
                    continue

                conn = self._slots[index]
                if not is_usable(conn):
                    try:
                        conn = open_connection(self.engine)
                    except StoreUnavailableError:
                        logger.exception("Could not open pooled connection (slot %d)", index)
                        continue
                    self._slots[index] = conn
                    logger.debug("New pooled connection opened (slot %d)", index)

                self._in_use[index] = True
                return conn

            logger.info("Connection pool saturated, opening a temporary connection")
            return open_connection(self.engine)

    def release(self, conn: Connection | None) -> None:
        """Return a connection obtained from :meth:`acquire`."""
        if conn is None:
            return

        # Never hand a dangling transaction to the next borrower
        if is_usable(conn) and conn.in_transaction():
            try:
                conn.rollback()
            except SQLAlchemyError:
                logger.exception("Rollback on release failed")

        with self._lock:
            for index, slot in enumerate(self._slots):
                if slot is conn:
                    self._in_use[index] = False
                    logger.debug("Pooled connection released (slot %d)", index)
                    return

            try:
                conn.close()
                logger.debug("Temporary connection closed")
            except SQLAlchemyError:
                logger.exception("Error closing temporary connection")

    def close_all(self) -> None:
        """
        Close every tracked connection and reset the slots.

        Callers must have stopped using the pool; in-flight borrowers are not
        waited for.
        """
        with self._lock:
            for index, conn in enumerate(self._slots):
                if conn is not None:
                    try:
                        conn.close()
                    except SQLAlchemyError:
                        logger.exception("Error closing pooled connection (slot %d)", index)
                self._slots[index] = None
                self._in_use[index] = False
        logger.info("All pooled connections closed")

    def is_tracked(self, conn: Connection) -> bool:
        """True if ``conn`` occupies one of the pool's slots."""
        with self._lock:
            return any(slot is conn for slot in self._slots)

    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                size=self.size,
                open_slots=sum(1 for slot in self._slots if is_usable(slot)),
                in_use=sum(self._in_use),
            )

    @contextmanager
    def connection(self, conn: Connection | None = None) -> Generator[Connection, None, None]:
        """
        Scoped acquisition with guaranteed release.

        If ``conn`` is given the caller already owns a connection (and its
        transaction): it is yielded as-is and neither committed nor released
        here. Otherwise a connection is acquired, committed on success,
        rolled back on error, and released in every case.
        """
        if conn is not None:
            yield conn
            return

        conn = self.acquire()
        try:
            yield conn
            try:
                conn.commit()
            except SQLAlchemyError as e:
                logger.exception("Commit failed")
                raise StoreError(f"Commit failed: {e!s}") from e
        except Exception:
            if is_usable(conn) and conn.in_transaction():
                logger.debug("Rolling back after error")
                try:
                    conn.rollback()
                except SQLAlchemyError:
                    logger.exception("Rollback failed")
            raise
        finally:
            self.release(conn)
