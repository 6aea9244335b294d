"""
Database bootstrapper for the library lending store.

Runs once at process start, before any caller touches the repositories:

1. Load a ``;``-separated SQL script (the packaged one for the engine's
   dialect, or a custom path)
2. Execute its ``CREATE TABLE`` statements; a failing statement (typically
   "table already exists") is logged and skipped
3. If the ``livres`` table is empty, execute the script's ``INSERT``
   statements; the report is marked seeded only if every insert succeeded

Any other statement in the script is ignored. Running it again against a
populated store changes nothing.
"""

import logging
from importlib import resources
from pathlib import Path

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from .errors import RepositoryException
from .pool import ConnectionPool
from .schema import books_table

logger = logging.getLogger(__name__)

SUPPORTED_DIALECTS = ("sqlite", "mysql")


class BootstrapReport(BaseModel):
    """What a bootstrap run did."""

    tables_created: int = 0
    tables_skipped: int = 0
    seeded: bool = False
    rows_inserted: int = 0
    inserts_failed: int = 0


def split_statements(script: str) -> list[str]:
    """
    Drop comment-only lines, then split the script on ``;``.

    Semicolons inside string literals are not supported.
    """
    lines = [line for line in script.splitlines() if not line.strip().startswith("--")]
    return [chunk.strip() for chunk in "\n".join(lines).split(";") if chunk.strip()]


def load_packaged_script(dialect: str) -> str:
    """Read the bundled bootstrap script for a SQLAlchemy dialect name."""
    if dialect not in SUPPORTED_DIALECTS:
        raise ValueError(
            f"No bootstrap script for dialect {dialect!r}; "
            f"supported: {', '.join(SUPPORTED_DIALECTS)}"
        )
    return (
        resources.files("library_lending.database")
        .joinpath("sql", f"{dialect}.sql")
        .read_text(encoding="utf-8")
    )


class Bootstrapper:
    """Idempotent schema and seed initializer."""

    def __init__(self, pool: ConnectionPool, script_path: Path | None = None):
        self.pool = pool
        self.script_path = script_path

    def load_script(self) -> str:
        if self.script_path is not None:
            logger.info("Loading bootstrap script from %s", self.script_path)
            return self.script_path.read_text(encoding="utf-8")
        return load_packaged_script(self.pool.engine.dialect.name)

    def run(self) -> BootstrapReport:
        """
        Create missing tables and seed an empty catalog.

        Raises:
            StoreUnavailableError: The store cannot be reached at all
        """
        statements = split_statements(self.load_script())
        creates = [s for s in statements if s.upper().startswith("CREATE TABLE")]
        inserts = [s for s in statements if s.upper().startswith("INSERT")]
        report = BootstrapReport()

        with self.pool.connection() as conn:
            for statement in creates:
                try:
                    conn.exec_driver_sql(statement)
                    conn.commit()
                    report.tables_created += 1
                except SQLAlchemyError as e:
                    conn.rollback()
                    report.tables_skipped += 1
                    logger.info("Skipped table creation: %s", getattr(e, "orig", None) or e)

            if self._has_books(conn):
                logger.info("Catalog already populated, no seed data inserted")
                return report

            for statement in inserts:
                try:
                    result = conn.exec_driver_sql(statement)
                    conn.commit()
                    report.rows_inserted += max(result.rowcount, 0)
                except SQLAlchemyError as e:
                    conn.rollback()
                    report.inserts_failed += 1
                    logger.error("Seed insert failed: %s", getattr(e, "orig", None) or e)

            if report.inserts_failed:
                logger.error(
                    "Seeding incomplete: %d insert(s) failed, %d row(s) inserted",
                    report.inserts_failed,
                    report.rows_inserted,
                )
            else:
                report.seeded = True
                logger.info("Seed data inserted (%d rows)", report.rows_inserted)

        return report

    def _has_books(self, conn) -> bool:
        try:
            count = conn.execute(select(func.count()).select_from(books_table)).scalar_one()
        except SQLAlchemyError as e:
            conn.rollback()
            logger.info("Could not check existing data: %s", getattr(e, "orig", None) or e)
            return False
        return count > 0


def bootstrap(pool: ConnectionPool, script_path: Path | None = None) -> BootstrapReport:
    """Convenience wrapper around :class:`Bootstrapper`."""
    try:
        return Bootstrapper(pool, script_path).run()
    except RepositoryException:
        logger.exception("Database bootstrap failed")
        raise
