"""
SQLAlchemy schema for the library lending store.

The table and column names are fixed by the existing database
(``livres``, ``membres``, ``emprunts``); the mapped attribute names are the
English ones used by the models. Repositories build Core statements against
``Model.__table__`` so every statement is parameterized.

Dates are stored as ISO-8601 text, not native date columns, and an open
loan's ``date_retour_reelle`` may be NULL or the empty string.

The bootstrap scripts in ``database/sql`` create the same tables; this
metadata is what queries are compiled against (and what tests may
``create_all`` from).
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BookRow(Base):
    """
    Books table - one row per physical copy.

    ``disponible`` is derived state: False iff an open loan references the row.
    """

    __tablename__ = "livres"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column("titre", String(255), nullable=False)
    author = Column("auteur", String(255), nullable=False)
    isbn = Column("isbn", String(20), nullable=False, unique=True)
    publication_year = Column("annee_publication", Integer, nullable=True)
    publisher = Column("editeur", String(255), nullable=True)
    available = Column("disponible", Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_livres_titre", "titre"),
        Index("idx_livres_auteur", "auteur"),
    )


class MemberRow(Base):
    """Members table."""

    __tablename__ = "membres"

    id = Column(Integer, primary_key=True, autoincrement=True)
    last_name = Column("nom", String(100), nullable=False)
    first_name = Column("prenom", String(100), nullable=False)
    email = Column("email", String(255), nullable=True)
    phone = Column("telephone", String(20), nullable=True)
    address = Column("adresse", String(255), nullable=True)
    registration_date = Column("date_inscription", String(10), nullable=False)

    __table_args__ = (Index("idx_membres_nom", "nom"),)


class LoanRow(Base):
    """
    Loans table - weak references to a book and a member.

    No cascading ownership: deleting a loan never touches the book or member
    rows (availability is restored by the repository, not by the store).
    """

    __tablename__ = "emprunts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column("livre_id", Integer, ForeignKey("livres.id"), nullable=False)
    member_id = Column("membre_id", Integer, ForeignKey("membres.id"), nullable=False)
    loan_date = Column("date_emprunt", String(10), nullable=False)
    expected_return_date = Column("date_retour_prevue", String(10), nullable=False)
    actual_return_date = Column("date_retour_reelle", String(10), nullable=True)

    __table_args__ = (
        Index("idx_emprunts_livre", "livre_id"),
        Index("idx_emprunts_membre", "membre_id"),
    )


books_table = BookRow.__table__
members_table = MemberRow.__table__
loans_table = LoanRow.__table__
