"""
Member repository implementation for the library lending core.

Adds the member lookups used by callers on top of the shared CRUD contract:
last-name search, exact email lookup and the combined last/first name search.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.engine import Connection

from ..models.member import Member
from .repository import BaseRepository
from .schema import members_table


class MemberRepository(BaseRepository[Member]):
    """Repository for member data access."""

    @property
    def table(self):
        return members_table

    def _from_row(self, row: Mapping[Any, Any]) -> Member:
        # Stored rows are taken as-is; the email format only applies to new input
        c = members_table.c
        return Member.model_construct(
            id=row[c.id],
            last_name=row[c.nom],
            first_name=row[c.prenom],
            email=row[c.email] or None,
            phone=row[c.telephone] or None,
            address=row[c.adresse] or None,
            registration_date=row[c.date_inscription],
        )

    def _to_values(self, entity: Member) -> dict[str, Any]:
        return {
            "nom": entity.last_name,
            "prenom": entity.first_name,
            "email": entity.email,
            "telephone": entity.phone,
            "adresse": entity.address,
            "date_inscription": entity.registration_date,
        }

    def find_by_name(self, name: str, conn: Connection | None = None) -> list[Member]:
        """Members whose last name contains ``name`` (case-insensitive)."""
        query = select(members_table).where(members_table.c.nom.icontains(name, autoescape=True))
        return self._fetch_all(query, "find members by name", conn)

    def find_by_email(self, email: str, conn: Connection | None = None) -> Member | None:
        """
        Member with exactly this email, or None.

        Emails are not unique at this layer; the first match wins.
        """
        query = (
            select(members_table)
            .where(members_table.c.email == email)
            .order_by(members_table.c.id)
            .limit(1)
        )
        return self._fetch_one(query, "find member by email", conn)

    def find_by_full_name(
        self, last_name: str, first_name: str, conn: Connection | None = None
    ) -> list[Member]:
        """Members matching both a last-name and a first-name substring."""
        query = select(members_table).where(
            and_(
                members_table.c.nom.icontains(last_name, autoescape=True),
                members_table.c.prenom.icontains(first_name, autoescape=True),
            )
        )
        return self._fetch_all(query, "find members by full name", conn)
