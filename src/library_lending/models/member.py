"""
Member model for the library lending core.

Members borrow books. Email is expected to be unique, but uniqueness is left
to callers: the persistence layer does not enforce it.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Member(BaseModel):
    """Represents a registered library member."""

    model_config = ConfigDict(frozen=True)

    id: int | None = Field(
        default=None,
        description="Store-assigned identifier",
        gt=0,
    )

    last_name: str = Field(
        ...,
        description="Family name",
        min_length=1,
        max_length=100,
        examples=["Dupont", "Martin"],
    )

    first_name: str = Field(
        ...,
        description="Given name",
        min_length=1,
        max_length=100,
        examples=["Jean", "Marie"],
    )

    email: str | None = Field(
        default=None,
        description="Contact email address",
        max_length=255,
        pattern=r"^[^@\s]+@[^@\s]+$",
        examples=["jean.dupont@example.com"],
    )

    phone: str | None = Field(
        default=None,
        description="Contact phone number",
        max_length=20,
        examples=["0601020304", "+33 6 01 02 03 04"],
    )

    address: str | None = Field(
        default=None,
        description="Postal address",
        max_length=255,
    )

    registration_date: str = Field(
        default_factory=lambda: date.today().isoformat(),
        description="Date the member registered (ISO YYYY-MM-DD)",
        examples=["2024-01-15"],
    )

    @field_validator("registration_date")
    @classmethod
    def validate_registration_date(cls, v: str) -> str:
        """Registration dates are stored as ISO text, so they must parse as one."""
        try:
            date.fromisoformat(v)
        except ValueError as e:
            raise ValueError(f"registration_date must be an ISO date, got {v!r}") from e
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __str__(self) -> str:
        return f"{self.last_name} {self.first_name}"
