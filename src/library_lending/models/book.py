"""
Book model for the library lending core.

A book is a single physical copy: it is either on the shelf (``available``)
or lent to exactly one member. Availability is derived state, kept in step
with open loans by the loan repository.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Book(BaseModel):
    """
    Represents a book in the library catalog.

    ``id`` is assigned by the store on insert and is ``None`` before that.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Dune",
                "author": "Frank Herbert",
                "isbn": "9780441172719",
                "publication_year": 1965,
                "publisher": "Chilton Books",
                "available": True,
            }
        },
    )

    id: int | None = Field(
        default=None,
        description="Store-assigned identifier",
        gt=0,
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=255,
        examples=["Dune", "Les Misérables"],
    )

    author: str = Field(
        ...,
        description="Author name as printed on the cover",
        min_length=1,
        max_length=255,
        examples=["Frank Herbert", "Victor Hugo"],
    )

    isbn: str = Field(
        ...,
        description="ISBN, unique across the catalog",
        min_length=1,
        max_length=20,
        examples=["9780441172719", "978-2-07-040850-4"],
    )

    publication_year: int | None = Field(
        default=None,
        description="Year the book was published",
        ge=0,
        le=datetime.now().year + 1,
        examples=[1862, 1965],
    )

    publisher: str | None = Field(
        default=None,
        description="Publishing house",
        max_length=255,
        examples=["Gallimard", "Chilton Books"],
    )

    available: bool = Field(
        default=True,
        description="False while the book is the subject of an open loan",
    )

    @field_validator("title", "author", "isbn")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Trim surrounding whitespace from identifying fields."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def __str__(self) -> str:
        return f"{self.title} - {self.author}"
