"""
Domain Models
Item records as accepted for ingestion, rows as written to the vector store,
and candidates as returned from a similarity query.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ItemRecord(BaseModel):
    """One recommendable entity.

    Accepts the movie-catalog field names (``genres``, ``cast``, ``plot``,
    ``metadata``) as aliases for the generic ones.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: str = Field(..., min_length=1)
    year: Optional[int] = None
    categories: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("categories", "genres"),
    )
    participants: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("participants", "cast"),
    )
    description: str = Field(
        default="",
        validation_alias=AliasChoices("description", "plot"),
    )
    attributes: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("attributes", "metadata"),
    )

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value


class StorageRow(ItemRecord):
    """An item record plus its computed embedding, ready for upsert."""

    embedding: list[float]


class Candidate(BaseModel):
    """A similarity-ranked item as returned to the caller."""

    id: str
    title: str
    year: Optional[int] = None
    categories: list[str] = Field(default_factory=list)
    description: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)
    score: float
    why: Optional[str] = None


@dataclass
class StoredRef:
    """Identifier and title of a row affected by an upsert."""

    identifier: str
    title: str


@dataclass
class IngestResult:
    inserted: int
    ids: list[str] = field(default_factory=list)


@dataclass
class RetrievalResult:
    """Paginated candidates plus the profile text that produced them."""

    profile: str
    candidates: list[Candidate] = field(default_factory=list)


@dataclass
class RankedReason:
    """One ``{title, reason}`` entry parsed from a reasoning response."""

    title: str
    reason: Optional[str] = None
