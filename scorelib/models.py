from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ScoreValidationError


DIFFICULTIES: List[str] = ["Beginner", "Intermediate", "Advanced", "Expert"]

# Positional order used by CSV import/export.
SCORE_FIELDS: List[str] = [
    "title",
    "composer",
    "arranger",
    "genre",
    "genre2",
    "difficulty",
    "duration",
    "notes",
]

DEFAULT_GENRES: List[str] = [
    "Classical",
    "Musicals",
    "Film",
    "March",
    "Dance",
    "Latin",
    "Pop",
    "Christmas",
    "Remembrance",
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScoreFields(BaseModel):
    """User-editable fields of a score. Updates always replace all of them."""

    title: str
    composer: str
    arranger: str = ""
    genre: str = ""
    genre2: str = ""
    difficulty: str = ""
    duration: str = ""
    notes: str = ""

    @field_validator("title", "composer")
    @classmethod
    def _required(cls, v: str) -> str:
        v = str(v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("arranger", "genre", "genre2", "duration", "notes", mode="before")
    @classmethod
    def _optional(cls, v: object) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("difficulty", mode="before")
    @classmethod
    def _difficulty(cls, v: object) -> str:
        s = "" if v is None else str(v).strip()
        if s and s not in DIFFICULTIES:
            raise ValueError(f"must be one of {', '.join(DIFFICULTIES)}")
        return s


class ScoreRecord(ScoreFields):
    id: UUID
    owner_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def parse_fields(data: Dict[str, Any]) -> ScoreFields:
    try:
        return ScoreFields.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise ScoreValidationError(problems) from e


class GenreList(BaseModel):
    # None until first access; initialized to DEFAULT_GENRES lazily.
    names: Optional[List[str]] = None
    # Bumped on every write; used as the compare-and-swap token.
    revision: int = 0


class Catalog(BaseModel):
    schema_version: int = 1

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    genres: GenreList = Field(default_factory=GenreList)
    scores: List[ScoreRecord] = Field(default_factory=list)


class FilterSpec(BaseModel):
    text: str = ""
    genre: str = ""
    difficulty: str = ""


SortField = Literal[
    "title",
    "composer",
    "arranger",
    "genre",
    "genre2",
    "difficulty",
    "duration",
    "notes",
    "created_at",
    "updated_at",
]


class SortSpec(BaseModel):
    field: SortField = "title"
    direction: Literal["asc", "desc"] = "asc"


class AddGenreResult(BaseModel):
    success: bool
    genres: Optional[List[str]] = None
    message: str = ""


class MigrationResult(BaseModel):
    success: bool
    migrated: int = 0
    genres: Optional[List[str]] = None
    message: str = ""
