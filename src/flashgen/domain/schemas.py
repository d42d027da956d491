"""
Wire schemas for the flashcards REST API.

These mirror the JSON bodies exchanged with the server. Request models validate
on construction so malformed input never reaches the network layer.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from flashgen.domain.constants import (
    BACK_MAX_LENGTH,
    ERROR_CODE_INTERNAL,
    FRONT_MAX_LENGTH,
    LIST_PAGE_SIZE,
)

FlashcardSource = Literal["manual", "ai-full", "ai-edited"]
SortOrder = Literal["asc", "desc"]

AI_SOURCES = ("ai-full", "ai-edited")


# ---------- Errors ----------


class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error body returned by every endpoint."""

    error: str = "API Error"
    message: str = "An error occurred"
    details: list[ErrorDetail] | None = None
    code: str = ERROR_CODE_INTERNAL
    timestamp: str | None = None


# ---------- Generations ----------


class CreateGenerationCommand(BaseModel):
    # Length bounds are enforced on the trimmed text by validate_source_text.
    source_text: str


class FlashcardProposal(BaseModel):
    front: str
    back: str
    source: Literal["ai-full"] = "ai-full"


class Generation(BaseModel):
    id: int
    model: str
    generated_count: int
    generated_duration: int
    source_text_hash: str
    source_text_length: int
    created_at: str
    proposals: list[FlashcardProposal]
    cached: bool | None = None


# ---------- Flashcards ----------


class Flashcard(BaseModel):
    id: int
    front: str
    back: str
    source: FlashcardSource
    generation_id: int | None = None
    created_at: str
    updated_at: str


class FlashcardCreate(BaseModel):
    front: str = Field(min_length=1, max_length=FRONT_MAX_LENGTH)
    back: str = Field(min_length=1, max_length=BACK_MAX_LENGTH)
    source: FlashcardSource
    generation_id: int | None = Field(default=None, gt=0)

    @field_validator("front", "back", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_generation_reference(self) -> "FlashcardCreate":
        if self.source in AI_SOURCES and self.generation_id is None:
            raise ValueError("generation_id is required for AI-generated flashcards")
        if self.source == "manual" and self.generation_id is not None:
            raise ValueError("generation_id must be null for manual flashcards")
        return self


class CreateFlashcardsCommand(BaseModel):
    flashcards: list[FlashcardCreate] = Field(min_length=1)

    @model_validator(mode="after")
    def check_single_generation(self) -> "CreateFlashcardsCommand":
        ids = {f.generation_id for f in self.flashcards if f.source in AI_SOURCES}
        if len(ids) > 1:
            raise ValueError(
                "All AI-generated flashcards in a batch must reference the same generation_id"
            )
        return self


class UpdateFlashcardCommand(BaseModel):
    front: str | None = Field(default=None, min_length=1, max_length=FRONT_MAX_LENGTH)
    back: str | None = Field(default=None, min_length=1, max_length=BACK_MAX_LENGTH)

    @field_validator("front", "back", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class ListFlashcardsQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=LIST_PAGE_SIZE, ge=1, le=LIST_PAGE_SIZE)
    source: FlashcardSource | None = None
    sort: SortOrder = "desc"
    generation_id: int | None = Field(default=None, gt=0)

    def to_params(self) -> dict[str, str]:
        """Query-string parameters, skipping unset filters."""
        return {k: str(v) for k, v in self.model_dump().items() if v is not None}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class FlashcardListResponse(BaseModel):
    data: list[Flashcard]
    pagination: Pagination
