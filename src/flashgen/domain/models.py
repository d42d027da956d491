"""
View-state models for the generate/review/save flow.

These are immutable data structures with no I/O. The state machine produces a
new ``GenerateViewState`` for every event instead of mutating in place.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from flashgen.domain.schemas import ErrorDetail, FlashcardSource, Generation

ProposalStatus = Literal["pending", "accepted", "edited", "rejected"]
SaveProgressStatus = Literal["pending", "saving", "success", "duplicate", "error"]
GenerationPhase = Literal["idle", "generating", "proposals_ready", "rate_limited", "failed"]
SummaryOutcome = Literal["all_success", "all_failed", "partial"]
ProposalField = Literal["front", "back"]


@dataclass(frozen=True)
class FieldErrors:
    front: str | None = None
    back: str | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.front or self.back)


@dataclass(frozen=True)
class SourceTextState:
    """
    Source text with its derived validation.

    Attributes:
        text: Raw text as typed (not trimmed).
        char_count: Length of the trimmed text.
        is_valid: True when the trimmed length is within bounds.
        validation_error: Message for the first violated bound, if any.
    """

    text: str = ""
    char_count: int = 0
    is_valid: bool = False
    validation_error: str | None = None


@dataclass(frozen=True)
class ErrorInfo:
    """Structured error payload surfaced after a failed generation."""

    error: str
    message: str
    code: str
    timestamp: str
    details: tuple[ErrorDetail, ...] = ()
    recoverable: bool = False


@dataclass(frozen=True)
class GenerationState:
    is_loading: bool = False
    elapsed_time: int = 0  # seconds
    generation: Generation | None = None
    error: ErrorInfo | None = None


@dataclass(frozen=True)
class ProposalViewModel:
    """
    One generated proposal under review.

    Identity is the position in the proposal list; there is no separate id.
    The ``original_*`` fields are the server output and never change.
    """

    original_front: str
    original_back: str
    current_front: str
    current_back: str
    status: ProposalStatus = "pending"
    is_edited: bool = False
    validation_errors: FieldErrors = field(default_factory=FieldErrors)


@dataclass(frozen=True)
class SaveProgressItem:
    proposal_index: int
    front: str
    back: str
    source: FlashcardSource
    status: SaveProgressStatus = "pending"
    error: str | None = None
    flashcard_id: int | None = None


@dataclass(frozen=True)
class SaveErrorEntry:
    proposal_index: int
    front: str
    back: str
    error: str


@dataclass(frozen=True)
class SaveSummaryData:
    total_attempted: int
    success_count: int
    unedited_count: int  # saved as ai-full
    edited_count: int  # saved as ai-edited
    duplicate_count: int
    error_count: int
    errors: tuple[SaveErrorEntry, ...] = ()

    @property
    def outcome(self) -> SummaryOutcome:
        if self.total_attempted > 0 and self.success_count == 0:
            return "all_failed"
        if self.success_count == self.total_attempted:
            return "all_success"
        return "partial"


@dataclass(frozen=True)
class SaveState:
    is_saving: bool = False
    progress: tuple[SaveProgressItem, ...] = ()
    summary: SaveSummaryData | None = None


@dataclass(frozen=True)
class RateLimitState:
    is_limited: bool = False
    retry_after: int = 0  # seconds
    reset_time: datetime | None = None


@dataclass(frozen=True)
class GenerateViewState:
    """Complete state of one generate/review/save session."""

    phase: GenerationPhase = "idle"
    source_text: SourceTextState = field(default_factory=SourceTextState)
    generation: GenerationState = field(default_factory=GenerationState)
    proposals: tuple[ProposalViewModel, ...] = ()
    save_state: SaveState = field(default_factory=SaveState)
    rate_limit: RateLimitState = field(default_factory=RateLimitState)
    request_token: int = 0

    @property
    def has_unsaved_changes(self) -> bool:
        if self.save_state.is_saving:
            return False
        return any(p.status in ("accepted", "edited") for p in self.proposals)
