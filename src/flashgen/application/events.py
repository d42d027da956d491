"""
Events accepted by the generate/review/save state machine.

Events that come back from asynchronous work carry the ``token`` of the
generation request that produced them so superseded results can be dropped.
"""

from dataclasses import dataclass
from datetime import datetime

from flashgen.domain.models import ErrorInfo, ProposalField, SaveProgressItem
from flashgen.domain.schemas import FlashcardSource, Generation

# ---------- Source text ----------


@dataclass(frozen=True)
class SourceTextChanged:
    text: str


# ---------- Generation lifecycle ----------


@dataclass(frozen=True)
class GenerationRequested:
    token: int


@dataclass(frozen=True)
class GenerationTicked:
    token: int
    elapsed: int


@dataclass(frozen=True)
class GenerationSucceeded:
    token: int
    generation: Generation


@dataclass(frozen=True)
class GenerationRateLimited:
    token: int
    retry_after: int
    error: ErrorInfo
    now: datetime


@dataclass(frozen=True)
class GenerationFailed:
    token: int
    error: ErrorInfo


@dataclass(frozen=True)
class RateLimitTicked:
    pass


# ---------- Proposal review ----------


@dataclass(frozen=True)
class ProposalAccepted:
    index: int


@dataclass(frozen=True)
class ProposalRejected:
    index: int


@dataclass(frozen=True)
class ProposalFieldEdited:
    index: int
    field: ProposalField
    value: str


# ---------- Batch save ----------


@dataclass(frozen=True)
class BatchSaveStarted:
    items: tuple[SaveProgressItem, ...]


@dataclass(frozen=True)
class SaveItemStarted:
    position: int


@dataclass(frozen=True)
class SaveItemDuplicate:
    position: int


@dataclass(frozen=True)
class SaveItemSucceeded:
    position: int
    flashcard_id: int


@dataclass(frozen=True)
class SaveItemFailed:
    position: int
    error: str


@dataclass(frozen=True)
class BatchSaveFinished:
    pass


# ---------- Retry ----------


@dataclass(frozen=True)
class RetryStarted:
    position: int


@dataclass(frozen=True)
class RetrySucceeded:
    position: int
    flashcard_id: int
    source: FlashcardSource


@dataclass(frozen=True)
class RetryFailed:
    position: int
    error: str


# ---------- Reset ----------


@dataclass(frozen=True)
class SessionReset:
    pass


Event = (
    SourceTextChanged
    | GenerationRequested
    | GenerationTicked
    | GenerationSucceeded
    | GenerationRateLimited
    | GenerationFailed
    | RateLimitTicked
    | ProposalAccepted
    | ProposalRejected
    | ProposalFieldEdited
    | BatchSaveStarted
    | SaveItemStarted
    | SaveItemDuplicate
    | SaveItemSucceeded
    | SaveItemFailed
    | BatchSaveFinished
    | RetryStarted
    | RetrySucceeded
    | RetryFailed
    | SessionReset
)
