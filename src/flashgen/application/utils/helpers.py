"""
Pure helpers for the generate view: view-model transforms, deduplication keys,
status counting and small formatting utilities.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from flashgen.domain.constants import DEFAULT_RETRY_AFTER
from flashgen.domain.models import ProposalViewModel
from flashgen.domain.schemas import FlashcardProposal

SAVEABLE_STATUSES = ("accepted", "edited")


@dataclass(frozen=True)
class ProposalCounts:
    pending: int = 0
    accepted: int = 0
    edited: int = 0
    rejected: int = 0
    saveable: int = 0


def transform_proposal_to_view_model(proposal: FlashcardProposal) -> ProposalViewModel:
    return ProposalViewModel(
        original_front=proposal.front,
        original_back=proposal.back,
        current_front=proposal.front,
        current_back=proposal.back,
    )


def is_proposal_modified(proposal: ProposalViewModel) -> bool:
    """Whitespace at either end does not count as a modification."""
    return (
        proposal.current_front.strip() != proposal.original_front.strip()
        or proposal.current_back.strip() != proposal.original_back.strip()
    )


def is_saveable(proposal: ProposalViewModel) -> bool:
    return proposal.status in SAVEABLE_STATUSES and not proposal.validation_errors.has_errors


def filter_active_proposals(proposals: Iterable[ProposalViewModel]) -> list[ProposalViewModel]:
    return [p for p in proposals if p.status != "rejected"]


def filter_saveable_proposals(proposals: Iterable[ProposalViewModel]) -> list[ProposalViewModel]:
    return [p for p in proposals if is_saveable(p)]


def count_proposals_by_status(proposals: Iterable[ProposalViewModel]) -> ProposalCounts:
    counts = {"pending": 0, "accepted": 0, "edited": 0, "rejected": 0, "saveable": 0}
    for p in proposals:
        counts[p.status] += 1
        if is_saveable(p):
            counts["saveable"] += 1
    return ProposalCounts(**counts)


def normalize_flashcard_key(front: str, back: str) -> str:
    return f"{front.strip().lower()}|{back.strip().lower()}"


def create_existing_flashcards_set(flashcards: Iterable[tuple[str, str]]) -> set[str]:
    return {normalize_flashcard_key(front, back) for front, back in flashcards}


def is_duplicate(front: str, back: str, existing_keys: set[str]) -> bool:
    return normalize_flashcard_key(front, back) in existing_keys


def parse_retry_after(value: str | None, now: datetime | None = None) -> int:
    """
    Parse a Retry-After header into seconds from now.

    Accepts delta-seconds ("120") or an HTTP date. Falls back to 60 seconds
    when the value is missing or unparseable. Never negative.
    """
    if not value or not value.strip():
        return DEFAULT_RETRY_AFTER

    value = value.strip()
    try:
        return max(int(value), 0)
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    return max(math.ceil((when - now).total_seconds()), 0)


def format_elapsed_time(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}m {rest}s"
