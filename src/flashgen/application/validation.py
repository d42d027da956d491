"""Client-side validation for source text and proposal fields."""

from dataclasses import dataclass
from typing import Literal

from flashgen.domain.constants import (
    BACK_MAX_LENGTH,
    BACK_MIN_LENGTH,
    FRONT_MAX_LENGTH,
    FRONT_MIN_LENGTH,
    SOURCE_MAX_LENGTH,
    SOURCE_MIN_LENGTH,
)
from flashgen.domain.models import FieldErrors

FieldKind = Literal["front", "back"]

_FIELD_BOUNDS = {
    "front": ("Front", FRONT_MIN_LENGTH, FRONT_MAX_LENGTH),
    "back": ("Back", BACK_MIN_LENGTH, BACK_MAX_LENGTH),
}


@dataclass(frozen=True)
class SourceTextValidation:
    is_valid: bool
    error: str | None
    char_count: int


def validate_source_text(text: str) -> SourceTextValidation:
    """Check the trimmed length of the source text against its bounds."""
    char_count = len(text.strip())

    if char_count == 0:
        return SourceTextValidation(False, "Source text is required", 0)

    if char_count < SOURCE_MIN_LENGTH:
        return SourceTextValidation(
            False,
            f"Source text must be at least {SOURCE_MIN_LENGTH} characters "
            f"(currently {char_count})",
            char_count,
        )

    if char_count > SOURCE_MAX_LENGTH:
        return SourceTextValidation(
            False,
            f"Source text must not exceed {SOURCE_MAX_LENGTH} characters "
            f"(currently {char_count})",
            char_count,
        )

    return SourceTextValidation(True, None, char_count)


def validate_proposal_field(value: str, kind: FieldKind) -> str | None:
    """Return an error message for one proposal field, or None when valid."""
    label, min_len, max_len = _FIELD_BOUNDS[kind]
    length = len(value.strip())

    if length == 0:
        return f"{label} text is required"
    if length < min_len:
        return f"{label} text must be at least {min_len} character"
    if length > max_len:
        return f"{label} text must not exceed {max_len} characters"
    return None


def validate_proposal_front(front: str) -> str | None:
    return validate_proposal_field(front, "front")


def validate_proposal_back(back: str) -> str | None:
    return validate_proposal_field(back, "back")


def validate_proposal(front: str, back: str) -> FieldErrors:
    return FieldErrors(
        front=validate_proposal_front(front),
        back=validate_proposal_back(back),
    )


def has_validation_errors(errors: FieldErrors) -> bool:
    return errors.has_errors
