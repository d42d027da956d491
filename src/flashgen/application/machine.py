"""
Pure transition function for the generate/review/save flow.

``transition(state, event)`` never performs I/O and never raises for
out-of-range indexes, stale tokens or events that do not apply in the current
phase: those leave the state unchanged. All side effects (network calls,
timers, draft persistence) live in ``flashgen.application.session``.
"""

from collections.abc import Callable
from dataclasses import replace
from datetime import timedelta

from flashgen.application import events as ev
from flashgen.application.utils.helpers import (
    filter_saveable_proposals,
    is_proposal_modified,
    transform_proposal_to_view_model,
)
from flashgen.application.validation import validate_proposal, validate_source_text
from flashgen.domain.constants import DEFAULT_RETRY_AFTER
from flashgen.domain.models import (
    GenerateViewState,
    GenerationState,
    ProposalViewModel,
    RateLimitState,
    SaveErrorEntry,
    SaveProgressItem,
    SaveState,
    SaveSummaryData,
    SourceTextState,
)


def initial_state() -> GenerateViewState:
    return GenerateViewState()


def can_generate(state: GenerateViewState) -> bool:
    return (
        state.source_text.is_valid
        and not state.rate_limit.is_limited
        and not state.save_state.is_saving
    )


def can_save(state: GenerateViewState) -> bool:
    return (
        state.generation.generation is not None
        and not state.generation.is_loading
        and not state.save_state.is_saving
        and bool(filter_saveable_proposals(state.proposals))
    )


def _is_current(state: GenerateViewState, token: int) -> bool:
    return token == state.request_token and state.phase == "generating"


# ---------- Source text ----------


def _on_source_text_changed(state: GenerateViewState, event: ev.SourceTextChanged):
    result = validate_source_text(event.text)
    return replace(
        state,
        source_text=SourceTextState(
            text=event.text,
            char_count=result.char_count,
            is_valid=result.is_valid,
            validation_error=result.error,
        ),
    )


# ---------- Generation lifecycle ----------


def _on_generation_requested(state: GenerateViewState, event: ev.GenerationRequested):
    if not can_generate(state) or event.token <= state.request_token:
        return state
    return replace(
        state,
        phase="generating",
        generation=GenerationState(is_loading=True, elapsed_time=0),
        proposals=(),
        save_state=SaveState(),
        request_token=event.token,
    )


def _on_generation_ticked(state: GenerateViewState, event: ev.GenerationTicked):
    if not _is_current(state, event.token):
        return state
    return replace(state, generation=replace(state.generation, elapsed_time=event.elapsed))


def _on_generation_succeeded(state: GenerateViewState, event: ev.GenerationSucceeded):
    if not _is_current(state, event.token):
        return state
    return replace(
        state,
        phase="proposals_ready",
        generation=GenerationState(
            generation=event.generation, elapsed_time=state.generation.elapsed_time
        ),
        proposals=tuple(transform_proposal_to_view_model(p) for p in event.generation.proposals),
    )


def _on_generation_rate_limited(state: GenerateViewState, event: ev.GenerationRateLimited):
    if not _is_current(state, event.token):
        return state
    retry_after = event.retry_after if event.retry_after > 0 else DEFAULT_RETRY_AFTER
    return replace(
        state,
        phase="rate_limited",
        generation=GenerationState(error=event.error),
        rate_limit=RateLimitState(
            is_limited=True,
            retry_after=retry_after,
            reset_time=event.now + timedelta(seconds=retry_after),
        ),
    )


def _on_generation_failed(state: GenerateViewState, event: ev.GenerationFailed):
    if not _is_current(state, event.token):
        return state
    return replace(state, phase="failed", generation=GenerationState(error=event.error))


def _on_rate_limit_ticked(state: GenerateViewState, event: ev.RateLimitTicked):
    if not state.rate_limit.is_limited:
        return state
    remaining = state.rate_limit.retry_after - 1
    if remaining > 0:
        return replace(state, rate_limit=replace(state.rate_limit, retry_after=remaining))
    phase = "idle" if state.phase == "rate_limited" else state.phase
    return replace(state, phase=phase, rate_limit=RateLimitState())


# ---------- Proposal review ----------


def _replace_proposal(
    state: GenerateViewState, index: int, proposal: ProposalViewModel
) -> GenerateViewState:
    proposals = list(state.proposals)
    proposals[index] = proposal
    return replace(state, proposals=tuple(proposals))


def _proposal_at(state: GenerateViewState, index: int) -> ProposalViewModel | None:
    if 0 <= index < len(state.proposals):
        return state.proposals[index]
    return None


def _on_proposal_accepted(state: GenerateViewState, event: ev.ProposalAccepted):
    proposal = _proposal_at(state, event.index)
    if proposal is None or proposal.status != "pending":
        return state
    return _replace_proposal(state, event.index, replace(proposal, status="accepted"))


def _on_proposal_rejected(state: GenerateViewState, event: ev.ProposalRejected):
    proposal = _proposal_at(state, event.index)
    if proposal is None or proposal.status == "rejected":
        return state
    return _replace_proposal(state, event.index, replace(proposal, status="rejected"))


def _on_proposal_field_edited(state: GenerateViewState, event: ev.ProposalFieldEdited):
    proposal = _proposal_at(state, event.index)
    if proposal is None:
        return state

    if event.field == "front":
        updated = replace(proposal, current_front=event.value)
    else:
        updated = replace(proposal, current_back=event.value)

    modified = is_proposal_modified(updated)
    status = updated.status
    if status != "rejected":
        if modified:
            status = "edited"
        elif status == "edited":
            # Once reviewed, a card never goes back to pending.
            status = "accepted"

    updated = replace(
        updated,
        status=status,
        is_edited=modified,
        validation_errors=validate_proposal(updated.current_front, updated.current_back),
    )
    return _replace_proposal(state, event.index, updated)


# ---------- Batch save ----------


def _update_item(state: GenerateViewState, position: int, **changes) -> GenerateViewState:
    progress = list(state.save_state.progress)
    progress[position] = replace(progress[position], **changes)
    return replace(state, save_state=replace(state.save_state, progress=tuple(progress)))


def _item_at(state: GenerateViewState, position: int) -> SaveProgressItem | None:
    if 0 <= position < len(state.save_state.progress):
        return state.save_state.progress[position]
    return None


def _on_batch_save_started(state: GenerateViewState, event: ev.BatchSaveStarted):
    if state.save_state.is_saving or not event.items:
        return state
    return replace(state, save_state=SaveState(is_saving=True, progress=tuple(event.items)))


def _batch_item_event(
    state: GenerateViewState, position: int, **changes
) -> GenerateViewState:
    if not state.save_state.is_saving or _item_at(state, position) is None:
        return state
    return _update_item(state, position, **changes)


def _on_save_item_started(state: GenerateViewState, event: ev.SaveItemStarted):
    return _batch_item_event(state, event.position, status="saving")


def _on_save_item_duplicate(state: GenerateViewState, event: ev.SaveItemDuplicate):
    return _batch_item_event(state, event.position, status="duplicate")


def _on_save_item_succeeded(state: GenerateViewState, event: ev.SaveItemSucceeded):
    return _batch_item_event(
        state, event.position, status="success", flashcard_id=event.flashcard_id, error=None
    )


def _on_save_item_failed(state: GenerateViewState, event: ev.SaveItemFailed):
    return _batch_item_event(state, event.position, status="error", error=event.error)


def summarize_progress(progress: tuple[SaveProgressItem, ...]) -> SaveSummaryData:
    """Aggregate counters and the ordered error list for a finished batch."""
    succeeded = [item for item in progress if item.status == "success"]
    failed = [item for item in progress if item.status == "error"]
    return SaveSummaryData(
        total_attempted=len(progress),
        success_count=len(succeeded),
        unedited_count=sum(1 for item in succeeded if item.source == "ai-full"),
        edited_count=sum(1 for item in succeeded if item.source == "ai-edited"),
        duplicate_count=sum(1 for item in progress if item.status == "duplicate"),
        error_count=len(failed),
        errors=tuple(
            SaveErrorEntry(
                proposal_index=item.proposal_index,
                front=item.front,
                back=item.back,
                error=item.error or "",
            )
            for item in failed
        ),
    )


def _on_batch_save_finished(state: GenerateViewState, event: ev.BatchSaveFinished):
    if not state.save_state.is_saving:
        return state
    progress = state.save_state.progress
    return replace(
        state,
        save_state=SaveState(
            is_saving=False, progress=progress, summary=summarize_progress(progress)
        ),
    )


# ---------- Retry ----------


def _on_retry_started(state: GenerateViewState, event: ev.RetryStarted):
    item = _item_at(state, event.position)
    if state.save_state.is_saving or item is None or item.status != "error":
        return state
    return _update_item(state, event.position, status="saving", error=None)


def _on_retry_succeeded(state: GenerateViewState, event: ev.RetrySucceeded):
    item = _item_at(state, event.position)
    if item is None or item.status != "saving" or state.save_state.is_saving:
        return state

    state = _update_item(
        state,
        event.position,
        status="success",
        flashcard_id=event.flashcard_id,
        source=event.source,
        error=None,
    )

    summary = state.save_state.summary
    if summary is None:
        return state

    errors = list(summary.errors)
    for i, entry in enumerate(errors):
        if entry.proposal_index == item.proposal_index:
            del errors[i]
            break

    summary = replace(
        summary,
        success_count=summary.success_count + 1,
        error_count=max(summary.error_count - 1, 0),
        unedited_count=summary.unedited_count + int(event.source == "ai-full"),
        edited_count=summary.edited_count + int(event.source == "ai-edited"),
        errors=tuple(errors),
    )
    return replace(state, save_state=replace(state.save_state, summary=summary))


def _on_retry_failed(state: GenerateViewState, event: ev.RetryFailed):
    item = _item_at(state, event.position)
    if item is None or item.status != "saving" or state.save_state.is_saving:
        return state
    return _update_item(state, event.position, status="error", error=event.error)


# ---------- Reset ----------


def _on_session_reset(state: GenerateViewState, event: ev.SessionReset):
    if state.save_state.is_saving:
        return state
    # The rate-limit window outlives a reset; it cannot be dismissed early.
    return GenerateViewState(
        phase="rate_limited" if state.rate_limit.is_limited else "idle",
        rate_limit=state.rate_limit,
        request_token=state.request_token + 1,
    )


_HANDLERS: dict[type, Callable[[GenerateViewState, object], GenerateViewState]] = {
    ev.SourceTextChanged: _on_source_text_changed,
    ev.GenerationRequested: _on_generation_requested,
    ev.GenerationTicked: _on_generation_ticked,
    ev.GenerationSucceeded: _on_generation_succeeded,
    ev.GenerationRateLimited: _on_generation_rate_limited,
    ev.GenerationFailed: _on_generation_failed,
    ev.RateLimitTicked: _on_rate_limit_ticked,
    ev.ProposalAccepted: _on_proposal_accepted,
    ev.ProposalRejected: _on_proposal_rejected,
    ev.ProposalFieldEdited: _on_proposal_field_edited,
    ev.BatchSaveStarted: _on_batch_save_started,
    ev.SaveItemStarted: _on_save_item_started,
    ev.SaveItemDuplicate: _on_save_item_duplicate,
    ev.SaveItemSucceeded: _on_save_item_succeeded,
    ev.SaveItemFailed: _on_save_item_failed,
    ev.BatchSaveFinished: _on_batch_save_finished,
    ev.RetryStarted: _on_retry_started,
    ev.RetrySucceeded: _on_retry_succeeded,
    ev.RetryFailed: _on_retry_failed,
    ev.SessionReset: _on_session_reset,
}


def transition(state: GenerateViewState, event: ev.Event) -> GenerateViewState:
    """Return the state that results from applying ``event`` to ``state``."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown event: {event!r}")
    return handler(state, event)
