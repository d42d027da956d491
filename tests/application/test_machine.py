"""Tests for the pure transition function in flashgen.application.machine."""

from datetime import datetime, timedelta, timezone

import pytest

from flashgen.application import events as ev
from flashgen.application.machine import (
    can_generate,
    can_save,
    initial_state,
    summarize_progress,
    transition,
)
from flashgen.application.utils.helpers import count_proposals_by_status
from flashgen.domain.models import ErrorInfo, SaveProgressItem, SaveSummaryData

NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
ERROR = ErrorInfo(
    error="Service Unavailable",
    message="AI service is down",
    code="AI_SERVICE_ERROR",
    timestamp=NOW.isoformat(),
)


def apply(state, *events):
    for event in events:
        state = transition(state, event)
    return state


@pytest.fixture
def typed(valid_text):
    return apply(initial_state(), ev.SourceTextChanged(valid_text))


@pytest.fixture
def ready(typed, generation_factory):
    return apply(
        typed,
        ev.GenerationRequested(1),
        ev.GenerationSucceeded(1, generation_factory(5)),
    )


def _items(*statuses_sources):
    return tuple(
        SaveProgressItem(proposal_index=i, front=f"Question {i}", back=f"Answer {i}", source=src)
        for i, src in enumerate(statuses_sources)
    )


# ---------- Source text ----------


def test_short_text_is_invalid_and_blocks_generation():
    state = apply(initial_state(), ev.SourceTextChanged("a" * 500))
    assert state.source_text.is_valid is False
    assert state.source_text.char_count == 500
    assert "at least 1000" in state.source_text.validation_error
    assert not can_generate(state)

    after = transition(state, ev.GenerationRequested(1))
    assert after is state
    assert after.phase == "idle"


def test_valid_text_enables_generation(typed):
    assert typed.source_text.is_valid
    assert typed.source_text.validation_error is None
    assert can_generate(typed)


def test_source_text_keeps_raw_text():
    text = "  " + "b" * 1000 + "  "
    state = apply(initial_state(), ev.SourceTextChanged(text))
    assert state.source_text.text == text
    assert state.source_text.char_count == 1000


# ---------- Generation lifecycle ----------


def test_generation_requested_enters_generating(typed):
    state = transition(typed, ev.GenerationRequested(1))
    assert state.phase == "generating"
    assert state.generation.is_loading
    assert state.generation.elapsed_time == 0
    assert state.request_token == 1
    assert not can_save(state)


def test_elapsed_ticks_update_current_request(typed):
    state = apply(typed, ev.GenerationRequested(1), ev.GenerationTicked(1, 3))
    assert state.generation.elapsed_time == 3


def test_five_proposals_all_pending_nothing_saveable(ready):
    assert ready.phase == "proposals_ready"
    assert len(ready.proposals) == 5
    assert all(p.status == "pending" for p in ready.proposals)
    assert all(not p.is_edited for p in ready.proposals)
    assert count_proposals_by_status(ready.proposals).saveable == 0
    assert not can_save(ready)
    assert not ready.generation.is_loading


def test_stale_result_is_ignored(typed, generation_factory):
    state = apply(typed, ev.GenerationRequested(1), ev.GenerationRequested(2))
    assert state.request_token == 2

    stale = transition(state, ev.GenerationSucceeded(1, generation_factory(3)))
    assert stale is state

    fresh = transition(state, ev.GenerationSucceeded(2, generation_factory(2)))
    assert fresh.phase == "proposals_ready"
    assert len(fresh.proposals) == 2


def test_stale_tick_and_failure_ignored(typed):
    state = apply(typed, ev.GenerationRequested(1), ev.GenerationRequested(2))
    assert transition(state, ev.GenerationTicked(1, 9)) is state
    assert transition(state, ev.GenerationFailed(1, ERROR)) is state


def test_request_with_old_token_ignored(typed):
    state = transition(typed, ev.GenerationRequested(3))
    assert transition(state, ev.GenerationRequested(2)) is state


def test_new_generation_replaces_proposals(ready, generation_factory):
    state = apply(
        ready,
        ev.ProposalAccepted(0),
        ev.GenerationRequested(2),
    )
    assert state.proposals == ()
    state = transition(state, ev.GenerationSucceeded(2, generation_factory(3, generation_id=7)))
    assert len(state.proposals) == 3
    assert state.generation.generation.id == 7
    assert all(p.status == "pending" for p in state.proposals)


def test_generation_failure(typed):
    state = apply(typed, ev.GenerationRequested(1), ev.GenerationFailed(1, ERROR))
    assert state.phase == "failed"
    assert state.generation.error == ERROR
    assert not state.generation.is_loading
    assert state.proposals == ()
    assert can_generate(state)


def test_rate_limited_then_countdown_to_idle(typed):
    state = apply(
        typed,
        ev.GenerationRequested(1),
        ev.GenerationRateLimited(1, 3, ERROR, NOW),
    )
    assert state.phase == "rate_limited"
    assert state.rate_limit.is_limited
    assert state.rate_limit.retry_after == 3
    assert state.rate_limit.reset_time == NOW + timedelta(seconds=3)
    assert not can_generate(state)
    assert transition(state, ev.GenerationRequested(2)) is state

    state = apply(state, ev.RateLimitTicked(), ev.RateLimitTicked())
    assert state.rate_limit.retry_after == 1
    assert state.phase == "rate_limited"

    state = transition(state, ev.RateLimitTicked())
    assert not state.rate_limit.is_limited
    assert state.rate_limit.retry_after == 0
    assert state.phase == "idle"
    assert can_generate(state)


def test_rate_limit_tick_when_not_limited_is_noop(typed):
    assert transition(typed, ev.RateLimitTicked()) is typed


def test_zero_retry_after_uses_default_window(typed):
    state = apply(
        typed,
        ev.GenerationRequested(1),
        ev.GenerationRateLimited(1, 0, ERROR, NOW),
    )
    assert state.phase == "rate_limited"
    assert state.rate_limit.is_limited
    assert state.rate_limit.retry_after == 60
    assert state.rate_limit.reset_time == NOW + timedelta(seconds=60)
    assert not can_generate(state)


# ---------- Proposal review ----------


def test_review_mix_counts(ready):
    state = apply(
        ready,
        ev.ProposalAccepted(0),
        ev.ProposalAccepted(1),
        ev.ProposalFieldEdited(2, "front", "A better question"),
        ev.ProposalRejected(3),
        ev.ProposalRejected(4),
    )
    counts = count_proposals_by_status(state.proposals)
    assert (counts.pending, counts.accepted, counts.edited, counts.rejected, counts.saveable) == (
        0,
        2,
        1,
        2,
        3,
    )
    assert can_save(state)
    assert state.proposals[2].is_edited
    assert state.proposals[2].original_front == "Question 2"


def test_accept_only_from_pending(ready):
    state = apply(ready, ev.ProposalFieldEdited(0, "back", "Changed"))
    assert transition(state, ev.ProposalAccepted(0)) is state


def test_reject_is_irreversible(ready):
    state = transition(ready, ev.ProposalRejected(0))
    assert state.proposals[0].status == "rejected"

    assert transition(state, ev.ProposalAccepted(0)).proposals[0].status == "rejected"
    assert transition(state, ev.ProposalRejected(0)) is state

    edited = transition(state, ev.ProposalFieldEdited(0, "front", "New"))
    assert edited.proposals[0].status == "rejected"
    assert edited.proposals[0].current_front == "New"


def test_reject_from_accepted_and_edited(ready):
    state = apply(
        ready,
        ev.ProposalAccepted(0),
        ev.ProposalFieldEdited(1, "front", "X"),
        ev.ProposalRejected(0),
        ev.ProposalRejected(1),
    )
    assert [p.status for p in state.proposals[:2]] == ["rejected", "rejected"]


def test_edit_revert_returns_to_accepted(ready):
    state = apply(
        ready,
        ev.ProposalFieldEdited(0, "front", "Changed"),
        ev.ProposalFieldEdited(0, "front", "Question 0"),
    )
    proposal = state.proposals[0]
    assert proposal.status == "accepted"
    assert proposal.is_edited is False


def test_edit_revert_ignores_whitespace(ready):
    state = apply(
        ready,
        ev.ProposalFieldEdited(0, "back", "Changed"),
        ev.ProposalFieldEdited(0, "back", "  Answer 0  "),
    )
    assert state.proposals[0].status == "accepted"


def test_pending_edit_to_same_value_stays_pending(ready):
    state = transition(ready, ev.ProposalFieldEdited(0, "front", "Question 0 "))
    assert state.proposals[0].status == "pending"
    assert state.proposals[0].is_edited is False


def test_accepted_then_edited(ready):
    state = apply(ready, ev.ProposalAccepted(0), ev.ProposalFieldEdited(0, "back", "Better"))
    assert state.proposals[0].status == "edited"
    assert state.proposals[0].is_edited


def test_invalid_edit_blocks_save(ready):
    state = transition(ready, ev.ProposalFieldEdited(0, "front", "   "))
    proposal = state.proposals[0]
    assert proposal.status == "edited"
    assert proposal.validation_errors.front == "Front text is required"
    assert not can_save(state)

    state = transition(state, ev.ProposalFieldEdited(0, "back", "x" * 501))
    assert state.proposals[0].validation_errors.back == "Back text must not exceed 500 characters"


def test_out_of_range_index_is_noop(ready):
    assert transition(ready, ev.ProposalAccepted(99)) is ready
    assert transition(ready, ev.ProposalRejected(-1)) is ready
    assert transition(ready, ev.ProposalFieldEdited(5, "front", "x")) is ready


def test_has_unsaved_changes(ready):
    assert not ready.has_unsaved_changes
    assert transition(ready, ev.ProposalAccepted(0)).has_unsaved_changes


# ---------- Batch save ----------


def test_batch_save_progress_and_summary(ready):
    items = _items("ai-full", "ai-full", "ai-edited")
    state = apply(
        ready,
        ev.BatchSaveStarted(items),
        ev.SaveItemStarted(0),
    )
    assert state.save_state.is_saving
    assert state.save_state.progress[0].status == "saving"
    assert not can_generate(state)
    assert not can_save(state)
    assert not state.has_unsaved_changes

    state = apply(
        state,
        ev.SaveItemSucceeded(0, 101),
        ev.SaveItemStarted(1),
        ev.SaveItemFailed(1, "Server error"),
        ev.SaveItemStarted(2),
        ev.SaveItemSucceeded(2, 103),
        ev.BatchSaveFinished(),
    )
    assert not state.save_state.is_saving
    summary = state.save_state.summary
    assert summary.total_attempted == 3
    assert summary.success_count == 2
    assert summary.unedited_count == 1
    assert summary.edited_count == 1
    assert summary.error_count == 1
    assert summary.errors[0].proposal_index == 1
    assert summary.errors[0].error == "Server error"
    assert summary.outcome == "partial"


def test_batch_item_events_ignored_when_not_saving(ready):
    assert transition(ready, ev.SaveItemStarted(0)) is ready
    assert transition(ready, ev.BatchSaveFinished()) is ready


def test_empty_batch_is_ignored(ready):
    assert transition(ready, ev.BatchSaveStarted(())) is ready


def test_duplicates_counted(ready):
    state = apply(
        ready,
        ev.BatchSaveStarted(_items("ai-full", "ai-full")),
        ev.SaveItemStarted(0),
        ev.SaveItemDuplicate(0),
        ev.SaveItemStarted(1),
        ev.SaveItemSucceeded(1, 5),
        ev.BatchSaveFinished(),
    )
    summary = state.save_state.summary
    assert summary.duplicate_count == 1
    assert summary.success_count == 1
    assert summary.total_attempted == 2


# ---------- Retry ----------


@pytest.fixture
def saved_with_errors(ready):
    return apply(
        ready,
        ev.BatchSaveStarted(_items("ai-full", "ai-edited", "ai-full")),
        ev.SaveItemStarted(0),
        ev.SaveItemFailed(0, "boom"),
        ev.SaveItemStarted(1),
        ev.SaveItemFailed(1, "boom"),
        ev.SaveItemStarted(2),
        ev.SaveItemSucceeded(2, 3),
        ev.BatchSaveFinished(),
    )


def test_retry_success_updates_only_target(saved_with_errors):
    state = apply(
        saved_with_errors,
        ev.RetryStarted(1),
        ev.RetrySucceeded(1, 77, "ai-edited"),
    )
    progress = state.save_state.progress
    assert progress[1].status == "success"
    assert progress[1].flashcard_id == 77
    assert progress[0].status == "error"
    assert progress[2].status == "success"

    summary = state.save_state.summary
    assert summary.success_count == 2
    assert summary.edited_count == 1
    assert summary.error_count == 1
    assert [e.proposal_index for e in summary.errors] == [0]


def test_retry_failure_keeps_summary(saved_with_errors):
    state = apply(saved_with_errors, ev.RetryStarted(0))
    assert state.save_state.progress[0].status == "saving"
    assert state.save_state.progress[0].error is None

    state = transition(state, ev.RetryFailed(0, "still down"))
    assert state.save_state.progress[0].status == "error"
    assert state.save_state.progress[0].error == "still down"
    assert state.save_state.summary == saved_with_errors.save_state.summary


def test_retry_only_from_error(saved_with_errors):
    assert transition(saved_with_errors, ev.RetryStarted(2)) is saved_with_errors
    assert transition(saved_with_errors, ev.RetrySucceeded(0, 1, "ai-full")) is saved_with_errors


# ---------- Reset ----------


def test_reset_clears_session(ready):
    state = apply(ready, ev.ProposalAccepted(0), ev.SessionReset())
    assert state.phase == "idle"
    assert state.source_text.text == ""
    assert state.proposals == ()
    assert state.generation.generation is None
    assert state.request_token == ready.request_token + 1


def test_reset_keeps_rate_limit(typed):
    limited = apply(
        typed,
        ev.GenerationRequested(1),
        ev.GenerationRateLimited(1, 30, ERROR, NOW),
    )
    state = transition(limited, ev.SessionReset())
    assert state.phase == "rate_limited"
    assert state.rate_limit == limited.rate_limit


def test_reset_ignored_while_saving(ready):
    saving = transition(ready, ev.BatchSaveStarted(_items("ai-full")))
    assert transition(saving, ev.SessionReset()) is saving


def test_reset_drops_in_flight_result(typed, generation_factory):
    state = apply(typed, ev.GenerationRequested(1), ev.SessionReset())
    after = transition(state, ev.GenerationSucceeded(1, generation_factory()))
    assert after is state


# ---------- Misc ----------


def test_unknown_event_raises(ready):
    with pytest.raises(TypeError):
        transition(ready, object())


def test_summary_outcomes():
    def summary(attempted, success):
        return SaveSummaryData(attempted, success, success, 0, 0, attempted - success)

    assert summary(3, 3).outcome == "all_success"
    assert summary(3, 0).outcome == "all_failed"
    assert summary(3, 1).outcome == "partial"


def test_summarize_progress_empty():
    summary = summarize_progress(())
    assert summary.total_attempted == 0
    assert summary.outcome == "all_success"
