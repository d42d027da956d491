"""
Generate Session: effect layer around the pure state machine.

Owns the current ``GenerateViewState`` and is the only place it changes. Runs
network calls, the elapsed-time and rate-limit tickers, and the debounced
draft writer, feeding their outcomes back through ``transition``.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from flashgen.application import events as ev
from flashgen.application.drafts import DraftService
from flashgen.application.machine import can_generate, can_save, initial_state, transition
from flashgen.application.utils.debounce import debounce
from flashgen.application.utils.helpers import (
    create_existing_flashcards_set,
    is_duplicate,
    is_saveable,
    normalize_flashcard_key,
)
from flashgen.application.utils.ticker import Ticker
from flashgen.domain.constants import (
    DRAFT_DEBOUNCE_DELAY,
    ERROR_CODE_AI_SERVICE,
    ERROR_CODE_AUTH,
    ERROR_CODE_RATE_LIMIT,
    TICK_INTERVAL,
)
from flashgen.domain.errors import (
    ApiError,
    AuthenticationError,
    RateLimitError,
    get_error_message,
    is_recoverable_error,
)
from flashgen.domain.interfaces import FlashcardsGateway
from flashgen.domain.models import ErrorInfo, GenerateViewState, ProposalField, SaveProgressItem
from flashgen.domain.schemas import FlashcardCreate, FlashcardSource

logger = logging.getLogger(__name__)

Listener = Callable[[GenerateViewState], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def source_for_status(status: str) -> FlashcardSource:
    return "ai-edited" if status == "edited" else "ai-full"


def build_error_info(error: Exception, now: datetime) -> ErrorInfo:
    """
    Map a failed generation call to the payload shown to the user.

    Only authentication and rate-limit failures carry the server's error body
    through. Everything else is reported as an AI service failure with the
    error's own message.
    """
    body = error.error_response if isinstance(error, ApiError) else None
    details = tuple(body.details or ()) if body else ()

    if isinstance(error, (AuthenticationError, RateLimitError)):
        if isinstance(error, AuthenticationError):
            default_error, default_code = "Unauthorized", ERROR_CODE_AUTH
        else:
            default_error, default_code = "Rate Limit Exceeded", ERROR_CODE_RATE_LIMIT
        return ErrorInfo(
            error=body.error if body and body.error else default_error,
            message=get_error_message(error),
            code=default_code,
            timestamp=body.timestamp if body and body.timestamp else now.isoformat(),
            details=details,
            recoverable=is_recoverable_error(error),
        )

    return ErrorInfo(
        error="Generation Failed",
        message=get_error_message(error),
        code=ERROR_CODE_AI_SERVICE,
        timestamp=now.isoformat(),
        details=details,
        recoverable=is_recoverable_error(error),
    )


class GenerateSession:
    """
    Orchestrates text entry, generation, review and batch save.

    Must be created and driven from inside a running event loop. The persisted
    draft, if any, is loaded once on construction.
    """

    def __init__(
        self,
        gateway: FlashcardsGateway,
        drafts: DraftService,
        tick_interval: float = TICK_INTERVAL,
        draft_debounce: float = DRAFT_DEBOUNCE_DELAY,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.gateway = gateway
        self.drafts = drafts
        self.tick_interval = tick_interval
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self._state = initial_state()
        self._listeners: list[Listener] = []
        self._save_draft = debounce(self.drafts.save_draft, draft_debounce)
        self._generation_task: asyncio.Task | None = None
        self._countdown_task: asyncio.Task | None = None

        draft = self.drafts.load_draft()
        if draft:
            self._dispatch(ev.SourceTextChanged(draft))

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> GenerateViewState:
        return self._state

    @property
    def can_generate(self) -> bool:
        return can_generate(self._state)

    @property
    def can_save(self) -> bool:
        return can_save(self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, event: ev.Event) -> GenerateViewState:
        previous = self._state
        self._state = transition(previous, event)
        if self._state is not previous:
            for listener in list(self._listeners):
                try:
                    listener(self._state)
                except Exception as e:
                    self.logger.error(f"State listener failed: {e}")
        return self._state

    # ------------------------------------------------------------------
    # Source text
    # ------------------------------------------------------------------

    def change_source_text(self, text: str) -> None:
        self._dispatch(ev.SourceTextChanged(text))
        self._save_draft(text)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self) -> None:
        """
        Request proposals for the current source text.

        A newer request supersedes this one: its in-flight call is cancelled
        and any late result is dropped by the token check in the machine.
        """
        token = self._state.request_token + 1
        self._dispatch(ev.GenerationRequested(token))
        if self._state.request_token != token:
            return

        self._cancel_generation_task()
        text = self._state.source_text.text
        task = asyncio.create_task(self.gateway.generate_proposals(text))
        self._generation_task = task
        self.logger.info(f"Generating proposals from {self._state.source_text.char_count} chars")

        def on_tick(ticks: int) -> None:
            self._dispatch(ev.GenerationTicked(token, ticks))

        try:
            async with Ticker(self.tick_interval, on_tick):
                result = await task
        except asyncio.CancelledError:
            if task.cancelled() and self._state.request_token != token:
                self.logger.debug(f"Generation request {token} superseded")
                return
            raise
        except RateLimitError as e:
            self.logger.warning(f"Generation rate limited, retry after {e.retry_after}s")
            now = self.clock()
            self._dispatch(
                ev.GenerationRateLimited(token, e.retry_after, build_error_info(e, now), now)
            )
            if self._state.rate_limit.is_limited:
                self._start_countdown()
            return
        except Exception as e:
            self.logger.error(f"Generation failed: {get_error_message(e)}")
            self._dispatch(ev.GenerationFailed(token, build_error_info(e, self.clock())))
            return
        finally:
            if self._generation_task is task:
                self._generation_task = None

        self._dispatch(ev.GenerationSucceeded(token, result))
        if self._state.request_token == token and self._state.phase == "proposals_ready":
            self.logger.info(
                f"Generation {result.id} returned {len(result.proposals)} proposals"
            )
            self._save_draft.cancel()
            self.drafts.clear_draft()

    def _cancel_generation_task(self) -> None:
        if self._generation_task is not None and not self._generation_task.done():
            self._generation_task.cancel()
        self._generation_task = None

    def _start_countdown(self) -> None:
        if self._countdown_task is not None and not self._countdown_task.done():
            return
        self._countdown_task = asyncio.create_task(self._run_countdown())

    async def _run_countdown(self) -> None:
        cleared = asyncio.Event()

        def on_tick(_ticks: int) -> None:
            self._dispatch(ev.RateLimitTicked())
            if not self._state.rate_limit.is_limited:
                cleared.set()

        async with Ticker(self.tick_interval, on_tick):
            await cleared.wait()
        self.logger.info("Rate limit window elapsed")

    # ------------------------------------------------------------------
    # Proposal review
    # ------------------------------------------------------------------

    def accept(self, index: int) -> None:
        self._dispatch(ev.ProposalAccepted(index))

    def reject(self, index: int) -> None:
        self._dispatch(ev.ProposalRejected(index))

    def edit_field(self, index: int, field: ProposalField, value: str) -> None:
        self._dispatch(ev.ProposalFieldEdited(index, field, value))

    # ------------------------------------------------------------------
    # Batch save
    # ------------------------------------------------------------------

    async def batch_save(self) -> None:
        """
        Save every saveable proposal, one at a time, in proposal order.

        Duplicates (by normalized front/back) are skipped without a network
        call. A failing item is recorded and the batch moves on.
        """
        if not self.can_save:
            return

        generation = self._state.generation.generation
        items = tuple(
            SaveProgressItem(
                proposal_index=index,
                front=p.current_front,
                back=p.current_back,
                source=source_for_status(p.status),
            )
            for index, p in enumerate(self._state.proposals)
            if is_saveable(p)
        )
        self._dispatch(ev.BatchSaveStarted(items))
        self.logger.info(f"Saving {len(items)} flashcards for generation {generation.id}")

        try:
            try:
                existing = await self.gateway.get_existing_flashcards()
            except Exception as e:
                self.logger.warning(f"Deduplication lookup failed, saving without it: {e}")
                existing = []
            existing_keys = create_existing_flashcards_set(existing)

            for position, item in enumerate(items):
                self._dispatch(ev.SaveItemStarted(position))

                if is_duplicate(item.front, item.back, existing_keys):
                    self.logger.debug(f"[save] #{item.proposal_index} duplicate, skipped")
                    self._dispatch(ev.SaveItemDuplicate(position))
                    continue

                try:
                    flashcard = await self.gateway.create_flashcard(
                        FlashcardCreate(
                            front=item.front,
                            back=item.back,
                            source=item.source,
                            generation_id=generation.id,
                        )
                    )
                except Exception as e:
                    message = get_error_message(e)
                    self.logger.debug(f"[save] #{item.proposal_index} failed: {message}")
                    self._dispatch(ev.SaveItemFailed(position, message))
                    continue

                self.logger.debug(f"[save] #{item.proposal_index} -> id={flashcard.id}")
                self._dispatch(ev.SaveItemSucceeded(position, flashcard.id))
                existing_keys.add(normalize_flashcard_key(item.front, item.back))
        finally:
            self._dispatch(ev.BatchSaveFinished())

        summary = self._state.save_state.summary
        if summary is not None:
            self.logger.info(
                f"Batch save done: {summary.success_count} saved, "
                f"{summary.duplicate_count} duplicates, {summary.error_count} failed"
            )

    async def retry(self, position: int) -> None:
        """Re-attempt one failed item of the last batch."""
        generation = self._state.generation.generation
        if generation is None:
            return

        self._dispatch(ev.RetryStarted(position))
        progress = self._state.save_state.progress
        if not (0 <= position < len(progress)) or progress[position].status != "saving":
            return

        item = progress[position]
        proposal = self._state.proposals[item.proposal_index]
        source = source_for_status(proposal.status)

        try:
            flashcard = await self.gateway.create_flashcard(
                FlashcardCreate(
                    front=item.front,
                    back=item.back,
                    source=source,
                    generation_id=generation.id,
                )
            )
        except Exception as e:
            message = get_error_message(e)
            self.logger.warning(f"Retry of #{item.proposal_index} failed: {message}")
            self._dispatch(ev.RetryFailed(position, message))
            return

        self.logger.info(f"Retry of #{item.proposal_index} saved as id={flashcard.id}")
        self._dispatch(ev.RetrySucceeded(position, flashcard.id, source))

    # ------------------------------------------------------------------
    # Reset / shutdown
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Discard text, proposals and save results, and clear the draft."""
        before = self._state
        self._dispatch(ev.SessionReset())
        if self._state is before:
            return
        self._cancel_generation_task()
        self._save_draft.cancel()
        self.drafts.clear_draft()

    async def aclose(self) -> None:
        """Flush the pending draft write and stop background work."""
        self._save_draft.flush()
        self._cancel_generation_task()
        if self._countdown_task is not None:
            self._countdown_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._countdown_task
            self._countdown_task = None
