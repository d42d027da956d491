"""flashgen CLI: generate, review and save flashcards from the terminal."""

import asyncio
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError as SchemaError

from flashgen.application.config import AppConfig, resolve_config
from flashgen.application.factory import build_session, get_api_client, get_draft_service
from flashgen.application.utils.helpers import count_proposals_by_status, format_elapsed_time
from flashgen.domain.constants import LOG_BACKUP_COUNT, LOG_FILE_NAME, LOG_MAX_BYTES
from flashgen.domain.errors import ApiError, NetworkError, RateLimitError, get_error_message
from flashgen.domain.models import GenerateViewState, SaveSummaryData
from flashgen.domain.schemas import ListFlashcardsQuery

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="flashgen: generate flashcards from text with AI.",
    no_args_is_help=True,
)

draft_app = typer.Typer(help="Inspect the saved source-text draft.", no_args_is_help=True)
cards_app = typer.Typer(help="Manage saved flashcards.", no_args_is_help=True)
config_app = typer.Typer(help="Manage flashgen configuration.", no_args_is_help=True)
app.add_typer(draft_app, name="draft")
app.add_typer(cards_app, name="cards")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def setup_file_logging(log_dir: Path) -> Path:
    """Attach a rotating file handler under ``log_dir``, replacing any earlier one."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()

    handler = RotatingFileHandler(
        log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)
    return log_file


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    api_base_url: Annotated[
        str | None, typer.Option("--api-url", help="Flashcards API base URL.")
    ] = None,
):
    """Global settings for flashgen."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"verbose": verbose, "api_base_url": api_base_url}
    logging.getLogger().setLevel(logging.DEBUG if verbose > 1 else logging.INFO)

    config = resolve_config(ctx.obj["overrides"])
    try:
        setup_file_logging(config.log_dir)
    except OSError as e:
        logger.warning(f"File logging disabled: {e}")
    logger.debug(f"flashgen invoked with {ctx.invoked_subcommand}")


def _config(ctx: typer.Context) -> AppConfig:
    overrides = (ctx.obj or {}).get("overrides", {})
    return resolve_config(overrides)


def _fail(message: str, code: int = 1):
    typer.secho(message, fg="red", err=True)
    raise typer.Exit(code)


def humanize_error(error: Exception) -> str:
    if isinstance(error, RateLimitError):
        return f"Rate limit exceeded. Try again in {error.retry_after}s."
    if isinstance(error, NetworkError):
        return f"Could not reach the server: {error.message}"
    if isinstance(error, ApiError):
        return f"API error ({error.status_code}): {error.message}"
    return get_error_message(error)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_proposals(state: GenerateViewState) -> None:
    generation = state.generation.generation
    typer.echo(
        f"Generation {generation.id} ({generation.model}): "
        f"{len(state.proposals)} proposals"
    )
    for index, proposal in enumerate(state.proposals, start=1):
        typer.echo(f"\n[{index}] ({proposal.status})")
        typer.echo(f"  Q: {proposal.current_front}")
        typer.echo(f"  A: {proposal.current_back}")


def _print_summary(summary: SaveSummaryData) -> None:
    color = {"all_success": "green", "all_failed": "red", "partial": "yellow"}[summary.outcome]
    typer.secho(
        f"Saved {summary.success_count}/{summary.total_attempted} flashcards "
        f"({summary.unedited_count} unedited, {summary.edited_count} edited).",
        fg=color,
    )
    if summary.duplicate_count:
        typer.echo(f"Skipped {summary.duplicate_count} duplicates.")
    for entry in summary.errors:
        typer.secho(f"  #{entry.proposal_index + 1} failed: {entry.error}", fg="red")


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


async def run_generate(config: AppConfig, text: str, accept_all: bool, save: bool) -> int:
    client = get_api_client(config)
    session = build_session(config, gateway=client)
    try:
        session.change_source_text(text)
        if not session.can_generate:
            typer.secho(session.state.source_text.validation_error, fg="red", err=True)
            return 1

        await session.generate()
        state = session.state
        if state.phase == "rate_limited":
            typer.secho(
                f"Rate limit exceeded. Try again in {state.rate_limit.retry_after}s.",
                fg="yellow",
                err=True,
            )
            return 1
        if state.phase == "failed":
            error = state.generation.error
            typer.secho(f"{error.error}: {error.message}", fg="red", err=True)
            return 1

        _print_proposals(state)
        typer.echo(f"\nDone in {format_elapsed_time(state.generation.elapsed_time)}.")

        if accept_all:
            for index in range(len(session.state.proposals)):
                session.accept(index)
            counts = count_proposals_by_status(session.state.proposals)
            typer.echo(f"Accepted {counts.accepted} proposals.")

        if not save:
            return 0
        if not session.can_save:
            typer.secho("Nothing to save. Accept proposals with --accept-all.", fg="yellow")
            return 1

        await session.batch_save()
        summary = session.state.save_state.summary
        _print_summary(summary)
        return 1 if summary.outcome == "all_failed" else 0
    finally:
        await session.aclose()
        await client.close()


@app.command()
def generate(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(
            exists=True, dir_okay=False, readable=True, help="Text file to generate from."
        ),
    ],
    accept_all: Annotated[
        bool, typer.Option("--accept-all", help="Accept every generated proposal.")
    ] = False,
    save: Annotated[
        bool, typer.Option("--save", help="Save accepted proposals as flashcards.")
    ] = False,
):
    """Generate flashcard proposals from a text file."""
    config = _config(ctx)
    text = path.read_text(encoding="utf-8")
    code = asyncio.run(run_generate(config, text, accept_all, save))
    raise typer.Exit(code)


# ---------------------------------------------------------------------------
# Draft subgroup
# ---------------------------------------------------------------------------


@draft_app.command("show")
def draft_show(ctx: typer.Context):
    """Print the saved draft, if any."""
    draft = get_draft_service(_config(ctx)).load_draft()
    if not draft:
        typer.echo("No draft saved.")
        return
    typer.echo(draft)


@draft_app.command("clear")
def draft_clear(ctx: typer.Context):
    """Delete the saved draft."""
    get_draft_service(_config(ctx)).clear_draft()
    typer.echo("Draft cleared.")


# ---------------------------------------------------------------------------
# Cards subgroup
# ---------------------------------------------------------------------------


def _run_client_call(config: AppConfig, call):
    async def run():
        client = get_api_client(config)
        try:
            return await call(client)
        finally:
            await client.close()

    try:
        return asyncio.run(run())
    except (ApiError, NetworkError) as e:
        _fail(humanize_error(e))
    except SchemaError as e:
        _fail(f"Invalid input: {e.errors()[0]['msg']}")


@cards_app.command("list")
def cards_list(
    ctx: typer.Context,
    generation_id: Annotated[
        int | None, typer.Option("--generation-id", help="Only cards from this generation.")
    ] = None,
    source: Annotated[
        str | None, typer.Option(help="Filter by source: manual, ai-full, ai-edited.")
    ] = None,
    page: Annotated[int, typer.Option(help="Page number.")] = 1,
):
    """List saved flashcards."""
    config = _config(ctx)
    try:
        query = ListFlashcardsQuery(page=page, source=source, generation_id=generation_id)
    except SchemaError as e:
        _fail(f"Invalid input: {e.errors()[0]['msg']}")

    result = _run_client_call(config, lambda client: client.list_flashcards(query))
    if not result.data:
        typer.echo("No flashcards found.")
        return
    for card in result.data:
        typer.echo(f"{card.id}\t{card.source}\t{card.front} | {card.back}")
    p = result.pagination
    typer.echo(f"Page {p.page}/{p.total_pages} ({p.total} total)")


@cards_app.command("update")
def cards_update(
    ctx: typer.Context,
    flashcard_id: Annotated[int, typer.Argument(help="Flashcard id.")],
    front: Annotated[str | None, typer.Option(help="New front text.")] = None,
    back: Annotated[str | None, typer.Option(help="New back text.")] = None,
):
    """Edit the front and/or back of a saved flashcard."""
    if front is None and back is None:
        _fail("Nothing to update. Pass --front and/or --back.", code=2)
    config = _config(ctx)
    card = _run_client_call(
        config, lambda client: client.update_flashcard(flashcard_id, front=front, back=back)
    )
    typer.secho(f"Updated flashcard {card.id}.", fg="green")


@cards_app.command("delete")
def cards_delete(
    ctx: typer.Context,
    flashcard_id: Annotated[int, typer.Argument(help="Flashcard id.")],
):
    """Delete a saved flashcard."""
    config = _config(ctx)
    _run_client_call(config, lambda client: client.delete_flashcard(flashcard_id))
    typer.secho(f"Deleted flashcard {flashcard_id}.", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("api_token"):
        d["api_token"] = "***"
    typer.echo(json.dumps(d, indent=2))


if __name__ == "__main__":
    app()
