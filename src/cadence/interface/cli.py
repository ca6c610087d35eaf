"""Cadence CLI — study commands, deck/card management, sync, presets and config."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from cadence.application.config import resolve_config
from cadence.domain.exceptions import CadenceError, DeckNotFoundError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition study scheduler with progress sync.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

deck_app = typer.Typer(help="Create and list decks.", no_args_is_help=True)
app.add_typer(deck_app, name="deck")

card_app = typer.Typer(help="Add cards to decks.", no_args_is_help=True)
app.add_typer(card_app, name="card")

preset_app = typer.Typer(help="Manage named study-settings presets.", no_args_is_help=True)
app.add_typer(preset_app, name="preset")

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _overrides(ctx: typer.Context, **extra: Any) -> dict[str, Any]:
    obj = ctx.obj or {}
    overrides = {
        "day_offset": obj.get("day_offset"),
        "db_path": obj.get("db_path"),
        "verbose": obj.get("verbose_bonus"),
        **extra,
    }
    return {k: v for k, v in overrides.items() if v is not None}


def _fail(e: Exception) -> None:
    typer.secho(f"Error: {e}", fg="red", err=True)
    raise typer.Exit(1)


def _open(ctx: typer.Context, **extra: Any):
    """Resolve config and open the store and study service for one command."""
    from cadence.application.factory import get_store, get_study_service

    overrides = _overrides(ctx, **extra)
    config = resolve_config(overrides)
    store = get_store(config)
    return config, store, get_study_service(config, store, overrides)


async def _closing(reconciler, work):
    """Await ``work``, then close the remote store inside the same event loop."""
    try:
        return await work
    finally:
        await reconciler.close()


def _card_line(card) -> str:
    due = card.next_review_date.isoformat(timespec="minutes") if card.next_review_date else "-"
    return f"{card.id}  [{card.status.value:<8}] {card.front}  (due {due})"


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
    day_offset: Annotated[
        int | None,
        typer.Option("--day-offset", help="Simulate studying N days in the future."),
    ] = None,
    db_path: Annotated[Path | None, typer.Option("--db", help="Card database path.")] = None,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose
    ctx.obj["day_offset"] = day_offset
    ctx.obj["db_path"] = db_path
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Deck / card management
# ---------------------------------------------------------------------------


@deck_app.command("create")
def deck_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Deck name.")],
    description: Annotated[str, typer.Option(help="Deck description.")] = "",
):
    """Create an empty deck."""
    from cadence.application.id_service import generate_deck_id
    from cadence.domain.models import Deck

    _, store, _ = _open(ctx)
    with store:
        deck = store.add_deck(Deck(id=generate_deck_id(), name=name, description=description))
    typer.secho(f"Created deck '{deck.name}' ({deck.id})", fg="green")


@deck_app.command("list")
def deck_list(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List decks with today's due counts."""
    _, store, service = _open(ctx)
    with store:
        rows = []
        for deck in store.list_decks():
            counts = service.due_counts(deck.id)
            rows.append(
                {
                    "id": deck.id,
                    "name": deck.name,
                    "review": counts.review_count,
                    "new": counts.new_count,
                }
            )

    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        typer.secho("No decks yet. Create one with 'cadence deck create'.", fg="yellow")
        return
    for row in rows:
        typer.echo(f"{row['id']}  {row['name']}  (review {row['review']}, new {row['new']})")


@card_app.command("add")
def card_add(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck to add the card to.")],
    front: Annotated[str, typer.Argument(help="Front text.")],
    back: Annotated[str, typer.Argument(help="Back text.")],
):
    """Add a NEW card to a deck."""
    from cadence.application.id_service import generate_card_id
    from cadence.domain.models import Card

    _, store, _ = _open(ctx)
    with store:
        card = Card(id=generate_card_id(), deck_id=deck_id, front=front, back=back)
        try:
            store.add_cards([card])
        except CadenceError as e:
            _fail(e)
    typer.secho(f"Added card {card.id}", fg="green")


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


@app.command("queue")
def queue(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck to study.")],
    start: Annotated[
        bool,
        typer.Option("--start", help="Start a session: also record today as the last study day."),
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output card IDs as JSON.")] = False,
):
    """Show today's study queue: review cards interleaved 3:1 with new cards."""
    _, store, service = _open(ctx)
    with store:
        try:
            cards = service.start_session(deck_id) if start else service.study_queue(deck_id)
        except CadenceError as e:
            _fail(e)

    if json_output:
        typer.echo(json.dumps([c.id for c in cards], indent=2))
        return
    if not cards:
        typer.secho("Nothing to study today.", fg="green")
        return
    for card in cards:
        typer.echo(_card_line(card))


@app.command("counts")
def counts(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck to count.")],
):
    """Show how many review and new cards the next session holds."""
    _, store, service = _open(ctx)
    with store:
        try:
            result = service.due_counts(deck_id)
        except CadenceError as e:
            _fail(e)
    typer.echo(f"Review: {result.review_count}  New: {result.new_count}  Total: {result.total}")


@app.command("review")
def review(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card that was answered.")],
    correct: Annotated[
        bool, typer.Option("--correct/--wrong", help="Whether the answer was recalled.")
    ] = True,
    ms: Annotated[int, typer.Option("--ms", help="Response time in milliseconds.")] = 4000,
):
    """Record an answer and show the card's new schedule."""
    config, store, service = _open(ctx)
    with store:
        try:
            card = service.answer_by_id(card_id, ms, correct)
        except CadenceError as e:
            _fail(e)

        if config.auto_sync_after_review and config.user_id:
            from cadence.application.factory import get_reconciler

            deck = store.get_deck(card.deck_id)
            reconciler = get_reconciler(config, store)
            upload = reconciler.upload_card_progress(config.user_id, deck, card)
            try:
                asyncio.run(_closing(reconciler, upload))
            except CadenceError as e:
                # Progress stays local until the next full sync
                logger.warning(f"Auto-sync failed: {e}")

    typer.echo(_card_line(card))
    typer.echo(f"  interval={card.interval}m ease={card.ease_factor} reps={card.repetitions}")


@app.command("stats")
def stats(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck to summarize.")],
    history: Annotated[bool, typer.Option("--history", help="Show daily snapshots.")] = False,
):
    """Show per-status card counts for a deck."""
    _, store, service = _open(ctx)
    with store:
        try:
            result = service.deck_stats(deck_id)
            service.ensure_today_snapshot(deck_id)
        except CadenceError as e:
            _fail(e)
        snapshots = store.list_snapshots(deck_id) if history else []

    typer.echo(
        f"{result.deck.name}: total {result.total_cards}, new {result.new_cards}, "
        f"learning {result.learning_cards}, review {result.review_cards}, "
        f"mastered {result.mastered_cards}, due {result.due_for_review}"
    )
    for snap in snapshots:
        typer.echo(
            f"  {snap.day.isoformat()}  reviewed {snap.cards_reviewed}  new {snap.new_cards}  "
            f"learning {snap.learning_cards}  review {snap.review_cards}  "
            f"mastered {snap.mastered_cards}"
        )


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


@app.command("sync")
def sync(
    ctx: typer.Context,
    user: Annotated[str | None, typer.Option("--user", help="User identity to sync as.")] = None,
    deck_id: Annotated[
        str | None, typer.Option("--deck", help="Only reconcile this deck.")
    ] = None,
    remote_url: Annotated[
        str | None, typer.Option(help="Progress server URL. Defaults to config.")
    ] = None,
):
    """[bold green]Sync[/bold green] scheduling progress with the remote store."""
    from cadence.application.factory import get_reconciler

    config, store, _ = _open(ctx, user_id=user, remote_url=remote_url)
    with store:
        try:
            deck = store.get_deck(deck_id) if deck_id else None
            if deck_id and deck is None:
                raise DeckNotFoundError(deck_id)
            reconciler = get_reconciler(config, store)
            if deck is not None:
                work = reconciler.reconcile_deck(config.user_id, deck)
                reports = [asyncio.run(_closing(reconciler, work))]
            else:
                work = reconciler.reconcile_all(config.user_id)
                reports = asyncio.run(_closing(reconciler, work))
        except CadenceError as e:
            _fail(e)

    for report in reports:
        typer.echo(
            f"{report.deck_key[:12]}  pulled {report.pulled}  merged {report.merged}  "
            f"skipped {report.skipped}  uploaded {report.uploaded}"
        )
    typer.secho(f"Synced {len(reports)} deck(s).", fg="green")


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


@preset_app.command("list")
def preset_list():
    """List saved presets."""
    from cadence.application.presets import load_presets

    config = resolve_config()
    presets = load_presets(config.presets_path)
    if not presets:
        typer.secho("No presets saved.", fg="yellow")
        return
    for name in presets:
        marker = " (active)" if name == config.preset else ""
        typer.echo(f"{name}{marker}")


@preset_app.command("save")
def preset_save(name: Annotated[str, typer.Argument(help="Preset name.")]):
    """Save the currently configured study settings as a preset."""
    from cadence.application.presets import save_preset

    config = resolve_config()
    save_preset(config.presets_path, name, config.study)
    typer.secho(f"Saved preset '{name}'.", fg="green")


@preset_app.command("show")
def preset_show(name: Annotated[str, typer.Argument(help="Preset name.")]):
    """Print a preset's settings as JSON."""
    from cadence.application.presets import get_preset

    config = resolve_config()
    try:
        settings = get_preset(config.presets_path, name)
    except CadenceError as e:
        _fail(e)
    typer.echo(json.dumps(settings.model_dump(), indent=2))


@preset_app.command("delete")
def preset_delete(name: Annotated[str, typer.Argument(help="Preset name.")]):
    from cadence.application.presets import delete_preset

    config = resolve_config()
    try:
        delete_preset(config.presets_path, name)
    except CadenceError as e:
        _fail(e)
    typer.secho(f"Deleted preset '{name}'.", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command("server")
def server(
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the scheduling and progress server."""
    import uvicorn

    config = resolve_config()
    uvicorn.run(
        "cadence.server:app",
        host=host or config.server_host,
        port=port or config.server_port,
        reload=reload,
    )
