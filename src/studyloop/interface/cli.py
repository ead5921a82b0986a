"""studyloop CLI: run the scheduling core over an exported snapshot file."""

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from pydantic import ValidationError

from studyloop.application.chat_context import build_ask_context_turns
from studyloop.application.config import AppConfig, resolve_config
from studyloop.application.learning import (
    build_learning_profile,
    calc_coverage,
    choose_targets,
    evaluate_passage,
)
from studyloop.application.queue_builder import build_review_queue, latest_reviews
from studyloop.application.reading_conversation import build_reading_conversation
from studyloop.application.scheduler import quality_from_recall, schedule_review
from studyloop.application.stats import LearningProfileService
from studyloop.application.utils.time import ensure_utc
from studyloop.domain.models import LearningProfile
from studyloop.interface.schemas import Snapshot, load_snapshot, to_jsonable

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="studyloop: spaced-repetition and learning-context planner.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage studyloop configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LEVELS = {0: logging.WARNING, 1: logging.INFO}

SnapshotArg = Annotated[
    Path, typer.Argument(help="Snapshot file (JSON or YAML) exported from the datastore.")
]
AtOption = Annotated[
    datetime | None,
    typer.Option(
        "--at",
        formats=[
            "%Y-%m-%d",
            "%Y-%m-%dT%H:%M:%S",
            "%Y-%m-%d %H:%M:%S",
            "%Y-%m-%dT%H:%M:%S%z",
        ],
        help="Reference time (UTC if no offset). Defaults to now.",
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context, **overrides: Any) -> AppConfig:
    try:
        config = resolve_config({**overrides, "verbose": ctx.obj.get("verbose_bonus") or None})
    except ValidationError as e:
        typer.secho(f"Error: invalid configuration:\n{e}", fg="red", err=True)
        raise typer.Exit(1)
    logging.getLogger().setLevel(_LEVELS.get(config.verbose, logging.DEBUG))
    return config


def _load(path: Path) -> Snapshot:
    try:
        return load_snapshot(path)
    except OSError as e:
        typer.secho(f"Error: cannot read {path}: {e}", fg="red", err=True)
    except yaml.YAMLError as e:
        typer.secho(f"Error: {path} is not valid JSON/YAML: {e}", fg="red", err=True)
    except ValidationError as e:
        typer.secho(
            f"Error: {path} has {e.error_count()} invalid field(s):\n{e}", fg="red", err=True
        )
    raise typer.Exit(1)


def _now(at: datetime | None) -> datetime:
    return ensure_utc(at) if at else datetime.now(UTC)


def _emit(result: Any) -> None:
    typer.echo(json.dumps(to_jsonable(result), indent=2, ensure_ascii=False))


def _profile(snapshot: Snapshot, today: datetime, lookback_days: int) -> LearningProfile:
    # Precomputed stats win over raw cards/reviews
    if snapshot.flashcard_stats:
        return build_learning_profile(
            snapshot.domain_flashcard_stats(), snapshot.domain_signals(), today
        )
    service = LearningProfileService(lookback_days=lookback_days)
    return service.build(
        snapshot.domain_cards(),
        snapshot.domain_reviews(),
        snapshot.domain_signals(),
        today,
    )


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
    ] = 0,
):
    """Global settings for studyloop."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def grade(
    ctx: typer.Context,
    snapshot_path: SnapshotArg,
    card_id: Annotated[str, typer.Argument(help="Card to grade.")],
    quality: Annotated[
        int | None, typer.Option("--quality", "-q", help="SM-2 grade 0-5 (clamped).")
    ] = None,
    remembered: Annotated[
        bool, typer.Option("--remembered", help="Binary grade: remembered (quality 4).")
    ] = False,
    forgot: Annotated[
        bool, typer.Option("--forgot", help="Binary grade: forgot (quality 2).")
    ] = False,
    at: AtOption = None,
):
    """[bold green]Grade[/bold green] a card and print the new review record."""
    if [quality is not None, remembered, forgot].count(True) != 1:
        typer.secho(
            "Error: pass exactly one of --quality, --remembered or --forgot.", fg="red", err=True
        )
        raise typer.Exit(1)

    _config(ctx)
    snapshot = _load(snapshot_path)
    if card_id not in {card.id for card in snapshot.cards}:
        typer.secho(f"Error: card {card_id!r} not found in snapshot.", fg="red", err=True)
        raise typer.Exit(1)

    grade_value = quality if quality is not None else quality_from_recall(remembered)
    previous = latest_reviews(snapshot.domain_reviews()).get(card_id)
    _emit(schedule_review(card_id, grade_value, previous, _now(at)))


@app.command()
def queue(
    ctx: typer.Context,
    snapshot_path: SnapshotArg,
    max_queue: Annotated[int | None, typer.Option(help="Maximum cards in queue.")] = None,
    at: AtOption = None,
):
    """Show the due review queue."""
    config = _config(ctx, max_queue=max_queue)
    snapshot = _load(snapshot_path)
    _emit(
        build_review_queue(
            snapshot.domain_cards(),
            snapshot.domain_reviews(),
            now=_now(at),
            max_queue=config.max_queue,
        )
    )


@app.command()
def context(
    ctx: typer.Context,
    snapshot_path: SnapshotArg,
    message: Annotated[str, typer.Argument(help="The learner's new message.")],
    max_history_turns: Annotated[
        int | None, typer.Option(help="Prior turn pairs to keep.")
    ] = None,
    max_total_chars: Annotated[
        int | None, typer.Option(help="Character budget for all turns.")
    ] = None,
):
    """Assemble the ask-mode model context from the snapshot's context rows."""
    config = _config(
        ctx, max_history_turns=max_history_turns, ask_max_total_chars=max_total_chars
    )
    snapshot = _load(snapshot_path)
    _emit(
        build_ask_context_turns(
            snapshot.domain_context_rows(),
            message,
            max_history_turns=config.max_history_turns,
            max_total_chars=config.ask_max_total_chars,
        )
    )


@app.command()
def reading(
    ctx: typer.Context,
    snapshot_path: SnapshotArg,
    max_chars: Annotated[int | None, typer.Option(help="Character budget.")] = None,
):
    """Merge chat, translations and unmastered cards into a reading conversation."""
    config = _config(ctx, reading_max_chars=max_chars)
    snapshot = _load(snapshot_path)
    result = build_reading_conversation(
        snapshot.domain_chat_messages(),
        snapshot.domain_cards(),
        snapshot.domain_reviews(),
        max_chars=config.reading_max_chars,
    )
    logger.info(
        f"Kept {result.stats.total_events} events, trimmed {result.stats.trimmed_count}"
    )
    _emit(result)


@app.command()
def profile(
    ctx: typer.Context,
    snapshot_path: SnapshotArg,
    lookback_days: Annotated[int | None, typer.Option(help="History window in days.")] = None,
    at: AtOption = None,
):
    """Build the learning profile (review, grammar and new targets)."""
    config = _config(ctx, lookback_days=lookback_days)
    snapshot = _load(snapshot_path)
    _emit(_profile(snapshot, _now(at), config.lookback_days))


@app.command()
def targets(
    ctx: typer.Context,
    snapshot_path: SnapshotArg,
    lookback_days: Annotated[int | None, typer.Option(help="History window in days.")] = None,
    at: AtOption = None,
):
    """Choose today's review and fresh targets (~70/30 split)."""
    config = _config(ctx, lookback_days=lookback_days)
    snapshot = _load(snapshot_path)
    _emit(choose_targets(_profile(snapshot, _now(at), config.lookback_days)))


@app.command()
def coverage(
    required: Annotated[
        list[str] | None, typer.Option("--required", "-r", help="Required target (repeatable).")
    ] = None,
    used: Annotated[
        list[str] | None, typer.Option("--used", "-u", help="Used target (repeatable).")
    ] = None,
):
    """Score how many required targets were used."""
    _emit({"coverage": calc_coverage(required or [], used or [])})


@app.command()
def evaluate(
    ctx: typer.Context,
    passage: Annotated[Path, typer.Argument(help="Generated passage text file.")],
    required: Annotated[
        list[str] | None, typer.Option("--required", "-r", help="Required target (repeatable).")
    ] = None,
    used: Annotated[
        list[str] | None, typer.Option("--used", "-u", help="Used target (repeatable).")
    ] = None,
    previous: Annotated[
        Path | None, typer.Option(help="Previous passage text file.")
    ] = None,
):
    """Decide whether a generated passage should be kept."""
    config = _config(ctx)
    try:
        passage_text = passage.read_text(encoding="utf-8")
        previous_text = previous.read_text(encoding="utf-8") if previous else None
    except OSError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1)

    _emit(
        evaluate_passage(
            required or [],
            used or [],
            passage_text,
            previous_text,
            min_coverage=config.min_coverage,
            max_similarity=config.max_similarity,
        )
    )


@config_app.command("show")
def config_show():
    """Display the resolved configuration."""
    config = resolve_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


def main():
    app()
