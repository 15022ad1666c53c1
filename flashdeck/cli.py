"""
flashdeck: terminal front-end for spaced repetition study.

Commands:
- flashdeck study     - Start a study session
- flashdeck preview   - Show the upcoming queue
- flashdeck stats     - Show deck statistics
- flashdeck forecast  - Reviews due over the coming days
- flashdeck cards     - List cards by maturity
- flashdeck phrases   - Phrase list grouped by header
- flashdeck rate      - Star-rate a phrase
- flashdeck import    - Import cards from JSON
- flashdeck export    - Export cards to JSON
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import get_settings

from .card import Card
from .card_store import BackgroundCardSink, CardStore
from .clock import SystemClock
from .errors import CardImportError
from .queue_builder import build_session, filter_by_tags
from .scheduler import create_scheduler
from .session import LapsePolicy, SessionComplete, SessionRunner
from .phrases import group_phrases, rate
from .stats import (
    Maturity,
    deck_stats,
    filter_by_maturity,
    known_progress,
    maturity,
    review_forecast,
)

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="flashdeck",
    help="flashdeck: spaced repetition flashcards in the terminal",
    no_args_is_help=True,
)
console = Console()

DataDirOption = typer.Option(None, "--data-dir", help="Directory with dataset databases")
DatasetOption = typer.Option(None, "--dataset", "-s", help="Dataset (deck) name")


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "dim": "dim",
    "state": {
        "new": "green",
        "learning": "yellow",
        "review": "blue",
        "relearning": "red",
    },
}

GRADE_LABELS = {"1": "Again", "3": "Hard", "4": "Good", "5": "Easy"}


def style_state(state: str) -> str:
    """Get styled card state string."""
    color = STYLES["state"].get(state, "white")
    return f"[{color}]{state}[/{color}]"


def _format_interval(days: int) -> str:
    """Format interval as human-readable string."""
    if days == 0:
        return "now"
    elif days == 1:
        return "1 day"
    elif days < 7:
        return f"{days} days"
    elif days < 30:
        weeks = days // 7
        return f"{weeks} week{'s' if weeks > 1 else ''}"
    else:
        months = days // 30
        return f"{months} month{'s' if months > 1 else ''}"


def _open_store(data_dir: Optional[Path], dataset: Optional[str]) -> CardStore:
    settings = get_settings()
    return CardStore(data_dir=data_dir or settings.data_dir, dataset=dataset or settings.dataset)


# =============================================================================
# Display Helpers
# =============================================================================


def display_card_front(card: Card, remaining: int) -> None:
    """Display the front of a card."""
    header = f"{style_state(card.state.value)}  |  {remaining} left"
    if card.tags:
        header += f"  |  [dim]{', '.join(card.tags)}[/dim]"

    console.print(Panel(
        card.front or "[dim](empty)[/dim]",
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    ))


def display_card_back(card: Card) -> None:
    """Display the back of a card."""
    console.print(Panel(
        card.back or "[dim](empty)[/dim]",
        border_style="white",
        padding=(1, 2),
    ))


def _ask_grade() -> str:
    """Ask for a rating, undo or quit."""
    legend = "  ".join(f"{k} = {v}" for k, v in GRADE_LABELS.items())
    console.print(f"\n[dim]{legend}  u = undo  q = quit[/dim]")
    return Prompt.ask("Grade", choices=[*GRADE_LABELS, "u", "q"])


def _display_session_summary(summary: SessionComplete | None, answered: int) -> None:
    """Display end-of-session summary."""
    title = "Session Complete!" if summary else "Session Ended"
    console.print("\n")
    console.print(Panel(
        f"[bold]{title}[/bold]\n\n"
        f"Answers: {answered}\n"
        f"Re-queued for same-day repeat: {summary.requeued if summary else '-'}",
        title="Summary",
        border_style="green",
    ))


# =============================================================================
# Commands
# =============================================================================


@app.command()
def study(
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
    new_limit: Optional[int] = typer.Option(
        None,
        "--new", "-n",
        help="Maximum new cards per session",
    ),
    tags: Optional[list[str]] = typer.Option(
        None,
        "--tag", "-t",
        help="Only study cards with this tag (repeatable)",
    ),
) -> None:
    """
    Start an interactive study session.

    Due reviews come first, then new cards, then cards not yet due.
    Failed and learning cards come back later in the same session.
    """
    settings = get_settings()
    store = _open_store(data_dir, dataset)
    clock = SystemClock()

    cards = [c for c in filter_by_tags(store.load_cards(), tags or []) if not c.is_header]
    limit = settings.new_card_limit if new_limit is None else new_limit
    session = build_session(cards, limit, clock)

    if session.total_cards == 0:
        console.print("\n[green]No cards to study![/green]")
        console.print("Import cards with: flashdeck import <file.json>")
        raise typer.Exit(0)

    console.print(f"\n[bold]Session: {session.total_cards} cards[/bold]")
    console.print(f"  Due reviews: {len(session.due_cards)}")
    console.print(f"  New cards: {len(session.new_cards)}")
    console.print(f"  Not yet due: {len(session.future_cards)}")
    console.print(f"  Estimated time: ~{session.estimated_minutes} min")
    console.print()

    if not Confirm.ask("Start session?", default=True):
        raise typer.Exit(0)

    scheduler = create_scheduler(
        settings.scheduler_mode,
        clock=clock,
        **settings.get_scheduler_config(),
    )
    sink = BackgroundCardSink(store)
    sink.start()
    runner = SessionRunner(
        session.queue,
        scheduler,
        sink=sink,
        lapse_policy=LapsePolicy(settings.lapse_policy),
    )

    summary: SessionComplete | None = None
    last_review_id: int | None = None
    try:
        item = runner.next()
        while not isinstance(item, SessionComplete):
            console.clear()
            display_card_front(item, runner.remaining + 1)
            Prompt.ask("\n[dim]Press Enter to reveal[/dim]", default="", show_default=False)
            display_card_back(item)

            choice = _ask_grade()
            if choice == "q":
                break
            if choice == "u":
                if runner.undo() is None:
                    console.print("[dim]Nothing to undo[/dim]")
                    continue
                if last_review_id is not None:
                    store.delete_review(last_review_id)
                    last_review_id = None
                item = runner.next()
                continue

            quality = int(choice)
            result = runner.answer(item, quality)
            last_review_id = store.log_review(item.id, quality, item, result.updated)

            if result.immediate:
                console.print(f"[{STYLES['incorrect'] if quality <= 2 else STYLES['info']}]"
                              f"Again later this session[/]")
            else:
                console.print(f"[{STYLES['correct']}]Next review in "
                              f"{_format_interval(result.updated.ivl)}[/]")

            item = runner.next()
        else:
            summary = item

    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")

    finally:
        sink.stop()
        if sink.failures:
            console.print(f"[yellow]{sink.failures} card(s) could not be saved[/yellow]")

    _display_session_summary(summary, runner.answered)


@app.command()
def preview(
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
    limit: int = typer.Option(10, "--limit", "-l", help="Number of cards to preview"),
    new_limit: Optional[int] = typer.Option(None, "--new", "-n", help="Maximum new cards"),
) -> None:
    """Preview upcoming study cards."""
    settings = get_settings()
    store = _open_store(data_dir, dataset)
    clock = SystemClock()
    session = build_session(
        store.load_cards(),
        settings.new_card_limit if new_limit is None else new_limit,
        clock,
    )
    today = clock.today()

    console.print("\n[bold]Upcoming Cards[/bold]\n")

    table = Table()
    table.add_column("ID")
    table.add_column("Front")
    table.add_column("State")
    table.add_column("Due")

    for card in session.queue[:limit]:
        if card.is_new:
            due = "[green]new[/green]"
        elif card.is_due(today):
            due = "[yellow]due[/yellow]"
        else:
            due = card.due.isoformat()
        table.add_row(str(card.id), card.front, style_state(card.state.value), due)

    console.print(table)


@app.command()
def stats(
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
    progress_days: int = typer.Option(
        0,
        "--progress", "-p",
        min=0,
        help="Also show known-card progress over this many days (e.g. 30)",
    ),
) -> None:
    """Show deck statistics."""
    store = _open_store(data_dir, dataset)
    clock = SystemClock()
    all_cards = store.load_cards()
    data = deck_stats(all_cards, clock, store.answered_dates())

    console.print("\n[bold cyan]Deck Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Total cards", str(data["total_cards"]))
    table.add_row("Due today", str(data["due_today"]))
    table.add_row("New available", str(data["new_available"]))
    for state, count in data["by_state"].items():
        table.add_row(f"State: {state}", str(count))
    for bucket, count in data["by_maturity"].items():
        table.add_row(f"Maturity: {bucket}", str(count))
    table.add_row("Total lapses", str(data["total_lapses"]))
    table.add_row("Study streak", f"{data['streak_days']} days")

    console.print(table)

    if progress_days:
        progress = Table(title="Known Cards")
        progress.add_column("Day")
        progress.add_column("Known", justify="right")
        for day, count in known_progress(all_cards, progress_days, clock):
            progress.add_row(day.isoformat(), str(count))
        console.print(progress)


@app.command()
def forecast(
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
    days: int = typer.Option(7, "--days", "-d", min=1, help="Days to forecast"),
) -> None:
    """Show reviews falling due over the coming days."""
    store = _open_store(data_dir, dataset)

    table = Table(title="Review Forecast")
    table.add_column("Day")
    table.add_column("Reviews due", justify="right")

    for day, count in review_forecast(store.load_cards(), days, SystemClock()):
        table.add_row(day.strftime("%a %Y-%m-%d"), str(count))

    console.print(table)


@app.command()
def cards(
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
    bucket: str = typer.Option(
        "all",
        "--filter", "-f",
        help="Maturity filter: all, new, learning, known",
    ),
    show_back: bool = typer.Option(True, "--back/--no-back", help="Show the back column"),
) -> None:
    """List cards, optionally filtered by maturity."""
    if bucket != "all" and bucket not in {m.value for m in Maturity}:
        console.print(f"[red]Unknown filter: {bucket}[/red]")
        raise typer.Exit(1)

    store = _open_store(data_dir, dataset)
    selected = filter_by_maturity(store.load_cards(), bucket)

    if not selected:
        console.print("No cards in this category.")
        return

    table = Table()
    table.add_column("Front")
    if show_back:
        table.add_column("Back")
    table.add_column("Interval", justify="right")
    table.add_column("Maturity")

    for card in selected:
        row = [card.front]
        if show_back:
            row.append(card.back)
        row.extend([str(card.ivl), maturity(card).value])
        table.add_row(*row)

    console.print(table)


@app.command()
def phrases(
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
    tags: Optional[list[str]] = typer.Option(
        None,
        "--tag", "-t",
        help="Only phrases with this tag (repeatable)",
    ),
) -> None:
    """List phrases grouped under their "#" headers, best-rated first."""
    store = _open_store(data_dir, dataset)
    groups = group_phrases(store.load_cards(), tags or [])

    if not groups:
        console.print("No phrases match your criteria.")
        return

    for group in groups:
        if group.header:
            console.print(f"\n[bold cyan]{group.header}[/bold cyan]")
        table = Table(show_header=False, box=None)
        table.add_column("Phrase")
        table.add_column("Tags", style="dim")
        table.add_column("Rating", style="yellow")
        table.add_column("ID", style="dim")
        for card in group.cards:
            stars = "★" * card.rating + "☆" * (5 - card.rating)
            table.add_row(card.front, ", ".join(card.tags), stars, str(card.id))
        console.print(table)


@app.command("rate")
def rate_phrase(
    card_id: str = typer.Argument(..., help="Card ID"),
    rating: int = typer.Argument(..., min=0, max=5, help="Stars, 0-5"),
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
) -> None:
    """Set a phrase's star rating."""
    store = _open_store(data_dir, dataset)
    card = store.get_card(card_id)
    if card is None:
        console.print(f"[red]Card not found: {card_id}[/red]")
        raise typer.Exit(1)

    store.save(rate(card, rating))
    console.print(f"[green]Rated '{card.front}' {rating}/5[/green]")


@app.command("import")
def import_cards(
    path: Path = typer.Argument(..., help="JSON file with card records"),
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
) -> None:
    """Import cards (current or legacy SM-2 records) from JSON."""
    store = _open_store(data_dir, dataset)
    try:
        count = store.import_json(path)
    except CardImportError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Imported {count} cards into '{store.dataset}'[/green]")


@app.command("export")
def export_cards(
    path: Path = typer.Argument(..., help="Destination JSON file"),
    data_dir: Optional[Path] = DataDirOption,
    dataset: Optional[str] = DatasetOption,
) -> None:
    """Export all cards to JSON."""
    store = _open_store(data_dir, dataset)
    count = store.export_json(path)
    console.print(f"[green]Exported {count} cards to {path}[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def configure_logging() -> None:
    """Install loguru handlers from settings."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
        )


def main() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
