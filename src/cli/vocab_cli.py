"""
Vocab CLI - spaced repetition from the terminal.

Commands:
    vocab init-db                 - Create the database tables
    vocab due --user <id>         - Words due for review now
    vocab review <word> <quality> - Record a review (quality 0-5)
    vocab stats --user <id>       - Progress statistics
    vocab progress <word>         - Detailed progress for one word
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Annotated

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from config import get_settings
from src.core.exceptions import SchedulerError
from src.core.log_setup import configure_logging
from src.core.review_state import Quality

console = Console()

app = typer.Typer(
    name="vocab",
    help="Vocabulary spaced repetition - due words, reviews and progress",
    no_args_is_help=True,
)

UserOption = Annotated[str, typer.Option("--user", "-u", help="Learner identifier")]

QUALITY_LABELS = {
    Quality.BLACKOUT: "blackout",
    Quality.INCORRECT: "wrong",
    Quality.INCORRECT_FAMILIAR: "wrong (familiar)",
    Quality.DIFFICULT: "hard",
    Quality.HESITANT: "good",
    Quality.PERFECT: "perfect",
}


@contextmanager
def _review_service() -> Generator:
    """Lazy load the review service to avoid a database connection on --help."""
    from src.db.database import session_scope
    from src.db.repository import SqlAlchemyReviewStateRepository
    from src.study.review_service import ReviewService

    with session_scope() as session:
        yield ReviewService(SqlAlchemyReviewStateRepository(session))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _format_due(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


@app.command("init-db")
def init_database() -> None:
    """Create the words and word_progress tables."""
    from src.db.database import init_db

    init_db()
    rprint("[green][OK][/green] Database tables ready")


@app.command("due")
def show_due(
    user: UserOption = "default",
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Maximum words")] = None,
) -> None:
    """Show the words due for review, in review order."""
    now = _now()
    try:
        with _review_service() as service:
            due = service.fetch_due(user, now, limit)
            total_due, recommended = service.count_due(user, now)
    except SchedulerError as exc:
        rprint(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    if not due:
        rprint("[green]All caught up![/green] Nothing is due.")
        return

    table = Table(title=f"Due words for {user}")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Word", style="bold")
    table.add_column("Status")
    table.add_column("Level", justify="right")
    table.add_column("Due since")

    for entry in due:
        status = "[green]NEW[/green]" if entry.is_new else "[yellow]REVIEW[/yellow]"
        table.add_row(
            str(entry.item.item_id),
            entry.item.label or "",
            status,
            str(entry.repetition_level),
            _format_due(entry.next_review_due_at),
        )

    console.print(table)
    rprint(f"[cyan]{total_due}[/cyan] due in total, recommended today: [bold]{recommended}[/bold]")


@app.command("review")
def record_review(
    word_id: Annotated[int, typer.Argument(help="Word ID")],
    quality: Annotated[int, typer.Argument(help="Recall quality 0 (blackout) to 5 (perfect)")],
    user: UserOption = "default",
) -> None:
    """Record how well a word was recalled and reschedule it."""
    try:
        rating = Quality.parse(quality)
        with _review_service() as service:
            state = service.record_review(user, word_id, rating, _now())
    except SchedulerError as exc:
        rprint(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    content = Text()
    content.append(f"Quality: {quality} ({QUALITY_LABELS[rating]})\n")
    content.append(f"Level: {state.repetition_level}   Streak: {state.correct_streak}\n")
    content.append(f"Easiness: {state.easiness_factor:.2f}\n")
    content.append(f"Next review in {state.last_interval_days} day(s): ", style="cyan")
    content.append(_format_due(state.next_review_due_at), style="bold")
    console.print(Panel(content, title=f"Word {word_id}", border_style="green"))


@app.command("stats")
def show_stats(user: UserOption = "default") -> None:
    """Show mastered / learning / new counts and streaks."""
    with _review_service() as service:
        stats = service.fetch_stats(user)

    table = Table(title=f"Progress for {user}", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_row("Total words", str(stats.total_items))
    table.add_row("Mastered", f"[green]{stats.mastered_count}[/green]")
    table.add_row("Learning", f"[yellow]{stats.learning_count}[/yellow]")
    table.add_row("New", str(stats.new_count))
    table.add_row("Average easiness", f"{stats.average_easiness_factor:.2f}")
    table.add_row("Best current streak", str(stats.current_streak))
    table.add_row("Total reviews", str(stats.total_reviews))
    console.print(table)


@app.command("progress")
def show_progress(
    word_id: Annotated[int, typer.Argument(help="Word ID")],
    user: UserOption = "default",
) -> None:
    """Show mastery, retention and the interval each rating would give."""
    try:
        with _review_service() as service:
            progress = service.fetch_item_progress(user, word_id, _now())
    except SchedulerError as exc:
        rprint(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    state = progress.state
    content = Text()
    content.append(f"{progress.item.label or word_id}\n\n", style="bold")
    content.append(f"Mastery: {progress.mastery_percentage}%\n")
    content.append(f"Estimated retention: {progress.estimated_retention}%\n")
    content.append(f"Average quality: {progress.average_quality:.2f}\n")
    if state is not None:
        content.append(f"Reviews: {state.review_count}   Level: {state.repetition_level}\n")
        content.append(f"Next review: {_format_due(state.next_review_due_at)}\n")
    console.print(Panel(content, title="Word progress", border_style="cyan"))

    table = Table(title="If you answer now")
    table.add_column("Quality", justify="right")
    table.add_column("Meaning")
    table.add_column("Next interval", justify="right")
    for rating, days in progress.interval_preview.items():
        table.add_row(str(int(rating)), QUALITY_LABELS[rating], f"{days} day(s)")
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings(), level="WARNING")
    app()


if __name__ == "__main__":
    main()
