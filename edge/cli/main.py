"""
Edge CLI: inspect the session ledger and review schedule.

Commands:
- edge status   - Day number, streak, recent scores, schedule counts
- edge due      - Concepts due for review
- edge digest   - The history digest injected into prompts
- edge history  - Full ledger table
- edge serve    - Run the API server
"""
from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from edge.core.logging_config import configure_logging
from edge.learning.concepts import get_concept
from edge.learning.spaced_repetition import ReviewConfig, ReviewScheduler
from edge.session.status import StatusService
from edge.storage.ledger import LedgerStore

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="edge",
    help="Edge Trainer: session ledger and review schedule",
    no_args_is_help=True,
)
console = Console()

DATA_DIR_OPTION = typer.Option(
    None,
    "--data-dir", "-d",
    help="Directory holding ledger.json and review-schedule.json",
)


def _stores(data_dir: Optional[Path]) -> tuple[LedgerStore, ReviewScheduler]:
    settings = get_settings()
    base = data_dir or settings.data_dir
    ledger = LedgerStore(base / settings.ledger_filename, lock_timeout=settings.storage_lock_timeout_seconds)
    scheduler = ReviewScheduler(
        base / settings.schedule_filename,
        config=ReviewConfig(max_interval_days=settings.max_interval_days),
        lock_timeout=settings.storage_lock_timeout_seconds,
    )
    return ledger, scheduler


def _score_style(value: float) -> str:
    if value >= 4:
        return "green"
    if value >= 3:
        return "yellow"
    return "red"


# =============================================================================
# Commands
# =============================================================================


@app.command()
def status(data_dir: Optional[Path] = DATA_DIR_OPTION) -> None:
    """Show today's day number, streak and review counts."""
    ledger, scheduler = _stores(data_dir)
    report = StatusService(ledger, scheduler).report(date.today())

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Next session", f"Day {report.day_number}")
    table.add_row("Streak", f"{report.streak} day(s)")
    table.add_row("Concepts tracked", str(report.schedule.tracked))
    table.add_row("Due for review", str(report.schedule.due))
    table.add_row("Mastered", str(report.schedule.mastered))
    if report.last_record:
        table.add_row("Last concept", report.last_record.concept)
        table.add_row("Last mission", report.last_record.mission_status.value)

    console.print(Panel(table, title="[bold cyan]Edge Status[/bold cyan]", expand=False))

    if report.recent_scores:
        averages = " ".join(
            f"[{_score_style(s.average())}]{s.average():.1f}[/{_score_style(s.average())}]"
            for s in report.recent_scores
        )
        console.print(f"Recent averages: {averages}")


@app.command()
def due(data_dir: Optional[Path] = DATA_DIR_OPTION) -> None:
    """List concepts due for review, most overdue first."""
    _, scheduler = _stores(data_dir)
    today = date.today()
    entries = scheduler.due(today)

    if not entries:
        console.print("[green]Nothing due for review.[/green]")
        return

    table = Table(title="Due for Review")
    table.add_column("Concept")
    table.add_column("Due", justify="right")
    table.add_column("Overdue", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Practiced", justify="right")

    for entry in entries:
        concept = get_concept(entry.concept_id)
        table.add_row(
            concept.label if concept else entry.concept_id,
            entry.next_review.isoformat(),
            f"{entry.days_overdue(today)}d",
            f"{entry.ease_factor:.2f}",
            str(entry.practice_count),
        )

    console.print(table)


@app.command()
def digest(
    data_dir: Optional[Path] = DATA_DIR_OPTION,
    count: int = typer.Option(7, "--count", "-n", help="Number of recent sessions"),
) -> None:
    """Print the session-history digest used in prompts."""
    ledger, _ = _stores(data_dir)
    console.print(Markdown(ledger.compact(count)))


@app.command()
def history(data_dir: Optional[Path] = DATA_DIR_OPTION) -> None:
    """Show every recorded session."""
    ledger, _ = _stores(data_dir)
    records = ledger.read_all()

    if not records:
        console.print("[dim]No sessions recorded yet.[/dim]")
        return

    table = Table(title="Session Ledger")
    table.add_column("Day", justify="right")
    table.add_column("Date")
    table.add_column("Concept")
    table.add_column("Persona")
    table.add_column("Avg", justify="right")
    table.add_column("Mission")

    for record in records:
        avg = record.scores.average()
        style = _score_style(avg)
        table.add_row(
            str(record.day),
            record.date.isoformat(),
            record.concept,
            record.persona,
            f"[{style}]{avg:.1f}[/{style}]",
            record.mission_status.value,
        )

    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "edge.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings(), level="WARNING")
    app()


if __name__ == "__main__":
    main()
