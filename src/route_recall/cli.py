"""Command-line interface for route-recall.

Uses Typer for a modern, type-hinted CLI experience.
"""

from __future__ import annotations

import json
import random
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

# Load environment variables from .env files
# Priority: local .env > ~/.route-recall/.env
_user_env = Path.home() / ".route-recall" / ".env"
if _user_env.exists():
    load_dotenv(_user_env)
load_dotenv()  # Load local .env (overrides user-level)
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from route_recall import __version__
from route_recall.config import (
    SETTINGS_FILENAME,
    Settings,
    get_data_dir,
    load_settings,
    open_record_store,
    save_settings,
)
from route_recall.errors import RouteRecallError, format_error_for_display
from route_recall.import_export import default_export_filename, import_file, write_records
from route_recall.library import RecordLibrary
from route_recall.logging import LogConfig, LogLevel, configure_logging
from route_recall.matching.phonetic import PhoneticNormalizer
from route_recall.matching.search import RecordMatcher
from route_recall.matching.segmenter import TranscriptSegmenter
from route_recall.review.quiz import QuizBuilder, QuizSession, SessionMode, plan_session
from route_recall.review.scheduler import ReviewScheduler
from route_recall.storage import JsonRecordStore
from route_recall.transcription import LookupMode, TranscriptRouter, read_event_lines

# Create the main Typer app
app = typer.Typer(
    name="route-recall",
    help="Learn which delivery zone every street belongs to, by voice lookup and spaced quizzes.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


@dataclass
class Workspace:
    """Everything a command needs, built from one data directory."""

    data_dir: Path
    settings: Settings
    store: JsonRecordStore
    normalizer: PhoneticNormalizer
    library: RecordLibrary
    scheduler: ReviewScheduler

    def matcher(self) -> RecordMatcher:
        return self.settings.build_matcher(self.normalizer)

    def segmenter(self) -> TranscriptSegmenter:
        return self.settings.build_segmenter(self.normalizer)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"route-recall version {__version__}")
        raise typer.Exit()


def fail(error: Exception) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]Error:[/red] {escape(format_error_for_display(error))}")
    raise typer.Exit(1)


def open_workspace(ctx: typer.Context) -> Workspace:
    """Load settings and the record store for the selected data directory."""
    data_dir: Path = ctx.obj["data_dir"]
    try:
        settings = load_settings(data_dir)
        store = open_record_store(data_dir)
        normalizer = settings.build_normalizer()
        scheduler = settings.build_scheduler(store)
    except RouteRecallError as e:
        fail(e)
    return Workspace(
        data_dir=data_dir,
        settings=settings,
        store=store,
        normalizer=normalizer,
        library=RecordLibrary(store, normalizer),
        scheduler=scheduler,
    )


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--data-dir",
            help="Data directory (default: $ROUTE_RECALL_HOME or ~/.route-recall).",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Show info and debug logging.")
    ] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log errors.")] = False,
    log_file: Annotated[
        Optional[Path],
        typer.Option("--log-file", help="Also write debug logs to this file as JSON lines."),
    ] = None,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Route Recall - delivery zone trainer.

    [bold]search[/bold] / [bold]dictate[/bold]: say a street, see its zone, even when
    speech recognition mishears it.

    [bold]quiz[/bold]: multiple-choice drills with spaced review and a mistake pool.
    """
    ctx.obj = {"data_dir": (data_dir or get_data_dir()).expanduser()}
    if verbose or quiet or log_file:
        level = LogLevel.DEBUG if verbose else LogLevel.QUIET if quiet else LogLevel.NORMAL
        configure_logging(LogConfig(level=level, log_file=log_file))


# =============================================================================
# Library Commands
# =============================================================================


@app.command()
def init(
    ctx: typer.Context,
    no_seed: Annotated[
        bool, typer.Option("--no-seed", help="Don't install the sample streets")
    ] = False,
) -> None:
    """Create the data directory, default settings and sample streets."""
    data_dir: Path = ctx.obj["data_dir"]
    settings_path = data_dir / SETTINGS_FILENAME
    try:
        if not settings_path.exists():
            save_settings(data_dir, Settings())
        workspace = open_workspace(ctx)
        added = 0 if no_seed else workspace.library.seed()
    except RouteRecallError as e:
        fail(e)

    console.print(
        Panel(
            f"[bold green]Data directory ready[/bold green]\n\n"
            f"Location: {data_dir}\n"
            f"Streets: {len(workspace.store)}\n"
            f"Sample streets added: {added}",
            title="Initialized",
        )
    )


@app.command()
def add(
    ctx: typer.Context,
    street: Annotated[str, typer.Argument(help="Street name")],
    area: Annotated[str, typer.Argument(help="Delivery zone the street belongs to")],
    company: Annotated[str, typer.Option("--company", "-c", help="Company at the address")] = "",
    pinyin: Annotated[str, typer.Option("--pinyin", help="Phonetic key override")] = "",
    lat: Annotated[Optional[float], typer.Option("--lat", help="Latitude")] = None,
    lng: Annotated[Optional[float], typer.Option("--lng", help="Longitude")] = None,
) -> None:
    """Add a street to the library."""
    workspace = open_workspace(ctx)
    try:
        record = workspace.library.add(street, area, company, pinyin, lat=lat, lng=lng)
    except RouteRecallError as e:
        fail(e)
    console.print(
        f"[green]Added[/green] {record.street_name} -> {record.route_area} [dim]({record.id})[/dim]"
    )


@app.command()
def edit(
    ctx: typer.Context,
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    street: Annotated[Optional[str], typer.Option("--street", "-s", help="New street name")] = None,
    area: Annotated[Optional[str], typer.Option("--area", "-a", help="New zone")] = None,
    company: Annotated[Optional[str], typer.Option("--company", "-c", help="New company")] = None,
) -> None:
    """Edit a street's name, zone or company. Review progress is kept."""
    workspace = open_workspace(ctx)
    try:
        record = workspace.library.edit(record_id, street, area, company)
    except RouteRecallError as e:
        fail(e)
    console.print(f"[green]Updated[/green] {record.street_name} -> {record.route_area}")


@app.command()
def delete(
    ctx: typer.Context,
    record_id: Annotated[str, typer.Argument(help="Record ID")],
) -> None:
    """Delete a street from the library."""
    workspace = open_workspace(ctx)
    try:
        deleted = workspace.library.delete(record_id)
    except RouteRecallError as e:
        fail(e)
    if not deleted:
        console.print(f"[red]Error:[/red] Record '{record_id}' not found")
        raise typer.Exit(1)
    console.print(f"[green]Deleted[/green] {record_id}")


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    text: Annotated[
        str, typer.Option("--filter", "-f", help="Keep streets whose name or zone contains this")
    ] = "",
    area: Annotated[Optional[str], typer.Option("--area", "-a", help="Only this zone")] = None,
) -> None:
    """List streets, newest first."""
    workspace = open_workspace(ctx)
    try:
        records = workspace.library.list_records(text, area)
    except RouteRecallError as e:
        fail(e)

    if not records:
        console.print("[yellow]No streets found.[/yellow]")
        console.print("Add one with: route-recall add <street> <zone>")
        return

    table = Table(title=f"Streets ({len(records)})")
    table.add_column("ID", style="dim")
    table.add_column("Street", style="cyan")
    table.add_column("Zone", style="green")
    table.add_column("Company", style="white")
    table.add_column("Errors", justify="right")
    table.add_column("Stage", justify="right")

    for record in records:
        street = record.street_name
        if record.is_in_mistake_pool:
            street += " [red]*[/red]"
        table.add_row(
            record.id,
            street,
            record.route_area,
            record.company_name or "-",
            str(record.failure_count),
            str(record.review_stage),
        )

    console.print(table)


@app.command()
def areas(ctx: typer.Context) -> None:
    """List the distinct zones in the library."""
    workspace = open_workspace(ctx)
    try:
        labels = workspace.library.areas()
    except RouteRecallError as e:
        fail(e)

    if not labels:
        console.print("[yellow]No zones yet.[/yellow]")
        return
    for label in labels:
        console.print(label)


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show library size, due reviews and mistake pool size."""
    workspace = open_workspace(ctx)
    try:
        summary = workspace.library.stats(workspace.scheduler)
    except RouteRecallError as e:
        fail(e)

    table = Table(title="Library")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Streets", str(summary.total))
    table.add_row("Zones", str(summary.areas))
    table.add_row("Due for review", str(summary.due))
    table.add_row("Mistake pool", str(summary.mistakes))
    console.print(table)


# =============================================================================
# Lookup Commands
# =============================================================================


@app.command()
def search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Street name as heard or typed")],
    as_json: Annotated[bool, typer.Option("--json", help="Print results as JSON")] = False,
) -> None:
    """Find the streets closest to a query."""
    workspace = open_workspace(ctx)
    try:
        results = workspace.matcher().search(query, workspace.store.get_all())
    except RouteRecallError as e:
        fail(e)

    if as_json:
        typer.echo(json.dumps([r.to_dict() for r in results], ensure_ascii=False))
        return

    if not results:
        console.print(f"[yellow]No match for '{query}'.[/yellow]")
        return

    table = Table(title=f"Matches for '{query}'")
    table.add_column("#", style="dim", width=3)
    table.add_column("Street", style="cyan")
    table.add_column("Zone", style="bold green")
    table.add_column("Score", justify="right")
    table.add_column("Map", style="dim")
    for i, result in enumerate(results, 1):
        street = result.record.street_name
        if result.matched_field == "company":
            street += f" ({result.record.company_name})"
        table.add_row(str(i), street, result.route_area, f"{result.score:.0f}", result.record.map_url)
    console.print(table)


@app.command()
def segment(
    ctx: typer.Context,
    transcript: Annotated[str, typer.Argument(help="Continuous transcript of many streets")],
    as_json: Annotated[bool, typer.Option("--json", help="Print segments as JSON")] = False,
) -> None:
    """Split a continuous transcript into streets and show each zone."""
    workspace = open_workspace(ctx)
    try:
        segments = workspace.segmenter().segment(transcript, workspace.store.get_all())
    except RouteRecallError as e:
        fail(e)

    if as_json:
        typer.echo(json.dumps([s.to_dict() for s in segments], ensure_ascii=False))
        return

    table = Table(title="Segments")
    table.add_column("Heard", style="white")
    table.add_column("Street", style="cyan")
    table.add_column("Zone", style="bold green")
    for seg in segments:
        if seg.record is None:
            table.add_row(f"[dim]{seg.text}[/dim]", "-", "-")
        else:
            table.add_row(seg.text, seg.record.street_name, seg.record.route_area)
    console.print(table)


@app.command()
def dictate(
    ctx: typer.Context,
    events_file: Annotated[
        Optional[Path],
        typer.Argument(help="JSON-lines file of transcript events (default: stdin)"),
    ] = None,
    mode: Annotated[
        LookupMode, typer.Option("--mode", "-m", help="single: one street per utterance, batch: many")
    ] = LookupMode.SINGLE,
) -> None:
    """Replay recognizer events ({"text": ..., "final": ...}) through the lookup engine.

    Prints one JSON line per event: interim text for display, or the
    lookup result for final text.
    """
    workspace = open_workspace(ctx)
    router = TranscriptRouter(
        workspace.store.get_all, workspace.matcher(), workspace.segmenter(), mode
    )

    if events_file is not None and not events_file.exists():
        console.print(f"[red]Error:[/red] Events file not found: {events_file}")
        raise typer.Exit(1)

    stream = open(events_file, encoding="utf-8") if events_file else sys.stdin
    try:
        for event in read_event_lines(stream):
            seen = len(router.state.segments)
            state = router.handle(event)
            if not event.is_final:
                payload = {"interim": state.interim_text}
            elif mode == LookupMode.SINGLE:
                payload = {"query": state.query, "matches": [m.to_dict() for m in state.matches]}
            else:
                payload = {"segments": [s.to_dict() for s in state.segments[seen:]]}
            typer.echo(json.dumps(payload, ensure_ascii=False))
    except ValueError as e:
        console.print(f"[red]Error:[/red] Bad transcript event: {e}")
        raise typer.Exit(1)
    except RouteRecallError as e:
        fail(e)
    finally:
        if events_file:
            stream.close()


# =============================================================================
# Import / Export Commands
# =============================================================================


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help=".xlsx or .csv file with 道路名称 and 所属路区 columns")],
) -> None:
    """Import streets, updating the zone of streets already in the library."""
    workspace = open_workspace(ctx)
    try:
        summary = import_file(path, workspace.library)
    except RouteRecallError as e:
        fail(e)

    console.print(
        f"[green]Imported[/green] {summary.total} streets "
        f"({summary.added} added, {summary.updated} updated)"
    )
    if summary.skipped:
        console.print(f"[yellow]Skipped {summary.skipped} rows without street or zone[/yellow]")


@app.command()
def export(
    ctx: typer.Context,
    path: Annotated[
        Optional[Path], typer.Argument(help="Output .xlsx or .csv file (default: dated backup)")
    ] = None,
) -> None:
    """Export the library to a spreadsheet."""
    workspace = open_workspace(ctx)
    output = path or Path.cwd() / default_export_filename()
    try:
        count = write_records(output, workspace.library.list_records())
    except RouteRecallError as e:
        fail(e)
    console.print(f"[green]Exported[/green] {count} streets to {output}")


# =============================================================================
# Quiz Command
# =============================================================================


@app.command()
def quiz(
    ctx: typer.Context,
    mode: Annotated[
        SessionMode, typer.Option("--mode", "-m", help="random, review (due) or mistake (pool)")
    ] = SessionMode.RANDOM,
    count: Annotated[
        Optional[int], typer.Option("--count", "-n", help="Questions in a random quiz")
    ] = None,
    seed: Annotated[
        Optional[int], typer.Option("--seed", help="Random seed for a repeatable quiz")
    ] = None,
) -> None:
    """Run an interactive multiple-choice quiz."""
    workspace = open_workspace(ctx)
    rng = random.Random(seed)
    try:
        records = workspace.store.get_all()
        plan = plan_session(
            mode,
            workspace.scheduler,
            count or workspace.settings.quiz.default_count,
            rng=rng,
            records=records,
        )
    except RouteRecallError as e:
        fail(e)

    if not plan.available:
        console.print(f"[yellow]{plan.unavailable_reason}[/yellow]")
        return

    builder = QuizBuilder(rng, workspace.settings.quiz.placeholder_label)
    session = QuizSession(builder.build_questions(plan.records, records), workspace.scheduler)
    total = len(session.questions)

    try:
        while not session.finished:
            question = session.current
            number = total - session.remaining + 1
            console.print(f"\n[bold]{number}/{total}[/bold]  [cyan]{question.record.street_name}[/cyan]")
            for i, option in enumerate(question.options, 1):
                console.print(f"  {i}. {option}")

            choice = typer.prompt("Zone", type=int)
            while not 1 <= choice <= len(question.options):
                choice = typer.prompt(f"Pick 1-{len(question.options)}", type=int)

            if session.answer(question.options[choice - 1]):
                console.print("[green]Correct[/green]")
            else:
                console.print(f"[red]Wrong[/red], it's [bold]{question.correct_answer}[/bold]")
    except RouteRecallError as e:
        fail(e)

    result = session.result()
    console.print(
        Panel(
            f"Score: {result.correct}/{result.total} ({result.percentage}%)",
            title="Quiz Complete",
        )
    )
    if result.wrong_records:
        console.print("[bold]Review these:[/bold]")
        for record in result.wrong_records:
            console.print(f"  {record.street_name} -> {record.route_area}")


if __name__ == "__main__":
    app()
