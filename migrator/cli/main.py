"""CLI entry point for the Couchbase migrator."""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from migrator.config import ConfigurationError, get_settings, validate_config
from migrator.exceptions import SourceDirectoryNotFoundError
from migrator.logging_config import configure_logging

app = typer.Typer(
    name="migrator",
    help="Couchbase migrator - move cached users and playlists into Core",
    add_completion=False,
)

console = Console()


class PipelineChoice(str, Enum):
    USERS = "users"
    PLAYLISTS = "playlists"
    ALL = "all"


def run_async(coro):
    """Helper to run async code from sync CLI."""
    return asyncio.run(coro)


def _setup_logging(debug: bool) -> None:
    # Keep the progress bar readable unless debugging
    configure_logging("DEBUG" if debug or get_settings().debug else "WARNING")


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def _display_summary(summary, dry_run: bool) -> None:
    """Helper to display an ingestion summary."""
    title = f"{summary.category.title()} Ingestion Summary"
    if dry_run:
        title += " (dry run)"

    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")

    table.add_row("Total Files", str(summary.total_files))
    table.add_row("Succeeded", str(summary.success_count))
    table.add_row("Skipped", str(summary.skipped_count))
    for reason, count in sorted(summary.skipped_by_reason.items()):
        table.add_row(f"  {reason}", str(count))
    table.add_row(
        "Errors",
        str(summary.error_count),
        style="red" if summary.error_count else None,
    )
    console.print(table)

    analysis = summary.analysis
    if analysis is None:
        return

    items = Table(title="Playlist Items")
    items.add_column("Metric", style="cyan")
    items.add_column("Value", style="green", justify="right")
    items.add_row("Total Items", str(analysis.total_items))
    items.add_row("Saved", str(analysis.saved_items))
    items.add_row("Skipped (missing catalog entry)", str(analysis.skipped_items))
    items.add_row("Not Processed (owner missing)", str(analysis.not_processed_items))
    items.add_row("Unique Missing Video Variants", str(analysis.video_variants_not_found))
    items.add_row("Unique Media Components", str(analysis.unique_media_components))
    items.add_row("Average Items per Playlist", f"{analysis.average_items_per_playlist:.1f}")
    console.print(items)

    top = analysis.top_languages(5)
    if top:
        console.print("\n[bold]Top Languages[/bold]")
        for language_id, count in top:
            console.print(f"  {language_id}: {count} items")


@app.command("build-cache")
def build_cache(
    debug: bool = typer.Option(False, "--debug", help="Verbose logging instead of a progress bar"),
):
    """Extract every JSON document from Couchbase into the local cache."""
    from migrator.cache.source import CouchbaseDocumentSource
    from migrator.cache.writer import CacheWriter
    from migrator.services.cache_builder import CacheBuilder

    _setup_logging(debug)
    settings = get_settings()

    async def _build():
        source = CouchbaseDocumentSource(settings)
        builder = CacheBuilder(
            source,
            CacheWriter(settings.cache_dir),
            page_size=settings.couchbase_page_size,
        )
        try:
            with _progress() as progress:
                task = progress.add_task("Building cache...", total=None)

                def _update(seen: int, total: int) -> None:
                    progress.update(task, completed=seen, total=total)

                return await builder.run(progress=_update)
        finally:
            await source.close()

    summary = run_async(_build())

    table = Table(title="Cache Build Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Pages", str(summary.pages))
    table.add_row("Documents Written", str(summary.written))
    table.add_row("Already Cached", str(summary.already_cached))
    table.add_row("Attachments Skipped", str(summary.attachments_skipped))
    if summary.failed:
        table.add_row("Failed", str(summary.failed), style="red")
    console.print(table)


@app.command()
def ingest(
    source_dir: Optional[Path] = typer.Option(
        None,
        "--source-dir", "-s",
        help="Cache directory to ingest from",
    ),
    pipeline: PipelineChoice = typer.Option(
        PipelineChoice.ALL,
        "--pipeline", "-p",
        help="Which documents to ingest",
    ),
    file: Optional[str] = typer.Option(
        None,
        "--file", "-f",
        help="Ingest a single cached file (requires a specific pipeline)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate and look up without writing",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency", "-c",
        min=1,
        help="Files processed concurrently per batch (default: INGEST_CONCURRENCY)",
    ),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging instead of a progress bar"),
):
    """Ingest cached users and/or playlists into Core."""
    from migrator.clients import open_clients
    from migrator.database import init_db
    from migrator.services.orchestrator import BatchOrchestrator, RunOptions

    if file and pipeline == PipelineChoice.ALL:
        console.print("[red]Error: --file requires --pipeline users or --pipeline playlists[/red]")
        raise typer.Exit(1)

    _setup_logging(debug)
    settings = get_settings()
    source_dir = source_dir or Path(settings.cache_dir)

    categories = (
        ["users", "playlists"] if pipeline == PipelineChoice.ALL else [pipeline.value]
    )

    try:
        validate_config(settings, categories, strict=True)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    options = RunOptions(
        dry_run=dry_run,
        concurrency=concurrency or settings.ingest_concurrency,
        single_file=file,
    )

    async def _ingest():
        needs_identity = "users" in categories
        async with open_clients(
            settings,
            with_directory=needs_identity,
            with_auth=needs_identity,
        ) as clients:
            await init_db(clients.stores.local_engine)

            for category in categories:
                with _progress() as progress:
                    task = progress.add_task(f"Ingesting {category}...", total=None)

                    def _start(total: int) -> None:
                        progress.update(task, total=total)

                    def _advance(done: int, total: int, outcome) -> None:
                        progress.update(task, completed=done)

                    orchestrator = BatchOrchestrator(clients, on_progress=_advance, on_start=_start)
                    summary = await orchestrator.run(category, source_dir, options)

                if summary is None:
                    if file:
                        console.print(f"[yellow]File {file} not found for {category}.[/yellow]")
                    else:
                        console.print(f"[yellow]No {category} files found in {source_dir}.[/yellow]")
                    continue

                _display_summary(summary, dry_run)
                if summary.error_count:
                    console.print(
                        f"  Error details: {source_dir / 'errors'}"
                    )

    try:
        run_async(_ingest())
    except SourceDirectoryNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command("reset-auth")
def reset_auth(
    source_dir: Optional[Path] = typer.Option(
        None,
        "--source-dir", "-s",
        help="Cache directory whose users are deleted",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
):
    """Delete the auth accounts of every cached user. Never run against production."""
    from migrator.clients import open_clients
    from migrator.services.reset import AuthResetService

    _setup_logging(debug)
    settings = get_settings()
    source_dir = source_dir or Path(settings.cache_dir)

    if not yes:
        typer.confirm(
            f"This deletes every auth account whose email appears in {source_dir / 'u'}. Continue?",
            abort=True,
        )

    if not settings.google_application_json:
        console.print("[red]Error: GOOGLE_APPLICATION_JSON is not configured[/red]")
        raise typer.Exit(1)

    async def _reset():
        async with open_clients(settings, with_auth=True) as clients:
            service = AuthResetService(clients.auth)
            with _progress() as progress:
                task = progress.add_task("Deleting auth accounts...", total=None)

                def _update(done: int, total: int) -> None:
                    progress.update(task, completed=done, total=total)

                return await service.run(source_dir, progress=_update)

    try:
        summary = run_async(_reset())
    except SourceDirectoryNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print("\n[green]✓ Reset complete[/green]")
    console.print(f"  Emails in cache: {summary.emails}")
    console.print(f"  Accounts found: {summary.found}")
    console.print(f"  Not found: {summary.not_found}")
    console.print(f"  Deleted: {summary.deleted}")
    if summary.errors:
        console.print(f"  [red]Lookup errors: {summary.errors}[/red] (see {source_dir / 'errors' / 'authDelete'})")


@app.command("reconcile-items")
def reconcile_items(
    source_dir: Optional[Path] = typer.Option(
        None,
        "--source-dir", "-s",
        help="Cache directory holding the last playlist run's errors",
    ),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
):
    """Retry playlist items skipped for a missing catalog entry."""
    from migrator.clients import open_clients
    from migrator.services.recovery import PlaylistItemRecovery

    _setup_logging(debug)
    settings = get_settings()
    source_dir = source_dir or Path(settings.cache_dir)

    async def _recover():
        async with open_clients(settings) as clients:
            return await PlaylistItemRecovery(clients).run(source_dir)

    try:
        summary = run_async(_recover())
    except SourceDirectoryNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Playlist Item Recovery")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Skipped Items", str(summary.total))
    table.add_row("Recovered", str(summary.recovered))
    table.add_row("Still Missing", str(summary.still_missing))
    table.add_row("Playlist Missing", str(summary.playlist_missing))
    if summary.unreadable:
        table.add_row("Unreadable", str(summary.unreadable), style="red")
    console.print(table)


@app.command()
def runs(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of runs to show"),
    category: Optional[str] = typer.Option(None, "--category", help="Filter by category"),
):
    """List recent ingestion runs."""
    from migrator.database import create_engine, create_session_maker, init_db
    from migrator.repositories import IngestionRunRepository

    settings = get_settings()

    async def _list():
        engine = create_engine(settings.local_database_url, settings)
        try:
            await init_db(engine)
            async with create_session_maker(engine)() as session:
                return await IngestionRunRepository(session).get_recent(limit=limit, category=category)
        finally:
            await engine.dispose()

    recent = run_async(_list())

    if not recent:
        console.print("[yellow]No ingestion runs found.[/yellow]")
        return

    table = Table(title=f"Ingestion Runs ({len(recent)} shown)")
    table.add_column("Started", style="dim")
    table.add_column("Category", style="cyan")
    table.add_column("Status")
    table.add_column("Dry Run")
    table.add_column("Files", justify="right")
    table.add_column("OK", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Duration", justify="right")

    for run in recent:
        stats = run.stats or {}
        if run.is_complete:
            status_style = "green"
        elif run.is_failed:
            status_style = "red"
        else:
            status_style = "yellow"
        table.add_row(
            run.started_at.strftime("%Y-%m-%d %H:%M:%S") if run.started_at else "-",
            run.category,
            f"[{status_style}]{run.status}[/{status_style}]",
            "yes" if run.dry_run else "no",
            str(stats.get("total_files", "-")),
            str(stats.get("success_count", "-")),
            str(stats.get("skipped_count", "-")),
            str(stats.get("error_count", "-")),
            f"{run.duration_seconds:.1f}s" if run.duration_seconds is not None else "-",
        )

    console.print(table)


@app.command("init-db")
def init_db_command():
    """Create the local mapping store tables."""
    from migrator.database import create_engine, init_db

    settings = get_settings()

    async def _init():
        engine = create_engine(settings.local_database_url, settings)
        try:
            await init_db(engine)
        finally:
            await engine.dispose()

    run_async(_init())
    console.print("[green]✓ Local mapping store initialized[/green]")


if __name__ == "__main__":
    app()
