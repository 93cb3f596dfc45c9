#!/usr/bin/env python3
"""
NewsArena - News Aggregation Backend
====================================

Main application entry point with CLI interface for management and testing.

Usage:
    python main.py --help                     # Show all commands
    python main.py check-config               # Validate configuration
    python main.py init-db                    # Initialize database
    python main.py add-source NAME FEED_URL   # Register a news source
    python main.py list-sources               # Show registered sources
    python main.py feed-info URL              # Fetch and inspect a feed
    python main.py ingest                     # Ingest all active sources once
    python main.py logs                       # Show recent ingestion runs
    python main.py run-scheduler              # Run recurring ingestion
"""

import sys
import asyncio
import logging
import signal
from pathlib import Path
from typing import List

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from newsarena.config.settings import NewsArenaSettings, get_settings
from newsarena.database.connection import DatabaseConnection
from newsarena.database.models import IngestionResult
from newsarena.database.schema import DatabaseSchema
from newsarena.ingestion.feed_fetcher import FeedFetcher
from newsarena.ingestion.feed_parser import FeedParser
from newsarena.ingestion.orchestrator import IngestionService
from newsarena.scheduler.ingestion_scheduler import SchedulerManager, create_default_scheduler
from newsarena.storage.table_store import SQLiteTableStore
from newsarena.utils.exceptions import NewsArenaError, SourceNotFoundError, get_user_friendly_message
from newsarena.utils.logging import configure_application_logging

console = Console()
logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """NewsArena - RSS ingestion for news aggregation."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        # Show help if no subcommand provided
        click.echo(ctx.get_help())


def _load(ctx) -> NewsArenaSettings:
    """Load settings and configure logging for a command."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _open_database(settings: NewsArenaSettings) -> DatabaseConnection:
    return DatabaseConnection(settings.database.path, settings.database.pool_size)


def _build_service(settings: NewsArenaSettings) -> IngestionService:
    return IngestionService(SQLiteTableStore(_open_database(settings)), settings=settings)


def _fail(message: str) -> None:
    console.print(f"[bold red]❌ {message}[/bold red]")
    sys.exit(1)


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking NewsArena Configuration[/bold blue]")

    try:
        settings = get_settings()
    except NewsArenaError as e:
        _fail(f"Configuration error: {e.message}")
        return

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Details")

    table.add_row("Database", f"Path: {settings.database.path}, pool: {settings.database.pool_size}")
    table.add_row(
        "Logging",
        f"Level: {settings.get_effective_log_level()}, file: {settings.logging.file_path or 'disabled'}",
    )
    table.add_row(
        "Fetching",
        f"Timeout: {settings.ingestion.request_timeout}s, attempts: {settings.ingestion.max_fetch_attempts}",
    )
    table.add_row(
        "Scheduler",
        f"Every {settings.scheduler.interval_minutes} min, {settings.scheduler.max_retries} retries "
        f"after {settings.scheduler.retry_delay_minutes} min",
    )
    table.add_row("User-Agent", settings.user_agent)

    console.print(table)
    console.print("[bold green]✅ All configuration checks passed![/bold green]")


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing NewsArena Database[/bold blue]")

    try:
        settings = _load(ctx)
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            _fail("Database schema verification failed")
            return

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

        db = _open_database(settings)
        info = db.get_database_info()
        db.close_all_connections()

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")

        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info['table_counts'].items():
            info_table.add_row(table_name, f"{count} rows")

        console.print(info_table)

    except NewsArenaError as e:
        _fail(f"Database initialization error: {e.message}")


@cli.command()
@click.argument('name')
@click.argument('feed_url')
@click.option('--site-url', help='Publisher homepage URL')
@click.option('--logo-url', help='Publisher logo URL')
@click.option('--inactive', is_flag=True, help='Register the source disabled')
@click.pass_context
def add_source(ctx, name, feed_url, site_url, logo_url, inactive):
    """Register a news source."""
    try:
        settings = _load(ctx)
        service = _build_service(settings)
        source = service.sources.create_source(
            name=name,
            feed_url=feed_url,
            site_url=site_url,
            logo_url=logo_url,
            is_active=not inactive,
        )
    except NewsArenaError as e:
        _fail(get_user_friendly_message(e))
        return

    console.print(f"[bold green]✅ Added source {source.name}[/bold green] ({source.id})")


@cli.command()
@click.option('--active-only', is_flag=True, help='Only show active sources')
@click.pass_context
def list_sources(ctx, active_only):
    """Show registered news sources."""
    try:
        settings = _load(ctx)
        service = _build_service(settings)
        sources = (
            service.sources.get_active_sources() if active_only else service.sources.get_all_sources()
        )
    except NewsArenaError as e:
        _fail(f"Error listing sources: {e.message}")
        return

    if not sources:
        console.print("[yellow]⚠️ No sources found in database[/yellow]")
        return

    table = Table(title="News Sources")
    table.add_column("Status", style="green")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Feed URL", style="blue")

    for source in sources:
        url = source.feed_url or "-"
        table.add_row(
            "🟢" if source.is_active else "⚪",
            source.id,
            source.name,
            url[:47] + "..." if len(url) > 50 else url,
        )

    console.print(table)


@cli.command()
@click.argument('source_id')
@click.option('--enable/--disable', default=True, help='Enable or disable the source')
@click.pass_context
def set_source_active(ctx, source_id, enable):
    """Enable or disable a news source."""
    try:
        settings = _load(ctx)
        service = _build_service(settings)
        if not service.sources.set_active(source_id, enable):
            raise SourceNotFoundError(source_id)
    except NewsArenaError as e:
        _fail(get_user_friendly_message(e))
        return

    console.print(f"[bold green]✅ Source {source_id} {'enabled' if enable else 'disabled'}[/bold green]")


@cli.command()
@click.argument('url')
@click.option('--samples', default=3, show_default=True, help='Number of sample items to show')
@click.pass_context
def feed_info(ctx, url, samples):
    """Fetch a feed and show its metadata without storing anything."""
    console.print(f"[bold blue]📡 Fetching RSS Feed: {url}[/bold blue]")

    async def run_fetch():
        settings = _load(ctx)
        text = await FeedFetcher(settings=settings).fetch(url)
        return FeedParser().parse_feed(text, url)

    try:
        parsed = asyncio.run(run_fetch())
    except NewsArenaError as e:
        _fail(f"Feed fetch error: {e.message}")
        return

    info_table = Table(title="Feed Information")
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")

    description = parsed.metadata.description or "None"
    if len(description) > 100:
        description = description[:97] + "..."

    info_table.add_row("Format", parsed.format)
    info_table.add_row("Title", parsed.metadata.title or "Unknown")
    info_table.add_row("Description", description)
    info_table.add_row("Link", parsed.metadata.link or "-")
    info_table.add_row("Language", parsed.metadata.language or "-")
    info_table.add_row("Items Found", str(len(parsed.items)))
    console.print(info_table)

    for i, item in enumerate(parsed.items[:samples], 1):
        console.print(f"\n{i}. [bold]{item.title}[/bold]")
        console.print(f"   📅 Published: {item.pub_date or item.iso_date or 'No date'}")
        console.print(f"   🔗 Link: {item.link}")


def _print_results(results: List[IngestionResult]) -> None:
    results_table = Table(title="Ingestion Results")
    results_table.add_column("Source", style="cyan")
    results_table.add_column("Status", style="green")
    results_table.add_column("Fetched", style="yellow")
    results_table.add_column("Processed", style="yellow")
    results_table.add_column("Duplicates", style="yellow")
    results_table.add_column("Stored", style="yellow")
    results_table.add_column("Details")

    for result in results:
        details = "; ".join(result.errors) if result.errors else "OK"
        results_table.add_row(
            result.source_name,
            "✅ Success" if result.success else "❌ Failed",
            str(result.articles_fetched),
            str(result.articles_processed),
            str(result.articles_duplicates),
            str(result.articles_stored),
            details[:60] + "..." if len(details) > 60 else details,
        )

    console.print(results_table)

    summary = IngestionService.generate_summary(results)
    console.print(
        f"\n[bold blue]📊 Summary: {summary.successful} successful, {summary.failed} failed, "
        f"{summary.total_stored} stored[/bold blue]"
    )


@cli.command()
@click.option('--source-id', help='Ingest a single source by ID')
@click.pass_context
def ingest(ctx, source_id):
    """Run ingestion once for all active sources (or one source)."""
    console.print("[bold blue]🔄 Running ingestion[/bold blue]")

    async def run_ingestion():
        settings = _load(ctx)
        service = _build_service(settings)
        if source_id:
            return [await service.trigger_manual_ingestion(source_id)]
        return await service.ingest_from_all_sources()

    try:
        results = asyncio.run(run_ingestion())
    except NewsArenaError as e:
        _fail(f"Ingestion error: {e.message}")
        return

    if not results:
        console.print("[yellow]⚠️ No active sources with RSS URLs found[/yellow]")
        return

    _print_results(results)

    if any(not r.success for r in results):
        sys.exit(1)


@cli.command()
@click.option('--source-id', help='Only show runs for this source')
@click.option('--limit', default=20, show_default=True, help='Number of runs to show')
@click.pass_context
def logs(ctx, source_id, limit):
    """Show recent ingestion runs."""
    settings = _load(ctx)
    service = _build_service(settings)

    if source_id:
        entries = asyncio.run(service.get_ingestion_logs_by_source(source_id, limit))
    else:
        entries = asyncio.run(service.get_ingestion_logs(limit))

    if not entries:
        console.print("[yellow]⚠️ No ingestion logs found[/yellow]")
        return

    table = Table(title="Ingestion Logs")
    table.add_column("Started", style="dim")
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Fetched", style="yellow")
    table.add_column("Processed", style="yellow")
    table.add_column("Duplicates", style="yellow")
    table.add_column("Error", style="red")

    for entry in entries:
        table.add_row(
            entry.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.source_name,
            entry.status.value,
            str(entry.articles_fetched),
            str(entry.articles_processed),
            str(entry.articles_duplicates),
            entry.error_message or "",
        )

    console.print(table)


@cli.command()
@click.pass_context
def run_scheduler(ctx):
    """Run recurring ingestion until interrupted."""

    async def run_service():
        settings = _load(ctx)
        service = _build_service(settings)
        manager = SchedulerManager(lambda: create_default_scheduler(service, settings))

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        manager.start()
        console.print(
            f"[bold green]⏰ Scheduler running every {settings.scheduler.interval_minutes} minutes "
            f"(Ctrl+C to stop)[/bold green]"
        )

        await stop_event.wait()
        console.print("[yellow]Stopping scheduler, waiting for the current run...[/yellow]")
        await manager.shutdown()

    try:
        asyncio.run(run_service())
    except NewsArenaError as e:
        _fail(f"Scheduler error: {e.message}")


if __name__ == "__main__":
    cli()
