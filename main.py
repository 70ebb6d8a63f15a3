#!/usr/bin/env python3
"""
FeedTape - Feed Content Pipeline
================================

Command line entry point for running and inspecting the content pipeline.

Usage:
    python main.py --help                          # Show all commands
    python main.py check-config                    # Show effective configuration
    python main.py run --feed URL [--feed URL]     # Process feeds and show their states
    python main.py run --feeds-file feeds.json     # Process feeds listed in a JSON file
    python main.py run --from-api                  # Process the feeds served by the backend
    python main.py clean article.html              # Print speech-ready text for an HTML file
"""

import sys
import json
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedtape.config.settings import get_settings
from feedtape.events import FeedStateChanged, PipelineEvent
from feedtape.ingestion.content_cleaner import clean_html_text
from feedtape.ingestion.fetcher import DocumentFetcher
from feedtape.models import EntryStatus, Feed, FeedStatus
from feedtape.processing.pipeline import ContentPipeline
from feedtape.services.feed_directory import ApiFeedDirectory, FeedDirectory, StaticFeedDirectory
from feedtape.services.read_status import ReadStatusStore
from feedtape.utils.logging import configure_application_logging
from feedtape.utils.exceptions import FeedTapeError, get_user_friendly_message

console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    FeedStatus.IDLE: "dim",
    FeedStatus.FETCHING: "yellow",
    FeedStatus.PROCESSING: "cyan",
    FeedStatus.READY: "green",
    FeedStatus.ERROR: "red",
}


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """FeedTape - feed ingestion and speech content pipeline."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        # Show help if no subcommand provided
        click.echo(ctx.get_help())
        return

    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
    )


@cli.command()
def check_config():
    """Show the effective configuration."""
    console.print("[bold blue]🔧 FeedTape Configuration[/bold blue]")

    try:
        settings = get_settings()
    except FeedTapeError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Effective Settings")
    table.add_column("Section", style="cyan")
    table.add_column("Setting")
    table.add_column("Value", style="green")

    for section in ("pipeline", "limits", "api", "logging"):
        for key, value in getattr(settings, section).model_dump().items():
            if key == "access_token" and value:
                value = "***"
            table.add_row(section, key, str(value))
    table.add_row("app", "debug", str(settings.debug))

    console.print(table)
    console.print("[bold green]✅ Configuration is valid[/bold green]")


@cli.command()
@click.option('--feed', 'feed_urls', multiple=True, help='Feed URL to process (repeatable)')
@click.option('--feeds-file', type=click.Path(exists=True, dir_okay=False),
              help='JSON file with a list of {"id", "url", "title"} objects')
@click.option('--from-api', is_flag=True, help='Load the feed list from the configured backend')
@click.option('--read-status', type=click.Path(dir_okay=False),
              help='Read status JSON file used to mark consumed entries')
@click.option('--show-entries', is_flag=True, help='List every entry after processing')
def run(feed_urls, feeds_file, from_api, read_status, show_entries):
    """Fetch, parse and clean feeds, then report per-feed results."""
    sources = sum(bool(source) for source in (feed_urls, feeds_file, from_api))
    if sources != 1:
        console.print("[bold red]❌ Use exactly one of --feed, --feeds-file or --from-api[/bold red]")
        sys.exit(2)

    try:
        directory = _build_directory(list(feed_urls), feeds_file, from_api)
        read_store = ReadStatusStore(read_status) if read_status else None
        asyncio.run(_run_pipeline(directory, read_store, show_entries))
    except FeedTapeError as e:
        console.print(f"[bold red]❌ {get_user_friendly_message(e)}[/bold red]")
        logger.debug("Pipeline run failed", exc_info=True)
        sys.exit(1)


@cli.command()
@click.argument('html_file', type=click.Path(exists=True, dir_okay=False))
def clean(html_file):
    """Print the speech-ready text for an HTML file."""
    raw_html = Path(html_file).read_text(encoding="utf-8", errors="replace")
    cleaned = clean_html_text(raw_html)

    if cleaned is None:
        console.print("[bold red]❌ Content rejected (too large or too short after cleaning)[/bold red]")
        sys.exit(1)

    console.print(cleaned)


def _build_directory(feed_urls: List[str], feeds_file: Optional[str], from_api: bool) -> FeedDirectory:
    if from_api:
        return ApiFeedDirectory()
    if feeds_file:
        with open(feeds_file, "r", encoding="utf-8") as f:
            data = json.load(f)
        return StaticFeedDirectory(Feed.model_validate(item) for item in data)
    return StaticFeedDirectory.from_urls(feed_urls)


async def _run_pipeline(directory: FeedDirectory, read_store: Optional[ReadStatusStore],
                        show_entries: bool) -> None:
    settings = get_settings()
    fetcher = DocumentFetcher(token_provider=lambda: settings.api.access_token)
    pipeline = ContentPipeline(directory, fetcher, read_status=read_store)

    def report(event: PipelineEvent) -> None:
        if isinstance(event, FeedStateChanged) and event.state.status.is_terminal:
            style = STATUS_STYLES[event.state.status]
            console.print(f"  [{style}]{event.state.status.value}[/{style}] {event.state.feed_id}")

    unsubscribe = pipeline.subscribe(report)
    try:
        console.print("[bold blue]📡 Processing feeds[/bold blue]")
        await pipeline.initialize_feeds()
        await pipeline.wait_for_completion()
    finally:
        unsubscribe()
        await pipeline.aclose()

    _print_feed_table(pipeline)
    if show_entries:
        _print_entries(pipeline)


def _print_feed_table(pipeline: ContentPipeline) -> None:
    table = Table(title="Feed Results")
    table.add_column("Feed", style="cyan")
    table.add_column("Status")
    table.add_column("Entries", justify="right")
    table.add_column("Cleaned", justify="right")
    table.add_column("Error")

    for feed in pipeline.feeds:
        state = pipeline.get_feed_state(feed.id)
        if state is None:
            continue
        counts = pipeline.entry_store.count_by_status(feed.id)
        style = STATUS_STYLES[state.status]
        table.add_row(
            feed.title or feed.id,
            f"[{style}]{state.status.value}[/{style}]",
            str(sum(counts.values())),
            str(counts[EntryStatus.CLEANED]),
            state.error or "",
        )

    console.print(table)


def _print_entries(pipeline: ContentPipeline) -> None:
    for feed in pipeline.feeds:
        entries = pipeline.get_entries_by_feed(feed.id)
        if not entries:
            continue
        console.print(f"\n[bold]{feed.title or feed.id}[/bold]")
        for entry in entries:
            marker = "✓" if pipeline.is_consumed(entry.link) else " "
            length = len(entry.cleaned_content) if entry.cleaned_content else 0
            detail = f"{length} chars" if entry.cleaned_content else (entry.error or entry.status.value)
            console.print(f"  {marker} {entry.title or entry.link} [dim]({detail})[/dim]")


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedTape interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
