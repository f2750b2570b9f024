"""`eventtail tail` command.

Examples:
    eventtail tail --live                          # WebSocket streaming
    eventtail tail --follow                        # HTTP polling
    eventtail tail --since 1h                      # last hour, one shot
    eventtail tail --source "mdxe-*" -i high       # filtered
    eventtail tail --json | jq .type               # one JSON object per line
"""

import asyncio
from datetime import datetime
from typing import Optional

import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.markup import escape

from ..config import TailSettings, to_websocket_url
from ..historical import HistoricalQuery, HistoricalTailPoller, fetch_historical_events
from ..live import Disconnected, TailClient
from ..logging_config import get_logger, setup_logging
from ..models import EventFilter
from .output import EventPrinter, build_filter, parse_time

logger = get_logger(__name__)

FOLLOW_POLL_INTERVAL_MS = 2000

app = typer.Typer(
    name="eventtail",
    help="Watch build, test and deployment events live or replay them.",
    no_args_is_help=True,
)

console = Console(soft_wrap=True)
err_console = Console(stderr=True)


@app.callback()
def main_callback() -> None:
    """Tail build, test and deployment events."""


async def run_historical(
    url: str,
    event_filter: EventFilter | None,
    since: datetime | None,
    until: datetime | None,
    limit: int | None,
    printer: EventPrinter,
    verbose: bool = False,
) -> None:
    """Fetch one page of history and print it."""
    if verbose:
        err_console.print(f"[dim]Fetching historical events from {url}...[/dim]")

    page = await fetch_historical_events(
        HistoricalQuery(
            base_url=url,
            since=since,
            until=until,
            limit=limit,
            filter=event_filter,
        )
    )
    printer.print_many(page.events)

    if verbose:
        err_console.print(f"[dim]Fetched {len(page.events)} event(s)[/dim]")
        if page.has_more:
            err_console.print("[yellow]More events available. Use --limit to fetch more.[/yellow]")


async def run_follow(
    url: str,
    event_filter: EventFilter | None,
    printer: EventPrinter,
    verbose: bool = False,
) -> None:
    """Poll the history endpoint until cancelled."""
    if verbose:
        err_console.print(f"[dim]Polling {url}...[/dim]")

    def on_error(error: Exception) -> None:
        err_console.print(f"[red]Polling error:[/red] {escape(str(error))}")

    poller = HistoricalTailPoller(
        base_url=url,
        filter=event_filter,
        on_events=printer.print_many,
        on_error=on_error,
        poll_interval_ms=FOLLOW_POLL_INTERVAL_MS,
    )
    poller.start()
    try:
        await asyncio.Event().wait()
    finally:
        if verbose:
            err_console.print("\n[dim]Stopping poller...[/dim]")
        poller.stop()


async def run_live(
    url: str,
    event_filter: EventFilter | None,
    printer: EventPrinter,
    verbose: bool = False,
) -> None:
    """Stream events over WebSocket until cancelled or closed normally."""
    ws_url = to_websocket_url(url)
    if verbose:
        err_console.print(f"[dim]Connecting to {ws_url} (WebSocket)...[/dim]")

    done = asyncio.Event()

    def on_connect() -> None:
        if verbose:
            err_console.print("[dim]Connected. Streaming events...[/dim]")

    def on_disconnect() -> None:
        if verbose:
            err_console.print("[dim]Disconnected.[/dim]")
        if isinstance(client.state, Disconnected):
            done.set()

    def on_error(error: Exception) -> None:
        err_console.print(f"[red]Error:[/red] {escape(str(error))}")

    client = TailClient(
        url=ws_url,
        filter=event_filter,
        on_event=printer.print,
        on_connect=on_connect,
        on_disconnect=on_disconnect,
        on_error=on_error,
        reconnect=True,
    )
    client.connect()
    try:
        await done.wait()
    finally:
        if verbose:
            err_console.print("\n[dim]Disconnecting...[/dim]")
        client.disconnect()
        await client.wait_closed()


@app.command("tail")
def tail_cmd(
    live: bool = typer.Option(False, "--live", help="Stream events over WebSocket"),
    follow: bool = typer.Option(False, "--follow", "-f", help="Poll for new events over HTTP"),
    source: Optional[str] = typer.Option(None, "--source", help="Source name or glob, e.g. 'mdxe-*'"),
    event_type: Optional[str] = typer.Option(None, "--type", help="Exact event type"),
    importance: Optional[str] = typer.Option(
        None, "--importance", "-i", help="Minimum importance: low, normal, high, critical"
    ),
    since: Optional[str] = typer.Option(None, "--since", help="Start time: ISO-8601 or relative (1h, 30m)"),
    until: Optional[str] = typer.Option(None, "--until", help="End time: ISO-8601 or relative"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of events"),
    json_output: bool = typer.Option(False, "--json", help="One JSON object per line"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
    url: Optional[str] = typer.Option(None, "--url", help="Tail API URL (default: $EVENTTAIL_URL)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print connection details"),
) -> None:
    """Show events from the tail API."""
    settings = TailSettings.from_env()
    setup_logging(
        log_level="INFO" if verbose else settings.log_level,
        log_file=settings.log_file,
    )

    tail_url = url or settings.tail_url
    event_filter = build_filter(source, event_type, importance)
    printer = EventPrinter(console, json_output=json_output, no_color=no_color)

    if not json_output:
        err_console.print("[bold]eventtail tail[/bold]\n")

    try:
        if live:
            asyncio.run(run_live(tail_url, event_filter, printer, verbose))
        elif follow:
            asyncio.run(run_follow(tail_url, event_filter, printer, verbose))
        else:
            asyncio.run(
                run_historical(
                    tail_url,
                    event_filter,
                    since=parse_time(since) if since else None,
                    until=parse_time(until) if until else None,
                    limit=limit,
                    printer=printer,
                    verbose=verbose,
                )
            )
    except KeyboardInterrupt:
        return
    except Exception as exc:
        logger.error("Tail failed: %s", exc, exc_info=True)
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)


def main() -> None:
    """Console script entry point; reads .env from the working directory."""
    load_dotenv(find_dotenv(usecwd=True))
    app()
