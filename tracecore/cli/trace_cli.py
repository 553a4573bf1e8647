#!/usr/bin/env python3
"""
Command-line client for the tracecore launcher daemon.

Usage:
    trace search "query"           - Rank candidates via the daemon
    trace query "query"            - Rank candidates in-process, no daemon
    trace select ID --kind command - Record a selection
    trace clear-usage              - Forget all usage history
    trace status                   - Check daemon status
    trace daemon start             - Start the daemon
    trace daemon stop              - Stop the daemon
"""

import asyncio
from pathlib import Path
from typing import Optional

import click
import httpx
from loguru import logger
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console()

DAEMON_URL = "http://localhost:8765"


@click.group()
def cli():
    """tracecore - query-time ranking for a command launcher."""


@cli.command()
@click.argument("query")
def search(query: str):
    """Rank candidates for QUERY using the running daemon."""
    asyncio.run(search_daemon(query))


async def search_daemon(query: str):
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console
        ) as progress:
            progress.add_task(description="Searching...", total=None)

            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{DAEMON_URL}/search",
                    params={"q": query},
                    timeout=5.0
                )

        if response.status_code == 200:
            data = response.json()
            if data.get("stale"):
                console.print("[yellow]Superseded by a newer query[/yellow]")
                return
            display_results(data)
        else:
            console.print(f"[red]Search failed:[/red] {response.text}")

    except httpx.ConnectError:
        console.print("[red]Cannot connect to daemon[/red]")
        console.print("Start with: [cyan]trace daemon start[/cyan]")
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] {e}")


@cli.command()
@click.argument("query")
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
def query(query: str, config: Optional[str]):
    """Rank candidates for QUERY in-process, without a daemon."""
    logger.remove()
    data = asyncio.run(search_local(query, config))
    display_results(data)


async def search_local(query: str, config_path: Optional[str] = None) -> dict:
    """Run one search round against locally built providers."""
    from ..daemon.automation import PlatformAutomation
    from ..daemon.catalog import ProgramCatalog
    from ..daemon.config import Config
    from ..daemon.providers.registry import build_providers
    from ..daemon.search import QueryDispatcher
    from ..daemon.usage import UsageTracker

    config = Config.load(Path(config_path) if config_path else None)
    usage = UsageTracker(config.usage_path, debounce_seconds=config.usage.debounce_seconds)
    await usage.initialize()

    catalog = ProgramCatalog()
    providers = build_providers(config, catalog, PlatformAutomation())
    dispatcher = QueryDispatcher.from_config(
        config, providers, usage, running_identifiers=catalog.running_identifiers)

    result = await dispatcher.search(query)
    return result.to_dict() if result else {"query": query, "results": []}


def display_results(data: dict):
    """Display ranked candidates in a table."""
    results = data.get("results", [])

    if not results:
        console.print("[yellow]No results found[/yellow]")
        return

    latency = data.get("latency_ms", {}).get("total", 0)
    table = Table(title=f"Results for '{data.get('query', '')}' ({latency:.1f}ms)")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="cyan", no_wrap=False)
    table.add_column("Kind", style="magenta")
    table.add_column("Score", justify="right")
    table.add_column("Identifier", style="dim", no_wrap=False)

    for i, r in enumerate(results, 1):
        title = r.get("title", "Untitled")
        if r.get("accessory") == "running":
            title += " [green]●[/green]"
        table.add_row(
            str(i),
            title,
            r.get("kind", "unknown"),
            f"{r.get('score', 0):.2f}",
            r.get("id", ""),
        )

    console.print(table)

    failed = data.get("failed_providers", [])
    if failed:
        console.print(f"[yellow]Providers without results:[/yellow] {', '.join(failed)}")


@cli.command()
@click.argument("identifier")
@click.option("--kind", "-k", type=click.Choice(["application", "command", "webSearch"]),
              default="application", help="Usage category")
def select(identifier: str, kind: str):
    """Record a selection of IDENTIFIER."""
    asyncio.run(record_selection(identifier, kind))


async def record_selection(identifier: str, kind: str):
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{DAEMON_URL}/select",
                json={"identifier": identifier, "kind": kind},
                timeout=5.0
            )

        if response.status_code == 200:
            record = response.json().get("record", {})
            console.print(f"[green]✓[/green] {identifier} used {record.get('count', '?')} times")
        else:
            console.print(f"[red]Failed to record selection:[/red] {response.text}")

    except httpx.ConnectError:
        console.print("[red]Cannot connect to daemon. Is it running?[/red]")
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] {e}")


@cli.command(name="clear-usage")
@click.confirmation_option(prompt="Forget all usage history?")
def clear_usage():
    """Forget all usage history."""
    asyncio.run(clear_usage_data())


async def clear_usage_data():
    try:
        async with httpx.AsyncClient() as client:
            response = await client.delete(f"{DAEMON_URL}/usage", timeout=5.0)

        if response.status_code == 200:
            console.print("[green]Usage history cleared[/green]")
        else:
            console.print(f"[red]Failed to clear usage:[/red] {response.text}")

    except httpx.ConnectError:
        console.print("[red]Cannot connect to daemon. Is it running?[/red]")
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] {e}")


@cli.command()
def status():
    """Check daemon status."""
    asyncio.run(check_status())


async def check_status():
    """Check if daemon is running and get stats."""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{DAEMON_URL}/status", timeout=2.0)

        if response.status_code != 200:
            console.print("[red]Daemon error[/red]")
            return

        data = response.json()
        console.print(f"[green]✓ Daemon is running[/green] (v{data.get('version', '?')})")

        stats = data.get("stats", {})
        console.print(f"\nUptime: {data.get('uptime', 'unknown')}")
        console.print(f"Searches: {stats.get('search_count', 0)}")
        console.print(f"Selections: {stats.get('selection_count', 0)}")
        console.print(f"Usage entries: {stats.get('usage_entries', 0)}")
        console.print(f"Memory: {stats.get('memory_mb', 0):.1f} MB")

        providers = data.get("search", {}).get("providers", {})
        if providers:
            table = Table(title="Providers")
            table.add_column("Name", style="cyan")
            table.add_column("State")
            table.add_column("Errors", justify="right")
            for name, health in providers.items():
                state = health.get("state", "unknown")
                color = {"healthy": "green", "degraded": "yellow"}.get(state, "red")
                table.add_row(name, f"[{color}]{state}[/{color}]", str(health.get("error_count", 0)))
            console.print(table)

    except httpx.ConnectError:
        console.print("[red]✗ Daemon is not running[/red]")
        console.print("Start with: [cyan]trace daemon start[/cyan]")
    except httpx.HTTPError as e:
        console.print(f"[red]Error checking status:[/red] {e}")


@cli.group()
def daemon():
    """Manage the tracecore daemon."""


@daemon.command()
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]))
def start(config: Optional[str], log_level: str):
    """Start the tracecore daemon."""
    console.print("[cyan]Starting tracecore daemon...[/cyan]")

    # Import here so client commands stay light
    from ..daemon.main import main as daemon_main

    try:
        asyncio.run(daemon_main(config, log_level))
    except KeyboardInterrupt:
        console.print("\n[yellow]Daemon stopped by user[/yellow]")


@daemon.command()
def stop():
    """Stop the tracecore daemon."""
    asyncio.run(stop_daemon())


async def stop_daemon():
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(f"{DAEMON_URL}/shutdown", timeout=5.0)

        if response.status_code == 200:
            console.print("[green]Daemon stopping[/green]")
        else:
            console.print(f"[red]Failed to stop daemon:[/red] {response.text}")

    except httpx.ConnectError:
        console.print("[yellow]Daemon not running[/yellow]")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
