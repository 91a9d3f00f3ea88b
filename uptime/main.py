"""Entry point for the uptime monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from uptime.config import settings
from uptime.health.aggregator import UptimeAggregator
from uptime.health.errors import UptimeError
from uptime.health.incidents import IncidentExtractor
from uptime.health.models import UNREACHABLE, BucketPoint
from uptime.health.scheduler import SweepScheduler
from uptime.storage.endpoints import EndpointRegistry
from uptime.storage.samples import SampleStore

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server (the sweep scheduler runs inside it)."""
    console.print(Panel("Starting Uptime Monitor API Server", style="bold green"))
    uvicorn.run(
        "uptime.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_sweep_once() -> int:
    """Probe every registered endpoint once and record the samples."""
    registry = EndpointRegistry(settings.db_path)
    registry.load_seed_file(settings.endpoints_file)
    scheduler = SweepScheduler(
        registry,
        SampleStore(settings.db_path),
        interval_seconds=settings.poll_interval_seconds,
        timeout_ms=settings.probe_timeout_ms,
        max_workers=settings.probe_workers,
    )

    async def _once():
        try:
            return await scheduler.run_sweep()
        finally:
            await scheduler.stop()

    with console.status("[bold green]Sweeping endpoints..."):
        report = asyncio.run(_once())

    console.print(
        f"[bold]{report.endpoints}[/bold] endpoints, "
        f"[green]{report.recorded} recorded[/green], "
        f"[yellow]{report.unreachable} unreachable[/yellow], "
        f"[red]{report.write_failures} write failures[/red] "
        f"[dim]({report.duration_s:.2f}s)[/dim]"
    )
    for err in report.errors:
        console.print(f"[red]  {err}[/red]")
    return 1 if report.errors else 0


def _series_table(title: str, series: list[BucketPoint], fmt: str) -> Table:
    table = Table(title=title)
    table.add_column("Bucket (UTC)")
    table.add_column("Uptime", justify="right")
    for p in series:
        if p.uptime_pct is None:
            pct = "[dim]no data[/dim]"
        elif p.uptime_pct == 100:
            pct = "[green]100%[/green]"
        else:
            pct = f"[red]{p.uptime_pct}%[/red]"
        table.add_row(p.time.strftime(fmt), pct)
    return table


def run_report(alias: str, window: str) -> int:
    """Print the uptime series and incidents for one endpoint."""
    registry = EndpointRegistry(settings.db_path)
    try:
        endpoint = registry.get(alias)
    except UptimeError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    if not endpoint:
        console.print(f"[red]Endpoint not found: {alias}[/red]")
        return 1

    store = SampleStore(settings.db_path)
    aggregator = UptimeAggregator(
        store,
        hourly_buckets=settings.hourly_buckets,
        daily_buckets=settings.daily_buckets,
    )
    try:
        w = aggregator.window(window)
        series = aggregator.series(alias, w)
        incidents = IncidentExtractor(store).incidents(alias)
        recent = store.history(alias, limit=1)
    except (UptimeError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        return 1

    console.print(Panel(f"{endpoint.alias}  {endpoint.url}", style="bold blue"))
    if recent:
        last = recent[0]
        state = "[green]up[/green]" if last.ok else f"[red]down ({last.status_code})[/red]"
        console.print(f"Last check: {last.observed_at.isoformat()} {state}")
    else:
        console.print("[dim]No checks recorded yet[/dim]")
    fmt = "%Y-%m-%d %H:00" if w.name == "hourly" else "%Y-%m-%d"
    console.print(_series_table(f"{w.name.capitalize()} uptime", series, fmt))

    console.print(f"\n[bold]Incidents:[/bold] {len(incidents)}")
    for i in incidents[-20:]:
        status = "unreachable" if i.status_code == UNREACHABLE else str(i.status_code)
        console.print(f"  {i.time.isoformat()}  {status}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Uptime Monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server + sweep scheduler")
    sub.add_parser("sweep", help="Run a single sweep and exit")

    report_parser = sub.add_parser("report", help="Show uptime + incidents for an endpoint")
    report_parser.add_argument("alias", help="Endpoint alias")
    report_parser.add_argument(
        "--window", choices=("hourly", "daily"), default="hourly", help="Bucket granularity",
    )

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "sweep":
        sys.exit(run_sweep_once())
    elif args.command == "report":
        sys.exit(run_report(args.alias, args.window))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
