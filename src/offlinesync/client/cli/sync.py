"""Sync commands for the offlinesync CLI.

Commands:
- sync: Run one manual sync cycle against the configured server
- stats: Show sync statistics
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime

import click

from offlinesync.client.cli.config import is_server_configured, open_engine
from offlinesync.client.sync.stats import SyncStats
from offlinesync.client.sync.types import SyncOutcome, SyncReport


@click.command()
def sync() -> None:
    """Push pending actions to the server."""
    if not is_server_configured():
        click.echo(
            "Error: No server configured. Run 'offlinesync config set-server' first.",
            err=True,
        )
        sys.exit(1)

    async def run() -> tuple[SyncReport, int]:
        async with open_engine(online=True) as engine:
            report = await engine.trigger_sync()
            return report, len(engine.get_pending_actions())

    report, pending = asyncio.run(run())

    if report.outcome == SyncOutcome.SKIPPED:
        click.echo(f"Sync skipped: {report.error}")
        return

    click.echo(
        f"Synced {report.succeeded}/{report.processed} action(s) "
        f"in {report.duration_ms}ms, {pending} pending"
    )
    if report.gave_up:
        click.echo(f"{report.gave_up} action(s) gave up; see 'offlinesync queue'")
    if report.outcome == SyncOutcome.FAILED:
        click.echo(f"Error: {report.error}", err=True)
        sys.exit(1)


@click.command()
def stats() -> None:
    """Show sync statistics."""

    async def run() -> SyncStats:
        async with open_engine() as engine:
            return engine.get_sync_stats()

    current = asyncio.run(run())
    last_sync = "never"
    if current.last_sync_timestamp:
        last_sync = datetime.fromtimestamp(current.last_sync_timestamp / 1000).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

    click.echo(f"Total syncs:       {current.total_syncs}")
    click.echo(f"Successful syncs:  {current.successful_syncs}")
    click.echo(f"Failed syncs:      {current.failed_syncs}")
    click.echo(f"Operations:        {current.operations_processed}")
    click.echo(f"Failed operations: {current.operations_failed}")
    click.echo(f"Pending actions:   {current.pending_actions}")
    click.echo(f"Last sync:         {last_sync}")
    if current.last_error:
        click.echo(f"Last error:        {current.last_error}")
