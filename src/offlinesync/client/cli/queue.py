"""Queue commands for the offlinesync CLI.

Commands:
- enqueue: Queue a local mutation
- queue: List pending actions
- requeue: Give a given-up action a fresh retry budget
- clear: Drop every pending action
"""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime
from typing import Any

import click

from offlinesync.client.cli.config import open_engine
from offlinesync.client.sync.types import ActionKind, PendingAction, Priority


def _format_action(action: PendingAction) -> str:
    target = action.entity_type
    if action.entity_id:
        target += f"/{action.entity_id}"
    queued = datetime.fromtimestamp(action.enqueued_at / 1000).strftime("%Y-%m-%d %H:%M:%S")
    line = (
        f"{action.id}  {action.kind.value:<6}  {target:<30}  {action.priority.value:<6}  "
        f"{action.retry_count}/{action.max_retries}  {queued}"
    )
    if action.last_error:
        line += f"\n    last error: {action.last_error}"
    return line


@click.command()
@click.argument("kind", type=click.Choice([k.value for k in ActionKind]))
@click.argument("entity_type")
@click.option("--id", "entity_id", help="Remote entity id (required for update/delete).")
@click.option("--payload", "-p", help="Entity data as JSON.")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in Priority]),
    help="Queue priority (defaults by entity type).",
)
def enqueue(
    kind: str,
    entity_type: str,
    entity_id: str | None,
    payload: str | None,
    priority: str | None,
) -> None:
    """Queue a local mutation for the server."""
    data: Any = None
    if payload is not None:
        try:
            data = json.loads(payload)
        except ValueError as e:
            click.echo(f"Error: Invalid JSON payload: {e}", err=True)
            sys.exit(1)

    async def run() -> str:
        async with open_engine() as engine:
            return await engine.enqueue(
                ActionKind(kind),
                entity_type,
                data,
                entity_id=entity_id,
                priority=Priority(priority) if priority else None,
            )

    try:
        action_id = asyncio.run(run())
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Queued {action_id}")


@click.command("queue")
def show_queue() -> None:
    """List pending actions in processing order."""

    async def run() -> list[PendingAction]:
        async with open_engine() as engine:
            return engine.get_pending_actions()

    actions = asyncio.run(run())
    if not actions:
        click.echo("No pending actions.")
        return
    for action in actions:
        click.echo(_format_action(action))
    click.echo(f"\n{len(actions)} pending action(s)")


@click.command()
@click.argument("action_id")
def requeue(action_id: str) -> None:
    """Reset the retry budget of a given-up action."""

    async def run() -> bool:
        async with open_engine() as engine:
            return await engine.requeue(action_id)

    if not asyncio.run(run()):
        click.echo(f"Error: No pending action {action_id}", err=True)
        sys.exit(1)
    click.echo(f"Requeued {action_id}")


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
def clear(yes: bool) -> None:
    """Drop every pending action."""
    if not yes and not click.confirm("Drop all pending actions?"):
        click.echo("Aborted.")
        return

    async def run() -> int:
        async with open_engine() as engine:
            return await engine.clear()

    count = asyncio.run(run())
    click.echo(f"Removed {count} pending action(s)")
