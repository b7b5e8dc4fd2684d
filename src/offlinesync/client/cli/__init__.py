"""Command-line interface for offlinesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config set-server / show: Configure the remote data service
- enqueue: Queue a local mutation
- queue: List pending actions
- requeue: Give a given-up action a fresh retry budget
- clear: Drop every pending action
- sync: Run one manual sync cycle
- stats: Show sync statistics
"""

from __future__ import annotations

import logging

import click

from offlinesync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_state_path,
    load_config,
    save_config,
)
from offlinesync.client.cli.config import config as config_group
from offlinesync.client.cli.queue import clear, enqueue, requeue, show_queue
from offlinesync.client.cli.sync import stats, sync


@click.group()
@click.version_option(package_name="offlinesync")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """offlinesync - offline-first action queue and sync engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Configuration
cli.add_command(config_group)

# Queue commands
cli.add_command(enqueue)
cli.add_command(show_queue)
cli.add_command(requeue)
cli.add_command(clear)

# Sync commands
cli.add_command(sync)
cli.add_command(stats)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "get_config_dir",
    "get_config_file",
    "get_state_path",
    "load_config",
    "main",
    "save_config",
]
