"""Configuration utilities for the offlinesync CLI.

This module provides shared configuration functions used across CLI
commands, and the ``config`` command group.
"""

from __future__ import annotations

import json
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from offlinesync.client.engine import OfflineSyncEngine

DEFAULT_SERVER_URL = "http://localhost:8000"


def get_config_dir() -> Path:
    """Get the configuration directory for offlinesync.

    Returns:
        Path to ~/.offlinesync or equivalent.
    """
    return Path.home() / ".offlinesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_path() -> Path:
    """Get the path to the durable queue database."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def is_server_configured() -> bool:
    """Check if a server URL and token are configured."""
    config = load_config()
    return bool(config.get("server_url") and config.get("auth_token"))


@asynccontextmanager
async def open_engine(online: bool = False) -> AsyncIterator[OfflineSyncEngine]:
    """Open an engine over the configured server and state database.

    The periodic trigger is not started; commands drive cycles explicitly.

    Args:
        online: Initial connectivity state. Queue-only commands stay offline
            so that enqueueing never starts a cycle.
    """
    from offlinesync.client.api import RemoteDataService
    from offlinesync.client.engine import OfflineSyncEngine
    from offlinesync.client.store import SQLiteKeyValueStore
    from offlinesync.core.config import ServerConfig, SyncConfig

    config = load_config()
    server_config = ServerConfig(
        server_url=config.get("server_url", DEFAULT_SERVER_URL),
        token=config.get("auth_token", ""),
        verify_ssl=config.get("verify_ssl", True),
    )
    sync_config = SyncConfig(**config.get("sync", {}))

    store = SQLiteKeyValueStore(get_state_path())
    remote = RemoteDataService(server_config)
    engine = OfflineSyncEngine(remote, store, sync_config, connected=online)
    try:
        await engine.start(periodic=False)
        yield engine
    finally:
        await engine.stop()
        await remote.close()
        store.close()


@click.group()
def config() -> None:
    """Show or change CLI configuration."""


@config.command("set-server")
@click.argument("server_url")
@click.option("--token", "-t", required=True, help="Bearer token for the server.")
@click.option("--insecure", is_flag=True, help="Skip SSL certificate verification.")
def set_server(server_url: str, token: str, insecure: bool) -> None:
    """Set the remote data service URL and token."""
    if not server_url.startswith(("http://", "https://")):
        click.echo("Error: Server URL must start with http:// or https://", err=True)
        sys.exit(1)

    cfg = load_config()
    cfg["server_url"] = server_url.rstrip("/")
    cfg["auth_token"] = token
    cfg["verify_ssl"] = not insecure
    save_config(cfg)
    click.echo(f"Server set to {cfg['server_url']}")


@config.command("show")
def show() -> None:
    """Print the current configuration (token masked)."""
    cfg = load_config()
    if not cfg:
        click.echo("No configuration. Run 'offlinesync config set-server' first.")
        return
    for key, value in sorted(cfg.items()):
        if key == "auth_token" and value:
            value = value[:4] + "..." if len(value) > 4 else "***"
        click.echo(f"{key}: {value}")
