"""Shared configuration classes for offlinesync.

This module defines configuration classes used by the remote client,
the sync engine and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass

from offlinesync.core.types import GiveUpPolicy, ResolutionStrategy, SyncPriorityFilter

DEFAULT_MAX_RETRIES = 5
DEFAULT_PERIODIC_INTERVAL = 60.0  # seconds


@dataclass
class ServerConfig:
    """Configuration for connecting to the remote data service.

    Attributes:
        server_url: Base URL of the server (e.g., "https://api.example.com").
        token: Bearer token sent with every request.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def api_url(self) -> str:
        """Get the base URL of the entity API."""
        return f"{self.server_url}/api"

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")


@dataclass
class SyncConfig:
    """Tuning knobs for the sync engine.

    Attributes:
        max_retries: Retry budget given to each new action.
        periodic_interval: Seconds between periodic sync attempts. Observed
            deployments used both one and five minutes, so it is configurable.
        give_up_policy: Effect of exhausting the retry budget.
        update_strategy: Strategy used when an update meets a modified remote.
        default_strategy: Global fallback when no per-kind strategy applies.
        enabled: Master switch for automatic triggers. Manual syncs still run.
        sync_on_foreground: Sync when the app returns to the foreground.
        sync_on_network_change: Sync when connectivity is restored.
        sync_priority: Which actions a cycle processes.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    periodic_interval: float = DEFAULT_PERIODIC_INTERVAL
    give_up_policy: GiveUpPolicy = GiveUpPolicy.DEPRIORITIZE
    update_strategy: ResolutionStrategy = ResolutionStrategy.SMART_MERGE
    default_strategy: ResolutionStrategy = ResolutionStrategy.LATEST_WINS
    enabled: bool = True
    sync_on_foreground: bool = True
    sync_on_network_change: bool = True
    sync_priority: SyncPriorityFilter = SyncPriorityFilter.ALL

    def __post_init__(self) -> None:
        """Validate values."""
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.periodic_interval <= 0:
            raise ValueError(
                f"periodic_interval must be > 0, got {self.periodic_interval}"
            )
        self.give_up_policy = GiveUpPolicy(self.give_up_policy)
        self.update_strategy = ResolutionStrategy(self.update_strategy)
        self.default_strategy = ResolutionStrategy(self.default_strategy)
        self.sync_priority = SyncPriorityFilter(self.sync_priority)
