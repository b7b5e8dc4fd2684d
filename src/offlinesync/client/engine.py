"""Offline sync engine.

This module provides:
- OfflineSyncEngine: Application-owned context wiring the queue, resolver,
  scheduler, statistics and notifications together

Architecture:
    enqueue() ──► SyncQueueManager ──persist──► KeyValueStore
                        ▲    │
      SyncTriggerScheduler   └──► RemoteService (+ ConflictResolver on update)
        ▲  ▲  ▲
        │  │  └── periodic timer (apscheduler)
        │  └───── set_foreground()
        └──────── set_connected()
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from offlinesync.client.notifications import Notifier
from offlinesync.client.sync.conflict import ConflictResolver
from offlinesync.client.sync.domain.merge import sum_impact_metrics
from offlinesync.client.sync.persistence import PendingActionStore
from offlinesync.client.sync.queue import SyncQueueManager
from offlinesync.client.sync.scheduler import SyncTriggerScheduler
from offlinesync.client.sync.stats import SyncStats, SyncStatsRecorder
from offlinesync.client.sync.types import (
    ActionKind,
    PendingAction,
    Priority,
    SyncOutcome,
    SyncReport,
    SyncTrigger,
)
from offlinesync.core.config import SyncConfig

if TYPE_CHECKING:
    from collections.abc import Callable

    from offlinesync.client.api import RemoteService
    from offlinesync.client.store import KeyValueStore
    from offlinesync.client.sync.types import ManualResolver, MergeFunction, StatusCallback
    from offlinesync.core.types import SyncState

logger = logging.getLogger(__name__)


class OfflineSyncEngine:
    """Queues local mutations while offline and replays them when online.

    Usage:
        engine = OfflineSyncEngine(RemoteDataService(server), SQLiteKeyValueStore(path))
        await engine.start()

        await engine.enqueue(ActionKind.CREATE, "collection", {"name": "Bottles"})
        await engine.set_connected(True)

        await engine.stop()
    """

    def __init__(
        self,
        remote: RemoteService,
        store: KeyValueStore,
        config: SyncConfig | None = None,
        notifier: Notifier | None = None,
        connected: bool = True,
    ) -> None:
        """Initialize the engine.

        Args:
            remote: Remote data service.
            store: Durable key-value store for the queue and statistics.
            config: Sync configuration (defaults if omitted).
            notifier: Notification fan-out (log-only if omitted).
            connected: Initial connectivity state.
        """
        self._config = config or SyncConfig()
        self._notifier = notifier or Notifier()

        self._resolver = ConflictResolver(self._config.default_strategy)
        self._resolver.register_merge_fn("impact", sum_impact_metrics)

        self._manager = SyncQueueManager(
            remote,
            self._resolver,
            PendingActionStore(store),
            SyncStatsRecorder(),
            self._config,
        )
        self._manager.connected = connected
        self._scheduler = SyncTriggerScheduler(
            self._manager, self._config.periodic_interval, self._config
        )

        self._manager.set_on_enqueued(self._on_enqueued)
        self._manager.set_on_cycle_complete(self._on_cycle_complete)
        self._started = False

    # === Components ===

    @property
    def config(self) -> SyncConfig:
        """Get the sync configuration."""
        return self._config

    @property
    def resolver(self) -> ConflictResolver:
        """Get the conflict resolver."""
        return self._resolver

    @property
    def queue(self) -> SyncQueueManager:
        """Get the queue manager."""
        return self._manager

    @property
    def scheduler(self) -> SyncTriggerScheduler:
        """Get the trigger scheduler."""
        return self._scheduler

    @property
    def notifier(self) -> Notifier:
        """Get the notifier."""
        return self._notifier

    @property
    def status(self) -> SyncState:
        """Get the current sync state."""
        return self._scheduler.state

    @property
    def is_started(self) -> bool:
        """Check if start() has run."""
        return self._started

    # === Lifecycle ===

    async def start(self, periodic: bool = True) -> None:
        """Load persisted state and start the periodic trigger.

        Args:
            periodic: Whether to schedule the periodic trigger.
        """
        if self._started:
            return
        await self._manager.start()
        if periodic:
            self._scheduler.start()
        self._started = True
        logger.info("Offline sync engine started (%d pending actions)", len(self._manager))

    async def stop(self) -> None:
        """Stop the periodic trigger and wait for running cycles."""
        self._scheduler.stop()
        await self._scheduler.wait_idle()
        self._started = False
        logger.info("Offline sync engine stopped")

    async def wait_idle(self) -> None:
        """Wait for cycles started in the background (e.g. by enqueue)."""
        await self._scheduler.wait_idle()

    async def __aenter__(self) -> OfflineSyncEngine:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    # === Queue ===

    async def enqueue(
        self,
        kind: ActionKind,
        entity_type: str,
        payload: Any = None,
        entity_id: str | None = None,
        priority: Priority | None = None,
        max_retries: int | None = None,
    ) -> str:
        """Queue a local mutation for the server.

        Returns:
            The new action id.

        Raises:
            ValueError: If an update/delete has no entity_id.
        """
        return await self._manager.enqueue(
            kind,
            entity_type,
            payload,
            entity_id=entity_id,
            priority=priority,
            max_retries=max_retries,
        )

    def get_pending_actions(self) -> list[PendingAction]:
        """Get queued actions in processing order."""
        return self._manager.pending_actions

    def counts_by_entity_type(self) -> dict[str, int]:
        """Count queued actions per entity type."""
        return self._manager.counts_by_entity_type()

    async def requeue(self, action_id: str) -> bool:
        """Give a given-up action a fresh retry budget."""
        return await self._manager.requeue(action_id)

    async def remove(self, action_id: str) -> bool:
        """Drop a queued action."""
        return await self._manager.remove(action_id)

    async def clear(self) -> int:
        """Drop every queued action."""
        return await self._manager.clear()

    # === Sync ===

    async def trigger_sync(self) -> SyncReport:
        """Run a manual sync cycle now."""
        return await self._scheduler.trigger(SyncTrigger.MANUAL)

    async def set_connected(self, connected: bool) -> SyncReport | None:
        """Report a connectivity change from the host platform."""
        return await self._scheduler.on_connectivity_change(connected)

    async def set_foreground(self, foreground: bool) -> SyncReport | None:
        """Report an app lifecycle change from the host platform."""
        return await self._scheduler.on_lifecycle_change(foreground)

    def get_sync_stats(self) -> SyncStats:
        """Get a copy of the sync statistics."""
        return replace(self._manager.stats.snapshot(), pending_actions=len(self._manager))

    def subscribe_sync_status(self, callback: StatusCallback) -> Callable[[], None]:
        """Listen to sync state changes.

        Returns:
            A function that unsubscribes the callback.
        """
        return self._scheduler.add_status_listener(callback)

    # === Conflict resolution ===

    def register_merge_fn(self, entity_type: str, fn: MergeFunction) -> None:
        """Register a merge function for the MERGE strategy."""
        self._resolver.register_merge_fn(entity_type, fn)

    def register_manual_resolver(self, fn: ManualResolver | None) -> None:
        """Register the callback for the MANUAL strategy."""
        self._resolver.register_manual_resolver(fn)

    # === Callbacks ===

    def _on_enqueued(self) -> None:
        self._scheduler.request_sync(SyncTrigger.NEW_ACTION)

    def _on_cycle_complete(self, report: SyncReport) -> None:
        if report.outcome == SyncOutcome.FAILED:
            self._notifier.notify_sync_error(report.error or "Sync failed")
            return
        self._notifier.notify_sync_complete(report.succeeded)
        self._notifier.notify_gave_up(report.gave_up)
