"""Sync trigger scheduler.

This module provides:
- SyncTriggerScheduler: Turns connectivity, lifecycle, timer and enqueue
  events into sync cycles

Trigger gating (automatic triggers also require SyncConfig.enabled):
    | Event                       | Fires when                          |
    |-----------------------------|-------------------------------------|
    | connectivity offline->online| sync_on_network_change              |
    | app background->foreground  | online and sync_on_foreground       |
    | periodic timer              | online and queue non-empty          |
    | enqueue                     | online and idle (NEW_ACTION)        |
    | trigger(MANUAL)             | always requested, even if disabled  |

A request arriving while a cycle runs returns a SKIPPED report. The
periodic job runs on an apscheduler AsyncIOScheduler sharing the engine's
event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from offlinesync.client.sync.types import SyncOutcome, SyncReport, SyncTrigger
from offlinesync.core.config import SyncConfig
from offlinesync.core.types import SyncState

if TYPE_CHECKING:
    from collections.abc import Callable

    from offlinesync.client.sync.queue import SyncQueueManager
    from offlinesync.client.sync.types import StatusCallback

logger = logging.getLogger(__name__)


class SyncTriggerScheduler:
    """Decides when a sync cycle runs.

    Usage:
        scheduler = SyncTriggerScheduler(manager, interval_seconds=60)
        scheduler.start()  # Inside a running event loop

        await scheduler.on_connectivity_change(True)
        report = await scheduler.trigger(SyncTrigger.MANUAL)

        scheduler.stop()
    """

    def __init__(
        self,
        queue_manager: SyncQueueManager,
        interval_seconds: float | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            queue_manager: Queue whose cycles are triggered.
            interval_seconds: Period of the periodic trigger (config value if
                omitted).
            config: Trigger switches (defaults if omitted).
        """
        self._config = config or SyncConfig()
        if interval_seconds is None:
            interval_seconds = self._config.periodic_interval
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        self._manager = queue_manager
        self._interval = interval_seconds
        self._foreground = True
        self._state = SyncState.IDLE if queue_manager.connected else SyncState.OFFLINE
        self._listeners: list[StatusCallback] = []
        self._scheduler: AsyncIOScheduler | None = None
        self._tasks: set[asyncio.Task[SyncReport]] = set()

    # === State ===

    @property
    def state(self) -> SyncState:
        """Get the current sync state."""
        return self._state

    @property
    def interval(self) -> float:
        """Get the periodic trigger interval in seconds."""
        return self._interval

    @property
    def is_running(self) -> bool:
        """Check if the periodic job is scheduled."""
        return self._scheduler is not None

    def add_status_listener(self, callback: StatusCallback) -> Callable[[], None]:
        """Register a state change listener.

        Returns:
            A function that unregisters the listener.
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_state(self, state: SyncState) -> None:
        if state == self._state:
            return
        self._state = state
        logger.debug("Sync state: %s", state.value)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Error in sync status listener")

    # === Triggers ===

    async def trigger(self, trigger: SyncTrigger) -> SyncReport:
        """Request a sync cycle.

        Returns:
            The cycle report; SKIPPED if a cycle is running or offline.
        """
        if self._state == SyncState.SYNCING or self._manager.is_syncing:
            logger.debug("Sync already in progress, %s request skipped", trigger.value)
            return SyncReport.skipped(trigger, "sync already in progress")
        if trigger != SyncTrigger.MANUAL and not self._config.enabled:
            logger.debug("Automatic sync disabled, %s request skipped", trigger.value)
            return SyncReport.skipped(trigger, "automatic sync disabled")
        if not self._manager.connected:
            self._set_state(SyncState.OFFLINE)
            return SyncReport.skipped(trigger, "offline")

        self._set_state(SyncState.SYNCING)
        try:
            report = await self._manager.run_sync(trigger)
        except Exception:
            self._set_state(SyncState.ERROR)
            raise

        if not self._manager.connected:
            self._set_state(SyncState.OFFLINE)
        elif report.outcome == SyncOutcome.FAILED:
            self._set_state(SyncState.ERROR)
        else:
            self._set_state(SyncState.IDLE)
        return report

    async def on_connectivity_change(self, connected: bool) -> SyncReport | None:
        """Handle a connectivity transition.

        Only offline -> online starts a cycle.
        """
        was_connected = self._manager.connected
        self._manager.connected = connected

        if not connected:
            if self._state != SyncState.SYNCING:
                self._set_state(SyncState.OFFLINE)
            if was_connected:
                logger.info("Network lost, sync paused")
            return None

        if was_connected:
            return None

        if self._state == SyncState.OFFLINE:
            self._set_state(SyncState.IDLE)
        if not self._config.sync_on_network_change:
            logger.info("Network restored, sync on reconnection is off")
            return None
        logger.info("Network restored, syncing pending actions")
        return await self.trigger(SyncTrigger.NETWORK_RECONNECTION)

    async def on_lifecycle_change(self, foreground: bool) -> SyncReport | None:
        """Handle an app lifecycle transition.

        Only background -> foreground while online starts a cycle.
        """
        was_foreground = self._foreground
        self._foreground = foreground
        if not foreground or was_foreground or not self._manager.connected:
            return None
        if not self._config.sync_on_foreground:
            return None
        return await self.trigger(SyncTrigger.APP_FOREGROUND)

    async def on_periodic(self) -> SyncReport | None:
        """Handle a periodic timer tick."""
        if not self._manager.connected or len(self._manager) == 0:
            return None
        return await self.trigger(SyncTrigger.PERIODIC)

    async def on_enqueued(self) -> SyncReport:
        """Handle a newly enqueued action."""
        return await self.trigger(SyncTrigger.NEW_ACTION)

    def request_sync(
        self, trigger: SyncTrigger = SyncTrigger.NEW_ACTION
    ) -> asyncio.Task[SyncReport]:
        """Schedule a cycle without waiting for it.

        Must be called from within the running event loop.
        """
        task = asyncio.get_running_loop().create_task(self.trigger(trigger))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for cycles started by request_sync()."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # === Periodic job ===

    async def _periodic_job(self) -> None:
        """Job function for the periodic trigger."""
        try:
            await self.on_periodic()
        except Exception:
            logger.exception("Error during periodic sync")

    def start(self) -> None:
        """Start the periodic trigger."""
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._periodic_job,
            trigger=IntervalTrigger(seconds=self._interval),
            id="periodic_sync",
            name="Periodic sync",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Sync scheduler started (every %.0fs)", self._interval)

    def stop(self) -> None:
        """Stop the periodic trigger."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Sync scheduler stopped")
