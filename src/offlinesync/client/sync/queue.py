"""Pending action queue and sync cycle execution.

This module provides:
- SyncQueueManager: Owns the in-memory queue, persists it, orders it and
  applies queued actions to the remote service

Processing order is priority rank, then enqueue age (see
domain.priorities). A cycle works on a snapshot of the queue, one action at
a time; actions enqueued while a cycle runs wait for the next trigger.

Per-kind handling:
    | Kind   | Remote calls                          | Remote 404            |
    |--------|---------------------------------------|-----------------------|
    | CREATE | create                                | failure (retried)     |
    | UPDATE | get, resolve conflict, update         | resolve as deleted    |
    | DELETE | delete                                | success (idempotent)  |
    | QUERY  | get                                   | failure (retried)     |

An update never deletes the remote entity. When the payload carries a
``baseVersion`` equal to the remote ``version`` nobody else touched the
entity, so the payload is written as is without conflict resolution.

Failures never abort a cycle: they consume the action's retry budget (see
retry.py). A cycle reports FAILED only when persisting state fails; the
in-memory queue is kept so nothing is lost.

Concurrency:
    The engine runs on one asyncio event loop. The in-progress flag is
    checked and set with no await in between, so two cycles can never
    overlap; a second request observes the flag and returns SKIPPED.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import TYPE_CHECKING, Any

from offlinesync.client.api import APIError, RemoteNotFound
from offlinesync.client.sync.conflict import ConflictRecord, field_differences
from offlinesync.client.sync.domain.merge import coerce_timestamp
from offlinesync.client.sync.domain.priorities import priority_for, sort_actions
from offlinesync.client.sync.retry import (
    FailureVerdict,
    describe_error,
    record_failure,
)
from offlinesync.client.sync.retry import requeue as reset_retries
from offlinesync.client.sync.stats import SyncStatsRecorder
from offlinesync.client.sync.types import (
    ActionKind,
    PendingAction,
    PersistenceError,
    Priority,
    SyncOutcome,
    SyncReport,
    SyncTrigger,
    generate_action_id,
    now_ms,
)
from offlinesync.core.config import SyncConfig
from offlinesync.core.types import SyncPriorityFilter

if TYPE_CHECKING:
    from collections.abc import Callable

    from offlinesync.client.api import RemoteService
    from offlinesync.client.sync.conflict import ConflictResolver
    from offlinesync.client.sync.persistence import PendingActionStore

logger = logging.getLogger(__name__)


class SyncQueueManager:
    """Durable, ordered queue of pending actions.

    Usage:
        manager = SyncQueueManager(remote, resolver, PendingActionStore(store))
        await manager.start()

        action_id = await manager.enqueue(
            ActionKind.UPDATE, "order", {"status": "paid"}, entity_id="o-1"
        )
        report = await manager.run_sync(SyncTrigger.MANUAL)
    """

    def __init__(
        self,
        remote: RemoteService,
        resolver: ConflictResolver,
        persistence: PendingActionStore,
        stats: SyncStatsRecorder | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            remote: Remote data service.
            resolver: Conflict resolver for updates.
            persistence: Store for queue and statistics snapshots.
            stats: Statistics recorder (a fresh one if omitted).
            config: Sync configuration (defaults if omitted).
        """
        self._remote = remote
        self._resolver = resolver
        self._persistence = persistence
        self._stats = stats or SyncStatsRecorder()
        self._config = config or SyncConfig()

        self._queue: list[PendingAction] = []
        self._syncing = False
        self._connected = True

        # Callbacks
        self._on_enqueued: Callable[[], None] | None = None
        self._on_cycle_complete: Callable[[SyncReport], None] | None = None

    # === State ===

    @property
    def pending_actions(self) -> list[PendingAction]:
        """Get a copy of the queue in processing order."""
        return list(self._queue)

    @property
    def is_syncing(self) -> bool:
        """Check if a cycle is running."""
        return self._syncing

    @property
    def connected(self) -> bool:
        """Get the last known connectivity state."""
        return self._connected

    @connected.setter
    def connected(self, value: bool) -> None:
        self._connected = value

    @property
    def stats(self) -> SyncStatsRecorder:
        """Get the statistics recorder."""
        return self._stats

    def __len__(self) -> int:
        """Get number of queued actions."""
        return len(self._queue)

    def get_action(self, action_id: str) -> PendingAction | None:
        """Get a queued action by id."""
        for action in self._queue:
            if action.id == action_id:
                return action
        return None

    def counts_by_entity_type(self) -> dict[str, int]:
        """Count queued actions per entity type."""
        return dict(Counter(action.entity_type for action in self._queue))

    # === Callbacks ===

    def set_on_enqueued(self, callback: Callable[[], None] | None) -> None:
        """Set callback fired after an enqueue while online and idle."""
        self._on_enqueued = callback

    def set_on_cycle_complete(
        self,
        callback: Callable[[SyncReport], None] | None,
    ) -> None:
        """Set callback fired after every cycle that actually ran."""
        self._on_cycle_complete = callback

    # === Lifecycle ===

    async def start(self) -> None:
        """Load the persisted queue and statistics."""
        self._queue = sort_actions(await self._persistence.load())
        self._stats.load(await self._persistence.load_stats())

    async def _persist_queue(self) -> bool:
        try:
            await self._persistence.save(self._queue)
        except PersistenceError:
            logger.warning("Queue change kept in memory only; will persist on next write")
            return False
        return True

    # === Queue mutation ===

    async def enqueue(
        self,
        kind: ActionKind,
        entity_type: str,
        payload: Any = None,
        entity_id: str | None = None,
        priority: Priority | None = None,
        max_retries: int | None = None,
    ) -> str:
        """Queue a local mutation.

        Args:
            kind: Mutation type.
            entity_type: Entity namespace.
            payload: Local data snapshot.
            entity_id: Remote id (required for update/delete).
            priority: Queue priority (entity default if omitted).
            max_retries: Retry budget (config default if omitted).

        Returns:
            The new action id.

        Raises:
            ValueError: If an update/delete has no entity_id.
        """
        timestamp = now_ms()
        action = PendingAction(
            id=generate_action_id(timestamp),
            kind=ActionKind(kind),
            entity_type=entity_type,
            payload=payload,
            entity_id=entity_id,
            enqueued_at=timestamp,
            priority=priority or priority_for(entity_type),
            max_retries=self._config.max_retries if max_retries is None else max_retries,
        )
        self._queue.append(action)
        self._queue = sort_actions(self._queue)
        await self._persist_queue()

        logger.debug("Queued %r (queue size: %d)", action, len(self._queue))

        if self._connected and not self._syncing and self._on_enqueued:
            self._on_enqueued()

        return action.id

    async def remove(self, action_id: str) -> bool:
        """Remove an action by id.

        Returns:
            True if the action was queued.
        """
        action = self.get_action(action_id)
        if action is None:
            return False
        self._queue.remove(action)
        await self._persist_queue()
        logger.debug("Removed action %s", action_id)
        return True

    async def requeue(self, action_id: str) -> bool:
        """Reset the retry budget of an action kept after giving up.

        Returns:
            True if the action was found.
        """
        action = self.get_action(action_id)
        if action is None:
            return False
        reset_retries(action)
        await self._persist_queue()
        logger.info("Requeued action %s for another round", action_id)
        return True

    async def clear(self) -> int:
        """Remove all actions.

        Returns:
            Number of actions removed.
        """
        count = len(self._queue)
        self._queue = []
        await self._persist_queue()
        logger.info("Cleared %d actions from queue", count)
        return count

    # === Sync cycle ===

    async def run_sync(self, trigger: SyncTrigger) -> SyncReport:
        """Run one sync cycle over a snapshot of the queue.

        Args:
            trigger: What initiated the cycle.

        Returns:
            SKIPPED if offline or a cycle is running, FAILED if persisting
            state failed, COMPLETED otherwise.
        """
        if not self._connected:
            logger.debug("No network connection, skipping sync (%s)", trigger.value)
            return SyncReport.skipped(trigger, "offline")
        if self._syncing:
            logger.debug("Sync already in progress, skipping (%s)", trigger.value)
            return SyncReport.skipped(trigger, "sync already in progress")

        self._syncing = True
        started = time.monotonic()
        report = SyncReport(outcome=SyncOutcome.COMPLETED, trigger=trigger)
        try:
            logger.info(
                "Starting sync (trigger: %s, %d pending)", trigger.value, len(self._queue)
            )
            await self._process_snapshot(report)
            await self._finish_cycle(report)
        finally:
            report.duration_ms = int((time.monotonic() - started) * 1000)
            self._syncing = False

        logger.info(
            "Sync %s in %dms: %d ok, %d failed, %d gave up, %d pending",
            report.outcome.value,
            report.duration_ms,
            report.succeeded,
            report.failed,
            report.gave_up,
            len(self._queue),
        )

        if self._on_cycle_complete:
            try:
                self._on_cycle_complete(report)
            except Exception:
                logger.exception("Error in cycle completion callback")

        return report

    async def _process_snapshot(self, report: SyncReport) -> None:
        for action in list(self._queue):
            if action.is_exhausted:
                continue
            if not self._selected(action):
                continue
            if self.get_action(action.id) is None:
                continue  # Removed while an earlier action was in flight

            report.processed += 1
            try:
                await self._process(action)
            except Exception as e:
                if not isinstance(e, APIError):
                    logger.exception("Unexpected error processing %r", action)
                report.failed += 1
                report.error = describe_error(e)
                self._handle_failure(action, e, report)
            else:
                report.succeeded += 1
                if action in self._queue:
                    self._queue.remove(action)
                logger.debug("Action %s applied", action.id)

        self._queue = sort_actions(self._queue)

    def _selected(self, action: PendingAction) -> bool:
        if self._config.sync_priority == SyncPriorityFilter.HIGH_ONLY:
            return action.priority == Priority.HIGH
        return True

    def _handle_failure(
        self,
        action: PendingAction,
        error: Exception,
        report: SyncReport,
    ) -> None:
        verdict = record_failure(action, error, self._config.give_up_policy)
        if verdict == FailureVerdict.RETRY:
            return
        report.gave_up += 1
        if verdict == FailureVerdict.GIVE_UP_DROP and action in self._queue:
            self._queue.remove(action)

    async def _finish_cycle(self, report: SyncReport) -> None:
        try:
            await self._persistence.save(self._queue)
        except PersistenceError as e:
            report.outcome = SyncOutcome.FAILED
            report.error = str(e)

        self._stats.record_cycle(report, len(self._queue))
        try:
            await self._persistence.save_stats(self._stats.snapshot())
        except PersistenceError as e:
            report.outcome = SyncOutcome.FAILED
            report.error = report.error or str(e)

    # === Action handlers ===

    async def _process(self, action: PendingAction) -> None:
        if action.kind == ActionKind.CREATE:
            await self._remote.create(action.entity_type, action.payload)
        elif action.kind == ActionKind.UPDATE:
            await self._apply_update(action)
        elif action.kind == ActionKind.DELETE:
            await self._apply_delete(action)
        elif action.kind == ActionKind.QUERY:
            await self._remote.get(action.entity_type, action.entity_id)

    @staticmethod
    def _entity_id(action: PendingAction) -> str:
        if action.entity_id is None:
            raise ValueError(f"{action.kind.value} action {action.id} has no entity_id")
        return action.entity_id

    async def _apply_delete(self, action: PendingAction) -> None:
        entity_id = self._entity_id(action)
        try:
            await self._remote.delete(action.entity_type, entity_id)
        except RemoteNotFound:
            logger.info("%s/%s already deleted on server", action.entity_type, entity_id)

    def _local_timestamp(self, action: PendingAction) -> float:
        if isinstance(action.payload, dict):
            return coerce_timestamp(action.payload.get("updatedAt"), action.enqueued_at)
        return float(action.enqueued_at)

    async def _apply_update(self, action: PendingAction) -> None:
        entity_type, entity_id = action.entity_type, self._entity_id(action)
        local_timestamp = self._local_timestamp(action)

        try:
            remote_value = await self._remote.get(entity_type, entity_id)
        except RemoteNotFound:
            await self._apply_update_to_deleted(action, local_timestamp)
            return

        if remote_value is None:
            # A 200 without a body says nothing about the entity
            raise APIError(f"Server returned no data for {entity_type}/{entity_id}")

        if _base_version_matches(action.payload, remote_value):
            logger.debug("%s/%s unchanged on server, writing local data", entity_type, entity_id)
            await self._remote.update(entity_type, entity_id, action.payload)
            return

        remote_timestamp = float(now_ms())
        if isinstance(remote_value, dict):
            remote_timestamp = coerce_timestamp(remote_value.get("updatedAt"), remote_timestamp)
            if isinstance(action.payload, dict):
                logger.debug(
                    "Conflict on %s/%s, differing fields: %s",
                    entity_type,
                    entity_id,
                    field_differences(action.payload, remote_value),
                )

        conflict = ConflictRecord.from_values(
            entity_id, action.payload, remote_value, local_timestamp, remote_timestamp
        )
        outcome = await self._resolver.resolve(
            conflict, entity_type, self._config.update_strategy
        )
        if outcome.fallback_reason:
            logger.warning(
                "Resolution of %s/%s fell back to %s: %s",
                entity_type,
                entity_id,
                outcome.strategy_used.value,
                outcome.fallback_reason,
            )

        if outcome.should_delete or outcome.resolved_value is None:
            logger.warning(
                "Resolution of %s/%s produced no value (%s), update skipped",
                entity_type,
                entity_id,
                outcome.strategy_used.value,
            )
            return
        await self._remote.update(entity_type, entity_id, outcome.resolved_value)

    async def _apply_update_to_deleted(
        self,
        action: PendingAction,
        local_timestamp: float,
    ) -> None:
        """Resolve an update whose entity was deleted remotely."""
        conflict = ConflictRecord.from_values(
            action.entity_id or "", action.payload, None, local_timestamp, float(now_ms())
        )
        outcome = await self._resolver.resolve(conflict, action.entity_type)

        if outcome.should_delete or outcome.resolved_value is None:
            logger.info(
                "%s/%s deleted on server, local update discarded (%s)",
                action.entity_type,
                action.entity_id,
                outcome.strategy_used.value,
            )
            return

        logger.info(
            "%s/%s deleted on server, recreating from local changes",
            action.entity_type,
            action.entity_id,
        )
        await self._remote.create(action.entity_type, outcome.resolved_value)


def _base_version_matches(payload: Any, remote_value: Any) -> bool:
    """Check if a local edit was made against the current remote version."""
    if not isinstance(payload, dict) or not isinstance(remote_value, dict):
        return False
    if "baseVersion" not in payload or "version" not in remote_value:
        return False
    return bool(payload["baseVersion"] == remote_value["version"])
