"""Pending action store: serializes the queue and statistics.

No business logic lives here. Loading degrades to empty state on corrupt
data (the loss is logged); saving surfaces failures as PersistenceError so
the caller decides whether they are fatal.

Persisted layout (both values are plain JSON):
    offlinesync:pendingActions -> [PendingAction.to_dict(), ...]
    offlinesync:syncStats      -> SyncStats.to_dict()
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from offlinesync.client.sync.stats import SyncStats
from offlinesync.client.sync.types import PendingAction, PersistenceError

if TYPE_CHECKING:
    from offlinesync.client.store import KeyValueStore

logger = logging.getLogger(__name__)

PENDING_ACTIONS_KEY = "offlinesync:pendingActions"
SYNC_STATS_KEY = "offlinesync:syncStats"


class PendingActionStore:
    """Reads and writes the action queue and stats to a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        queue_key: str = PENDING_ACTIONS_KEY,
        stats_key: str = SYNC_STATS_KEY,
    ) -> None:
        self._store = store
        self._queue_key = queue_key
        self._stats_key = stats_key

    async def load(self) -> list[PendingAction]:
        """Load the persisted queue.

        Returns:
            The stored actions, or an empty list if nothing is stored or the
            snapshot cannot be decoded.
        """
        try:
            raw = await self._store.get(self._queue_key)
        except PersistenceError:
            logger.exception("Cannot read pending actions, starting with empty queue")
            return []
        if raw is None:
            return []

        try:
            records = json.loads(raw)
        except ValueError:
            logger.exception("Corrupt pending action snapshot dropped")
            return []
        if not isinstance(records, list):
            logger.error(
                "Pending action snapshot is %s, not a list; dropped",
                type(records).__name__,
            )
            return []

        actions: list[PendingAction] = []
        for record in records:
            try:
                actions.append(PendingAction.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed pending action %r: %s", record, e)

        if actions:
            logger.info("Loaded %d pending actions from persistence", len(actions))
        return actions

    async def save(self, queue: list[PendingAction]) -> None:
        """Overwrite the persisted queue.

        Raises:
            PersistenceError: If the store write fails.
        """
        data = json.dumps([action.to_dict() for action in queue])
        try:
            await self._store.set(self._queue_key, data)
        except PersistenceError:
            logger.error("Failed to save %d pending actions", len(queue))
            raise
        except Exception as e:
            logger.error("Failed to save %d pending actions: %s", len(queue), e)
            raise PersistenceError(f"Cannot save pending actions: {e}") from e

    async def clear(self) -> None:
        """Remove the persisted queue."""
        await self._store.remove(self._queue_key)

    async def load_stats(self) -> SyncStats:
        """Load persisted statistics (defaults if absent or corrupt)."""
        try:
            raw = await self._store.get(self._stats_key)
        except PersistenceError:
            logger.exception("Cannot read sync stats, using defaults")
            return SyncStats()
        if raw is None:
            return SyncStats()
        try:
            return SyncStats.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError):
            logger.exception("Corrupt sync stats dropped")
            return SyncStats()

    async def save_stats(self, stats: SyncStats) -> None:
        """Overwrite persisted statistics.

        Raises:
            PersistenceError: If the store write fails.
        """
        try:
            await self._store.set(self._stats_key, json.dumps(stats.to_dict()))
        except PersistenceError:
            logger.error("Failed to save sync stats")
            raise
        except Exception as e:
            logger.error("Failed to save sync stats: %s", e)
            raise PersistenceError(f"Cannot save sync stats: {e}") from e
