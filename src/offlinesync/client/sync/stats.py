"""Sync statistics recorder.

Counts cycles and operations for observability screens. The recorder is
write-only from the engine's point of view: nothing reads it to make a
control-flow decision.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import TYPE_CHECKING, Any

from offlinesync.client.sync.types import SyncOutcome, now_ms

if TYPE_CHECKING:
    from offlinesync.client.sync.types import SyncReport

logger = logging.getLogger(__name__)

# Persisted camelCase key -> dataclass field
_FIELD_KEYS = {
    "totalSyncs": "total_syncs",
    "successfulSyncs": "successful_syncs",
    "failedSyncs": "failed_syncs",
    "operationsProcessed": "operations_processed",
    "operationsFailed": "operations_failed",
    "lastSyncTimestamp": "last_sync_timestamp",
    "lastError": "last_error",
    "pendingActions": "pending_actions",
}


@dataclass
class SyncStats:
    """Cumulative sync statistics.

    Attributes:
        total_syncs: Cycles that actually ran.
        successful_syncs: Cycles with at least one successful operation.
        failed_syncs: Cycles with at least one failed operation.
        operations_processed: Operations attempted across all cycles.
        operations_failed: Operations that failed across all cycles.
        last_sync_timestamp: Epoch ms of the last completed cycle.
        last_error: Last error message, cleared by a clean cycle.
        pending_actions: Queue length after the last cycle.
    """

    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    operations_processed: int = 0
    operations_failed: int = 0
    last_sync_timestamp: int | None = None
    last_error: str | None = None
    pending_actions: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted record layout."""
        values = asdict(self)
        return {key: values[name] for key, name in _FIELD_KEYS.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncStats:
        """Create from a persisted record; missing keys take defaults."""
        return cls(**{name: data[key] for key, name in _FIELD_KEYS.items() if key in data})


class SyncStatsRecorder:
    """Accumulates statistics across sync cycles."""

    def __init__(self, stats: SyncStats | None = None) -> None:
        self._stats = stats or SyncStats()

    def load(self, stats: SyncStats) -> None:
        """Replace current statistics (used after loading persisted state)."""
        self._stats = replace(stats)

    def snapshot(self) -> SyncStats:
        """Get a copy of the current statistics."""
        return replace(self._stats)

    def record_cycle(self, report: SyncReport, pending: int) -> None:
        """Fold a finished cycle into the counters.

        Skipped cycles are not counted.
        """
        if report.outcome == SyncOutcome.SKIPPED:
            return

        stats = self._stats
        stats.total_syncs += 1
        if report.succeeded > 0:
            stats.successful_syncs += 1
        if report.failed > 0 or report.outcome == SyncOutcome.FAILED:
            stats.failed_syncs += 1
        stats.operations_processed += report.processed
        stats.operations_failed += report.failed
        stats.last_sync_timestamp = now_ms()
        stats.pending_actions = pending
        stats.last_error = report.error

        logger.debug(
            "Recorded cycle: total=%d ok=%d failed=%d ops=%d/%d",
            stats.total_syncs,
            stats.successful_syncs,
            stats.failed_syncs,
            stats.operations_processed,
            stats.operations_failed,
        )

    def record_error(self, message: str) -> None:
        """Remember an error message without counting a cycle."""
        self._stats.last_error = message
