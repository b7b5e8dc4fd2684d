"""Offline action queue and conflict resolution.

Architecture:
    enqueue → SyncQueueManager ⇄ PendingActionStore
                    │
    SyncTriggerScheduler → run_sync → RemoteService
                                  └→ ConflictResolver (updates)

Components:
- **SyncQueueManager**: Durable ordered queue, runs sync cycles
- **SyncTriggerScheduler**: Connectivity, lifecycle, periodic and enqueue triggers
- **ConflictResolver**: Strategy-based resolution of divergent records
- **PendingActionStore**: Serializes queue and statistics to a key-value store
- **SyncStatsRecorder**: Observability counters
- **retry**: Bounded retry budget and give-up policy

All public symbols are re-exported here.
"""

from offlinesync.client.sync.conflict import (
    DEFAULT_STRATEGY_MAP,
    ConflictKind,
    ConflictRecord,
    ConflictResolver,
    ResolutionOutcome,
    field_differences,
)
from offlinesync.client.sync.persistence import (
    PENDING_ACTIONS_KEY,
    SYNC_STATS_KEY,
    PendingActionStore,
)
from offlinesync.client.sync.queue import SyncQueueManager
from offlinesync.client.sync.retry import FailureVerdict, record_failure, requeue
from offlinesync.client.sync.scheduler import SyncTriggerScheduler
from offlinesync.client.sync.stats import SyncStats, SyncStatsRecorder
from offlinesync.client.sync.types import (
    ActionKind,
    GiveUpPolicy,
    ManualResolver,
    MergeFunction,
    MergeFunctionError,
    PendingAction,
    PersistenceError,
    Priority,
    ResolutionStrategy,
    StatusCallback,
    SyncError,
    SyncOutcome,
    SyncReport,
    SyncTrigger,
    generate_action_id,
)

__all__ = [
    # Conflict
    "DEFAULT_STRATEGY_MAP",
    "ConflictKind",
    "ConflictRecord",
    "ConflictResolver",
    "ResolutionOutcome",
    "field_differences",
    # Persistence
    "PENDING_ACTIONS_KEY",
    "SYNC_STATS_KEY",
    "PendingActionStore",
    # Queue
    "SyncQueueManager",
    # Retry
    "FailureVerdict",
    "record_failure",
    "requeue",
    # Scheduler
    "SyncTriggerScheduler",
    # Stats
    "SyncStats",
    "SyncStatsRecorder",
    # Types
    "ActionKind",
    "GiveUpPolicy",
    "ManualResolver",
    "MergeFunction",
    "MergeFunctionError",
    "PendingAction",
    "PersistenceError",
    "Priority",
    "ResolutionStrategy",
    "StatusCallback",
    "SyncError",
    "SyncOutcome",
    "SyncReport",
    "SyncTrigger",
    "generate_action_id",
]
