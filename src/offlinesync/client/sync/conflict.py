"""Conflict detection and resolution.

Resolves a locally-modified record against a concurrently modified (or
deleted) remote record:

| Strategy     | Result                                                   |
|--------------|----------------------------------------------------------|
| LOCAL_WINS   | Local value, or delete if local is gone                  |
| REMOTE_WINS  | Remote value, or delete if remote is gone                |
| LATEST_WINS  | Strictly newer side wins, ties favor remote              |
| MERGE        | Registered merge function, else SMART_MERGE              |
| SMART_MERGE  | Field-level, entity-aware merge (domain.merge)           |
| MANUAL       | Registered resolver, else LATEST_WINS                    |

Strategy selection order: explicit override, per-kind default, global default.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from offlinesync.client.sync.domain.merge import smart_merge
from offlinesync.client.sync.types import (
    ManualResolver,
    MergeFunction,
    MergeFunctionError,
    ResolutionStrategy,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConflictKind(str, Enum):
    """How local and remote diverged."""

    BOTH_MODIFIED = "both_modified"
    LOCAL_DELETED_REMOTE_MODIFIED = "local_deleted_remote_modified"
    REMOTE_DELETED_LOCAL_MODIFIED = "remote_deleted_local_modified"
    BOTH_DELETED = "both_deleted"
    CONCURRENT_CREATION = "concurrent_creation"


DEFAULT_STRATEGY_MAP: dict[ConflictKind, ResolutionStrategy] = {
    ConflictKind.BOTH_MODIFIED: ResolutionStrategy.LATEST_WINS,
    ConflictKind.LOCAL_DELETED_REMOTE_MODIFIED: ResolutionStrategy.REMOTE_WINS,
    ConflictKind.REMOTE_DELETED_LOCAL_MODIFIED: ResolutionStrategy.LOCAL_WINS,
    ConflictKind.BOTH_DELETED: ResolutionStrategy.REMOTE_WINS,
}


@dataclass
class ConflictRecord(Generic[T]):
    """Local and remote views of one entity during a sync attempt.

    Attributes:
        kind: How the two sides diverged.
        id: Entity id.
        local_value: Local record, None if deleted locally.
        local_timestamp: Local modification time (epoch ms).
        remote_value: Remote record, None if deleted remotely.
        remote_timestamp: Remote modification time (epoch ms).
    """

    kind: ConflictKind
    id: str
    local_value: T | None
    local_timestamp: float
    remote_value: T | None
    remote_timestamp: float

    def __post_init__(self) -> None:
        self.kind = ConflictKind(self.kind)
        if (
            self.kind != ConflictKind.BOTH_DELETED
            and self.local_value is None
            and self.remote_value is None
        ):
            raise ValueError(f"{self.kind.value} conflict needs a local or remote value")

    @classmethod
    def from_values(
        cls,
        entity_id: str,
        local_value: T | None,
        remote_value: T | None,
        local_timestamp: float,
        remote_timestamp: float,
        concurrent_creation: bool = False,
    ) -> ConflictRecord[T]:
        """Build a conflict, deriving its kind from which sides exist."""
        if local_value is None and remote_value is None:
            kind = ConflictKind.BOTH_DELETED
        elif local_value is None:
            kind = ConflictKind.LOCAL_DELETED_REMOTE_MODIFIED
        elif remote_value is None:
            kind = ConflictKind.REMOTE_DELETED_LOCAL_MODIFIED
        elif concurrent_creation:
            kind = ConflictKind.CONCURRENT_CREATION
        else:
            kind = ConflictKind.BOTH_MODIFIED
        return cls(
            kind=kind,
            id=entity_id,
            local_value=local_value,
            local_timestamp=local_timestamp,
            remote_value=remote_value,
            remote_timestamp=remote_timestamp,
        )


@dataclass
class ResolutionOutcome(Generic[T]):
    """Result of conflict resolution."""

    resolved_value: T | None
    should_delete: bool
    strategy_used: ResolutionStrategy
    fallback_reason: str | None = None  # Set when the requested strategy fell back


def field_differences(local: dict[str, Any], remote: dict[str, Any]) -> list[str]:
    """List fields present on both sides with different values.

    Skips ``id`` and private fields (leading underscore).
    """
    return [
        key
        for key in local
        if key != "id"
        and not key.startswith("_")
        and key in remote
        and local[key] != remote[key]
    ]


class ConflictResolver:
    """Resolves conflicts with per-instance strategy tables and registries.

    Usage:
        resolver = ConflictResolver()
        resolver.register_merge_fn("impact", sum_impact_metrics)

        outcome = await resolver.resolve(conflict, "impact", ResolutionStrategy.MERGE)
    """

    def __init__(
        self,
        default_strategy: ResolutionStrategy = ResolutionStrategy.LATEST_WINS,
        strategy_map: dict[ConflictKind, ResolutionStrategy] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            default_strategy: Global fallback strategy.
            strategy_map: Per-conflict-kind defaults (copied).
        """
        self._default_strategy = ResolutionStrategy(default_strategy)
        self._strategy_map = dict(
            DEFAULT_STRATEGY_MAP if strategy_map is None else strategy_map
        )
        self._merge_fns: dict[str, MergeFunction] = {}
        self._manual_resolver: ManualResolver | None = None

    @property
    def default_strategy(self) -> ResolutionStrategy:
        """Get the global default strategy."""
        return self._default_strategy

    def set_default_strategy(self, strategy: ResolutionStrategy) -> None:
        """Set the global default strategy."""
        self._default_strategy = ResolutionStrategy(strategy)

    def set_strategy_for_kind(
        self,
        kind: ConflictKind,
        strategy: ResolutionStrategy | None,
    ) -> None:
        """Set (or clear with None) the default strategy for a conflict kind."""
        if strategy is None:
            self._strategy_map.pop(kind, None)
        else:
            self._strategy_map[kind] = ResolutionStrategy(strategy)

    def strategy_for(
        self,
        kind: ConflictKind,
        override: ResolutionStrategy | None = None,
    ) -> ResolutionStrategy:
        """Select a strategy: override, then per-kind default, then global."""
        if override is not None:
            return ResolutionStrategy(override)
        return self._strategy_map.get(kind, self._default_strategy)

    def register_merge_fn(self, entity_type: str, fn: MergeFunction) -> None:
        """Register a merge function used by the MERGE strategy."""
        self._merge_fns[entity_type] = fn
        logger.debug("Registered merge function for %s", entity_type)

    def unregister_merge_fn(self, entity_type: str) -> None:
        """Remove a registered merge function."""
        self._merge_fns.pop(entity_type, None)

    def has_merge_fn(self, entity_type: str) -> bool:
        """Check if a merge function is registered for an entity type."""
        return entity_type in self._merge_fns

    def register_manual_resolver(self, fn: ManualResolver | None) -> None:
        """Register the callback used by the MANUAL strategy.

        The callback receives the ConflictRecord and returns a
        ResolutionOutcome, directly or as an awaitable.
        """
        self._manual_resolver = fn

    async def resolve(
        self,
        conflict: ConflictRecord[Any],
        entity_type: str,
        strategy: ResolutionStrategy | None = None,
    ) -> ResolutionOutcome[Any]:
        """Resolve a conflict.

        Args:
            conflict: Local and remote views of the entity.
            entity_type: Namespace selecting merge behavior.
            strategy: Optional override of the configured strategy.

        Returns:
            The resolution outcome. Never raises for callback failures.
        """
        chosen = self.strategy_for(conflict.kind, strategy)
        logger.debug(
            "Resolving %s conflict on %s/%s with %s",
            conflict.kind.value,
            entity_type,
            conflict.id,
            chosen.value,
        )

        if chosen == ResolutionStrategy.LOCAL_WINS:
            return self._local_wins(conflict)
        if chosen == ResolutionStrategy.REMOTE_WINS:
            return self._remote_wins(conflict)
        if chosen == ResolutionStrategy.MERGE:
            return self._merge(conflict, entity_type)
        if chosen == ResolutionStrategy.SMART_MERGE:
            return self._smart_merge(conflict, entity_type)
        if chosen == ResolutionStrategy.MANUAL:
            return await self._manual(conflict, entity_type)
        return self._latest_wins(conflict)

    def _local_wins(
        self,
        conflict: ConflictRecord[Any],
        strategy: ResolutionStrategy = ResolutionStrategy.LOCAL_WINS,
    ) -> ResolutionOutcome[Any]:
        if conflict.local_value is None:
            return ResolutionOutcome(None, should_delete=True, strategy_used=strategy)
        return ResolutionOutcome(
            conflict.local_value, should_delete=False, strategy_used=strategy
        )

    def _remote_wins(
        self,
        conflict: ConflictRecord[Any],
        strategy: ResolutionStrategy = ResolutionStrategy.REMOTE_WINS,
    ) -> ResolutionOutcome[Any]:
        if conflict.remote_value is None:
            return ResolutionOutcome(None, should_delete=True, strategy_used=strategy)
        return ResolutionOutcome(
            conflict.remote_value, should_delete=False, strategy_used=strategy
        )

    def _latest_wins(self, conflict: ConflictRecord[Any]) -> ResolutionOutcome[Any]:
        strategy = ResolutionStrategy.LATEST_WINS
        if conflict.local_value is None and conflict.remote_value is None:
            return ResolutionOutcome(None, should_delete=True, strategy_used=strategy)
        if conflict.local_timestamp > conflict.remote_timestamp:
            return self._local_wins(conflict, strategy)
        return self._remote_wins(conflict, strategy)

    def _fallback(
        self, conflict: ConflictRecord[Any], reason: str
    ) -> ResolutionOutcome[Any]:
        outcome = self._latest_wins(conflict)
        outcome.fallback_reason = reason
        return outcome

    def _merge(
        self, conflict: ConflictRecord[Any], entity_type: str
    ) -> ResolutionOutcome[Any]:
        if conflict.local_value is None:
            return self._remote_wins(conflict)
        if conflict.remote_value is None:
            return self._local_wins(conflict)

        merge_fn = self._merge_fns.get(entity_type)
        if merge_fn is None:
            return self._smart_merge(conflict, entity_type)

        try:
            merged = merge_fn(conflict.local_value, conflict.remote_value)
        except Exception as e:
            error = MergeFunctionError(f"Merge function for {entity_type} failed: {e}")
            logger.exception("%s, falling back to latest wins", error)
            return self._fallback(conflict, str(error))

        return ResolutionOutcome(
            merged, should_delete=False, strategy_used=ResolutionStrategy.MERGE
        )

    def _smart_merge(
        self, conflict: ConflictRecord[Any], entity_type: str
    ) -> ResolutionOutcome[Any]:
        local, remote = conflict.local_value, conflict.remote_value
        if not isinstance(local, dict) or not isinstance(remote, dict):
            # Deletions and non-record payloads have nothing to merge field-wise
            outcome = self._latest_wins(conflict)
            outcome.strategy_used = ResolutionStrategy.SMART_MERGE
            return outcome

        merged = smart_merge(
            local,
            remote,
            entity_type,
            conflict.local_timestamp,
            conflict.remote_timestamp,
        )
        return ResolutionOutcome(
            merged, should_delete=False, strategy_used=ResolutionStrategy.SMART_MERGE
        )

    async def _manual(
        self, conflict: ConflictRecord[Any], entity_type: str
    ) -> ResolutionOutcome[Any]:
        if self._manual_resolver is None:
            logger.warning(
                "No manual resolver registered for %s/%s, defaulting to latest wins",
                entity_type,
                conflict.id,
            )
            return self._fallback(conflict, "no manual resolver registered")

        try:
            result = self._manual_resolver(conflict)
            if inspect.isawaitable(result):
                result = await result
            if not isinstance(result, ResolutionOutcome):
                raise TypeError(
                    f"manual resolver returned {type(result).__name__}, "
                    "expected ResolutionOutcome"
                )
        except Exception as e:
            error = MergeFunctionError(f"Manual resolver for {entity_type} failed: {e}")
            logger.exception("%s, falling back to latest wins", error)
            return self._fallback(conflict, str(error))

        return result
