"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, PersistenceError, MergeFunctionError: Exception classes
- ActionKind, Priority: Pending action enums
- PendingAction: A queued local mutation awaiting remote application
- SyncTrigger, SyncOutcome, SyncReport: Sync cycle types
- Type aliases for callbacks
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from offlinesync.core.types import GiveUpPolicy, ResolutionStrategy, SyncState

DEFAULT_ACTION_MAX_RETRIES = 5

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


class SyncError(Exception):
    """Base exception for sync errors."""


class PersistenceError(SyncError):
    """The durable local store failed to read or write."""


class MergeFunctionError(SyncError):
    """A caller-supplied merge or manual-resolution callback raised."""


class ActionKind(str, Enum):
    """Type of queued mutation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    QUERY = "query"


class Priority(str, Enum):
    """Priority of a queued action. Rank order lives in domain.priorities."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SyncTrigger(str, Enum):
    """Event that initiated a sync cycle."""

    NETWORK_RECONNECTION = "network_reconnection"
    APP_FOREGROUND = "app_foreground"
    PERIODIC = "periodic"
    MANUAL = "manual"
    NEW_ACTION = "new_action"


class SyncOutcome(str, Enum):
    """Overall result of a sync cycle."""

    COMPLETED = "completed"
    SKIPPED = "skipped"  # Offline or another cycle in progress
    FAILED = "failed"  # Persistence failed


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_action_id(timestamp: int | None = None) -> str:
    """Generate a unique action id: action_<ms>_<9 base36 chars>."""
    ts = now_ms() if timestamp is None else timestamp
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"action_{ts}_{suffix}"


@dataclass
class PendingAction:
    """A queued local mutation awaiting application to the remote service.

    Attributes:
        id: Unique id assigned at enqueue time.
        kind: Mutation type.
        entity_type: Namespace used to select merge behavior (e.g. "order").
        entity_id: Remote id; required for update and delete.
        payload: Local data snapshot taken at enqueue time.
        enqueued_at: Epoch milliseconds, secondary sort key and local
            conflict timestamp.
        priority: Queue priority.
        retry_count: Failed attempts so far.
        max_retries: Retry budget.
        last_error: Diagnostic from the last failed attempt.
    """

    id: str
    kind: ActionKind
    entity_type: str
    payload: Any = None
    entity_id: str | None = None
    enqueued_at: int = field(default_factory=now_ms)
    priority: Priority = Priority.MEDIUM
    retry_count: int = 0
    max_retries: int = DEFAULT_ACTION_MAX_RETRIES
    last_error: str | None = None

    def __post_init__(self) -> None:
        self.kind = ActionKind(self.kind)
        self.priority = Priority(self.priority)
        if self.kind in (ActionKind.UPDATE, ActionKind.DELETE) and not self.entity_id:
            raise ValueError(f"{self.kind.value} action requires an entity_id")
        if self.kind == ActionKind.UPDATE and self.payload is None:
            raise ValueError("update action requires a payload")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        self.retry_count = min(max(self.retry_count, 0), self.max_retries)

    @property
    def is_exhausted(self) -> bool:
        """Check if the retry budget is spent."""
        return self.retry_count >= self.max_retries

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted record layout."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "payload": self.payload,
            "enqueuedAt": self.enqueued_at,
            "priority": self.priority.value,
            "retryCount": self.retry_count,
            "maxRetries": self.max_retries,
            "lastError": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingAction:
        """Create from a persisted record.

        Older records used ``type``/``data``/``timestamp`` and had no
        ``maxRetries``; both layouts are accepted.
        """
        return cls(
            id=data["id"],
            kind=ActionKind(data.get("kind", data.get("type"))),
            entity_type=data["entityType"],
            entity_id=data.get("entityId"),
            payload=data.get("payload", data.get("data")),
            enqueued_at=int(data.get("enqueuedAt", data.get("timestamp", 0))),
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            retry_count=int(data.get("retryCount", 0)),
            max_retries=int(data.get("maxRetries", DEFAULT_ACTION_MAX_RETRIES)),
            last_error=data.get("lastError"),
        )

    def __repr__(self) -> str:
        return (
            f"PendingAction({self.id}, {self.kind.value} {self.entity_type}"
            f"{'/' + self.entity_id if self.entity_id else ''}, "
            f"{self.priority.value}, retries={self.retry_count}/{self.max_retries})"
        )


@dataclass
class SyncReport:
    """Result of one sync cycle."""

    outcome: SyncOutcome
    trigger: SyncTrigger
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    gave_up: int = 0
    duration_ms: int = 0
    error: str | None = None

    @classmethod
    def skipped(cls, trigger: SyncTrigger, reason: str) -> SyncReport:
        """Build a report for a cycle that never ran."""
        return cls(outcome=SyncOutcome.SKIPPED, trigger=trigger, error=reason)


# Callback types
StatusCallback = Callable[[SyncState], None]
MergeFunction = Callable[[Any, Any], Any]
ManualResolver = Callable[..., Any | Awaitable[Any]]

__all__ = [
    "DEFAULT_ACTION_MAX_RETRIES",
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
    "now_ms",
]
