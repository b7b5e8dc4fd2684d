"""Queue ordering strategy.

Actions are ordered by priority rank first (HIGH=0, MEDIUM=1, LOW=2), then
by enqueue time (oldest first). The sort is stable, so actions enqueued in
the same millisecond keep their insertion order.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from offlinesync.client.sync.types import PendingAction, Priority

PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}

# Default priority per entity type, used when enqueue gets none
ENTITY_PRIORITIES: dict[str, Priority] = {
    "collection": Priority.HIGH,
    "order": Priority.HIGH,
    "user": Priority.HIGH,
    "impact": Priority.MEDIUM,
    "material": Priority.MEDIUM,
    "challenge": Priority.MEDIUM,
    "achievement": Priority.LOW,
    "feedback": Priority.LOW,
}


class ActionOrdering(Protocol):
    """Protocol for producing a queue sort key."""

    def sort_key(self, action: PendingAction) -> tuple[int, int]:
        """Return the key actions are sorted by (ascending)."""
        ...


class PriorityThenAgeOrdering:
    """Orders by priority rank, then oldest enqueue time first."""

    def sort_key(self, action: PendingAction) -> tuple[int, int]:
        return PRIORITY_RANK[action.priority], action.enqueued_at


def priority_for(entity_type: str) -> Priority:
    """Get the default priority for an entity type (MEDIUM if unknown)."""
    return ENTITY_PRIORITIES.get(entity_type, Priority.MEDIUM)


def sort_actions(
    actions: Iterable[PendingAction],
    ordering: ActionOrdering | None = None,
) -> list[PendingAction]:
    """Return actions in processing order."""
    ordering = ordering or PriorityThenAgeOrdering()
    return sorted(actions, key=ordering.sort_key)
