"""Domain modules for sync business rules.

This package centralizes business logic for the sync system:
- priorities: queue ordering and per-entity default priorities
- merge: smart merge of divergent records

Architecture:
    domain/ contains pure business logic without external dependencies.
    Implementation details (persistence, API calls) stay in the queue manager.
"""

from offlinesync.client.sync.domain.merge import (
    IMMUTABLE_FIELDS,
    EntityShape,
    coerce_timestamp,
    merge_generic,
    merge_impact,
    merge_line_item_record,
    merge_line_items,
    shape_for,
    smart_merge,
    sum_impact_metrics,
)
from offlinesync.client.sync.domain.priorities import (
    ENTITY_PRIORITIES,
    PRIORITY_RANK,
    ActionOrdering,
    PriorityThenAgeOrdering,
    priority_for,
    sort_actions,
)

__all__ = [
    # priorities
    "ENTITY_PRIORITIES",
    "PRIORITY_RANK",
    "ActionOrdering",
    "PriorityThenAgeOrdering",
    "priority_for",
    "sort_actions",
    # merge
    "IMMUTABLE_FIELDS",
    "EntityShape",
    "coerce_timestamp",
    "merge_generic",
    "merge_impact",
    "merge_line_item_record",
    "merge_line_items",
    "shape_for",
    "smart_merge",
    "sum_impact_metrics",
]
