"""Smart merge of divergent local and remote records.

Payloads are JSON-like dicts. Instead of merging arbitrary object graphs,
every namespace maps onto one of a small closed set of shapes:

| Shape      | Namespaces            | Rule                                  |
|------------|-----------------------|---------------------------------------|
| IMPACT     | impact                | Numeric fields are summed             |
| LINE_ITEMS | collection, order     | Items merged by id, newest item wins  |
| GENERIC    | everything else       | Remote base, local scalars if newer   |

Nested dicts recurse with a namespaced sub-type ("order.impact"), and the
shape is chosen from the last segment, so an impact block nested inside an
order is still summed.

Arrays are not diffed by the generic rule: the remote array is kept.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any

# Identifier and metadata fields never copied from local
IMMUTABLE_FIELDS = frozenset({"id", "createdAt", "updatedAt"})

# Per-item fields taken from the newer side of a line item
LINE_ITEM_FIELDS = ("quantity", "qty", "notes")

Record = dict[str, Any]


class EntityShape(Enum):
    """Mergeable payload shapes."""

    GENERIC = auto()
    IMPACT = auto()
    LINE_ITEMS = auto()


SHAPES: dict[str, EntityShape] = {
    "impact": EntityShape.IMPACT,
    "collection": EntityShape.LINE_ITEMS,
    "order": EntityShape.LINE_ITEMS,
}


def shape_for(entity_type: str) -> EntityShape:
    """Get the merge shape for a (possibly namespaced) entity type."""
    leaf = entity_type.rsplit(".", 1)[-1]
    return SHAPES.get(leaf, EntityShape.GENERIC)


def coerce_timestamp(value: Any, default: float = 0.0) -> float:
    """Convert a timestamp field to epoch milliseconds.

    Accepts numbers (already milliseconds) and ISO-8601 strings; strings
    without an offset are read as UTC. Anything else yields ``default``.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return default
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp() * 1000
    return default


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def merge_generic(
    local: Record,
    remote: Record,
    entity_type: str,
    local_timestamp: float,
    remote_timestamp: float,
) -> Record:
    """Merge field by field on top of a shallow copy of remote."""
    merged = dict(remote)
    local_newer = local_timestamp > remote_timestamp

    for key, local_value in local.items():
        if key in IMMUTABLE_FIELDS:
            continue
        if key not in remote:
            merged[key] = local_value
            continue

        remote_value = remote[key]
        if isinstance(local_value, dict) and isinstance(remote_value, dict):
            merged[key] = smart_merge(
                local_value,
                remote_value,
                f"{entity_type}.{key}",
                local_timestamp,
                remote_timestamp,
            )
        elif isinstance(local_value, list):
            continue  # Remote array already in base
        elif local_newer:
            merged[key] = local_value

    return merged


def merge_impact(
    local: Record,
    remote: Record,
    entity_type: str,
    local_timestamp: float,
    remote_timestamp: float,
) -> Record:
    """Sum numeric metrics; impact accumulates across sessions."""
    merged = merge_generic(local, remote, entity_type, local_timestamp, remote_timestamp)
    for key, local_value in local.items():
        if key in IMMUTABLE_FIELDS:
            continue
        remote_value = remote.get(key)
        if _is_number(local_value) and _is_number(remote_value):
            merged[key] = local_value + remote_value
    return merged


def _merge_item(local_item: Record, remote_item: Record) -> Record:
    local_updated = coerce_timestamp(local_item.get("updatedAt"))
    remote_updated = coerce_timestamp(remote_item.get("updatedAt"))

    merged = dict(remote_item)
    if local_updated > remote_updated:
        for field in LINE_ITEM_FIELDS:
            if field in local_item:
                merged[field] = local_item[field]
        merged["updatedAt"] = local_item.get("updatedAt", merged.get("updatedAt"))
    return merged


def _item_id(item: Any) -> Any:
    if isinstance(item, dict):
        return item.get("id")
    return None


def merge_line_items(local_items: list[Any], remote_items: list[Any]) -> list[Any]:
    """Merge two item lists by item id.

    Remote order is kept, local-only items are appended in local order.
    Items without an id are kept from both sides.
    """
    local_by_id = {
        _item_id(item): item for item in local_items if _item_id(item) is not None
    }
    remote_ids = {_item_id(item) for item in remote_items if _item_id(item) is not None}

    merged: list[Any] = []
    for remote_item in remote_items:
        item_id = _item_id(remote_item)
        if item_id is not None and item_id in local_by_id:
            merged.append(_merge_item(local_by_id[item_id], remote_item))
        else:
            merged.append(remote_item)

    for local_item in local_items:
        item_id = _item_id(local_item)
        if item_id is None or item_id not in remote_ids:
            merged.append(local_item)

    return merged


def merge_line_item_record(
    local: Record,
    remote: Record,
    entity_type: str,
    local_timestamp: float,
    remote_timestamp: float,
) -> Record:
    """Merge an order/collection: items by id, metadata from the newer side."""
    merged = merge_generic(local, remote, entity_type, local_timestamp, remote_timestamp)

    local_items = local.get("items")
    remote_items = remote.get("items")
    if isinstance(local_items, list) and isinstance(remote_items, list):
        merged["items"] = merge_line_items(local_items, remote_items)

    if "metadata" in local or "metadata" in remote:
        local_newer = local_timestamp > remote_timestamp
        if (local_newer and "metadata" in local) or "metadata" not in remote:
            merged["metadata"] = local["metadata"]
        else:
            merged["metadata"] = remote["metadata"]

    return merged


MergeRule = Callable[[Record, Record, str, float, float], Record]

RULES: dict[EntityShape, MergeRule] = {
    EntityShape.GENERIC: merge_generic,
    EntityShape.IMPACT: merge_impact,
    EntityShape.LINE_ITEMS: merge_line_item_record,
}


def smart_merge(
    local: Record,
    remote: Record,
    entity_type: str,
    local_timestamp: float,
    remote_timestamp: float,
) -> Record:
    """Merge two divergent records using the rule for the entity's shape.

    Args:
        local: Local record.
        remote: Remote record.
        entity_type: Namespace, possibly dotted for nested records.
        local_timestamp: Record-level local modification time.
        remote_timestamp: Record-level remote modification time.

    Returns:
        A new merged record. Inputs are not modified.
    """
    rule = RULES[shape_for(entity_type)]
    return rule(local, remote, entity_type, local_timestamp, remote_timestamp)


def sum_impact_metrics(local: Record, remote: Record) -> Record:
    """Merge function for impact records: remote base with metrics summed."""
    merged = dict(remote)
    for key, local_value in local.items():
        if key in IMMUTABLE_FIELDS:
            continue
        remote_value = remote.get(key)
        if _is_number(local_value) and _is_number(remote_value):
            merged[key] = local_value + remote_value
        elif key not in remote:
            merged[key] = local_value
    return merged
