"""Shared types for offlinesync.

This module defines types and enums used across the engine and its
observers (scheduler, status subscribers, CLI).
"""

from __future__ import annotations

from enum import Enum


class SyncState(str, Enum):
    """Sync state of the client as reported to status subscribers."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    OFFLINE = "offline"


class ResolutionStrategy(str, Enum):
    """Policy used to pick a winning value when local and remote diverge."""

    LOCAL_WINS = "local_wins"
    REMOTE_WINS = "remote_wins"
    LATEST_WINS = "latest_wins"  # Ties favor remote
    MERGE = "merge"  # Registered merge function, else smart merge
    SMART_MERGE = "smart_merge"
    MANUAL = "manual"  # Registered resolver, else latest wins


class GiveUpPolicy(str, Enum):
    """What happens to an action once its retry budget is spent."""

    DEPRIORITIZE = "deprioritize"  # Demote to LOW and keep for manual review
    DROP = "drop"  # Remove from the queue


class SyncPriorityFilter(str, Enum):
    """Which queued actions a sync cycle processes."""

    ALL = "all"
    HIGH_ONLY = "high_only"  # Only HIGH priority actions; the rest wait
