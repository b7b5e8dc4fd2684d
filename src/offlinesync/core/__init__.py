"""Core module - Shared configuration and types."""

from offlinesync.core.config import ServerConfig, SyncConfig
from offlinesync.core.types import (
    GiveUpPolicy,
    ResolutionStrategy,
    SyncPriorityFilter,
    SyncState,
)

__all__ = [
    # Config
    "ServerConfig",
    "SyncConfig",
    # Types
    "GiveUpPolicy",
    "ResolutionStrategy",
    "SyncPriorityFilter",
    "SyncState",
]
