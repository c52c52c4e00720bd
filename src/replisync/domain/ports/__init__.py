"""Domain port definitions for adapters."""

from __future__ import annotations

from .client import ClientStore, ConflictMarkingClientStore
from .server import (
    NO_TRANSACTION,
    EntityAccessors,
    ServerStore,
    TransactionHook,
    TransactionHooks,
)
from .transport import SyncTransport

__all__ = [
    "NO_TRANSACTION",
    "ClientStore",
    "ConflictMarkingClientStore",
    "EntityAccessors",
    "ServerStore",
    "SyncTransport",
    "TransactionHook",
    "TransactionHooks",
]
