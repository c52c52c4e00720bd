"""Server-side reconciliation of client submissions.

Flow of one round:
1) stamp the round and open the transaction
2) fetch stored versions of the submitted keys and everything synced since the
   client's checkpoint
3) classify each submitted entity as create, update, no-op or conflict
4) hand real conflicts to the configured policy
5) report server-side changes the client has not seen yet
6) commit, or roll back and re-raise
"""

from __future__ import annotations

from .contracts import (
    ConflictResolutionOutcome,
    ConflictResolutionStrategy,
    ConflictStrategy,
    CustomResolver,
    SyncedEntity,
    SyncResult,
)
from .engine import SyncServer
from .policy import ConflictPolicy, coerce_strategy

__all__ = [
    "ConflictPolicy",
    "ConflictResolutionOutcome",
    "ConflictResolutionStrategy",
    "ConflictStrategy",
    "CustomResolver",
    "SyncResult",
    "SyncServer",
    "SyncedEntity",
    "coerce_strategy",
]
