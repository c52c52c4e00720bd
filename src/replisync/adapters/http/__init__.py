"""JSON-over-HTTP transport for the sync protocol."""

from __future__ import annotations

from .endpoint import SyncEndpoint
from .schema import (
    ConflictResolutionPayload,
    DocumentCodec,
    DocumentPayload,
    EntityCodec,
    ResolveConflictRequestPayload,
    SyncedEntityPayload,
    SyncRequestPayload,
    SyncResultPayload,
)
from .transport import RESOLVE_CONFLICT_PATH, SYNC_PATH, HttpSyncTransport, SyncProtocolError

__all__ = [
    "RESOLVE_CONFLICT_PATH",
    "SYNC_PATH",
    "ConflictResolutionPayload",
    "DocumentCodec",
    "DocumentPayload",
    "EntityCodec",
    "HttpSyncTransport",
    "ResolveConflictRequestPayload",
    "SyncEndpoint",
    "SyncProtocolError",
    "SyncRequestPayload",
    "SyncResultPayload",
    "SyncedEntityPayload",
]
