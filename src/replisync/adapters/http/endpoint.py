"""Server-side JSON glue between a web framework and ``SyncServer``.

The endpoint is framework agnostic: route the request body of ``POST /sync``
to ``handle_sync`` and of ``POST /resolve-conflict`` to
``handle_resolve_conflict``, and return the resulting mapping as JSON.
"""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .schema import (
    ConflictResolutionPayload,
    EntityCodec,
    ResolveConflictRequestPayload,
    SyncedEntityPayload,
    SyncRequestPayload,
    SyncResultPayload,
)

if TYPE_CHECKING:
    from replisync.domain.reconciliation.engine import SyncServer


@dataclass(slots=True)
class SyncEndpoint[TEntity, TKey: Hashable]:
    server: SyncServer[TEntity, TKey]
    codec: EntityCodec[TEntity]

    async def handle_sync(self, body: object) -> dict[str, Any]:
        """Validate a sync request, run the round and encode its result.

        Raises ``pydantic.ValidationError`` for malformed requests; callers map it
        to a 4xx response.
        """

        request = SyncRequestPayload.model_validate(body)
        result = await self.server.sync(
            [self.codec.decode(item) for item in request.entities],
            request.last_synced_at,
        )
        response = SyncResultPayload(
            sync_stamp=result.sync_stamp,
            synced=[
                SyncedEntityPayload(
                    entity=self.codec.encode(item.entity),
                    reassigned_key=item.reassigned_key,
                )
                for item in result.synced
            ],
            new_entities=[self.codec.encode(entity) for entity in result.new_entities],
            conflicted=[self.codec.encode(entity) for entity in result.conflicted],
        )
        return response.to_wire()

    async def handle_resolve_conflict(self, body: object) -> dict[str, Any]:
        request = ResolveConflictRequestPayload.model_validate(body)
        outcome = await self.server.resolve_conflict(
            self.codec.decode(request.entity),
            request.last_synced_at,
        )
        still_conflicted = outcome.still_requiring_resolution
        response = ConflictResolutionPayload(
            sync_stamp=outcome.sync_stamp,
            still_requiring_resolution=(
                self.codec.encode(still_conflicted) if still_conflicted is not None else None
            ),
        )
        return response.to_wire()
