"""In-process transport calling a ``SyncServer`` directly."""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from replisync.domain.errors import ConnectivityError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from replisync.domain.reconciliation.contracts import ConflictResolutionOutcome, SyncResult
    from replisync.domain.reconciliation.engine import SyncServer


@dataclass(slots=True)
class LoopbackTransport[TEntity, TKey: Hashable]:
    """Stand-in for the network; flip ``online`` to simulate losing the connection."""

    server: SyncServer[TEntity, TKey]
    online: bool = True

    async def sync(
        self,
        entities: Sequence[TEntity],
        last_synced_at: datetime | None,
    ) -> SyncResult[TEntity]:
        self._ensure_online()
        return await self.server.sync(entities, last_synced_at)

    async def resolve_conflict(
        self,
        entity: TEntity,
        last_synced_at: datetime,
    ) -> ConflictResolutionOutcome[TEntity]:
        self._ensure_online()
        return await self.server.resolve_conflict(entity, last_synced_at)

    def _ensure_online(self) -> None:
        if not self.online:
            raise ConnectivityError("Loopback transport is offline")
