"""Client-side sync orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, cast

from replisync.domain.errors import ConnectivityError
from replisync.domain.ports.client import ConflictMarkingClientStore

if TYPE_CHECKING:
    from datetime import datetime

    from replisync.domain.ports.client import ClientStore
    from replisync.domain.ports.transport import SyncTransport
    from replisync.domain.reconciliation.contracts import ConflictResolutionOutcome, SyncResult

log = getLogger(__name__)


@dataclass(slots=True)
class SyncClient[TEntity, TKey: Hashable]:
    """Drive sync round-trips for one client replica.

    Usage:
        client = SyncClient(store=local_store, transport=transport)
        await client.sync()

    The local checkpoint only advances after the whole server response has been
    applied, so a crash mid-apply replays the entire round on the next sync.
    """

    store: ClientStore[TEntity, TKey]
    transport: SyncTransport[TEntity]

    async def sync(self) -> None:
        """Push local changes, pull remote ones; a no-op while the server is unreachable."""

        try:
            last_synced_at, dirty = await asyncio.gather(
                self.store.get_last_sync_stamp(),
                self.store.get_entities_requiring_sync(),
            )
            log.info("Syncing %s local change(s) since %s", len(dirty), last_synced_at)
            result = await self.transport.sync(dirty, last_synced_at)
            await self.apply_sync_result(result)
        except ConnectivityError as exc:
            log.info("Server unreachable, sync postponed: %s", exc)

    async def apply_sync_result(self, result: SyncResult[TEntity]) -> None:
        """Write a server response into the local store, then advance the checkpoint."""

        stamp = result.sync_stamp
        for entity in result.new_entities:
            await self.store.create_entity(entity, stamp)

        for synced in result.synced:
            reassigned_key = cast("TKey | None", synced.reassigned_key)
            await self.store.update_entity(synced.entity, stamp, reassigned_key)

        if result.conflicted:
            await self._mark_conflicts(result.conflicted, stamp)

        await self.store.mark_sync_stamp(stamp)
        log.info(
            "Applied sync round %s: created=%s, updated=%s, conflicted=%s",
            stamp.isoformat(),
            len(result.new_entities),
            len(result.synced),
            len(result.conflicted),
        )

    async def resolve_conflict(self, key: TKey) -> ConflictResolutionOutcome[TEntity] | None:
        """Resubmit the local version of ``key`` after the user settled a conflict.

        Returns ``None`` when the server could not be reached.
        """

        entities = await self.store.get_entities([key])
        if not entities:
            raise LookupError(f"No local entity stored under key {key!r}")
        last_synced_at = await self.store.get_last_sync_stamp()
        if last_synced_at is None:
            raise ValueError("Conflicts can only be resolved after a completed sync")

        try:
            outcome = await self.transport.resolve_conflict(entities[0], last_synced_at)
        except ConnectivityError as exc:
            log.info("Server unreachable, conflict resolution postponed: %s", exc)
            return None

        if outcome.still_requiring_resolution is None:
            await self.store.update_entity(entities[0], outcome.sync_stamp)
        else:
            log.info("Conflict on %r persists after resubmission", key)
            await self._mark_conflicts([outcome.still_requiring_resolution], outcome.sync_stamp)
        return outcome

    async def _mark_conflicts(self, conflicted: list[TEntity], stamp: datetime) -> None:
        if not isinstance(self.store, ConflictMarkingClientStore):
            log.debug("Client store cannot mark conflicts, dropping %s", len(conflicted))
            return
        marking_store = cast("ConflictMarkingClientStore[TEntity]", self.store)
        for entity in conflicted:
            await marking_store.mark_requiring_conflict_resolution(entity, stamp)
