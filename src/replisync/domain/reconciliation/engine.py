"""Server-side reconciliation engine.

One call to ``SyncServer.sync`` is one sync round for one client submission:
classify every submitted entity as create, update, conflict or no-op against
the entities other clients synced since the submitter's checkpoint, apply the
conflict policy, and report back what the client has to create, overwrite or
flag. Rounds are all-or-nothing as far as the transaction hooks allow.
"""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from replisync.domain.clock import ensure_aware, utcnow
from replisync.domain.ports.server import NO_TRANSACTION, TransactionHooks

from .contracts import ConflictResolutionOutcome, ConflictStrategy, SyncedEntity, SyncResult
from .policy import ConflictPolicy, coerce_strategy

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from replisync.domain.clock import Clock
    from replisync.domain.ports.server import EntityAccessors, ServerStore

    from .contracts import ConflictResolutionStrategy, CustomResolver

log = getLogger(__name__)


@dataclass(slots=True)
class SyncServer[TEntity, TKey: Hashable]:
    """Reconcile client submissions against the authoritative server store."""

    store: ServerStore[TEntity, TKey]
    accessors: EntityAccessors[TEntity, TKey]
    conflict_strategy: ConflictStrategy | str | CustomResolver[TEntity] = (
        ConflictStrategy.TAKE_CLIENT
    )
    transaction: TransactionHooks = field(default=NO_TRANSACTION)
    clock: Clock = field(default=utcnow)
    _policy: ConflictPolicy[TEntity, TKey] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        strategy: ConflictResolutionStrategy[TEntity] = coerce_strategy(self.conflict_strategy)
        self.conflict_strategy = strategy
        self._policy = ConflictPolicy(strategy=strategy, store=self.store, accessors=self.accessors)

    async def sync(
        self,
        client_entities: Sequence[TEntity],
        last_synced_at: datetime | None = None,
    ) -> SyncResult[TEntity]:
        """Run one sync round for ``client_entities`` submitted by a single client."""

        since = ensure_aware(last_synced_at)
        sync_stamp = self.clock()
        result: SyncResult[TEntity] = SyncResult(sync_stamp=sync_stamp)
        log.info(
            "Starting sync round %s: submitted=%s, last_synced_at=%s",
            sync_stamp.isoformat(),
            len(client_entities),
            since,
        )

        await self.transaction.start_transaction()
        try:
            await self._reconcile(client_entities, since, sync_stamp, result)
            await self.transaction.commit_transaction()
        except BaseException:
            log.warning("Sync round %s failed, rolling back", sync_stamp.isoformat(), exc_info=True)
            await self.transaction.roll_back_transaction()
            raise

        log.info(
            "Finished sync round %s: synced=%s, new=%s, conflicted=%s",
            sync_stamp.isoformat(),
            len(result.synced),
            len(result.new_entities),
            len(result.conflicted),
        )
        return result

    async def resolve_conflict(
        self,
        resolved_entity: TEntity,
        last_synced_at: datetime,
    ) -> ConflictResolutionOutcome[TEntity]:
        """Apply a client's out-of-band decision unless the entity moved on again."""

        since = ensure_aware(last_synced_at)
        sync_stamp = self.clock()
        outcome: ConflictResolutionOutcome[TEntity] = ConflictResolutionOutcome(sync_stamp=sync_stamp)
        key = self.accessors.key(resolved_entity)

        await self.transaction.start_transaction()
        try:
            modified = await self.store.get_entities_synced_since(since)
            conflicted_again = _find_by_key(modified, key, self.accessors)
            if conflicted_again is not None and not self.accessors.are_equal(
                resolved_entity, conflicted_again
            ):
                log.info("Entity %r was modified again, conflict persists", key)
                outcome.still_requiring_resolution = conflicted_again
            else:
                await self.store.update_entity(resolved_entity, sync_stamp)
                log.info("Resolved conflict for %r", key)
            await self.transaction.commit_transaction()
        except BaseException:
            log.warning("Conflict resolution for %r failed, rolling back", key, exc_info=True)
            await self.transaction.roll_back_transaction()
            raise
        return outcome

    async def _reconcile(
        self,
        client_entities: Sequence[TEntity],
        since: datetime | None,
        sync_stamp: datetime,
        result: SyncResult[TEntity],
    ) -> None:
        key_of = self.accessors.key
        stored, modified = await asyncio.gather(
            self.store.get_entities([key_of(entity) for entity in client_entities]),
            self.store.get_entities_synced_since(since),
        )
        stored_by_key = _index_by_key(stored, self.accessors)
        modified_by_key = _index_by_key(modified, self.accessors)
        handled: set[TKey] = set()

        for client_entity in client_entities:
            key = key_of(client_entity)
            conflicting = modified_by_key.get(key)

            if conflicting is not None:
                if self.accessors.are_equal(client_entity, conflicting):
                    log.debug("Entity %r already matches the server, nothing to write", key)
                    result.synced.append(SyncedEntity(conflicting))
                else:
                    await self._policy.resolve(client_entity, conflicting, sync_stamp, result)
            elif key in stored_by_key:
                updated = await self.store.update_entity(client_entity, sync_stamp)
                result.synced.append(SyncedEntity(updated))
            else:
                await self._create(client_entity, key, sync_stamp, result)
            handled.add(key)

        for key, server_entity in modified_by_key.items():
            if key not in handled:
                result.new_entities.append(server_entity)

    async def _create(
        self,
        client_entity: TEntity,
        key: TKey,
        sync_stamp: datetime,
        result: SyncResult[TEntity],
    ) -> None:
        created = await self.store.create_entity(client_entity, sync_stamp)
        created_key = self.accessors.key(created)
        if created_key != key:
            # collision, or a provisional client key promoted to a permanent one
            log.debug("Entity %r stored under reassigned key %r", key, created_key)
            result.synced.append(SyncedEntity(client_entity, reassigned_key=created_key))
        else:
            result.synced.append(SyncedEntity(created))


def _index_by_key[TEntity, TKey: Hashable](
    entities: Sequence[TEntity],
    accessors: EntityAccessors[TEntity, TKey],
) -> dict[TKey, TEntity]:
    indexed: dict[TKey, TEntity] = {}
    for entity in entities:
        indexed.setdefault(accessors.key(entity), entity)
    return indexed


def _find_by_key[TEntity, TKey: Hashable](
    entities: Sequence[TEntity],
    key: TKey,
    accessors: EntityAccessors[TEntity, TKey],
) -> TEntity | None:
    return next((entity for entity in entities if accessors.key(entity) == key), None)
