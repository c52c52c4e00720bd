"""Conflict resolution policy for the reconciliation engine.

Responsibilities of this stage:
- decide, for one conflicting entity, whether the client or the server wins
- perform the store write that decision implies
- record the outcome in the in-flight ``SyncResult``

It is only consulted once the engine established that the submitted entity and
the concurrently modified server entity really differ.
"""

from __future__ import annotations

import inspect
from collections.abc import Hashable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, assert_never

from .contracts import ConflictStrategy, SyncedEntity

if TYPE_CHECKING:
    from datetime import datetime

    from replisync.domain.ports.server import EntityAccessors, ServerStore

    from .contracts import ConflictResolutionStrategy, CustomResolver, SyncResult

log = getLogger(__name__)


def coerce_strategy[TEntity](
    value: ConflictStrategy | str | CustomResolver[TEntity],
) -> ConflictResolutionStrategy[TEntity]:
    """Normalise a strategy tag or resolver, rejecting unknown tags."""

    if isinstance(value, ConflictStrategy):
        return value
    if isinstance(value, str):
        try:
            return ConflictStrategy(value)
        except ValueError as exc:
            raise ValueError(f"Unknown conflict resolution strategy: {value!r}") from exc
    if callable(value):
        return value
    raise TypeError(f"Conflict resolution strategy must be a tag or a callable, got {value!r}")


@dataclass(slots=True)
class ConflictPolicy[TEntity, TKey: Hashable]:
    """Apply the configured strategy to one conflicting entity."""

    strategy: ConflictResolutionStrategy[TEntity]
    store: ServerStore[TEntity, TKey]
    accessors: EntityAccessors[TEntity, TKey]

    def __post_init__(self) -> None:
        if self.strategy is ConflictStrategy.LAST_UPDATED and self.accessors.last_updated is None:
            raise ValueError("The lastUpdated strategy requires a last_updated accessor")

    async def resolve(
        self,
        client_entity: TEntity,
        server_entity: TEntity,
        sync_stamp: datetime,
        result: SyncResult[TEntity],
    ) -> None:
        strategy = self.strategy
        if not isinstance(strategy, ConflictStrategy):
            # custom resolvers own the bucketing for this entity
            outcome = strategy(client_entity, server_entity, sync_stamp, result)
            if inspect.isawaitable(outcome):
                await outcome
            return

        match strategy:
            case ConflictStrategy.TAKE_CLIENT:
                await self._take_client(client_entity, sync_stamp, result)
            case ConflictStrategy.TAKE_SERVER:
                self._take_server(server_entity, result)
            case ConflictStrategy.LAST_UPDATED:
                if self._client_is_newer(client_entity, server_entity):
                    await self._take_client(client_entity, sync_stamp, result)
                else:
                    self._take_server(server_entity, result)
            case ConflictStrategy.ASK_CLIENT:
                log.debug("Deferring conflict on %r to the client", self.accessors.key(client_entity))
                result.conflicted.append(server_entity)
            case _:
                assert_never(strategy)

    async def _take_client(
        self,
        client_entity: TEntity,
        sync_stamp: datetime,
        result: SyncResult[TEntity],
    ) -> None:
        log.debug("Client version wins for %r", self.accessors.key(client_entity))
        updated = await self.store.update_entity(client_entity, sync_stamp)
        result.synced.append(SyncedEntity(updated))

    def _take_server(self, server_entity: TEntity, result: SyncResult[TEntity]) -> None:
        log.debug("Server version wins for %r", self.accessors.key(server_entity))
        result.synced.append(SyncedEntity(server_entity))

    def _client_is_newer(self, client_entity: TEntity, server_entity: TEntity) -> bool:
        last_updated = self.accessors.last_updated
        if last_updated is None:
            raise ValueError("The lastUpdated strategy requires a last_updated accessor")
        # ties go to the server
        return last_updated(client_entity) > last_updated(server_entity)
