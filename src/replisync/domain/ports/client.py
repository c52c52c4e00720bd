"""Ports implemented by the host application on the client side."""

from __future__ import annotations

from collections.abc import Hashable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime


@runtime_checkable
class ClientStore[TEntity, TKey: Hashable](Protocol):
    """Local replica storage driven by the sync orchestrator."""

    async def get_entities_requiring_sync(self) -> Sequence[TEntity]: ...

    async def get_entities(self, keys: Sequence[TKey]) -> Sequence[TEntity]: ...

    async def get_last_sync_stamp(self) -> datetime | None: ...

    async def mark_sync_stamp(self, sync_stamp: datetime) -> None: ...

    async def update_entity(
        self,
        entity: TEntity,
        sync_stamp: datetime,
        reassigned_key: TKey | None = None,
    ) -> None:
        """Overwrite the local row for ``entity``, re-keying it when ``reassigned_key`` is set."""
        ...

    async def create_entity(self, entity: TEntity, sync_stamp: datetime) -> None: ...


@runtime_checkable
class ConflictMarkingClientStore[TEntity](Protocol):
    """Optional capability: remember server versions that need a user decision."""

    async def mark_requiring_conflict_resolution(
        self,
        entity: TEntity,
        sync_stamp: datetime,
    ) -> None: ...
