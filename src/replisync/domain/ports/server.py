"""Ports implemented by the host application on the server side."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

type TransactionHook = Callable[[], Awaitable[None]]


@dataclass(frozen=True, slots=True, kw_only=True)
class EntityAccessors[TEntity, TKey: Hashable]:
    """Pure functions describing an opaque entity to the sync core."""

    key: Callable[[TEntity], TKey]
    are_equal: Callable[[TEntity, TEntity], bool]
    # only consulted by the most-recent-wins strategy
    last_updated: Callable[[TEntity], datetime] | None = None


@runtime_checkable
class ServerStore[TEntity, TKey: Hashable](Protocol):
    """Authoritative entity storage consulted by the reconciliation engine."""

    async def get_entities(self, keys: Sequence[TKey]) -> Sequence[TEntity]:
        """Point lookup; missing keys are simply absent from the result."""
        ...

    async def get_entities_synced_since(self, since: datetime | None) -> Sequence[TEntity]:
        """Entities whose sync stamp is strictly after ``since`` (all when ``None``)."""
        ...

    async def update_entity(self, entity: TEntity, sync_stamp: datetime) -> TEntity:
        """Overwrite the stored entity and return the persisted, stamped version."""
        ...

    async def create_entity(self, entity: TEntity, sync_stamp: datetime) -> TEntity:
        """Persist a new entity; the returned key may differ from the submitted one."""
        ...


@dataclass(frozen=True, slots=True)
class TransactionHooks:
    """Optional transaction boundary around one sync round.

    Absent hooks are skipped. Without hooks a failing round may leave partial
    writes behind.
    """

    start: TransactionHook | None = None
    commit: TransactionHook | None = None
    rollback: TransactionHook | None = None

    async def start_transaction(self) -> None:
        if self.start is not None:
            await self.start()

    async def commit_transaction(self) -> None:
        if self.commit is not None:
            await self.commit()

    async def roll_back_transaction(self) -> None:
        if self.rollback is not None:
            await self.rollback()


NO_TRANSACTION = TransactionHooks()
