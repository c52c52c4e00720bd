"""Shared reconciliation contract components.

This module intentionally holds only:
- the per-round result containers exchanged between server and client
- the conflict strategy tags and the custom resolver callback contract
"""

from __future__ import annotations

from collections.abc import Awaitable, Hashable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from datetime import datetime


class ConflictStrategy(StrEnum):
    """Built-in policies applied when a submitted entity conflicts."""

    TAKE_SERVER = "takeServer"
    TAKE_CLIENT = "takeClient"
    LAST_UPDATED = "lastUpdated"
    ASK_CLIENT = "askClient"


@dataclass(slots=True)
class SyncedEntity[TEntity]:
    """Entity the client must create or overwrite locally."""

    entity: TEntity
    # permanent key assigned by the server when it differs from the submitted one
    reassigned_key: Hashable | None = None


@dataclass(slots=True)
class SyncResult[TEntity]:
    """Outcome of one sync round, built up sequentially by the engine."""

    sync_stamp: datetime
    synced: list[SyncedEntity[TEntity]] = field(default_factory=list["SyncedEntity[Any]"])
    new_entities: list[TEntity] = field(default_factory=list["Any"])
    conflicted: list[TEntity] = field(default_factory=list["Any"])

    @property
    def is_empty(self) -> bool:
        return not (self.synced or self.new_entities or self.conflicted)


@dataclass(slots=True)
class ConflictResolutionOutcome[TEntity]:
    """Result of resubmitting one entity after an out-of-band conflict decision."""

    sync_stamp: datetime
    still_requiring_resolution: TEntity | None = None

    @property
    def resolved(self) -> bool:
        return self.still_requiring_resolution is None


class CustomResolver[TEntity](Protocol):
    """Caller-supplied conflict policy.

    The resolver owns the outcome for its entity: it may write to the store itself
    and must push into ``result`` exactly what the client should see. The engine
    does no bucketing after calling it, and ``result`` must not be retained beyond
    the call.
    """

    def __call__(
        self,
        client_entity: TEntity,
        server_entity: TEntity,
        sync_stamp: datetime,
        result: SyncResult[TEntity],
    ) -> Awaitable[None] | None: ...


type ConflictResolutionStrategy[TEntity] = ConflictStrategy | CustomResolver[TEntity]
