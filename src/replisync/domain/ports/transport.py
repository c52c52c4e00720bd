"""Port for reaching the reconciliation engine from a client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from replisync.domain.reconciliation.contracts import ConflictResolutionOutcome, SyncResult


@runtime_checkable
class SyncTransport[TEntity](Protocol):
    """One logical network call per operation.

    Implementations raise ``ConnectivityError`` when the server is unreachable and
    own request timeouts.
    """

    async def sync(
        self,
        entities: Sequence[TEntity],
        last_synced_at: datetime | None,
    ) -> SyncResult[TEntity]: ...

    async def resolve_conflict(
        self,
        entity: TEntity,
        last_synced_at: datetime,
    ) -> ConflictResolutionOutcome[TEntity]: ...
