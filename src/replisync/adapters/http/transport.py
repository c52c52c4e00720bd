"""HTTP client transport for reaching a remote sync server."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from pydantic import ValidationError

from replisync.adapters.http_resilience import ResilienceConfig, ResilientClient
from replisync.domain.errors import ConnectivityError
from replisync.domain.reconciliation.contracts import (
    ConflictResolutionOutcome,
    SyncedEntity,
    SyncResult,
)

from .schema import (
    ConflictResolutionPayload,
    EntityCodec,
    ResolveConflictRequestPayload,
    SyncRequestPayload,
    SyncResultPayload,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from replisync.config.transport import TransportConfig

log = getLogger(__name__)

SYNC_PATH: Final[str] = "/sync"
RESOLVE_CONFLICT_PATH: Final[str] = "/resolve-conflict"
# gateway failures mean the sync service itself is out of reach
_UNREACHABLE_STATUSES: Final[frozenset[int]] = frozenset({502, 503, 504})


class SyncProtocolError(RuntimeError):
    """Raised when the server answers with a payload that does not match the protocol."""


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpSyncTransport[TEntity]:
    """``SyncTransport`` speaking JSON over HTTP to a ``SyncEndpoint``."""

    resilience: ResilienceConfig
    codec: EntityCodec[TEntity]
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    @classmethod
    def from_config(
        cls,
        config: TransportConfig,
        codec: EntityCodec[TEntity],
    ) -> HttpSyncTransport[TEntity]:
        return cls(resilience=config.resilience, codec=codec)

    async def sync(
        self,
        entities: Sequence[TEntity],
        last_synced_at: datetime | None,
    ) -> SyncResult[TEntity]:
        request = SyncRequestPayload(
            entities=[self.codec.encode(entity) for entity in entities],
            last_synced_at=last_synced_at,
        )
        body = await self._post(SYNC_PATH, request.to_wire())
        payload = _parse(SyncResultPayload, body)
        return SyncResult(
            sync_stamp=payload.sync_stamp,
            synced=[
                SyncedEntity(self.codec.decode(item.entity), reassigned_key=item.reassigned_key)
                for item in payload.synced
            ],
            new_entities=[self.codec.decode(item) for item in payload.new_entities],
            conflicted=[self.codec.decode(item) for item in payload.conflicted],
        )

    async def resolve_conflict(
        self,
        entity: TEntity,
        last_synced_at: datetime,
    ) -> ConflictResolutionOutcome[TEntity]:
        request = ResolveConflictRequestPayload(
            entity=self.codec.encode(entity),
            last_synced_at=last_synced_at,
        )
        body = await self._post(RESOLVE_CONFLICT_PATH, request.to_wire())
        payload = _parse(ConflictResolutionPayload, body)
        still_conflicted = payload.still_requiring_resolution
        return ConflictResolutionOutcome(
            sync_stamp=payload.sync_stamp,
            still_requiring_resolution=(
                self.codec.decode(still_conflicted) if still_conflicted is not None else None
            ),
        )

    async def _post(self, path: str, payload: dict[str, object]) -> object:
        try:
            async with self.client_factory(self.resilience) as client:
                response = await client.post_json(path, payload)
        except httpx.TransportError as exc:
            raise ConnectivityError(f"Could not reach sync server at {path}: {exc}") from exc

        if response.status_code in _UNREACHABLE_STATUSES:
            raise ConnectivityError(
                f"Sync server unavailable at {path}: HTTP {response.status_code}"
            )
        response.raise_for_status()
        log.debug("POST %s answered with HTTP %s", path, response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise SyncProtocolError(f"Sync server answered {path} with a non-JSON body") from exc


def _parse[TPayload: (SyncResultPayload, ConflictResolutionPayload)](
    model: type[TPayload],
    body: object,
) -> TPayload:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise SyncProtocolError(f"Unexpected {model.__name__} from sync server: {exc}") from exc
