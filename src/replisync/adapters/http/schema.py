"""Pydantic models describing the sync wire payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, JsonValue

from replisync.domain.model import Document

EntityPayload = dict[str, Any]


class EntityCodec[TEntity](Protocol):
    """Translate opaque entities to and from JSON objects."""

    def encode(self, entity: TEntity) -> EntityPayload: ...

    def decode(self, payload: EntityPayload) -> TEntity: ...


class SyncBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SyncRequestPayload(SyncBaseModel):
    entities: list[EntityPayload] = Field(default_factory=list)
    last_synced_at: AwareDatetime | None = Field(default=None, alias="lastSyncedAt")


class SyncedEntityPayload(SyncBaseModel):
    entity: EntityPayload
    reassigned_key: JsonValue | None = Field(default=None, alias="reassignedKey")


class SyncResultPayload(SyncBaseModel):
    sync_stamp: AwareDatetime = Field(alias="syncStamp")
    synced: list[SyncedEntityPayload] = Field(default_factory=list)
    new_entities: list[EntityPayload] = Field(default_factory=list, alias="newEntities")
    conflicted: list[EntityPayload] = Field(default_factory=list)


class ResolveConflictRequestPayload(SyncBaseModel):
    entity: EntityPayload
    last_synced_at: AwareDatetime = Field(alias="lastSyncedAt")


class ConflictResolutionPayload(SyncBaseModel):
    sync_stamp: AwareDatetime = Field(alias="syncStamp")
    still_requiring_resolution: EntityPayload | None = Field(
        default=None, alias="stillRequiringResolution"
    )


class DocumentPayload(SyncBaseModel):
    key: str
    body: dict[str, JsonValue] = Field(default_factory=dict)
    updated_at: AwareDatetime = Field(alias="updatedAt")
    synced_at: AwareDatetime | None = Field(default=None, alias="syncedAt")


def _as_utc(value: datetime) -> datetime:
    return value.astimezone(UTC)


class DocumentCodec:
    """Wire codec for ``Document``; the client-only conflict marker never travels."""

    def encode(self, entity: Document) -> EntityPayload:
        payload = DocumentPayload(
            key=entity.key,
            body=entity.body,
            updated_at=entity.updated_at,
            synced_at=entity.synced_at,
        )
        return payload.to_wire()

    def decode(self, payload: EntityPayload) -> Document:
        parsed = DocumentPayload.model_validate(payload)
        return Document(
            key=parsed.key,
            body=dict(parsed.body),
            updated_at=_as_utc(parsed.updated_at),
            synced_at=_as_utc(parsed.synced_at) if parsed.synced_at is not None else None,
        )
