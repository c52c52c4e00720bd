"""In-memory document stores for both sides of the protocol.

Rows are copied on every read and write so callers never alias stored state.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from replisync.domain.errors import EntityNotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from replisync.domain.model import Document

KeyFactory = Callable[[], str]

log = getLogger(__name__)


def _uuid_key() -> str:
    return str(uuid.uuid4())


class _DocumentTable:
    def __init__(self, rows: Iterable[Document] = (), *, key_factory: KeyFactory = _uuid_key) -> None:
        self._rows: list[Document] = [row.clone() for row in rows]
        self.key_factory = key_factory

    @property
    def rows(self) -> list[Document]:
        return [row.clone() for row in self._rows]

    def __len__(self) -> int:
        return len(self._rows)

    async def get_entities(self, keys: Sequence[str]) -> list[Document]:
        wanted = set(keys)
        return [row.clone() for row in self._rows if row.key in wanted]

    def _find(self, key: str) -> Document | None:
        return next((row for row in self._rows if row.key == key), None)

    def _index_of(self, key: str) -> int:
        for index, row in enumerate(self._rows):
            if row.key == key:
                return index
        raise EntityNotFoundError(key)


class InMemoryServerStore(_DocumentTable):
    """Authoritative document table; colliding keys are replaced on create."""

    async def get_entities_synced_since(self, since: datetime | None) -> list[Document]:
        return [
            row.clone()
            for row in self._rows
            if since is None or (row.synced_at is not None and row.synced_at > since)
        ]

    async def update_entity(self, entity: Document, sync_stamp: datetime) -> Document:
        index = self._index_of(entity.key)
        stored = replace(entity.clone(), synced_at=sync_stamp, conflict=None)
        self._rows[index] = stored
        return stored.clone()

    async def create_entity(self, entity: Document, sync_stamp: datetime) -> Document:
        stored = replace(entity.clone(), synced_at=sync_stamp, conflict=None)
        while self._find(stored.key) is not None:
            stored.key = self.key_factory()
        if stored.key != entity.key:
            log.debug("Key %s already taken, stored as %s", entity.key, stored.key)
        self._rows.append(stored)
        return stored.clone()


class InMemoryClientStore(_DocumentTable):
    """Local replica table with a sync checkpoint."""

    def __init__(
        self,
        rows: Iterable[Document] = (),
        *,
        last_sync_stamp: datetime | None = None,
        key_factory: KeyFactory = _uuid_key,
    ) -> None:
        super().__init__(rows, key_factory=key_factory)
        self.last_sync_stamp = last_sync_stamp

    def add(self, document: Document) -> None:
        """Record a local edit, replacing any row with the same key."""

        try:
            self._rows[self._index_of(document.key)] = document.clone()
        except EntityNotFoundError:
            self._rows.append(document.clone())

    def get(self, key: str) -> Document | None:
        row = self._find(key)
        return row.clone() if row is not None else None

    async def get_entities_requiring_sync(self) -> list[Document]:
        return [row.clone() for row in self._rows if row.requires_sync]

    async def get_last_sync_stamp(self) -> datetime | None:
        return self.last_sync_stamp

    async def mark_sync_stamp(self, sync_stamp: datetime) -> None:
        self.last_sync_stamp = sync_stamp

    async def update_entity(
        self,
        entity: Document,
        sync_stamp: datetime,
        reassigned_key: str | None = None,
    ) -> None:
        index = self._index_of(entity.key)
        stored = replace(entity.clone(), synced_at=sync_stamp, conflict=None)
        if reassigned_key is not None:
            stored.key = reassigned_key
        self._rows[index] = stored

    async def create_entity(self, entity: Document, sync_stamp: datetime) -> None:
        # remote edits to rows this replica already holds arrive as new entities too
        stored = replace(entity.clone(), synced_at=sync_stamp, conflict=None)
        try:
            self._rows[self._index_of(entity.key)] = stored
        except EntityNotFoundError:
            self._rows.append(stored)

    async def mark_requiring_conflict_resolution(
        self,
        entity: Document,
        sync_stamp: datetime,
    ) -> None:
        row = self._find(entity.key)
        if row is None:
            raise EntityNotFoundError(entity.key)
        row.conflict = entity.clone()
        _ = sync_stamp


if TYPE_CHECKING:
    from replisync.domain.ports.client import ClientStore, ConflictMarkingClientStore
    from replisync.domain.ports.server import ServerStore

    _server_check: ServerStore[Document, str] = InMemoryServerStore()
    _client_check: ClientStore[Document, str] = InMemoryClientStore()
    _marking_check: ConflictMarkingClientStore[Document] = InMemoryClientStore()
