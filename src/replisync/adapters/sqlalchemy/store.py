"""Server document store backed by the ``document`` table."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import exists, insert, select, update

from replisync.domain.errors import EntityNotFoundError
from replisync.domain.model import Document

from .mappings import document_table

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from sqlalchemy.orm import Session

    from .unit_of_work import SqlAlchemyTransaction

KeyFactory = Callable[[], str]

log = getLogger(__name__)


def _uuid_key() -> str:
    return str(uuid.uuid4())


def _to_document(row: Mapping[str, Any]) -> Document:
    return Document(
        key=row["key"],
        body=dict(row["body"]),
        updated_at=row["updated_at"],
        synced_at=row["synced_at"],
    )


class SqlAlchemyDocumentStore:
    """``ServerStore`` for documents.

    Inside a sync round all statements run on the round's transaction session.
    Outside of one, each call uses a short-lived session of its own.
    """

    def __init__(
        self,
        transaction: SqlAlchemyTransaction,
        *,
        key_factory: KeyFactory = _uuid_key,
    ) -> None:
        self.transaction = transaction
        self.key_factory = key_factory

    async def get_entities(self, keys: Sequence[str]) -> list[Document]:
        if not keys:
            return []
        stmt = select(document_table).where(document_table.c.key.in_(list(keys)))
        with self._session() as session:
            rows = session.execute(stmt).mappings().all()
        return [_to_document(row) for row in rows]

    async def get_entities_synced_since(self, since: datetime | None) -> list[Document]:
        stmt = select(document_table).order_by(document_table.c.synced_at, document_table.c.key)
        if since is not None:
            stmt = stmt.where(document_table.c.synced_at > since)
        with self._session() as session:
            rows = session.execute(stmt).mappings().all()
        return [_to_document(row) for row in rows]

    async def update_entity(self, entity: Document, sync_stamp: datetime) -> Document:
        stmt = (
            update(document_table)
            .where(document_table.c.key == entity.key)
            .values(body=entity.body, updated_at=entity.updated_at, synced_at=sync_stamp)
        )
        with self._session() as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                raise EntityNotFoundError(entity.key)
        return self._stored(entity, entity.key, sync_stamp)

    async def create_entity(self, entity: Document, sync_stamp: datetime) -> Document:
        with self._session() as session:
            key = entity.key
            while self._key_taken(session, key):
                key = self.key_factory()
            if key != entity.key:
                log.debug("Key %s already taken, stored as %s", entity.key, key)
            session.execute(
                insert(document_table).values(
                    key=key,
                    body=entity.body,
                    updated_at=entity.updated_at,
                    synced_at=sync_stamp,
                )
            )
        return self._stored(entity, key, sync_stamp)

    @staticmethod
    def _key_taken(session: Session, key: str) -> bool:
        stmt = select(exists().where(document_table.c.key == key))
        return bool(session.execute(stmt).scalar())

    @staticmethod
    def _stored(entity: Document, key: str, sync_stamp: datetime) -> Document:
        stored = entity.clone()
        stored.key = key
        stored.synced_at = sync_stamp
        stored.conflict = None
        return stored

    @contextmanager
    def _session(self) -> Iterator[Session]:
        current = self.transaction.session
        if current is not None:
            yield current
            return
        with self.transaction.new_session() as session, session.begin():
            yield session


if TYPE_CHECKING:
    from replisync.domain.ports.server import ServerStore

    def _check(store: SqlAlchemyDocumentStore) -> ServerStore[Document, str]:
        return store
