"""Reference entity used by the bundled adapters."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime  # noqa: TC003
from typing import Any

from replisync.domain.clock import utcnow
from replisync.domain.ports.server import EntityAccessors


@dataclass(slots=True, kw_only=True)
class Document:
    """A keyed JSON body with the timestamps the sync protocol relies on."""

    key: str
    body: dict[str, Any] = field(default_factory=dict[str, Any])
    updated_at: datetime = field(default_factory=utcnow)
    synced_at: datetime | None = None
    # server version awaiting a user decision (client replicas only)
    conflict: Document | None = None

    def clone(self) -> Document:
        return replace(
            self,
            body=copy.deepcopy(self.body),
            conflict=self.conflict.clone() if self.conflict is not None else None,
        )

    @property
    def requires_sync(self) -> bool:
        return self.synced_at is None or self.updated_at > self.synced_at


def new_document(body: dict[str, Any] | None = None, *, key: str | None = None) -> Document:
    """Create an unsynced document with a provisional uuid key."""

    return Document(key=key or str(uuid.uuid4()), body=dict(body or {}))


def _document_key(document: Document) -> str:
    return document.key


def _documents_equal(first: Document, second: Document) -> bool:
    return first.key == second.key and first.body == second.body


def _document_updated_at(document: Document) -> datetime:
    return document.updated_at


DOCUMENT_ACCESSORS: EntityAccessors[Document, str] = EntityAccessors(
    key=_document_key,
    are_equal=_documents_equal,
    last_updated=_document_updated_at,
)
