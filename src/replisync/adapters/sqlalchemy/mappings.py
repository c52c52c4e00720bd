"""SQLAlchemy table metadata for the server document store."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Column, DateTime, Dialect, MetaData, String, Table, TypeDecorator

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

document_table = Table(
    "document",
    metadata,
    Column("key", String, primary_key=True),
    Column("body", JSON, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
    # every row written in one sync round carries that round's stamp
    Column("synced_at", UTCDateTime, nullable=False, index=True),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the document store."""

    log.info("Creating all tables")
    metadata.create_all(engine)
