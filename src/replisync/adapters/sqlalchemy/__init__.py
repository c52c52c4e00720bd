"""SQLAlchemy persistence for the server side of the sync protocol."""

from .mappings import UTCDateTime, create_all_tables, document_table, metadata
from .store import SqlAlchemyDocumentStore
from .unit_of_work import (
    SqlAlchemyTransaction,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyDocumentStore",
    "SqlAlchemyTransaction",
    "StartupError",
    "UTCDateTime",
    "configured_engine",
    "create_all_tables",
    "document_table",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
