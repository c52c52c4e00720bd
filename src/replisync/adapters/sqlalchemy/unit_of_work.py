"""SQLAlchemy engine lifecycle and per-round transactions."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from replisync.config.storage import get_database_config
from replisync.domain.ports.server import TransactionHooks

from .mappings import create_all_tables

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the SQLAlchemy adapter is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call replisync.adapters.sqlalchemy."
                "unit_of_work.startup() before opening a transaction."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, tables, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(database_uri or get_database_config().uri)
    create_all_tables(resolved_engine)
    _STATE.engine = resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyTransaction:
    """One session per sync round, exposed to ``SyncServer`` as transaction hooks.

    The open session lives in a context variable, so concurrent rounds running
    in separate tasks each see their own session.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory: sessionmaker[Session] = session_factory or _STATE.session_factory
        self._current: ContextVar[Session | None] = ContextVar(
            f"replisync_session_{id(self)}", default=None
        )

    @property
    def session(self) -> Session | None:
        return self._current.get()

    async def start(self) -> None:
        if self._current.get() is not None:
            raise StartupError("A transaction is already open in this context")
        self._current.set(self.session_factory())
        log.debug("Opened sync transaction")

    async def commit(self) -> None:
        session = self._require_session()
        try:
            session.commit()
        finally:
            self._close(session)

    async def rollback(self) -> None:
        session = self._current.get()
        if session is None:
            return
        try:
            session.rollback()
        finally:
            self._close(session)

    def hooks(self) -> TransactionHooks:
        return TransactionHooks(start=self.start, commit=self.commit, rollback=self.rollback)

    def new_session(self) -> Session:
        return self.session_factory()

    def _require_session(self) -> Session:
        session = self._current.get()
        if session is None:
            raise StartupError("No transaction is open in this context")
        return session

    def _close(self, session: Session) -> None:
        session.close()
        self._current.set(None)
