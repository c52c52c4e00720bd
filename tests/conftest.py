from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.pool import StaticPool

from replisync.adapters.sqlalchemy.unit_of_work import SqlAlchemyTransaction, shutdown, startup
from tests.helpers.documents import StepClock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_transaction(sqlite_engine: Engine) -> Iterator[SqlAlchemyTransaction]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyTransaction()
    finally:
        shutdown()
