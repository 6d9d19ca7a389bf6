"""Shared pytest fixtures for the DMS search index test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resources.substrates.postgres import create_session_factory
from services.state.search_index.data.schema import metadata
from tests.helpers import FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture()
def sqlite_engine() -> Iterator[Engine]:
    """Provide one in-memory SQLite engine with every search index table."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(sqlite_engine: Engine) -> sessionmaker[Session]:
    """Provide a session factory bound to the SQLite engine."""
    return create_session_factory(sqlite_engine)
