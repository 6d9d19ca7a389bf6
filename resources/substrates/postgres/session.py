"""Session factory and commit/rollback scope for Postgres access."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Sessions keep loaded rows readable after commit; flushing is explicit."""
    return sessionmaker(engine, autoflush=False, expire_on_commit=False)


@contextmanager
def transactional_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Run a block in one transaction.

    The transaction commits when the block exits normally and rolls back when
    it raises; the exception is re-raised either way.
    """
    with session_factory() as session, session.begin():
        yield session
