"""Transactional unit-of-work wrapper for Search Index persistence."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres import transactional_session

T = TypeVar("T")


class SearchIndexUnitOfWork:
    """Execute several persistence steps inside one transaction."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    def run(self, fn: Callable[[Session], T]) -> T:
        """Run ``fn`` with a session that commits only if ``fn`` returns."""
        with transactional_session(self._sessions) as session:
            return fn(session)
