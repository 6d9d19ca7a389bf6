"""Postgres runtime wiring and schema migration for Search Index persistence."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres import (
    PostgresSettings,
    create_postgres_engine,
    create_session_factory,
    ping,
)


@dataclass(frozen=True)
class SearchIndexPostgresRuntime:
    """Engine and session factory shared by the service's repositories."""

    engine: Engine
    session_factory: sessionmaker[Session]

    @classmethod
    def from_settings(cls, settings: PostgresSettings) -> "SearchIndexPostgresRuntime":
        """Build a pooled runtime from substrate settings."""
        return cls.from_engine(create_postgres_engine(settings))

    @classmethod
    def from_engine(cls, engine: Engine) -> "SearchIndexPostgresRuntime":
        """Wrap an existing engine (tests pass SQLite engines here)."""
        return cls(engine=engine, session_factory=create_session_factory(engine))

    def is_healthy(self) -> bool:
        """Return True when the database answers a trivial query."""
        return ping(self.engine)


MIGRATIONS_CONFIG_PATH = Path(__file__).resolve().parents[1] / "migrations" / "alembic.ini"


def upgrade_schema(
    *,
    url: str,
    revision: str = "head",
    upgrade_fn: Callable[[Config, str], None] = command.upgrade,
) -> None:
    """Apply Search Index migrations up to ``revision`` against ``url``."""
    config = Config(str(MIGRATIONS_CONFIG_PATH))
    config.set_main_option("sqlalchemy.url", url)
    upgrade_fn(config, revision)
