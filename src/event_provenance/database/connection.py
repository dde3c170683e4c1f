# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Database connection and session management."""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class for all ORM models
Base = declarative_base()


def create_db_engine(database_url: str, timeout: float = 5.0, echo: bool = False) -> Engine:
    """
    Create engine with I/O bounded by timeout seconds.

    SQLite URLs get a busy timeout and cross-thread connections; an
    in-memory SQLite database is shared through a single static connection.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            database_url,
            pool_timeout=timeout,
            pool_pre_ping=True,
            echo=echo,
        )

    connect_args = {"check_same_thread": False, "timeout": timeout}
    if url.database in (None, "", ":memory:"):
        return create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool,
            echo=echo,
        )

    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args, echo=echo)


class Database:
    """Engine plus session factory for one provenance database."""

    def __init__(self, database_url: str, timeout: float = 5.0, echo: bool = False):
        self.url = database_url
        self.engine = create_db_engine(database_url, timeout=timeout, echo=echo)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Transactional session: commit on success, rollback on error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_tables(self) -> None:
        """Create all database tables (for initial setup)."""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()
