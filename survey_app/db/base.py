"""SQLAlchemy engine and session helpers.

The service targets PostgreSQL in production but supports SQLite for local
development and CI. Declarative models live under `survey_app/models/`; this
module only manages connection lifecycle and schema bootstrap.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite+pysqlite:///:memory:"
    )


# Module-level cached Engine so repositories share one connection pool
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINT rollbacks are honoured."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, *, echo: bool = False) -> Engine:
    """Create a new Engine for ``url`` without touching the module cache.

    In-memory SQLite URLs get a StaticPool so every session sees the same
    database for the lifetime of the engine.
    """
    kwargs: dict = {"future": True, "pool_pre_ping": True, "echo": echo}
    is_sqlite = url.startswith("sqlite")
    if is_sqlite and ":memory:" in url:
        kwargs.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })
    engine = create_engine(url, **kwargs)
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


def get_engine(url: str | None = None) -> Engine:
    """Return a singleton SQLAlchemy Engine.

    Without ``url`` the engine already in use is returned, falling back to the
    environment-configured URL.
    """
    global _ENGINE, _ENGINE_URL
    resolved_url = url or _ENGINE_URL or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        _ENGINE = build_engine(resolved_url)
        _ENGINE_URL = resolved_url
        logger.info("db_engine_created dialect=%s", _ENGINE.dialect.name)

    return _ENGINE


def get_sessionmaker(engine: Engine | None = None) -> sessionmaker:
    engine = engine or get_engine()
    return sessionmaker(bind=engine, future=True, expire_on_commit=False)


def create_schema(engine: Engine | None = None) -> None:
    """Create all tables declared on the ORM metadata (idempotent)."""
    from survey_app.models.base import Base
    # Import for side effects: registers every mapped table on Base.metadata
    from survey_app.models import response, survey  # noqa: F401

    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("db_schema_ready tables=%s", sorted(Base.metadata.tables))


@contextmanager
def session_scope(engine: Engine | None = None) -> Generator[Session, None, None]:
    """Yield a Session that commits on success and rolls back on error."""
    Session_ = get_sessionmaker(engine)
    session = Session_()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.error("DB session error; transaction rolled back", exc_info=True)
        raise
    finally:
        session.close()


def session_dependency() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped SQLAlchemy session."""
    with session_scope() as session:
        yield session
