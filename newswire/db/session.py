"""Session helpers for the document store database."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from newswire.db.models import Base
from newswire.settings import get_settings

_ENGINE: Engine | None = None
_SESSIONMAKER: sessionmaker[Session] | None = None
_CURRENT_DSN: str | None = None


def get_engine(database_url: str | None = None) -> Engine:
    """Return a memoized SQLAlchemy engine for ``database_url`` (settings by default)."""
    global _ENGINE, _SESSIONMAKER, _CURRENT_DSN

    dsn = database_url or get_settings().database_url
    if _ENGINE is None or _CURRENT_DSN != dsn:
        _ENGINE = create_engine(dsn, future=True, pool_pre_ping=True)
        _SESSIONMAKER = sessionmaker(
            bind=_ENGINE,
            expire_on_commit=False,
            autoflush=False,
            future=True,
        )
        _CURRENT_DSN = dsn
    return _ENGINE


def get_sessionmaker(database_url: str | None = None) -> sessionmaker[Session]:
    """Return a memoized sessionmaker."""
    get_engine(database_url)
    assert _SESSIONMAKER is not None  # for mypy
    return _SESSIONMAKER


def ensure_schema(database_url: str | None = None) -> None:
    """Create missing tables (idempotent)."""
    Base.metadata.create_all(bind=get_engine(database_url))


@contextmanager
def session_scope(database_url: str | None = None) -> Iterator[Session]:
    """Provide a transactional scope for DB operations."""
    session = get_sessionmaker(database_url)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
