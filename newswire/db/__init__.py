"""Database utilities for the document store."""

from .models import Base, JobRun, JobStatus, NewsArticle  # noqa: F401
from .session import ensure_schema, get_engine, get_sessionmaker, session_scope  # noqa: F401

__all__ = [
    "Base",
    "JobRun",
    "JobStatus",
    "NewsArticle",
    "ensure_schema",
    "get_engine",
    "get_sessionmaker",
    "session_scope",
]
