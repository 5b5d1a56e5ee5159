"""Document store implementations and run bookkeeping."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from newswire.db.models import JobRun, JobStatus, NewsArticle
from newswire.models.domain import IngestedDocument, SourceReport, SourceStatus

SessionFactory = Callable[[], Session]


@dataclass(frozen=True)
class UpsertOutcome:
    document_id: str
    inserted: bool


class NewsStore(Protocol):
    def exists_by_url(self, url: str) -> bool: ...  # noqa: D401
    def upsert(self, document: IngestedDocument) -> UpsertOutcome: ...  # noqa: D401


class InMemoryNewsStore:
    """Dict-backed store for tests/local runs."""

    def __init__(self) -> None:
        self._docs: Dict[str, tuple[str, IngestedDocument]] = {}

    def exists_by_url(self, url: str) -> bool:
        return url in self._docs

    def upsert(self, document: IngestedDocument) -> UpsertOutcome:
        existing = self._docs.get(document.url)
        if existing is not None:
            return UpsertOutcome(existing[0], inserted=False)
        doc_id = str(uuid.uuid4())
        self._docs[document.url] = (doc_id, document)
        return UpsertOutcome(doc_id, inserted=True)

    def get(self, url: str) -> IngestedDocument | None:
        entry = self._docs.get(url)
        return entry[1] if entry else None

    def __len__(self) -> int:
        return len(self._docs)


def _to_row(document: IngestedDocument) -> NewsArticle:
    return NewsArticle(
        url=document.url,
        title=document.title[:1024],
        content=document.content,
        plain_text=document.plain_text,
        source=document.source,
        published_date=document.published_date,
        news_type=document.news_type,
        article_category=document.article_category,
        company_name=document.company_name,
        author=document.author,
        publication=document.publication,
        tags=list(document.tags),
        sentiment=document.sentiment.value,
        impact_level=document.impact_level.value,
        credibility_score=document.credibility_score,
        geographic_focus=list(document.geographic_focus),
        industry_focus=list(document.industry_focus),
        related_companies=list(document.related_companies),
        embedding=list(document.embedding),
        word_count=document.word_count,
        language=document.language,
        extra_metadata=dict(document.metadata),
    )


class SqlNewsStore:
    """SQLAlchemy-backed store over ``news_articles``; inserts are idempotent on url."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def exists_by_url(self, url: str) -> bool:
        with self._session_factory() as session:
            stmt = select(NewsArticle.id).where(NewsArticle.url == url).limit(1)
            return session.execute(stmt).first() is not None

    def upsert(self, document: IngestedDocument) -> UpsertOutcome:
        with self._session_factory() as session:
            row = _to_row(document)
            session.add(row)
            try:
                session.commit()
                return UpsertOutcome(str(row.id), inserted=True)
            except IntegrityError:
                # Another run stored the same url first
                session.rollback()
                existing = session.execute(
                    select(NewsArticle.id).where(NewsArticle.url == document.url)
                ).scalar_one_or_none()
                if existing is None:
                    raise
                return UpsertOutcome(str(existing), inserted=False)


class JobRunRecorder:
    """Context manager to record one source run in ``job_runs``."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        source: str,
        task_name: str,
        trace_id: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._job = JobRun(
            status=JobStatus.RUNNING,
            source=source,
            task_name=task_name,
            trace_id=trace_id,
            started_at=datetime.now(timezone.utc),
        )
        self._report: SourceReport | None = None

    def record(self, report: SourceReport) -> None:
        self._report = report

    def __enter__(self) -> "JobRunRecorder":
        # Commit the running state so a durable record exists even if the run dies
        with self._session_factory() as session:
            session.add(self._job)
            session.commit()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        report = self._report
        if exc is not None:
            self._job.status = JobStatus.FAILED
            self._job.error_message = str(exc)[:512]
        elif report is not None and report.status == SourceStatus.FAILED:
            self._job.status = JobStatus.FAILED
            self._job.error_message = (report.error or "")[:512]
        else:
            self._job.status = JobStatus.SUCCEEDED
        if report is not None:
            self._job.outcome = report.status.value
            self._job.total = report.total
            self._job.processed = report.processed
            self._job.skipped = report.skipped
            self._job.failed = report.failed
        self._job.finished_at = datetime.now(timezone.utc)
        with self._session_factory() as session:
            try:
                session.merge(self._job)
                session.commit()
            except Exception:  # pragma: no cover - never mask the original error
                session.rollback()
