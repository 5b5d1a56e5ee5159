"""Ingestion orchestrator: sources -> candidates -> documents -> store.

Sources and candidates are processed strictly sequentially by one worker.
Adapter sessions are not safe for concurrent navigation, and the embedding
provider's rate limit would only turn parallelism into retries. Candidate
order is the adapter's newest-first order, which the duplicate tracker's
early stop depends on.
"""

from __future__ import annotations

import threading
import time
import uuid
from contextlib import AbstractContextManager, ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from celery.exceptions import SoftTimeLimitExceeded

from newswire.adapters.base import SourceAdapter
from newswire.adapters.registry import AdapterRegistry
from newswire.models.domain import (
    ArticleReference,
    CategoryReport,
    ProcessedDocument,
    RunReport,
    SourceReport,
    SourceStatus,
)
from newswire.repositories.news import NewsStore
from newswire.services.classifier import ContentClassifier
from newswire.services.documents import build_document
from newswire.services.duplicate_tracker import DuplicateTracker
from newswire.utils.logging import get_logger

logger = get_logger(__name__)


class Embedder(Protocol):
    @property
    def model(self) -> str: ...  # noqa: D401
    def embed(self, text: str, max_retries: Optional[int] = None) -> List[float]: ...  # noqa: D401
    def embed_or_empty(self, text: str, max_retries: Optional[int] = None) -> List[float]: ...  # noqa: D401


class RunRecorder(Protocol):
    def record(self, report: SourceReport) -> None: ...  # noqa: D401


TrackerFactory = Callable[[str], DuplicateTracker]
RecorderFactory = Callable[[str, str], AbstractContextManager]
AdapterFactory = Callable[[], SourceAdapter]


@dataclass(frozen=True)
class PipelineOptions:
    duplicate_threshold: int = 5
    # False: one tracker spans every category of a source
    reset_tracker_per_category: bool = False
    stop_run_on_early_stop: bool = False
    item_delay_seconds: float = 2.0
    source_delay_seconds: float = 5.0
    # False: documents are stored with an empty vector when embedding fails
    require_embedding: bool = False

    def __post_init__(self) -> None:
        if self.duplicate_threshold < 1:
            raise ValueError("duplicate_threshold must be >= 1")
        if self.item_delay_seconds < 0 or self.source_delay_seconds < 0:
            raise ValueError("delays must be non-negative")


class CancelToken:
    """Run-level cancellation: explicit ``cancel()`` or an optional deadline."""

    def __init__(self, timeout: Optional[float] = None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout if timeout else None

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self._event.set()
            return True
        return False

    def cancel(self) -> None:
        self._event.set()

    def wait(self, seconds: float) -> bool:
        """Interruptible sleep; returns True when the run got cancelled."""
        if seconds <= 0 or self.cancelled:
            return self.cancelled
        if self._deadline is not None:
            seconds = min(seconds, max(self._deadline - self._clock(), 0.0))
        self._event.wait(seconds)
        return self.cancelled


class _Outcome(Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


class _SegmentEnd(Enum):
    EXHAUSTED = "exhausted"
    STOPPED = "stopped"
    CANCELLED = "cancelled"


@dataclass
class _CategoryTally:
    category: Optional[str]
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    stopped_early: bool = False

    def add(self, outcome: _Outcome) -> None:
        if outcome is _Outcome.PROCESSED:
            self.processed += 1
        elif outcome is _Outcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def freeze(self) -> CategoryReport:
        return CategoryReport(
            category=self.category,
            total=self.total,
            processed=self.processed,
            skipped=self.skipped,
            failed=self.failed,
            stopped_early=self.stopped_early,
        )


@dataclass
class _SourceTally:
    source: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: SourceStatus = SourceStatus.IDLE
    error: Optional[str] = None
    consecutive_duplicates: int = 0
    segments: List[_CategoryTally] = field(default_factory=list)
    documents: List[ProcessedDocument] = field(default_factory=list)

    def segment(self, category: Optional[str]) -> _CategoryTally:
        seg = _CategoryTally(category)
        self.segments.append(seg)
        return seg

    def freeze(self) -> SourceReport:
        return SourceReport(
            source=self.source,
            status=self.status,
            total=sum(s.total for s in self.segments),
            processed=sum(s.processed for s in self.segments),
            skipped=sum(s.skipped for s in self.segments),
            failed=sum(s.failed for s in self.segments),
            stopped_early=any(s.stopped_early for s in self.segments),
            consecutive_duplicates=self.consecutive_duplicates,
            error=self.error,
            categories=[s.freeze() for s in self.segments],
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
        )


class IngestionPipeline:
    """Sequences adapters, applies early stopping, and folds every failure into the report."""

    def __init__(
        self,
        store: NewsStore,
        embedder: Embedder,
        classifier: ContentClassifier,
        options: Optional[PipelineOptions] = None,
        *,
        tracker_factory: Optional[TrackerFactory] = None,
        recorder_factory: Optional[RecorderFactory] = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._classifier = classifier
        self.options = options or PipelineOptions()
        self._tracker_factory = tracker_factory or (
            lambda source: DuplicateTracker(store, self.options.duplicate_threshold, source=source)
        )
        self._recorder_factory = recorder_factory

    # -- public entry points -------------------------------------------------

    def run(self, adapters: Sequence[SourceAdapter], cancel: Optional[CancelToken] = None) -> RunReport:
        """Process ``adapters`` in order and return the run report."""
        return self._run_many([(a.source, (lambda a=a: a)) for a in adapters], cancel)

    def run_registry(
        self,
        registry: AdapterRegistry,
        sources: Optional[Iterable[str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> RunReport:
        """Like ``run`` but adapters are constructed inside each source's isolation boundary."""
        names = list(sources) if sources is not None else registry.sources()
        return self._run_many([(name, (lambda name=name: registry.create(name))) for name in names], cancel)

    def run_source(self, adapter: SourceAdapter, cancel: Optional[CancelToken] = None) -> SourceReport:
        return self._run_source(adapter.source, lambda: adapter, cancel or CancelToken()).freeze()

    # -- run level ----------------------------------------------------------

    def _run_many(self, entries: List[Tuple[str, AdapterFactory]], cancel: Optional[CancelToken]) -> RunReport:
        cancel = cancel or CancelToken()
        run_id = uuid.uuid4().hex
        started = datetime.now(timezone.utc)
        reports: List[SourceReport] = []
        documents: List[ProcessedDocument] = []
        cancelled = False
        logger.info("pipeline.run.start", extra={"run_id": run_id, "sources": [name for name, _ in entries]})

        for index, (name, factory) in enumerate(entries):
            if cancel.cancelled:
                cancelled = True
                break
            tally = self._run_recorded(name, factory, cancel, run_id)
            reports.append(tally.freeze())
            documents.extend(tally.documents)
            if tally.status is SourceStatus.CANCELLED:
                cancelled = True
                break
            if self.options.stop_run_on_early_stop and any(s.stopped_early for s in tally.segments):
                logger.info("pipeline.run.early_stop", extra={"run_id": run_id, "source": name})
                break
            if index < len(entries) - 1 and self._pause(cancel, self.options.source_delay_seconds):
                cancelled = True
                break

        reached = {r.source for r in reports}
        reports.extend(SourceReport(source=name, status=SourceStatus.IDLE) for name, _ in entries if name not in reached)

        report = RunReport(
            run_id=run_id,
            started_at=started,
            finished_at=datetime.now(timezone.utc),
            cancelled=cancelled,
            sources=reports,
            documents=documents,
        )
        logger.info(
            "pipeline.run.done",
            extra={
                "run_id": run_id,
                "cancelled": cancelled,
                "success": report.success,
                "documents": len(documents),
            },
        )
        return report

    @staticmethod
    def _pause(cancel: CancelToken, seconds: float) -> bool:
        """``cancel.wait`` that also turns a worker soft time limit into cancellation."""
        try:
            return cancel.wait(seconds)
        except SoftTimeLimitExceeded:
            cancel.cancel()
            return True

    def _run_recorded(self, name: str, factory: AdapterFactory, cancel: CancelToken, run_id: str) -> _SourceTally:
        stack = ExitStack()
        recorder: Optional[RunRecorder] = None
        if self._recorder_factory is not None:
            try:
                recorder = stack.enter_context(self._recorder_factory(name, run_id))
            except SoftTimeLimitExceeded:
                cancel.cancel()
            except Exception as exc:
                logger.warning("pipeline.job_record_failed", extra={"source": name, "error": str(exc)})
        tally: Optional[_SourceTally] = None
        try:
            tally = self._run_source(name, factory, cancel)
        finally:
            if recorder is not None and tally is not None:
                report = tally.freeze()
                self._guard_record(name, cancel, lambda: recorder.record(report))
            self._guard_record(name, cancel, stack.close)
        return tally

    @staticmethod
    def _guard_record(name: str, cancel: CancelToken, step: Callable[[], None]) -> None:
        """Job bookkeeping never ends the run."""
        try:
            step()
        except SoftTimeLimitExceeded:
            cancel.cancel()
        except Exception as exc:
            logger.warning("pipeline.job_record_failed", extra={"source": name, "error": str(exc)})

    # -- source level -------------------------------------------------------

    def _run_source(self, name: str, factory: AdapterFactory, cancel: CancelToken) -> _SourceTally:
        tally = _SourceTally(name)
        tracker = self._tracker_factory(name)
        logger.info("pipeline.source.start", extra={"source": name})
        stopped = False
        try:
            adapter = factory()
            with adapter.session():
                for index, category in enumerate(adapter.categories):
                    if cancel.cancelled:
                        tally.status = SourceStatus.CANCELLED
                        break
                    if self.options.reset_tracker_per_category and index > 0:
                        tracker.reset()
                    tally.status = SourceStatus.ENUMERATING
                    candidates = list(adapter.list_candidates(category))
                    segment = tally.segment(category)
                    segment.total = len(candidates)
                    logger.info(
                        "pipeline.source.enumerated",
                        extra={"source": name, "category": category, "candidates": len(candidates)},
                    )
                    tally.status = SourceStatus.PROCESSING
                    end = self._process_segment(adapter, candidates, tracker, segment, tally, cancel)
                    tally.consecutive_duplicates = tracker.consecutive_duplicates
                    if end is _SegmentEnd.CANCELLED:
                        tally.status = SourceStatus.CANCELLED
                        break
                    if end is _SegmentEnd.STOPPED:
                        stopped = True
                        if not self.options.reset_tracker_per_category:
                            break
            if tally.status is not SourceStatus.CANCELLED:
                tally.status = SourceStatus.STOPPED_EARLY if stopped else SourceStatus.COMPLETED
        except SoftTimeLimitExceeded:
            cancel.cancel()
            tally.status = SourceStatus.CANCELLED
            logger.warning("pipeline.source.time_limit", extra={"source": name})
        except Exception as exc:
            tally.status = SourceStatus.FAILED
            tally.error = f"{type(exc).__name__}: {exc}"
            logger.exception("pipeline.source.failed", extra={"source": name})
        tally.consecutive_duplicates = tracker.consecutive_duplicates

        report = tally.freeze()
        logger.info(
            "pipeline.source.done",
            extra={
                "source": name,
                "status": report.status.value,
                "total": report.total,
                "processed": report.processed,
                "skipped": report.skipped,
                "failed": report.failed,
                "consecutive_duplicates": report.consecutive_duplicates,
            },
        )
        return tally

    def _process_segment(
        self,
        adapter: SourceAdapter,
        candidates: Sequence[ArticleReference],
        tracker: DuplicateTracker,
        segment: _CategoryTally,
        tally: _SourceTally,
        cancel: CancelToken,
    ) -> _SegmentEnd:
        for position, reference in enumerate(candidates):
            if cancel.cancelled:
                return _SegmentEnd.CANCELLED
            check = tracker.check(reference.url)
            if check.is_duplicate:
                segment.add(_Outcome.SKIPPED)
                if check.should_stop:
                    segment.stopped_early = True
                    logger.info(
                        "pipeline.source.stopping_early",
                        extra={
                            "source": adapter.source,
                            "category": segment.category,
                            "abandoned": len(candidates) - position - 1,
                        },
                    )
                    return _SegmentEnd.STOPPED
                continue

            outcome, document = self._process_candidate(adapter, reference)
            segment.add(outcome)
            if document is not None:
                tally.documents.append(document)
            more = position < len(candidates) - 1
            if more and self._pause(cancel, self.options.item_delay_seconds):
                return _SegmentEnd.CANCELLED
        return _SegmentEnd.EXHAUSTED

    # -- item level ---------------------------------------------------------

    def _process_candidate(
        self, adapter: SourceAdapter, reference: ArticleReference
    ) -> Tuple[_Outcome, Optional[ProcessedDocument]]:
        extra = {"source": adapter.source, "url": reference.url}
        try:
            content = adapter.fetch_content(reference)
        except SoftTimeLimitExceeded:
            raise
        except Exception as exc:
            logger.warning("pipeline.item.fetch_failed", extra={**extra, "error": str(exc)})
            return _Outcome.FAILED, None
        if content is None or not content.plain_text.strip():
            logger.warning("pipeline.item.no_content", extra=extra)
            return _Outcome.FAILED, None

        try:
            classification = self._classifier.classify(content.plain_text, content.tags)
            if self.options.require_embedding:
                embedding = self._embedder.embed(content.plain_text)
            else:
                embedding = self._embedder.embed_or_empty(content.plain_text)
            document = build_document(
                adapter,
                reference,
                content,
                classification,
                embedding,
                embedding_model=self._embedder.model,
            )
            stored = self._store.upsert(document)
        except SoftTimeLimitExceeded:
            raise
        except Exception as exc:
            logger.warning(
                "pipeline.item.failed",
                extra={**extra, "error": str(exc), "error_type": type(exc).__name__},
            )
            return _Outcome.FAILED, None

        if not stored.inserted:
            logger.info("pipeline.item.already_stored", extra={**extra, "document_id": stored.document_id})
            return _Outcome.SKIPPED, None

        logger.info(
            "pipeline.item.processed",
            extra={
                **extra,
                "document_id": stored.document_id,
                "words": document.word_count,
                "embedded": bool(document.embedding),
            },
        )
        return _Outcome.PROCESSED, ProcessedDocument(
            url=reference.url,
            title=document.title,
            source=adapter.source,
            category=reference.source_category or None,
            published_hint=reference.published_hint,
        )
