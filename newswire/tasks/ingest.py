"""Celery tasks for the ingestion workflow."""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, Optional

from celery import shared_task

from newswire.adapters.registry import AdapterRegistry, build_registry
from newswire.db.session import ensure_schema, get_sessionmaker
from newswire.embedding.client import EmbeddingClient
from newswire.repositories.news import JobRunRecorder, SqlNewsStore
from newswire.services.classifier import KeywordClassifier
from newswire.services.pipeline import CancelToken, IngestionPipeline, PipelineOptions
from newswire.settings import Settings, get_settings
from newswire.utils.logging import configure_logging, get_logger

# Registry factory is kept pluggable for tests; it must return an AdapterRegistry.
REGISTRY_FACTORY: Callable[[Settings], AdapterRegistry] | None = None

logger = get_logger(__name__)


def _get_registry(settings: Settings) -> AdapterRegistry:
    factory = REGISTRY_FACTORY or build_registry
    return factory(settings)


def build_pipeline(settings: Settings, *, task_name: str) -> IngestionPipeline:
    """Compose the pipeline from settings; configuration errors surface here."""
    ensure_schema(settings.database_url)
    session_factory = get_sessionmaker(settings.database_url)
    options = PipelineOptions(
        duplicate_threshold=settings.duplicate_threshold,
        reset_tracker_per_category=settings.reset_tracker_per_category,
        stop_run_on_early_stop=settings.stop_run_on_early_stop,
        item_delay_seconds=settings.item_delay_seconds,
        source_delay_seconds=settings.source_delay_seconds,
    )

    def _recorder(source: str, run_id: str) -> JobRunRecorder:
        return JobRunRecorder(session_factory, source=source, task_name=task_name, trace_id=run_id)

    return IngestionPipeline(
        SqlNewsStore(session_factory),
        EmbeddingClient.from_settings(),
        KeywordClassifier(),
        options,
        recorder_factory=_recorder,
    )


def _run(sources: Optional[list[str]], task_name: str) -> Dict[str, Any]:
    settings = get_settings()
    configure_logging(settings.log_level, json_enabled=settings.log_json)
    trace_id = str(uuid.uuid4())
    registry = _get_registry(settings)
    if sources is not None:
        unknown = [s for s in sources if s not in registry]
        if unknown:
            raise KeyError(f"unknown source(s): {', '.join(unknown)}. available: {', '.join(registry) or '<none>'}")

    pipeline = build_pipeline(settings, task_name=task_name)
    cancel = CancelToken(settings.run_timeout_seconds)
    logger.info("ingest.start", extra={"trace_id": trace_id, "task": task_name, "sources": sources or registry.sources()})
    report = pipeline.run_registry(registry, sources, cancel=cancel)
    logger.info(
        "ingest.done",
        extra={
            "trace_id": trace_id,
            "run_id": report.run_id,
            "success": report.success,
            "cancelled": report.cancelled,
            "documents": len(report.documents),
        },
    )
    return report.to_payload()


def run_source_core(source: str) -> Dict[str, Any]:
    """Run one source and return the run report payload; test-friendly."""
    return _run([source.strip().lower()], "ingest_source")


def run_all_core() -> Dict[str, Any]:
    """Run every configured source in registry order."""
    return _run(None, "ingest_all_sources")


@shared_task(name="newswire.tasks.ingest.ingest_source")
def ingest_source(source: str) -> Dict[str, Any]:  # pragma: no cover - wrapper
    return run_source_core(source)


@shared_task(name="newswire.tasks.ingest.ingest_all_sources")
def ingest_all_sources() -> Dict[str, Any]:  # pragma: no cover - wrapper
    return run_all_core()
