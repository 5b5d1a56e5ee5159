"""Celery application bootstrap."""

from __future__ import annotations

import logging
from typing import Any, Dict

from celery import Celery
from celery.schedules import crontab

from .settings import IngestionSchedule, Settings, get_settings
from .utils.logging import configure_logging

_CELERY_APP: Celery | None = None

ALL_SOURCES = "all"


def create_celery_app(settings: Settings | None = None) -> Celery:
    """Create a Celery instance from settings."""
    config = settings or get_settings()
    configure_logging(config.log_level, json_enabled=config.log_json)

    app = Celery("newswire", broker=config.redis_url, backend=config.redis_url)
    app.conf.update(
        task_default_queue="newswire.default",
        task_default_exchange="newswire",
        task_default_routing_key="newswire.default",
        task_soft_time_limit=config.celery_task_soft_time_limit,
        worker_concurrency=config.celery_worker_concurrency,
        worker_prefetch_multiplier=1,
        beat_schedule=_build_beat_schedule(config),
        timezone="UTC",
        enable_utc=True,
        worker_send_task_events=True,
        task_send_sent_event=True,
    )

    app.autodiscover_tasks(["newswire.tasks"], related_name="ingest")
    _install_signal_handlers(app)
    return app


def get_celery_app() -> Celery:
    """Return the singleton Celery instance."""
    global _CELERY_APP
    if _CELERY_APP is None:
        _CELERY_APP = create_celery_app()
    return _CELERY_APP


def _build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    schedule: Dict[str, Dict[str, Any]] = {}
    for item in settings.schedules:
        if not item.enabled:
            continue
        entry: Dict[str, Any] = {
            "schedule": crontab(hour=item.cron_hour, minute=item.cron_minute),
            "options": {"queue": "newswire.ingest"},
        }
        if item.source == ALL_SOURCES:
            entry["task"] = "newswire.tasks.ingest.ingest_all_sources"
            entry["args"] = ()
        else:
            entry["task"] = "newswire.tasks.ingest.ingest_source"
            entry["args"] = (item.source,)
        schedule[_build_schedule_name(item)] = entry
    return schedule


def _build_schedule_name(item: IngestionSchedule) -> str:
    return f"ingest.{item.source}.{item.cron_hour:02d}{item.cron_minute:02d}"


def _install_signal_handlers(app: Celery) -> None:
    from celery import signals

    logger = logging.getLogger("newswire.worker")

    @signals.worker_shutdown.connect  # type: ignore[attr-defined]
    def _on_worker_shutdown(sender=None, **kwargs):  # noqa: ANN001
        logger.info("worker.shutdown", extra={"sender": str(sender)})
