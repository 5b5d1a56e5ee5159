"""Consecutive-duplicate tracking for early stopping during enumeration.

Sources enumerate newest-first. Once ``threshold`` already-stored articles are
seen back to back, the rest of the listing is assumed to be ingested already
and the caller can stop instead of walking the full history.
"""

from __future__ import annotations

from typing import Protocol

from celery.exceptions import SoftTimeLimitExceeded

from newswire.models.domain import DuplicateCheck
from newswire.utils.logging import get_logger

logger = get_logger(__name__)


class ExistenceCheck(Protocol):
    def exists_by_url(self, url: str) -> bool: ...  # noqa: D401


class DuplicateTracker:
    """Per-run, process-local counter of consecutive duplicates."""

    def __init__(self, store: ExistenceCheck, threshold: int = 5, *, source: str | None = None) -> None:
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        self._store = store
        self._threshold = threshold
        self._source = source
        self._consecutive = 0

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def consecutive_duplicates(self) -> int:
        return self._consecutive

    @property
    def should_stop(self) -> bool:
        return self._consecutive >= self._threshold

    def is_stored(self, url: str) -> bool:
        """Existence lookup that fails open: lookup errors count as not stored."""
        try:
            return bool(self._store.exists_by_url(url))
        except SoftTimeLimitExceeded:
            raise
        except Exception as exc:
            logger.warning(
                "dedupe.lookup_failed",
                extra={"source": self._source, "url": url, "error": str(exc)},
            )
            return False

    def check(self, url: str) -> DuplicateCheck:
        if not self.is_stored(url):
            if self._consecutive > 0:
                logger.info(
                    "dedupe.counter_reset",
                    extra={"source": self._source, "url": url, "after": self._consecutive},
                )
            self._consecutive = 0
            return DuplicateCheck(is_duplicate=False, should_stop=False)

        self._consecutive += 1
        logger.info(
            "dedupe.duplicate",
            extra={
                "source": self._source,
                "url": url,
                "consecutive": self._consecutive,
                "threshold": self._threshold,
            },
        )
        if self.should_stop:
            logger.info(
                "dedupe.threshold_reached",
                extra={"source": self._source, "consecutive": self._consecutive},
            )
        return DuplicateCheck(is_duplicate=True, should_stop=self.should_stop)

    def reset(self) -> None:
        self._consecutive = 0
