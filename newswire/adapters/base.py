"""Source adapter contract, errors, and scoped session handling."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence, Tuple

from newswire.models.domain import ArticleContent, ArticleReference
from newswire.utils.logging import get_logger

logger = get_logger(__name__)


class AdapterError(Exception):
    """Base adapter error."""


class TransientAdapterError(AdapterError):
    """Retryable error (e.g., rate limit, network hiccup)."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PermanentAdapterError(AdapterError):
    """Non-retryable error (e.g., 4xx semantics, unusable page)."""


class SourceAdapter(ABC):
    """One content source.

    Subclasses enumerate candidate references newest-first and fetch the
    content behind one reference. An adapter may hold an exclusive session
    (browser, HTTP client) between ``open()`` and ``close()``; it is not safe
    for concurrent use, so the pipeline drives it from a single worker.
    """

    source: str
    company_name: str = ""
    publication: str = ""
    credibility_score: float = 0.9
    industry_focus: Tuple[str, ...] = ()
    language: str = "en"
    categories: Sequence[Optional[str]] = (None,)
    default_news_type: str = "news"

    def open(self) -> None:
        """Acquire the adapter's session resources."""

    def close(self) -> None:
        """Release the adapter's session resources."""

    @contextmanager
    def session(self) -> Iterator["SourceAdapter"]:
        """Scope the adapter session; ``close()`` runs on every exit path."""
        self.open()
        try:
            yield self
        finally:
            try:
                self.close()
            except Exception as exc:
                logger.error("adapter.close_failed", extra={"source": self.source, "error": str(exc)})

    @abstractmethod
    def list_candidates(self, category: Optional[str] = None) -> Sequence[ArticleReference]:
        """Return references for ``category`` in newest-first order."""

    @abstractmethod
    def fetch_content(self, reference: ArticleReference) -> Optional[ArticleContent]:
        """Return the article behind ``reference`` or ``None`` when nothing is extractable."""

    def resolve_news_type(self, reference: ArticleReference, content: ArticleContent) -> Tuple[str, str]:
        """Return ``(news_type, article_category)`` for a fetched article."""
        category = (reference.source_category or content.category or "").strip().lower()
        if "blog" in category or "/blog/" in reference.url:
            return "blog_post", "blog_post"
        if "press" in category:
            return "press_release", "press_release"
        if "media" in category or "coverage" in category:
            return "media_coverage", "media_coverage"
        return self.default_news_type, category.replace("-", "_").replace(" ", "_") or self.default_news_type
