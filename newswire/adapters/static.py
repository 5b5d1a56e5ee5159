"""Callable-backed adapter (fetcher-injected for tests/offline wiring)."""

from __future__ import annotations

from typing import Callable, Optional, Sequence, Tuple

from newswire.models.domain import ArticleContent, ArticleReference

from .base import SourceAdapter

ListFn = Callable[[Optional[str]], Sequence[ArticleReference]]
FetchFn = Callable[[ArticleReference], Optional[ArticleContent]]
HookFn = Callable[[], None]


class StaticAdapter(SourceAdapter):
    """Adapter whose enumeration and fetching are supplied as functions.

    Useful for sources whose listing already comes from elsewhere (a feed, a
    fixture, another service) and for exercising the pipeline offline.
    """

    def __init__(
        self,
        source: str,
        lister: ListFn,
        fetcher: FetchFn,
        *,
        categories: Sequence[Optional[str]] = (None,),
        company_name: str = "",
        publication: str = "",
        credibility_score: float = 0.9,
        industry_focus: Tuple[str, ...] = (),
        on_open: Optional[HookFn] = None,
        on_close: Optional[HookFn] = None,
    ) -> None:
        self.source = source
        self.categories = tuple(categories)
        self.company_name = company_name
        self.publication = publication or source
        self.credibility_score = credibility_score
        self.industry_focus = industry_focus
        self._lister = lister
        self._fetcher = fetcher
        self._on_open = on_open
        self._on_close = on_close

    def open(self) -> None:
        if self._on_open is not None:
            self._on_open()

    def close(self) -> None:
        if self._on_close is not None:
            self._on_close()

    def list_candidates(self, category: Optional[str] = None) -> Sequence[ArticleReference]:
        return self._lister(category)

    def fetch_content(self, reference: ArticleReference) -> Optional[ArticleContent]:
        return self._fetcher(reference)
