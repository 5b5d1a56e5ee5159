"""Selector-driven HTML adapter over httpx + BeautifulSoup.

Each source is described by a ``SelectorSourceConfig``: one listing page per
category plus CSS selectors for listing items and article pages. Pages whose
listings are rendered client-side need a dedicated adapter instead.
"""

from __future__ import annotations

import time
from html import escape
from typing import Callable, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag

from newswire.models.domain import ArticleContent, ArticleReference
from newswire.settings import SelectorSourceConfig
from newswire.utils.logging import get_logger
from newswire.utils.retry import RetryExhausted, RetryPolicy
from newswire.utils.text import html_to_text

from .base import PermanentAdapterError, SourceAdapter, TransientAdapterError

logger = get_logger(__name__)

ClientFactory = Callable[[], httpx.Client]


def _text(el: Optional[Tag]) -> str:
    return el.get_text(" ", strip=True) if el is not None else ""


def _date_of(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    value = el.get("datetime") or el.get("content")
    return str(value).strip() if value else _text(el)


class HtmlSelectorAdapter(SourceAdapter):
    """Adapter for server-rendered listing and article pages."""

    def __init__(
        self,
        config: SelectorSourceConfig,
        *,
        timeout: float = 30.0,
        user_agent: str = "Mozilla/5.0 (compatible; newswire/0.1)",
        max_attempts: int = 3,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.source = config.source
        self.company_name = config.company_name
        self.publication = config.publication
        self.credibility_score = config.credibility_score
        self.industry_focus = tuple(config.industry_focus)
        self.language = config.language
        self.categories = tuple(config.listing_urls.keys())
        self.default_news_type = config.default_news_type
        self._timeout = timeout
        self._user_agent = user_agent
        self._client_factory = client_factory
        self._client: Optional[httpx.Client] = None
        self._sleep = sleep
        self._policy = RetryPolicy(
            max_attempts=max_attempts,
            base_delay=2.0,
            max_delay=30.0,
            retryable=TransientAdapterError,
            retry_after=lambda exc: getattr(exc, "retry_after", None),
        )

    def open(self) -> None:
        if self._client is not None:
            return
        if self._client_factory is not None:
            self._client = self._client_factory()
            return
        self._client = httpx.Client(
            timeout=self._timeout,
            follow_redirects=True,
            headers={
                "User-Agent": self._user_agent,
                "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )

    def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.close()

    def _get_once(self, url: str) -> str:
        if self._client is None:
            raise PermanentAdapterError(f"{self.source}: adapter session is not open")
        try:
            resp = self._client.get(url)
        except httpx.TimeoutException as exc:
            raise TransientAdapterError(f"timeout fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise TransientAdapterError(f"error fetching {url}: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            header = resp.headers.get("Retry-After", "")
            raise TransientAdapterError(
                f"transient status {resp.status_code} for {url}",
                retry_after=float(header) if header.isdigit() else None,
            )
        if resp.status_code >= 400:
            raise PermanentAdapterError(f"status {resp.status_code} for {url}")
        return resp.text

    def get_page(self, url: str) -> str:
        def _on_retry(attempt: int, delay: float, exc: BaseException) -> None:
            logger.warning(
                "adapter.fetch_retry",
                extra={"source": self.source, "url": url, "attempt": attempt, "delay": delay, "error": str(exc)},
            )

        try:
            return self._policy.run(lambda: self._get_once(url), sleep=self._sleep, on_retry=_on_retry)
        except RetryExhausted as exc:
            raise TransientAdapterError(str(exc)) from exc.last_error

    def listing_url(self, category: Optional[str]) -> str:
        urls = self.config.listing_urls
        if category is None:
            return next(iter(urls.values()))
        try:
            return urls[category]
        except KeyError:
            raise PermanentAdapterError(f"{self.source}: unknown category {category!r}") from None

    def list_candidates(self, category: Optional[str] = None) -> Sequence[ArticleReference]:
        base_url = self.listing_url(category)
        soup = BeautifulSoup(self.get_page(base_url), "html.parser")
        cfg = self.config
        seen: set[str] = set()
        refs: List[ArticleReference] = []
        for item in soup.select(cfg.item_selector):
            link = item if item.name == "a" else item.select_one(cfg.link_selector)
            href = str(link.get("href") or "").strip() if link is not None else ""
            if not href:
                continue
            url = urljoin(base_url, href)
            if not url.startswith(("http://", "https://")) or url in seen:
                continue
            seen.add(url)
            title = _text(item.select_one(cfg.title_selector)) if cfg.title_selector else _text(link)
            published = _date_of(item.select_one(cfg.date_selector)) if cfg.date_selector else ""
            refs.append(
                ArticleReference(
                    url=url,
                    title=title,
                    source_category=category or "",
                    published_hint=published,
                )
            )
            if cfg.max_candidates and len(refs) >= cfg.max_candidates:
                break
        logger.info(
            "adapter.listed",
            extra={"source": self.source, "category": category, "count": len(refs)},
        )
        return refs

    def fetch_content(self, reference: ArticleReference) -> Optional[ArticleContent]:
        cfg = self.config
        soup = BeautifulSoup(self.get_page(reference.url), "html.parser")
        body = soup.select_one(cfg.content_selector)
        if body is None:
            logger.warning("adapter.no_content", extra={"source": self.source, "url": reference.url})
            return None

        title = _text(soup.select_one(cfg.content_title_selector)) or reference.title
        raw_markup = body.decode_contents()
        plain_text = html_to_text(raw_markup, cfg.drop_selectors)
        if not title or not plain_text:
            logger.warning("adapter.empty_content", extra={"source": self.source, "url": reference.url})
            return None

        image_url = self._image_url(soup, reference.url)
        if image_url:
            img = f'<img src="{escape(image_url, quote=True)}" alt="{escape(title, quote=True)}" />'
            raw_markup = f"{img}\n{raw_markup}"

        author = _text(soup.select_one(cfg.author_selector)) if cfg.author_selector else ""
        if not author:
            meta_author = soup.select_one('meta[name="author"]')
            author = str(meta_author.get("content") or "").strip() if meta_author is not None else ""

        published = _date_of(soup.select_one(cfg.published_selector)) if cfg.published_selector else ""
        if not published:
            published = _date_of(soup.select_one('meta[property="article:published_time"]'))

        tags: List[str] = []
        if cfg.tag_selector:
            tags = [t for t in (_text(el) for el in soup.select(cfg.tag_selector)) if t]

        return ArticleContent(
            title=title,
            raw_markup=raw_markup,
            plain_text=plain_text,
            published_hint=published or reference.published_hint,
            category=reference.source_category,
            author=author or None,
            related_references=self._related(body, reference.url),
            tags=list(dict.fromkeys(tags)),
            image_url=image_url,
        )

    def _image_url(self, soup: BeautifulSoup, page_url: str) -> Optional[str]:
        src = ""
        if self.config.image_selector:
            img = soup.select_one(self.config.image_selector)
            if img is not None:
                src = str(img.get("src") or img.get("data-src") or "")
        if not src:
            meta = soup.select_one('meta[property="og:image"]')
            src = str(meta.get("content") or "") if meta is not None else ""
        return urljoin(page_url, src) if src else None

    @staticmethod
    def _related(body: Tag, page_url: str) -> List[str]:
        host = urlparse(page_url).netloc
        related: List[str] = []
        for a in body.select("a[href]"):
            url = urljoin(page_url, str(a.get("href")))
            if urlparse(url).netloc == host and url != page_url and url not in related:
                related.append(url)
        return related
