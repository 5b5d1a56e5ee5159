from __future__ import annotations

from typing import Dict, List

import httpx
import pytest

from newswire.adapters.base import PermanentAdapterError, TransientAdapterError
from newswire.adapters.html import HtmlSelectorAdapter
from newswire.models.domain import ArticleReference
from newswire.settings import SelectorSourceConfig

BASE = "https://www.example-air.com"

LISTING = """
<html><body>
  <article class="card"><a href="/news/new-vertiport">New vertiport</a><time datetime="2024-06-03">Jun 3</time></article>
  <article class="card"><a href="/news/flight-test">Flight test</a><time datetime="2024-05-20">May 20</time></article>
  <article class="card"><a href="/news/new-vertiport">New vertiport (dup)</a></article>
  <article class="card"><span>no link</span></article>
  <article class="card"><a href="mailto:press@example-air.com">Contact</a></article>
</body></html>
"""

ARTICLE = """
<html><head>
  <meta name="author" content="Press Team"/>
  <meta property="og:image" content="/img/hero.jpg"/>
  <meta property="article:published_time" content="2024-06-03T09:00:00Z"/>
</head><body>
  <h1>New vertiport opens in Dubai</h1>
  <article>
    <p>The first vertiport opened today.</p>
    <div class="share">Share on social</div>
    <p>See also <a href="/news/flight-test">the flight test</a> and <a href="https://other.com/x">elsewhere</a>.</p>
  </article>
  <ul class="tags"><li>Vertiport</li><li>Dubai</li><li>Vertiport</li></ul>
</body></html>
"""


def _config(**overrides) -> SelectorSourceConfig:
    values = dict(
        source="example_air",
        company_name="Example Air",
        publication="Example Air Newsroom",
        listing_urls={"press-releases": f"{BASE}/news/", "blog-posts": f"{BASE}/blog/"},
        item_selector="article.card",
        date_selector="time",
        content_selector="article",
        tag_selector="ul.tags li",
        drop_selectors=[".share"],
    )
    values.update(overrides)
    return SelectorSourceConfig(**values)


def _adapter(
    routes: Dict[str, httpx.Response], calls: List[str] | None = None, *, config=None, **kwargs
) -> HtmlSelectorAdapter:
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        canned = routes.get(url, httpx.Response(404, text="missing"))
        return httpx.Response(canned.status_code, headers=canned.headers, content=canned.content)

    return HtmlSelectorAdapter(
        config or _config(),
        client_factory=lambda: httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=lambda s: None,
        **kwargs,
    )


def test_categories_follow_listing_order():
    adapter = _adapter({})

    assert adapter.categories == ("press-releases", "blog-posts")
    assert adapter.publication == "Example Air Newsroom"


def test_list_candidates_resolves_and_dedupes_links():
    adapter = _adapter({f"{BASE}/news/": httpx.Response(200, text=LISTING)})

    with adapter.session():
        refs = adapter.list_candidates("press-releases")

    assert [r.url for r in refs] == [f"{BASE}/news/new-vertiport", f"{BASE}/news/flight-test"]
    assert refs[0].title == "New vertiport"
    assert refs[0].published_hint == "2024-06-03"
    assert refs[0].source_category == "press-releases"


def test_list_candidates_honours_max_candidates():
    adapter = _adapter({f"{BASE}/news/": httpx.Response(200, text=LISTING)}, config=_config(max_candidates=1))

    with adapter.session():
        refs = adapter.list_candidates("press-releases")

    assert len(refs) == 1


def test_unknown_category_is_permanent():
    adapter = _adapter({})

    with adapter.session(), pytest.raises(PermanentAdapterError):
        adapter.list_candidates("podcasts")


def test_fetch_content_extracts_article():
    url = f"{BASE}/news/new-vertiport"
    adapter = _adapter({url: httpx.Response(200, text=ARTICLE)})
    ref = ArticleReference(url=url, title="New vertiport", source_category="press-releases")

    with adapter.session():
        content = adapter.fetch_content(ref)

    assert content is not None
    assert content.title == "New vertiport opens in Dubai"
    assert "Share on social" not in content.plain_text
    assert content.plain_text.startswith("The first vertiport opened today.")
    assert content.author == "Press Team"
    assert content.published_hint == "2024-06-03T09:00:00Z"
    assert content.image_url == f"{BASE}/img/hero.jpg"
    assert content.raw_markup.startswith(f'<img src="{BASE}/img/hero.jpg"')
    assert content.tags == ["Vertiport", "Dubai"]
    assert content.related_references == [f"{BASE}/news/flight-test"]
    assert content.category == "press-releases"


def test_lead_image_attributes_are_escaped():
    url = f"{BASE}/news/quoted"
    page = ARTICLE.replace("New vertiport opens in Dubai", "Say &quot;hi&quot; &lt;now&gt;")
    adapter = _adapter({url: httpx.Response(200, text=page)})
    ref = ArticleReference(url=url, title="quoted", source_category="press-releases")

    with adapter.session():
        content = adapter.fetch_content(ref)

    assert content.title == 'Say "hi" <now>'
    assert content.raw_markup.startswith(
        f'<img src="{BASE}/img/hero.jpg" alt="Say &quot;hi&quot; &lt;now&gt;" />\n'
    )


def test_fetch_content_without_content_element_returns_none():
    url = f"{BASE}/news/empty"
    adapter = _adapter({url: httpx.Response(200, text="<html><body><h1>Title</h1></body></html>")})

    with adapter.session():
        assert adapter.fetch_content(ArticleReference(url=url)) is None


def test_client_errors_are_permanent():
    url = f"{BASE}/news/gone"
    calls: List[str] = []
    adapter = _adapter({url: httpx.Response(410)}, calls)

    with adapter.session(), pytest.raises(PermanentAdapterError):
        adapter.fetch_content(ArticleReference(url=url))

    assert calls == [url]


def test_server_errors_are_retried_then_transient():
    url = f"{BASE}/news/flaky"
    calls: List[str] = []
    adapter = _adapter({url: httpx.Response(503, headers={"Retry-After": "1"})}, calls, max_attempts=2)

    with adapter.session(), pytest.raises(TransientAdapterError):
        adapter.fetch_content(ArticleReference(url=url))

    assert calls == [url, url]


def test_requests_outside_session_fail():
    adapter = _adapter({})

    with pytest.raises(PermanentAdapterError):
        adapter.get_page(f"{BASE}/news/")


def test_session_closes_client_on_error():
    adapter = _adapter({})

    with pytest.raises(RuntimeError):
        with adapter.session():
            assert adapter._client is not None
            raise RuntimeError("boom")

    assert adapter._client is None
