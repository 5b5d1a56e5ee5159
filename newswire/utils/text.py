"""Text helpers: markup cleaning, word counts, best-effort date parsing."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

# Elements that never carry article prose
DEFAULT_DROP_SELECTORS = (
    "script",
    "style",
    "noscript",
    "svg",
    "img",
    "button",
    "figure",
    "figcaption",
    "nav",
    "header",
    "footer",
    "aside",
    "form",
    "iframe",
)

_WS = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")


def html_to_text(markup: str, drop_selectors: Iterable[str] = ()) -> str:
    """Strip markup down to readable text, one block per line."""
    if not markup or not markup.strip():
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for selector in (*DEFAULT_DROP_SELECTORS, *drop_selectors):
        for el in soup.select(selector):
            el.decompose()
    text = soup.get_text("\n")
    lines = (_WS.sub(" ", line).strip() for line in text.splitlines())
    return _BLANK_LINES.sub("\n", "\n".join(line for line in lines if line)).strip()


def word_count(text: str) -> int:
    return len(text.split())


def parse_published(hint: Optional[str], *, default: Optional[datetime] = None) -> datetime:
    """Parse a site-provided date string; fall back to ``default`` (now, UTC)."""
    fallback = default or datetime.now(timezone.utc)
    if not hint or not hint.strip():
        return fallback
    try:
        parsed = date_parser.parse(hint.strip(), fuzzy=True)
    except (ValueError, OverflowError):
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
