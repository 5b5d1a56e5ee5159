"""Build the persisted document from a fetched article and its derived fields."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from newswire.adapters.base import SourceAdapter
from newswire.models.domain import ArticleContent, ArticleReference, ClassificationResult, IngestedDocument
from newswire.utils.text import parse_published, word_count


def build_document(
    adapter: SourceAdapter,
    reference: ArticleReference,
    content: ArticleContent,
    classification: ClassificationResult,
    embedding: Sequence[float],
    *,
    embedding_model: str,
    ingested_at: Optional[datetime] = None,
) -> IngestedDocument:
    now = ingested_at or datetime.now(timezone.utc)
    news_type, article_category = adapter.resolve_news_type(reference, content)
    words = word_count(content.plain_text)
    vector: List[float] = list(embedding)
    published_hint = content.published_hint or reference.published_hint
    return IngestedDocument(
        url=reference.url,
        title=content.title or reference.title or reference.url,
        content=content.raw_markup,
        plain_text=content.plain_text,
        source=adapter.source,
        published_date=parse_published(published_hint, default=now),
        news_type=news_type,
        article_category=article_category,
        company_name=adapter.company_name,
        author=content.author,
        publication=adapter.publication or adapter.source,
        tags=sorted(classification.tags),
        sentiment=classification.sentiment,
        impact_level=classification.impact_level,
        credibility_score=adapter.credibility_score,
        geographic_focus=sorted(classification.geographic_focus),
        industry_focus=list(adapter.industry_focus),
        related_companies=sorted(classification.related_entities),
        embedding=vector,
        word_count=words,
        language=adapter.language,
        metadata={
            "source": adapter.source,
            "url": reference.url,
            "category": reference.source_category or content.category or None,
            "news_type": news_type,
            "published_hint": published_hint or None,
            "author": content.author,
            "source_tags": list(content.tags),
            "related_articles": list(content.related_references),
            "featured_image": content.image_url,
            "embedding_generated": bool(vector),
            "embedding_model": embedding_model,
            "word_count": words,
            "ingested_at": now.isoformat(),
        },
    )
