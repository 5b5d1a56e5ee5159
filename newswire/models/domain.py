"""Domain DTOs for the ingestion pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ArticleReference(BaseModel):
    """Candidate emitted during enumeration; ``url`` is the unique key."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""
    source_category: str = ""
    published_hint: str = ""


class ArticleContent(BaseModel):
    """Full payload fetched for one reference."""

    model_config = ConfigDict(frozen=True)

    title: str
    raw_markup: str
    plain_text: str
    published_hint: str = ""
    category: str = ""
    author: Optional[str] = None
    related_references: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ImpactLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    sentiment: Sentiment = Sentiment.NEUTRAL
    impact_level: ImpactLevel = ImpactLevel.LOW
    geographic_focus: FrozenSet[str] = frozenset()
    related_entities: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()


class IngestedDocument(BaseModel):
    """Record persisted to the document store, unique by ``url``."""

    url: str
    title: str
    content: str = Field(..., description="Markup kept for storage/rendering")
    plain_text: str = Field(..., description="Cleaned text used for analysis and embedding")
    source: str
    published_date: datetime
    news_type: str = "news"
    article_category: str = "news"
    company_name: str = ""
    author: Optional[str] = None
    publication: str = ""
    tags: List[str] = Field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    impact_level: ImpactLevel = ImpactLevel.LOW
    credibility_score: float = Field(0.9, ge=0.0, le=1.0)
    geographic_focus: List[str] = Field(default_factory=list)
    industry_focus: List[str] = Field(default_factory=list)
    related_companies: List[str] = Field(default_factory=list)
    embedding: List[float] = Field(default_factory=list)
    word_count: int = 0
    language: str = "en"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DuplicateCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_duplicate: bool
    should_stop: bool = False


class SourceStatus(str, Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    STOPPED_EARLY = "stopped_early"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CategoryReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: Optional[str] = None
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    stopped_early: bool = False


class SourceReport(BaseModel):
    """Per-source counts of one run."""

    model_config = ConfigDict(frozen=True)

    source: str
    status: SourceStatus
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    stopped_early: bool = False
    consecutive_duplicates: int = 0
    error: Optional[str] = None
    categories: List[CategoryReport] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "status": self.status.value,
            "total": self.total,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "stoppedEarly": self.stopped_early,
            "consecutiveDuplicates": self.consecutive_duplicates,
            "error": self.error,
            "categories": [c.model_dump() for c in self.categories],
        }


class ProcessedDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    title: str
    source: str
    category: Optional[str] = None
    published_hint: str = ""


class RunReport(BaseModel):
    """Aggregate result of one pipeline run, frozen once the run ends."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    started_at: datetime
    finished_at: datetime
    cancelled: bool = False
    sources: List[SourceReport] = Field(default_factory=list)
    documents: List[ProcessedDocument] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(s.status != SourceStatus.FAILED for s in self.sources)

    def for_source(self, source: str) -> Optional[SourceReport]:
        return next((s for s in self.sources if s.source == source), None)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat(),
            "cancelled": self.cancelled,
            "success": self.success,
            "perSource": [s.to_payload() for s in self.sources],
            "documents": [{"url": d.url, "title": d.title, "source": d.source} for d in self.documents],
        }
