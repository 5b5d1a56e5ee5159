"""Content classification contract and the keyword heuristic implementation."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Protocol, Sequence, Tuple

from newswire.models.domain import ClassificationResult, ImpactLevel, Sentiment


class ContentClassifier(Protocol):
    def classify(self, text: str, source_tags: Iterable[str] = ()) -> ClassificationResult: ...  # noqa: D401


POSITIVE_WORDS: Tuple[str, ...] = (
    "success",
    "achievement",
    "milestone",
    "demonstration",
    "partnership",
    "innovation",
    "breakthrough",
    "approval",
    "raises",
    "funding",
)
NEGATIVE_WORDS: Tuple[str, ...] = (
    "challenge",
    "delay",
    "issue",
    "concern",
    "risk",
    "accident",
    "crash",
    "shuts down",
    "bankruptcy",
)
HIGH_IMPACT_WORDS: Tuple[str, ...] = (
    "major",
    "significant",
    "milestone",
    "historic",
    "breakthrough",
    "first",
    "record",
    "unveils",
    "launches",
)
REGION_KEYWORDS: Mapping[str, Tuple[str, ...]] = {
    "United States": ("united states", "california", "salinas", "new york", "vermont", "texas"),
    "Japan": ("japan", "osaka", "tokyo"),
    "United Arab Emirates": ("dubai", "uae", "abu dhabi", "ras al khaimah"),
    "South Korea": ("korea", "seoul"),
    "Europe": ("europe", "france", "germany", "united kingdom"),
    "Asia": ("asia", "china", "singapore"),
}
ENTITY_KEYWORDS: Mapping[str, Tuple[str, ...]] = {
    "Joby Aviation": ("joby",),
    "Archer Aviation": ("archer",),
    "Beta Technologies": ("beta technologies",),
    "Wisk Aero": ("wisk",),
    "Volocopter": ("volocopter",),
    "Vertical Aerospace": ("vertical aerospace",),
    "Lilium": ("lilium",),
    "EHang": ("ehang",),
    "Toyota": ("toyota",),
    "Uber": ("uber",),
    "Delta Air Lines": ("delta air lines",),
    "United Airlines": ("united airlines",),
    "Boeing": ("boeing",),
    "Skyports": ("skyports",),
}
TAG_KEYWORDS: Mapping[str, Tuple[str, ...]] = {
    "air taxi": ("air taxi",),
    "eVTOL": ("evtol", "e-vtol"),
    "electric aircraft": ("electric aircraft", "electric aviation"),
    "FAA certification": ("faa", "federal aviation administration"),
    "flight demonstration": ("demonstration", "test flight"),
    "partnership": ("partnership", "collaboration", "agreement"),
    "vertiport": ("vertiport",),
    "urban air mobility": ("urban air mobility", "uam"),
    "autonomous flight": ("autonomous", "autopilot"),
    "sustainability": ("sustainability", "sustainable", "zero emissions"),
    "regulatory": ("regulatory", "certification"),
    "investment": ("investment", "funding", "financing"),
    "manufacturing": ("manufacturing", "production"),
    "commercial service": ("commercial service", "commercial operation"),
}


def _count(text: str, words: Sequence[str]) -> int:
    return sum(1 for word in words if word in text)


def _matches(text: str, mapping: Mapping[str, Sequence[str]]) -> frozenset[str]:
    return frozenset(label for label, words in mapping.items() if any(w in text for w in words))


class KeywordClassifier:
    """Deterministic keyword heuristics over lower-cased text.

    Matching is plain substring search, so short keywords (``uae``, ``uam``)
    can fire inside longer words; vocabularies are meant to be tuned per
    deployment through the constructor.
    """

    def __init__(
        self,
        *,
        positive_words: Optional[Sequence[str]] = None,
        negative_words: Optional[Sequence[str]] = None,
        high_impact_words: Optional[Sequence[str]] = None,
        regions: Optional[Mapping[str, Sequence[str]]] = None,
        entities: Optional[Mapping[str, Sequence[str]]] = None,
        tags: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        self.positive_words = tuple(positive_words if positive_words is not None else POSITIVE_WORDS)
        self.negative_words = tuple(negative_words if negative_words is not None else NEGATIVE_WORDS)
        self.high_impact_words = tuple(high_impact_words if high_impact_words is not None else HIGH_IMPACT_WORDS)
        self.regions = dict(regions if regions is not None else REGION_KEYWORDS)
        self.entities = dict(entities if entities is not None else ENTITY_KEYWORDS)
        self.tags = dict(tags if tags is not None else TAG_KEYWORDS)

    def sentiment(self, text: str) -> Sentiment:
        positive = _count(text, self.positive_words)
        negative = _count(text, self.negative_words)
        if positive > negative:
            return Sentiment.POSITIVE
        if negative > positive:
            return Sentiment.NEGATIVE
        return Sentiment.NEUTRAL

    def impact(self, text: str) -> ImpactLevel:
        hits = _count(text, self.high_impact_words)
        if hits >= 2:
            return ImpactLevel.HIGH
        if hits == 1:
            return ImpactLevel.MEDIUM
        return ImpactLevel.LOW

    def classify(self, text: str, source_tags: Iterable[str] = ()) -> ClassificationResult:
        lowered = (text or "").lower()
        provided = frozenset(t.strip() for t in source_tags if t and t.strip())
        return ClassificationResult(
            sentiment=self.sentiment(lowered),
            impact_level=self.impact(lowered),
            geographic_focus=_matches(lowered, self.regions),
            related_entities=_matches(lowered, self.entities),
            tags=provided | _matches(lowered, self.tags),
        )
