"""Shared typed models for the search pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

UNKNOWN = "Unknown"
DEFAULT_RELEVANCE_SCORE = 50


def clamp_int(value: Any, default: int, low: int, high: int) -> int:
    """Coerce a loosely typed number into ``[low, high]``; ``default`` when unusable."""
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return max(low, min(high, number))


@dataclass(slots=True)
class AiAnalysis:
    """Model-derived rationale attached to an enriched paper."""

    reasoning: str
    key_insights: list[str] = field(default_factory=list)
    methodology: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "reasoning": self.reasoning,
            "keyInsights": list(self.key_insights),
            "methodology": self.methodology,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AiAnalysis:
        return cls(
            reasoning=str(data.get("reasoning") or ""),
            key_insights=[str(item) for item in data.get("keyInsights") or []],
            methodology=str(data.get("methodology") or ""),
        )


@dataclass(slots=True)
class PaperRecord:
    """Normalized paper record used across retrieval and enrichment.

    Mutable on purpose: the relevance enricher writes ``relevance_score`` and
    ``ai_analysis`` into the record it was handed.
    """

    id: str
    title: str
    authors: list[dict[str, str]] = field(default_factory=list)
    summary: str = ""
    categories: list[str] = field(default_factory=list)
    primary_category: str = UNKNOWN
    published_date: str = UNKNOWN
    updated_date: str = UNKNOWN
    landing_url: str = ""
    document_url: str = ""
    relevance_score: int = 0
    ai_analysis: AiAnalysis | None = None

    @property
    def author_names(self) -> list[str]:
        return [author.get("name") or UNKNOWN for author in self.authors]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "authors": [dict(author) for author in self.authors],
            "summary": self.summary,
            "categories": list(self.categories),
            "primaryCategory": self.primary_category,
            "publishedDate": self.published_date,
            "updatedDate": self.updated_date,
            "landingUrl": self.landing_url,
            "documentUrl": self.document_url,
            "relevanceScore": self.relevance_score,
            "aiAnalysis": self.ai_analysis.to_dict() if self.ai_analysis else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaperRecord:
        """Rebuild a record from its serialized form (e.g. a saved search)."""
        authors: list[dict[str, str]] = []
        for author in data.get("authors") or []:
            if isinstance(author, dict):
                authors.append({"name": str(author.get("name") or UNKNOWN)})
            else:
                authors.append({"name": str(author)})

        categories = [str(tag) for tag in data.get("categories") or []]
        analysis = data.get("aiAnalysis")

        return cls(
            id=str(data.get("id") or "unknown"),
            title=str(data.get("title") or ""),
            authors=authors,
            summary=str(data.get("summary") or ""),
            categories=categories,
            primary_category=str(
                data.get("primaryCategory") or (categories[0] if categories else UNKNOWN)
            ),
            published_date=str(data.get("publishedDate") or UNKNOWN),
            updated_date=str(data.get("updatedDate") or UNKNOWN),
            landing_url=str(data.get("landingUrl") or ""),
            document_url=str(data.get("documentUrl") or ""),
            relevance_score=clamp_int(data.get("relevanceScore"), 0, 0, 100),
            ai_analysis=AiAnalysis.from_dict(analysis) if isinstance(analysis, dict) else None,
        )


@dataclass(slots=True)
class KeywordOptimizationResult:
    """Search keywords derived from a free-text research request."""

    original_query: str
    analysis_note: str
    strategy_note: str
    reasoning_note: str
    keywords: list[str]
    confidence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalQuery": self.original_query,
            "analysisNote": self.analysis_note,
            "strategyNote": self.strategy_note,
            "reasoningNote": self.reasoning_note,
            "keywords": list(self.keywords),
            "confidence": self.confidence,
        }


ABSTRACT_SECTIONS: tuple[str, ...] = (
    "background",
    "objective",
    "methodology",
    "expectedResults",
    "significance",
)


@dataclass(slots=True)
class AbstractSynthesisResult:
    """Drafted abstract plus its five-part outline."""

    abstract_text: str
    word_count: int
    structure: dict[str, str]
    confidence: int
    suggestions: list[str] = field(default_factory=list)
    referenced_papers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "abstractText": self.abstract_text,
            "wordCount": self.word_count,
            "structure": {key: self.structure.get(key, "") for key in ABSTRACT_SECTIONS},
            "confidence": self.confidence,
            "suggestions": list(self.suggestions),
            "referencedPapers": list(self.referenced_papers),
        }


@dataclass(frozen=True, slots=True)
class ResearchInfo:
    """Caller-supplied description of the planned research."""

    title: str
    objective: str = ""
    methodology: str = ""
    expected_results: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResearchInfo:
        return cls(
            title=str(data.get("title") or ""),
            objective=str(data.get("objective") or ""),
            methodology=str(data.get("methodology") or ""),
            expected_results=str(data.get("expectedResults") or ""),
        )


@dataclass(slots=True)
class SmartSearchResult:
    """Ranked papers for one search request plus its optimization metadata."""

    papers: list[PaperRecord]
    search_keyword: str
    optimization: KeywordOptimizationResult | None = None
    stats: dict[str, int] = field(default_factory=dict)
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "papers": [paper.to_dict() for paper in self.papers],
            "searchKeyword": self.search_keyword,
            "optimization": self.optimization.to_dict() if self.optimization else None,
            "stats": dict(self.stats),
        }
        if self.message:
            payload["message"] = self.message
        return payload
