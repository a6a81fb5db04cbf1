"""Score one paper's relevance to a search context with the generative model."""

from __future__ import annotations

import logging
from typing import Any

import llm_client
from errors import InputError
from llm_client import ModelClient, parse_json_object
from models import DEFAULT_RELEVANCE_SCORE, UNKNOWN, AiAnalysis, PaperRecord, clamp_int

LOGGER = logging.getLogger(__name__)

MAX_TOKENS = 500
TEMPERATURE = 0.2

ANALYSIS_FAILED_REASONING = "분석 실패"
NO_REASONING = "분석 결과 없음"
NO_METHODOLOGY = "방법론 정보 없음"

_PROMPT_TEMPLATE = """Analyze how relevant this paper is to the search context.

Search context: "{context}"

Paper:
- Title: {title}
- Authors: {authors}
- Abstract: {summary}
- Category: {category}

Respond with JSON only:
{{
  "relevanceScore": 85,
  "reasoning": "why the paper is or is not relevant",
  "keyInsights": ["key insight 1", "key insight 2"],
  "methodology": "research methodology"
}}

Scoring rubric: 90-100 very relevant, 70-89 relevant, 50-69 partially relevant, 30-49 slightly relevant, 0-29 irrelevant"""


def analyze_relevance(
    paper: PaperRecord,
    search_context: str,
    complete: ModelClient | None = None,
) -> PaperRecord:
    """Populate ``relevance_score`` and ``ai_analysis`` on ``paper`` and return it.

    Model or parse failures never escape: the paper gets the default score and
    an analysis that says the scoring failed.
    """
    if paper is None:
        raise InputError("A paper is required for relevance analysis", code="MISSING_PAPER")

    complete = complete or llm_client.complete
    prompt = build_prompt(paper, search_context)

    try:
        data = parse_json_object(complete(prompt, MAX_TOKENS, TEMPERATURE))
        score = clamp_int(data.get("relevanceScore"), DEFAULT_RELEVANCE_SCORE, 0, 100)
        analysis = AiAnalysis(
            reasoning=_as_text(data.get("reasoning")) or NO_REASONING,
            key_insights=_as_insights(data.get("keyInsights")),
            methodology=_as_text(data.get("methodology")) or NO_METHODOLOGY,
        )
    except Exception as exc:
        LOGGER.warning("Relevance analysis failed for paper_id=%s: %s", paper.id, exc)
        paper.relevance_score = DEFAULT_RELEVANCE_SCORE
        paper.ai_analysis = AiAnalysis(
            reasoning=ANALYSIS_FAILED_REASONING,
            key_insights=[],
            methodology="정보 없음",
        )
        return paper

    paper.relevance_score = score
    paper.ai_analysis = analysis
    LOGGER.info("Relevance for paper_id=%s: score=%s", paper.id, paper.relevance_score)
    return paper


def build_prompt(paper: PaperRecord, search_context: str) -> str:
    return _PROMPT_TEMPLATE.format(
        context=search_context or "",
        title=paper.title,
        authors=", ".join(paper.author_names) or "No author information",
        summary=paper.summary or "No abstract",
        category=paper.primary_category or UNKNOWN,
    )


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_insights(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]
