"""Draft a research abstract from a research plan and selected reference papers."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import llm_client
from errors import InputError
from fallback import Strategy, TierOutcome, run_tiers
from llm_client import ModelClient, parse_json_object
from models import (
    ABSTRACT_SECTIONS,
    DEFAULT_RELEVANCE_SCORE,
    AbstractSynthesisResult,
    PaperRecord,
    ResearchInfo,
    clamp_int,
)

LOGGER = logging.getLogger(__name__)

MAX_REFERENCE_PAPERS = 5
MAX_REFERENCED_TITLES = 3
SUMMARY_EXCERPT_CHARS = 200
MIN_ABSTRACT_CHARS = 50
MIN_HEURISTIC_LINE_CHARS = 100

HEURISTIC_CONFIDENCE = 60
STATIC_CONFIDENCE = 50

MAX_TOKENS = 2000
TEMPERATURE = 0.3

NOT_SPECIFIED = "명시되지 않음"

_SECTION_DEFAULTS: dict[str, str] = {
    "background": "연구 배경",
    "objective": "연구 목적",
    "methodology": "연구 방법",
    "expectedResults": "기대 결과",
    "significance": "연구의 의의",
}

_PROMPT_TEMPLATE = """You are an expert academic writer. Using the research information and reference papers below, write a high-quality academic abstract.

Research information:
- Title: {title}
- Objective: {objective}
- Methodology: {methodology}
- Expected results: {expected_results}
- Search keyword: {search_keyword}

Reference papers:
{paper_summaries}

Respond with exactly this JSON structure:

{{
  "abstract": "the abstract (Korean, 150-300 words)",
  "wordCount": 250,
  "structure": {{
    "background": "background and motivation",
    "objective": "research objective",
    "methodology": "research method",
    "expectedResults": "expected results",
    "significance": "significance of the research"
  }},
  "confidence": 85,
  "suggestions": ["improvement suggestion 1", "improvement suggestion 2"],
  "referencedPapers": ["titles of the main papers used"]
}}

Rules:
1. keep an academic, professional tone
2. follow the flow background, objective, method, results, significance
3. weave in the key content of the reference papers
4. use concrete, measurable statements
5. reply with JSON only, no other text"""


def generate_abstract(
    research_info: ResearchInfo,
    reference_papers: Sequence[PaperRecord],
    search_keyword: str | None = None,
    complete: ModelClient | None = None,
) -> AbstractSynthesisResult:
    """Draft an abstract; degrades to a templated paragraph instead of failing.

    Raises:
        InputError: the research title is missing or no reference papers were given.
    """
    if research_info is None or not research_info.title.strip():
        raise InputError("A research title is required", code="MISSING_TITLE")
    if not reference_papers:
        raise InputError("At least one reference paper is required", code="MISSING_PAPERS")

    complete = complete or llm_client.complete
    prompt = build_prompt(research_info, reference_papers, search_keyword)
    LOGGER.info(
        "Abstract generation requested: title=%r papers=%s keyword=%r",
        research_info.title,
        len(reference_papers),
        search_keyword,
    )

    result = run_tiers(
        task="abstract generation",
        request=lambda: complete(prompt, MAX_TOKENS, TEMPERATURE),
        strategies=[
            Strategy("structured", _structured_tier),
            Strategy("heuristic", lambda reply: _heuristic_tier(reply, research_info)),
        ],
        fallback=lambda: static_abstract(research_info, reference_papers),
    )
    LOGGER.info(
        "Abstract generation done: words=%s confidence=%s",
        result.word_count,
        result.confidence,
    )
    return result


def build_prompt(
    research_info: ResearchInfo,
    reference_papers: Sequence[PaperRecord],
    search_keyword: str | None,
) -> str:
    summaries = []
    for index, paper in enumerate(reference_papers[:MAX_REFERENCE_PAPERS], start=1):
        score = paper.relevance_score or DEFAULT_RELEVANCE_SCORE
        summaries.append(
            f"{index}. {paper.title}\n"
            f"   Authors: {', '.join(paper.author_names) or 'Unknown'}\n"
            f"   Abstract: {paper.summary[:SUMMARY_EXCERPT_CHARS]}...\n"
            f"   Relevance: {score}"
        )

    return _PROMPT_TEMPLATE.format(
        title=research_info.title,
        objective=research_info.objective or NOT_SPECIFIED,
        methodology=research_info.methodology or NOT_SPECIFIED,
        expected_results=research_info.expected_results or NOT_SPECIFIED,
        search_keyword=search_keyword or NOT_SPECIFIED,
        paper_summaries="\n\n".join(summaries),
    )


def _structured_tier(reply: str) -> TierOutcome[AbstractSynthesisResult]:
    try:
        data = parse_json_object(reply)
    except RuntimeError as exc:
        return TierOutcome.needs_fallback(f"reply is not JSON: {exc}")

    abstract = data.get("abstract")
    if not isinstance(abstract, str) or len(abstract.strip()) < MIN_ABSTRACT_CHARS:
        return TierOutcome.needs_fallback("abstract missing or too short")

    abstract = abstract.strip()
    word_count = data.get("wordCount")
    if isinstance(word_count, bool) or not isinstance(word_count, int) or word_count < 0:
        word_count = count_words(abstract)

    raw_structure = data.get("structure") if isinstance(data.get("structure"), dict) else {}
    structure = {
        section: _as_text(raw_structure.get(section)) or _SECTION_DEFAULTS[section]
        for section in ABSTRACT_SECTIONS
    }

    return TierOutcome.success(
        AbstractSynthesisResult(
            abstract_text=abstract,
            word_count=word_count,
            structure=structure,
            confidence=clamp_int(data.get("confidence"), STATIC_CONFIDENCE, 0, 100),
            suggestions=_as_text_list(data.get("suggestions")),
            referenced_papers=_as_text_list(data.get("referencedPapers"))[:MAX_REFERENCED_TITLES],
        )
    )


def _heuristic_tier(reply: str, research_info: ResearchInfo) -> TierOutcome[AbstractSynthesisResult]:
    body = extract_abstract_line(reply)
    if body is None:
        return TierOutcome.needs_fallback("no long plain-text line in reply")

    return TierOutcome.success(
        AbstractSynthesisResult(
            abstract_text=body,
            word_count=count_words(body),
            structure={
                "background": "배경 정보 추출됨",
                "objective": research_info.objective or "목적 명시 필요",
                "methodology": research_info.methodology or "방법론 명시 필요",
                "expectedResults": "결과 예상됨",
                "significance": "연구 의의 있음",
            },
            confidence=HEURISTIC_CONFIDENCE,
            suggestions=["더 구체적인 연구 정보 제공", "참고논문 추가 검토"],
            referenced_papers=[],
        )
    )


def extract_abstract_line(text: str) -> str | None:
    """First line over 100 characters that carries no JSON braces."""
    for line in text.splitlines():
        candidate = line.strip()
        if len(candidate) > MIN_HEURISTIC_LINE_CHARS and "{" not in candidate and "}" not in candidate:
            return candidate
    return None


def static_abstract(
    research_info: ResearchInfo, reference_papers: Sequence[PaperRecord]
) -> AbstractSynthesisResult:
    """Deterministic templated abstract built only from the caller's input."""
    objective = research_info.objective or "본 연구의 목적은 해당 분야의 발전에 기여하는 것이다."
    methodology = research_info.methodology or "체계적인 연구 방법론을 통해 분석을 수행한다."
    expected = research_info.expected_results or "의미있는 결과를 도출할 것으로 기대된다."
    abstract = (
        f"{research_info.title}에 관한 연구이다. {objective} {methodology} "
        f"{len(reference_papers)}개의 관련 논문을 참고하여 {expected} "
        "본 연구는 해당 분야의 이론적 토대를 강화하고 실무적 시사점을 제공할 것이다."
    )

    return AbstractSynthesisResult(
        abstract_text=abstract,
        word_count=count_words(abstract),
        structure={
            "background": _SECTION_DEFAULTS["background"],
            "objective": research_info.objective or _SECTION_DEFAULTS["objective"],
            "methodology": research_info.methodology or _SECTION_DEFAULTS["methodology"],
            "expectedResults": research_info.expected_results or _SECTION_DEFAULTS["expectedResults"],
            "significance": _SECTION_DEFAULTS["significance"],
        },
        confidence=STATIC_CONFIDENCE,
        suggestions=["더 구체적인 연구 계획 수립", "추가 문헌 조사"],
        referenced_papers=[paper.title for paper in reference_papers[:MAX_REFERENCED_TITLES]],
    )


def count_words(text: str) -> int:
    return len(text.split())


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]
