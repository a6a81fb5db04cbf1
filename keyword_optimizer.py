"""Turn a free-text research request into English arXiv search keywords."""

from __future__ import annotations

import logging
import re
from typing import Any

import llm_client
from errors import InputError
from fallback import Strategy, TierOutcome, run_tiers
from llm_client import ModelClient, parse_json_object
from models import KeywordOptimizationResult, clamp_int

LOGGER = logging.getLogger(__name__)

MAX_KEYWORDS = 5
MIN_CONFIDENCE = 60
MAX_CONFIDENCE = 95
HEURISTIC_CONFIDENCE = 65
STATIC_CONFIDENCE = 60

MAX_TOKENS = 1000
TEMPERATURE = 0.3

# Checked in order; the first topic found in the query wins.
TOPIC_KEYWORDS: dict[str, list[str]] = {
    "영화": ["film production", "cinema technology", "movie industry", "film studies", "entertainment technology"],
    "의료": ["medical imaging", "healthcare AI", "clinical diagnosis", "medical technology", "biomedical engineering"],
    "자율주행": ["autonomous driving", "self driving cars", "vehicle automation", "transportation AI", "robotics navigation"],
    "교육": ["educational technology", "learning systems", "online education", "e-learning platforms", "educational AI"],
    "딥러닝": ["deep learning", "neural networks", "machine learning", "artificial intelligence", "computer vision"],
    "AI": ["artificial intelligence", "machine learning", "neural networks", "deep learning", "AI applications"],
}

DEFAULT_KEYWORDS: list[str] = [
    "artificial intelligence",
    "machine learning",
    "computer science",
    "technology research",
    "data analysis",
]

# A double-quoted run of letters and spaces that is not a JSON key.
_QUOTED_PHRASE_RE = re.compile(r'"([A-Za-z][A-Za-z\s]*)"(?!\s*:)')

_PROMPT_TEMPLATE = """You are an expert in searching academic literature. Analyze the user's natural-language request and produce optimized English keywords for an effective arXiv search.

User request: "{query}"

Respond with exactly this JSON structure:

{{
  "originalQuery": "{query}",
  "analysisNote": "short analysis of the request ({note_language})",
  "strategyNote": "search strategy explanation ({note_language})",
  "keywords": ["keyword1", "keyword2", "keyword3", "keyword4", "keyword5"],
  "confidence": 85,
  "reasoningNote": "why these keywords were chosen ({note_language})"
}}

Rules:
1. keywords must be written in English
2. use academic terms that work well for arXiv search
3. produce 5 keywords, ordered from most specific to most general
4. confidence is a number between 60 and 95
5. reply with JSON only, no other text"""


def optimize_keywords(
    user_query: str,
    language: str = "ko",
    complete: ModelClient | None = None,
) -> KeywordOptimizationResult:
    """Return 1-5 English search keywords for ``user_query``; never fails on valid input.

    Args:
        user_query: Free-text request in any language.
        language: ``"ko"`` asks for Korean rationale notes, anything else English.
        complete: Model client override, defaults to ``llm_client.complete``.

    Raises:
        InputError: ``user_query`` is empty or not a string.
    """
    if not isinstance(user_query, str) or not user_query.strip():
        raise InputError("A research request is required", code="MISSING_QUERY")

    query = user_query.strip()
    complete = complete or llm_client.complete
    prompt = build_prompt(query, language)
    LOGGER.info("Keyword optimization requested: %r", query)

    result = run_tiers(
        task="keyword optimization",
        request=lambda: complete(prompt, MAX_TOKENS, TEMPERATURE),
        strategies=[
            Strategy("structured", lambda reply: _structured_tier(reply, query)),
            Strategy("heuristic", lambda reply: _heuristic_tier(reply, query)),
        ],
        fallback=lambda: static_keywords(query),
    )
    LOGGER.info(
        "Keyword optimization done: keywords=%s confidence=%s",
        result.keywords,
        result.confidence,
    )
    return result


def build_prompt(query: str, language: str = "ko") -> str:
    note_language = "Korean" if language == "ko" else "English"
    return _PROMPT_TEMPLATE.format(query=query.replace('"', "'"), note_language=note_language)


def _structured_tier(reply: str, query: str) -> TierOutcome[KeywordOptimizationResult]:
    try:
        data = parse_json_object(reply)
    except RuntimeError as exc:
        return TierOutcome.needs_fallback(f"reply is not JSON: {exc}")

    raw_keywords = data.get("keywords")
    if not isinstance(raw_keywords, list):
        return TierOutcome.needs_fallback("keywords missing or not a list")

    keywords = _clean_keywords(raw_keywords)
    if not keywords:
        return TierOutcome.needs_fallback("keywords list is empty")

    return TierOutcome.success(
        KeywordOptimizationResult(
            original_query=query,
            analysis_note=_as_note(data.get("analysisNote")),
            strategy_note=_as_note(data.get("strategyNote")),
            reasoning_note=_as_note(data.get("reasoningNote")),
            keywords=keywords,
            confidence=clamp_int(data.get("confidence"), MIN_CONFIDENCE, MIN_CONFIDENCE, MAX_CONFIDENCE),
        )
    )


def _heuristic_tier(reply: str, query: str) -> TierOutcome[KeywordOptimizationResult]:
    keywords = extract_quoted_phrases(reply)
    if not keywords:
        return TierOutcome.needs_fallback("no quoted phrases in reply")

    return TierOutcome.success(
        KeywordOptimizationResult(
            original_query=query,
            analysis_note="텍스트에서 키워드를 추출했습니다.",
            strategy_note="모델 응답에서 추출한 검색어",
            reasoning_note="응답 텍스트를 휴리스틱으로 파싱하여 추출한 키워드",
            keywords=keywords,
            confidence=HEURISTIC_CONFIDENCE,
        )
    )


def extract_quoted_phrases(text: str) -> list[str]:
    """Pull up to five quoted alphabetic phrases out of free text, line by line."""
    phrases: list[str] = []
    for line in text.splitlines():
        for match in _QUOTED_PHRASE_RE.finditer(line):
            phrase = match.group(1).strip()
            if len(phrase) > 2 and phrase not in phrases:
                phrases.append(phrase)
            if len(phrases) == MAX_KEYWORDS:
                return phrases
    return phrases


def static_keywords(query: str) -> KeywordOptimizationResult:
    """Curated keywords for the first known topic found in ``query``."""
    keywords = DEFAULT_KEYWORDS
    for topic, topic_keywords in TOPIC_KEYWORDS.items():
        if topic in query:
            keywords = topic_keywords
            break

    return KeywordOptimizationResult(
        original_query=query,
        analysis_note="기본 키워드 매핑을 사용했습니다.",
        strategy_note="사전 정의된 키워드 매핑",
        reasoning_note="사용자 요청의 주요 주제어를 매핑하여 생성",
        keywords=list(keywords),
        confidence=STATIC_CONFIDENCE,
    )


def _clean_keywords(raw: list[Any]) -> list[str]:
    keywords = [item.strip() for item in raw if isinstance(item, str) and item.strip()]
    return keywords[:MAX_KEYWORDS]


def _as_note(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
