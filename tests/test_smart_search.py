"""Tests for the smart_search orchestrator, keyword validation and health."""

from __future__ import annotations

import json
import re
import threading
import time
from unittest.mock import patch

import pytest

from errors import InputError, RetrievalTimeoutError
from smart_search import (
    NO_RESULTS_MESSAGE,
    NOT_ANALYZED_REASONING,
    health_status,
    smart_search,
    validate_keyword,
)

_TITLE_RE = re.compile(r"- Title: (.+)")

_KEYWORD_REPLY = json.dumps({
    "analysisNote": "영화 제작 AI",
    "strategyNote": "구체적 용어 우선",
    "keywords": [
        "AI film production",
        "generative video",
        "computational cinematography",
        "video synthesis",
        "creative AI",
    ],
    "confidence": 90,
    "reasoningNote": "영화와 AI",
}, ensure_ascii=False)


def _feed_with(count: int):
    calls = []

    def fetch(expression, start, max_results, sort_by, sort_order):
        calls.append({"expression": expression, "max_results": max_results})
        entries = [
            {"id": f"http://arxiv.org/abs/2401.{i:05d}v1", "title": f"Paper {i}"}
            for i in range(min(count, max_results))
        ]
        return {"feed": {"entry": entries}} if entries else {"feed": {}}

    fetch.calls = calls
    return fetch


class ScoringModel:
    """Stand-in model: keyword replies for optimization, fixed scores per title."""

    def __init__(self, scores: dict[str, int], delay: float = 0.0, fail_titles: set[str] | None = None):
        self.scores = scores
        self.delay = delay
        self.fail_titles = fail_titles or set()
        self.relevance_calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def __call__(self, prompt: str, max_tokens: int, temperature: float) -> str:
        match = _TITLE_RE.search(prompt)
        if match is None:
            return _KEYWORD_REPLY

        title = match.group(1).strip()
        with self._lock:
            self.relevance_calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            if title in self.fail_titles:
                raise TimeoutError("model timed out")
            return json.dumps({
                "relevanceScore": self.scores.get(title, 50),
                "reasoning": f"analysis of {title}",
                "keyInsights": [title],
                "methodology": "empirical",
            })
        finally:
            with self._lock:
                self.active -= 1


def test_scenario_optimize_search_enrich_rank() -> None:
    fetch = _feed_with(7)
    model = ScoringModel({"Paper 0": 70, "Paper 1": 95, "Paper 2": 40, "Paper 3": 88, "Paper 4": 60})

    result = smart_search(user_query="AI 영화 제작", max_results=10, complete=model, fetch=fetch)

    assert result.search_keyword == "AI film production"
    assert len(result.optimization.keywords) == 5
    assert fetch.calls == [{"expression": "all:AI film production", "max_results": 10}]

    by_title = {p.title: p for p in result.papers}
    for i in range(5):
        assert by_title[f"Paper {i}"].ai_analysis.reasoning == f"analysis of Paper {i}"
    for i in (5, 6):
        assert by_title[f"Paper {i}"].relevance_score == 50
        assert by_title[f"Paper {i}"].ai_analysis.reasoning == "상위 5개 논문만 AI 분석이 적용됩니다."

    assert [p.title for p in result.papers] == [
        "Paper 1", "Paper 3", "Paper 0", "Paper 4", "Paper 5", "Paper 6", "Paper 2",
    ]
    assert result.stats == {
        "totalPapers": 7,
        "averageRelevance": round((70 + 95 + 40 + 88 + 60 + 50 + 50) / 7),
        "analyzedPapers": 5,
    }


def test_enrichment_is_capped_at_five_concurrent_calls() -> None:
    model = ScoringModel({}, delay=0.05)

    result = smart_search(selected_keyword="video synthesis", max_results=8, complete=model, fetch=_feed_with(8))

    assert model.relevance_calls == 5
    assert model.max_active <= 5
    assert all(p.relevance_score == 50 for p in result.papers)
    assert [p.ai_analysis.reasoning for p in result.papers[5:]] == [NOT_ANALYZED_REASONING] * 3


def test_equal_scores_keep_retrieval_order() -> None:
    model = ScoringModel({"Paper 0": 60, "Paper 1": 80, "Paper 2": 60, "Paper 3": 80, "Paper 4": 60})

    result = smart_search(selected_keyword="x ray", max_results=5, complete=model, fetch=_feed_with(5))

    assert [p.title for p in result.papers] == ["Paper 1", "Paper 3", "Paper 0", "Paper 2", "Paper 4"]
    scores = [p.relevance_score for p in result.papers]
    assert scores == sorted(scores, reverse=True)


def test_ranking_ignores_completion_order() -> None:
    # Staggered delays make later papers finish first.
    class Staggered(ScoringModel):
        def __call__(self, prompt, max_tokens, temperature):
            match = _TITLE_RE.search(prompt)
            if match:
                index = int(match.group(1).split()[-1])
                time.sleep(0.01 * (5 - index))
            return super().__call__(prompt, max_tokens, temperature)

    model = Staggered({"Paper 0": 50, "Paper 1": 50, "Paper 2": 50, "Paper 3": 50, "Paper 4": 50})
    result = smart_search(selected_keyword="robots", max_results=5, complete=model, fetch=_feed_with(5))

    assert [p.title for p in result.papers] == [f"Paper {i}" for i in range(5)]


def test_one_failed_enrichment_does_not_fail_batch() -> None:
    model = ScoringModel({"Paper 0": 90, "Paper 2": 20}, fail_titles={"Paper 1"})

    result = smart_search(selected_keyword="robots", max_results=3, complete=model, fetch=_feed_with(3))

    assert [p.title for p in result.papers] == ["Paper 0", "Paper 1", "Paper 2"]
    assert result.papers[1].relevance_score == 50
    assert result.papers[1].ai_analysis.reasoning == "분석 실패"


def test_non_finite_model_scores_do_not_fail_search() -> None:
    def infinite(prompt, max_tokens, temperature):
        return '{"relevanceScore": Infinity}'

    result = smart_search(selected_keyword="robots", max_results=3, complete=infinite, fetch=_feed_with(3))

    assert [p.title for p in result.papers] == ["Paper 0", "Paper 1", "Paper 2"]
    assert all(p.relevance_score == 50 for p in result.papers)
    assert result.stats["averageRelevance"] == 50


def test_selected_keyword_skips_optimization() -> None:
    model = ScoringModel({})

    result = smart_search(
        user_query="AI 영화 제작", selected_keyword="film restoration", complete=model, fetch=_feed_with(1)
    )

    assert result.optimization is None
    assert result.search_keyword == "film restoration"


def test_empty_results_are_a_valid_outcome() -> None:
    model = ScoringModel({})

    result = smart_search(selected_keyword="zzzz", complete=model, fetch=_feed_with(0))

    assert result.papers == []
    assert result.message == NO_RESULTS_MESSAGE
    assert result.stats == {"totalPapers": 0, "averageRelevance": 0, "analyzedPapers": 0}
    assert model.relevance_calls == 0


def test_missing_input_fails_before_any_call() -> None:
    fetch = _feed_with(3)
    model = ScoringModel({})

    with pytest.raises(InputError) as excinfo:
        smart_search(user_query="  ", selected_keyword=None, complete=model, fetch=fetch)

    assert excinfo.value.code == "MISSING_SEARCH_TERM"
    assert fetch.calls == []
    assert model.relevance_calls == 0


def test_retrieval_errors_propagate() -> None:
    def timing_out(*_args):
        raise RetrievalTimeoutError("arXiv did not respond in time")

    with pytest.raises(RetrievalTimeoutError):
        smart_search(selected_keyword="robots", complete=ScoringModel({}), fetch=timing_out)


def test_result_serializes_with_public_field_names() -> None:
    model = ScoringModel({"Paper 0": 77})

    payload = smart_search(user_query="AI 영화 제작", max_results=1, complete=model, fetch=_feed_with(1)).to_dict()

    assert set(payload) == {"papers", "searchKeyword", "optimization", "stats"}
    assert payload["papers"][0]["relevanceScore"] == 77
    assert payload["papers"][0]["aiAnalysis"]["keyInsights"] == ["Paper 0"]
    assert payload["optimization"]["keywords"][0] == "AI film production"
    json.dumps(payload, ensure_ascii=False)


def test_validate_keyword_reports_result_count() -> None:
    fetch = _feed_with(3)

    report = validate_keyword("  graph learning ", fetch=fetch)

    assert report["keyword"] == "graph learning"
    assert report["resultCount"] == 3
    assert report["valid"] is True
    assert fetch.calls == [{"expression": "all:graph learning", "max_results": 5}]


def test_validate_keyword_without_results() -> None:
    report = validate_keyword("nothing here", fetch=_feed_with(0))

    assert report["valid"] is False
    assert report["resultCount"] == 0


def test_validate_keyword_requires_keyword() -> None:
    with pytest.raises(InputError) as excinfo:
        validate_keyword("", fetch=_feed_with(1))
    assert excinfo.value.code == "MISSING_KEYWORD"


def test_health_status_not_configured() -> None:
    with patch.dict("os.environ", {}, clear=True):
        status = health_status(probe=True)

    assert status["model"] == "not_configured"
    assert status["service"] == "healthy"


def test_health_status_probe_reports_working_and_error() -> None:
    def failing(prompt, max_tokens, temperature):
        raise RuntimeError("quota exceeded")

    with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "test-key"}, clear=True):
        working = health_status(probe=True, complete=lambda *_args: "ok")
        broken = health_status(probe=True, complete=failing)
        unprobed = health_status()

    assert working["model"] == "working"
    assert broken["model"] == "error"
    assert broken["modelError"] == "quota exceeded"
    assert unprobed["model"] == "configured"
