"""End-to-end smart search: optimize, retrieve, enrich the top papers, rank."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any

import arxiv_feed
import llm_client
from arxiv_feed import FeedClient
from errors import InputError
from keyword_optimizer import optimize_keywords
from llm_client import ModelClient
from models import DEFAULT_RELEVANCE_SCORE, AiAnalysis, PaperRecord, SmartSearchResult
from relevance import analyze_relevance

LOGGER = logging.getLogger(__name__)

# Fixed regardless of max_results so model call volume stays bounded.
MAX_ENRICHED_PAPERS = 5
VALIDATION_MAX_RESULTS = 5

NOT_ANALYZED_REASONING = "상위 5개 논문만 AI 분석이 적용됩니다."
NOT_ANALYZED_METHODOLOGY = "분석되지 않음"
NO_RESULTS_MESSAGE = "검색 결과가 없습니다. 다른 키워드를 시도해보세요."


def smart_search(
    user_query: str | None = None,
    selected_keyword: str | None = None,
    max_results: int = 10,
    complete: ModelClient | None = None,
    fetch: FeedClient | None = None,
) -> SmartSearchResult:
    """Search arXiv for a request and return papers ranked by model relevance.

    When ``selected_keyword`` is given it is searched directly; otherwise the
    first optimized keyword for ``user_query`` is used. Only the first
    ``MAX_ENRICHED_PAPERS`` results are scored by the model, concurrently; the
    rest get the default score. Papers come back sorted by score, descending,
    with ties kept in retrieval order.

    Raises:
        InputError: neither a query nor a keyword was given.
        RetrievalError: the literature feed failed.
    """
    user_query = user_query.strip() if isinstance(user_query, str) else None
    selected_keyword = selected_keyword.strip() if isinstance(selected_keyword, str) else None
    if not user_query and not selected_keyword:
        raise InputError("A search query or selected keyword is required", code="MISSING_SEARCH_TERM")
    if max_results < 1:
        raise InputError("max_results must be a positive integer", code="INVALID_MAX_RESULTS")

    LOGGER.info(
        "Smart search started: query=%r selected_keyword=%r max_results=%s",
        user_query,
        selected_keyword,
        max_results,
    )

    optimization = None
    search_keyword = selected_keyword
    if not search_keyword:
        optimization = optimize_keywords(user_query, complete=complete)
        search_keyword = optimization.keywords[0]
        LOGGER.info("Smart search: using optimized keyword %r", search_keyword)

    papers = arxiv_feed.search_papers(search_keyword, max_results, fetch=fetch)
    if not papers:
        return SmartSearchResult(
            papers=[],
            search_keyword=search_keyword,
            optimization=optimization,
            stats=_stats([], analyzed=0),
            message=NO_RESULTS_MESSAGE,
        )

    candidates = papers[:MAX_ENRICHED_PAPERS]
    remainder = papers[MAX_ENRICHED_PAPERS:]

    search_context = user_query or selected_keyword
    enriched = enrich_papers(candidates, search_context, complete=complete)
    for paper in remainder:
        paper.relevance_score = DEFAULT_RELEVANCE_SCORE
        paper.ai_analysis = AiAnalysis(
            reasoning=NOT_ANALYZED_REASONING,
            key_insights=[],
            methodology=NOT_ANALYZED_METHODOLOGY,
        )

    # sorted() is stable, so equal scores keep retrieval order.
    ranked = sorted(enriched + remainder, key=lambda p: p.relevance_score, reverse=True)
    stats = _stats(ranked, analyzed=len(enriched))

    LOGGER.info(
        "Smart search complete: papers=%s average_relevance=%s analyzed=%s",
        stats["totalPapers"],
        stats["averageRelevance"],
        stats["analyzedPapers"],
    )
    return SmartSearchResult(
        papers=ranked,
        search_keyword=search_keyword,
        optimization=optimization,
        stats=stats,
    )


def enrich_papers(
    papers: list[PaperRecord],
    search_context: str,
    complete: ModelClient | None = None,
) -> list[PaperRecord]:
    """Score ``papers`` concurrently and return them in their original order."""
    if not papers:
        return []

    LOGGER.info("Relevance analysis started for %s papers", len(papers))
    with ThreadPoolExecutor(max_workers=len(papers)) as executor:
        return list(
            executor.map(
                lambda paper: analyze_relevance(paper, search_context, complete=complete),
                papers,
            )
        )


def validate_keyword(keyword: str, fetch: FeedClient | None = None) -> dict[str, Any]:
    """Check whether ``keyword`` returns any papers with a small trial search."""
    if not isinstance(keyword, str) or not keyword.strip():
        raise InputError("A keyword is required", code="MISSING_KEYWORD")

    keyword = arxiv_feed.validate_query(keyword)
    papers = arxiv_feed.search_papers(keyword, VALIDATION_MAX_RESULTS, fetch=fetch)
    count = len(papers)
    if count:
        message = f'"{keyword}"로 {count}개의 논문을 찾았습니다.'
    else:
        message = f'"{keyword}"에 대한 검색 결과가 없습니다.'

    return {
        "keyword": keyword,
        "resultCount": count,
        "valid": count > 0,
        "message": message,
    }


def health_status(probe: bool = False, complete: ModelClient | None = None) -> dict[str, Any]:
    """Report whether the model provider is configured and, optionally, answering."""
    status: dict[str, Any] = {
        "service": "healthy",
        "model": "configured" if llm_client.provider_configured() else "not_configured",
        "feed": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
    }

    if probe and status["model"] == "configured":
        complete = complete or llm_client.complete
        try:
            complete("Reply with the single word: ok", 5, 0.0)
            status["model"] = "working"
        except Exception as exc:
            LOGGER.warning("Model health probe failed: %s", exc)
            status["model"] = "error"
            status["modelError"] = str(exc)

    return status


def _stats(papers: list[PaperRecord], analyzed: int) -> dict[str, int]:
    total = len(papers)
    average = round(sum(p.relevance_score for p in papers) / total) if total else 0
    return {
        "totalPapers": total,
        "averageRelevance": average,
        "analyzedPapers": analyzed,
    }
