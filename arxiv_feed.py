"""arXiv literature feed: query client and retriever."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable
from xml.etree.ElementTree import Element

import requests
from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from errors import InputError, RetrievalError, RetrievalTimeoutError
from models import PaperRecord
from normalizer import as_list, normalize_entry

# Public Atom endpoint; relevance ordering is done server-side.
ARXIV_API_URL = os.getenv("ARXIV_API_URL", "http://export.arxiv.org/api/query")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("ARXIV_TIMEOUT_SECONDS", "10"))
USER_AGENT = "PaperMind/1.0 (Academic Research Tool)"

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 200

LOGGER = logging.getLogger(__name__)

FeedClient = Callable[[str, int, int, str, str], dict[str, Any]]


def query_feed(
    search_expression: str,
    start: int = 0,
    max_results: int = 10,
    sort_by: str = "relevance",
    sort_order: str = "descending",
) -> dict[str, Any]:
    """Run one feed query and return the Atom document as nested dicts.

    Repeated elements become lists and lone elements stay bare mappings, so
    ``document["feed"]["entry"]`` may be absent, a dict, or a list.

    Raises:
        RetrievalTimeoutError: the feed did not answer in time.
        RetrievalError: any other transport or XML parse failure.
    """
    params = {
        "search_query": search_expression,
        "start": start,
        "max_results": max_results,
        "sortBy": sort_by,
        "sortOrder": sort_order,
    }

    try:
        response = requests.get(
            ARXIV_API_URL,
            params=params,
            headers={"User-Agent": USER_AGENT},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.Timeout as exc:
        raise RetrievalTimeoutError("arXiv did not respond in time, please retry") from exc
    except requests.RequestException as exc:
        raise RetrievalError(f"Paper search failed: {exc}") from exc

    LOGGER.debug("arXiv response received: %s bytes", len(response.content))

    try:
        root = ET.fromstring(response.content)
    except (ET.ParseError, DefusedXmlException) as exc:
        raise RetrievalError(f"Paper search failed: unreadable feed response ({exc})") from exc

    return {_local_name(root.tag): _element_to_node(root)}


def search_papers(
    query: str,
    max_results: int = 10,
    fetch: FeedClient | None = None,
) -> list[PaperRecord]:
    """Search all fields for ``query`` and return normalized records in feed order."""
    LOGGER.info("arXiv search: query=%r max_results=%s", query, max_results)
    return _search(f"all:{query}", max_results, "relevance", fetch)


def search_by_category(
    category: str, max_results: int = 10, fetch: FeedClient | None = None
) -> list[PaperRecord]:
    return _search(f"cat:{category}", max_results, "relevance", fetch)


def search_by_author(
    author: str, max_results: int = 10, fetch: FeedClient | None = None
) -> list[PaperRecord]:
    return _search(f'au:"{author}"', max_results, "relevance", fetch)


def get_recent_papers(
    category: str = "", max_results: int = 10, fetch: FeedClient | None = None
) -> list[PaperRecord]:
    """Newest submissions in ``category``, or in machine learning when none is given."""
    expression = f"cat:{category}" if category else "all:machine learning"
    return _search(expression, max_results, "submittedDate", fetch)


def validate_query(query: Any) -> str:
    """Return the trimmed query, or raise ``InputError`` if it is unusable."""
    if not isinstance(query, str):
        raise InputError("Search query must be a string", code="INVALID_QUERY")

    trimmed = query.strip()
    if len(trimmed) < MIN_QUERY_LENGTH:
        raise InputError(
            f"Search query must be at least {MIN_QUERY_LENGTH} characters", code="INVALID_QUERY"
        )
    if len(trimmed) > MAX_QUERY_LENGTH:
        raise InputError(
            f"Search query cannot exceed {MAX_QUERY_LENGTH} characters", code="INVALID_QUERY"
        )
    return trimmed


def _search(
    expression: str,
    max_results: int,
    sort_by: str,
    fetch: FeedClient | None,
) -> list[PaperRecord]:
    fetch = fetch or query_feed
    document = fetch(expression, 0, max_results, sort_by, "descending")
    papers = _parse_feed_document(document)
    LOGGER.info("arXiv search: expression=%r parsed=%s", expression, len(papers))
    return papers


def _parse_feed_document(document: Any) -> list[PaperRecord]:
    feed = document.get("feed") if isinstance(document, dict) else None
    if not isinstance(feed, dict) or not feed.get("entry"):
        LOGGER.warning("arXiv search returned no entries")
        return []

    return [normalize_entry(entry) for entry in as_list(feed["entry"])]


def _element_to_node(element: Element) -> Any:
    children = list(element)
    text = (element.text or "").strip()
    if not children and not element.attrib:
        return text

    node: dict[str, Any] = dict(element.attrib)
    for child in children:
        key = _local_name(child.tag)
        value = _element_to_node(child)
        if key not in node:
            node[key] = value
        elif isinstance(node[key], list):
            node[key].append(value)
        else:
            node[key] = [node[key], value]

    if text:
        node["_"] = text
    return node


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]
