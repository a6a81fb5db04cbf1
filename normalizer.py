"""Map raw literature-feed entries to ``PaperRecord`` objects."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Any

from models import UNKNOWN, PaperRecord

LOGGER = logging.getLogger(__name__)

ABSTRACT_PAGE_URL = "https://arxiv.org/abs/{paper_id}"
PDF_MIME_TYPE = "application/pdf"
HTML_MIME_TYPE = "text/html"

PARSE_ERROR_ID = "parse-error"
NO_TITLE = "No Title"
NO_ABSTRACT = "No Abstract Available"

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_VERSION_SUFFIX_RE = re.compile(r"v\d+$")


def as_list(value: Any) -> list[Any]:
    """Coerce a feed field that may be absent, a single object, or a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def clean_text(value: Any) -> str:
    """Strip markup tags and collapse whitespace runs to single spaces."""
    text = _node_text(value)
    if not text:
        return ""
    text = _TAG_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_entry(entry: dict[str, Any]) -> PaperRecord:
    """Normalize one feed entry; malformed entries become a placeholder record."""
    try:
        return _normalize(entry)
    except Exception as exc:
        LOGGER.warning("Entry normalization failed, using placeholder: %s", exc)
        return parse_error_record()


def parse_error_record() -> PaperRecord:
    return PaperRecord(
        id=PARSE_ERROR_ID,
        title="Parsing Error",
        summary="Failed to parse paper information",
    )


def _normalize(entry: dict[str, Any]) -> PaperRecord:
    paper_id = extract_paper_id(entry.get("id"))
    categories = _categories(entry.get("category"))
    landing_url, document_url = _links(entry.get("link"))

    return PaperRecord(
        id=paper_id,
        title=clean_text(entry.get("title")) or NO_TITLE,
        authors=_authors(entry.get("author")),
        summary=clean_text(entry.get("summary")) or NO_ABSTRACT,
        categories=categories,
        primary_category=categories[0] if categories else UNKNOWN,
        published_date=parse_date(entry.get("published")),
        updated_date=parse_date(entry.get("updated")),
        landing_url=landing_url or ABSTRACT_PAGE_URL.format(paper_id=paper_id),
        document_url=document_url,
    )


def extract_paper_id(raw: Any) -> str:
    """Return the trailing URI segment without its ``vN`` version suffix."""
    text = _node_text(raw).strip()
    if not text:
        return "unknown"
    segment = text.rstrip("/").rsplit("/", 1)[-1]
    return _VERSION_SUFFIX_RE.sub("", segment) or "unknown"


def parse_date(raw: Any) -> str:
    """Convert a feed timestamp into ``YYYY-MM-DD``; ``"Unknown"`` when unusable."""
    text = _node_text(raw).strip()
    if not text:
        return UNKNOWN

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return UNKNOWN

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date().isoformat()


def _authors(raw: Any) -> list[dict[str, str]]:
    authors: list[dict[str, str]] = []
    for author in as_list(raw):
        name = clean_text(author.get("name")) if isinstance(author, dict) else clean_text(author)
        authors.append({"name": name or UNKNOWN})
    return authors


def _categories(raw: Any) -> list[str]:
    tags: list[str] = []
    for category in as_list(raw):
        term = category.get("term") if isinstance(category, dict) else category
        if isinstance(term, str) and term.strip():
            tags.append(term.strip())
    return tags


def _links(raw: Any) -> tuple[str, str]:
    landing_url = ""
    document_url = ""
    for link in as_list(raw):
        if not isinstance(link, dict):
            continue
        href = link.get("href") or ""
        if link.get("type") == PDF_MIME_TYPE or href.endswith(".pdf"):
            document_url = href
        elif link.get("type") == HTML_MIME_TYPE or link.get("rel") == "alternate":
            landing_url = href
    return landing_url, document_url


def _node_text(value: Any) -> str:
    # Elements carrying attributes keep their character data under "_".
    if isinstance(value, dict):
        value = value.get("_")
    return value if isinstance(value, str) else ""
