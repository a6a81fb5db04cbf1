"""CLI entrypoint for the PaperMind search pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from abstract_writer import generate_abstract
from arxiv_feed import get_recent_papers, validate_query
from errors import InputError, RetrievalError
from keyword_optimizer import optimize_keywords
from models import PaperRecord, ResearchInfo
from smart_search import health_status, smart_search, validate_keyword

EXIT_INPUT_ERROR = 1
EXIT_RETRIEVAL_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Find and rank arXiv papers for a research request")
    subparsers = parser.add_subparsers(dest="command", required=True)

    optimize = subparsers.add_parser("optimize", help="Turn a request into English search keywords")
    optimize.add_argument("query", help="Free-text research request")
    optimize.add_argument("--language", default="ko", help="Language for rationale notes (default: ko)")

    search = subparsers.add_parser("search", help="Optimize, search, and rank papers")
    search.add_argument("--query", default=None, help="Free-text research request")
    search.add_argument("--keyword", default=None, help="Search this keyword directly, skipping optimization")
    search.add_argument("--max-results", type=int, default=10, help="Maximum papers to retrieve (default: 10)")

    abstract = subparsers.add_parser("abstract", help="Draft an abstract from selected papers")
    abstract.add_argument("--title", required=True, help="Research title")
    abstract.add_argument("--objective", default="", help="Research objective")
    abstract.add_argument("--methodology", default="", help="Planned methodology")
    abstract.add_argument("--expected-results", default="", help="Expected results")
    abstract.add_argument(
        "--papers",
        required=True,
        type=Path,
        help="JSON file with reference papers (a list, or the output of 'search')",
    )
    abstract.add_argument("--keyword", default=None, help="Search keyword the papers came from")

    validate = subparsers.add_parser("validate", help="Check whether a keyword returns any papers")
    validate.add_argument("keyword")

    recent = subparsers.add_parser("recent", help="List the newest submissions")
    recent.add_argument("--category", default="", help="arXiv category, e.g. cs.AI")
    recent.add_argument("--max-results", type=int, default=10)

    health = subparsers.add_parser("health", help="Report model provider status")
    health.add_argument("--probe", action="store_true", help="Make one live model call")

    return parser.parse_args(argv)


def load_reference_papers(path: Path) -> list[PaperRecord]:
    """Read reference papers saved as a list or as a ``search`` command result."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InputError(f"Could not read papers file {path}: {exc}", code="INVALID_PAPERS_FILE") from exc
    if isinstance(payload, dict):
        payload = payload.get("papers", [])
    if not isinstance(payload, list):
        raise InputError(f"Unexpected papers file shape in {path}", code="MISSING_PAPERS")
    return [PaperRecord.from_dict(item) for item in payload if isinstance(item, dict)]


def run(args: argparse.Namespace) -> dict[str, Any]:
    """Execute one subcommand and return its JSON-serializable result."""
    if args.command == "optimize":
        return optimize_keywords(args.query, language=args.language).to_dict()

    if args.command == "search":
        return smart_search(
            user_query=args.query,
            selected_keyword=args.keyword,
            max_results=args.max_results,
        ).to_dict()

    if args.command == "abstract":
        research_info = ResearchInfo(
            title=args.title,
            objective=args.objective,
            methodology=args.methodology,
            expected_results=args.expected_results,
        )
        papers = load_reference_papers(args.papers)
        return generate_abstract(research_info, papers, search_keyword=args.keyword).to_dict()

    if args.command == "validate":
        return validate_keyword(args.keyword)

    if args.command == "recent":
        if args.category:
            validate_query(args.category)
        papers = get_recent_papers(category=args.category, max_results=args.max_results)
        return {"papers": [paper.to_dict() for paper in papers]}

    if args.command == "health":
        return health_status(probe=args.probe)

    raise InputError(f"Unknown command: {args.command}", code="UNKNOWN_COMMAND")


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the requested command."""
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    args = parse_args(argv)

    try:
        result = run(args)
    except InputError as exc:
        logging.error("Bad request (%s): %s", exc.code, exc)
        _print_json({"success": False, "error": str(exc), "code": exc.code})
        return EXIT_INPUT_ERROR
    except RetrievalError as exc:
        logging.error("Retrieval failed: %s", exc)
        _print_json({"success": False, "error": str(exc), "code": exc.code})
        return EXIT_RETRIEVAL_ERROR

    _print_json({"success": True, "data": result})
    return 0


def _print_json(payload: dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


if __name__ == "__main__":
    sys.exit(main())
