from unittest.mock import MagicMock, patch

import pytest
import requests

from arxiv_feed import (
    get_recent_papers,
    query_feed,
    search_by_author,
    search_by_category,
    search_papers,
    validate_query,
)
from errors import InputError, RetrievalError, RetrievalTimeoutError

_FEED_HEAD = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<feed xmlns="http://www.w3.org/2005/Atom" '
    'xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/" '
    'xmlns:arxiv="http://arxiv.org/schemas/atom">'
    "<title>ArXiv Query</title>"
    "<opensearch:totalResults>{total}</opensearch:totalResults>"
)


def _entry_xml(paper_id: str, title: str) -> str:
    return (
        "<entry>"
        f"<id>http://arxiv.org/abs/{paper_id}v1</id>"
        "<updated>2024-02-01T00:00:00Z</updated>"
        "<published>2024-01-31T12:00:00Z</published>"
        f"<title>{title}</title>"
        "<summary>An abstract\n  spread over lines.</summary>"
        "<author><name>Jane Doe</name></author>"
        "<author><name>John Roe</name><arxiv:affiliation>Somewhere</arxiv:affiliation></author>"
        f'<link href="http://arxiv.org/abs/{paper_id}v1" rel="alternate" type="text/html"/>'
        f'<link title="pdf" href="http://arxiv.org/pdf/{paper_id}v1" rel="related" type="application/pdf"/>'
        '<arxiv:primary_category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>'
        '<category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>'
        "</entry>"
    )


def _feed(*entries: str) -> bytes:
    return (_FEED_HEAD.format(total=len(entries)) + "".join(entries) + "</feed>").encode()


def _mock_resp(content: bytes) -> MagicMock:
    mock = MagicMock()
    mock.content = content
    return mock


def test_search_papers_parses_multiple_entries() -> None:
    content = _feed(_entry_xml("2401.00001", "First"), _entry_xml("2401.00002", "Second"))

    with patch("arxiv_feed.requests.get", return_value=_mock_resp(content)):
        papers = search_papers("transformers", max_results=2)

    assert [p.id for p in papers] == ["2401.00001", "2401.00002"]
    assert papers[0].summary == "An abstract spread over lines."
    assert papers[0].authors == [{"name": "Jane Doe"}, {"name": "John Roe"}]
    assert papers[0].categories == ["cs.CL"]
    assert papers[0].document_url == "http://arxiv.org/pdf/2401.00001v1"
    assert papers[0].published_date == "2024-01-31"


def test_search_papers_single_entry_is_one_record() -> None:
    content = _feed(_entry_xml("2401.00001", "Only One"))

    with patch("arxiv_feed.requests.get", return_value=_mock_resp(content)):
        papers = search_papers("rare topic")

    assert len(papers) == 1
    assert papers[0].title == "Only One"


def test_search_papers_zero_entries_is_empty_list() -> None:
    with patch("arxiv_feed.requests.get", return_value=_mock_resp(_feed())):
        assert search_papers("nothing matches") == []


def test_search_papers_sends_relevance_sorted_query() -> None:
    with patch("arxiv_feed.requests.get", return_value=_mock_resp(_feed())) as mock_get:
        search_papers("graph neural networks", max_results=7)

    params = mock_get.call_args.kwargs["params"]
    assert params == {
        "search_query": "all:graph neural networks",
        "start": 0,
        "max_results": 7,
        "sortBy": "relevance",
        "sortOrder": "descending",
    }
    assert "User-Agent" in mock_get.call_args.kwargs["headers"]


def test_query_feed_timeout_raises_timeout_error() -> None:
    with patch("arxiv_feed.requests.get", side_effect=requests.Timeout("slow")):
        with pytest.raises(RetrievalTimeoutError):
            query_feed("all:x")


def test_query_feed_transport_error_is_wrapped() -> None:
    with patch("arxiv_feed.requests.get", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(RetrievalError, match="refused"):
            query_feed("all:x")


def test_query_feed_bad_xml_is_wrapped() -> None:
    with patch("arxiv_feed.requests.get", return_value=_mock_resp(b"<feed><entry>")):
        with pytest.raises(RetrievalError, match="unreadable"):
            query_feed("all:x")


@pytest.mark.parametrize("content", [
    b'<?xml version="1.0"?><!DOCTYPE feed [<!ENTITY x "y">]><feed>&x;</feed>',
    b'<?xml version="1.0"?><!DOCTYPE feed [<!ENTITY a "aaaa"><!ENTITY b "&a;&a;&a;&a;">]><feed>&b;</feed>',
])
def test_query_feed_rejects_entity_declarations(content: bytes) -> None:
    with patch("arxiv_feed.requests.get", return_value=_mock_resp(content)):
        with pytest.raises(RetrievalError, match="unreadable"):
            query_feed("all:x")


def test_query_feed_returns_bare_object_for_single_entry() -> None:
    content = _feed(_entry_xml("2401.00001", "Only One"))

    with patch("arxiv_feed.requests.get", return_value=_mock_resp(content)):
        document = query_feed("all:x")

    assert isinstance(document["feed"]["entry"], dict)
    assert isinstance(document["feed"]["entry"]["author"], list)
    assert document["feed"]["totalResults"] == "1"


def test_stand_in_feed_client_is_used() -> None:
    calls = []

    def fake_fetch(expression, start, max_results, sort_by, sort_order):
        calls.append((expression, start, max_results, sort_by, sort_order))
        return {"feed": {"entry": {"id": "http://arxiv.org/abs/2401.99999v3", "title": "Bare"}}}

    papers = search_by_category("cs.AI", max_results=3, fetch=fake_fetch)

    assert calls == [("cat:cs.AI", 0, 3, "relevance", "descending")]
    assert papers[0].id == "2401.99999"
    assert papers[0].landing_url == "https://arxiv.org/abs/2401.99999"


def test_author_and_recent_expressions() -> None:
    calls = []

    def fake_fetch(expression, start, max_results, sort_by, sort_order):
        calls.append((expression, sort_by))
        return {"feed": {}}

    search_by_author("Yann LeCun", fetch=fake_fetch)
    get_recent_papers(fetch=fake_fetch)
    get_recent_papers("cs.RO", fetch=fake_fetch)

    assert calls == [
        ('au:"Yann LeCun"', "relevance"),
        ("all:machine learning", "submittedDate"),
        ("cat:cs.RO", "submittedDate"),
    ]


def test_malformed_entry_does_not_abort_batch() -> None:
    def fake_fetch(*_args):
        return {"feed": {"entry": [{"id": "http://arxiv.org/abs/2401.00001v1", "title": "Good"}, "junk"]}}

    papers = search_papers("x", fetch=fake_fetch)

    assert [p.id for p in papers] == ["2401.00001", "parse-error"]


@pytest.mark.parametrize("query", ["", " a ", "x" * 201, None])
def test_validate_query_rejects_bad_input(query) -> None:
    with pytest.raises(InputError):
        validate_query(query)


def test_validate_query_trims() -> None:
    assert validate_query("  deep learning  ") == "deep learning"
