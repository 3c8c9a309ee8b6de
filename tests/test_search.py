from __future__ import annotations

import json

import pytest

from whelp_client.errors import MalformedResponse, ValidationError
from whelp_client.models import MatchType
from whelp_client.search import highlight, normalize, single_document


def _grouped(*groups: dict, **counters) -> dict:
    return {
        "success": True,
        "query": "hello",
        "results": {"results": list(groups), **counters},
        "processing_time": 0.12,
    }


def test_empty_results_normalize_to_nothing() -> None:
    result = normalize({"results": []}, "anything")

    assert len(result) == 0
    assert result.total_count == 0
    assert result.total_documents == 0
    assert result.query == "anything"


def test_flattening_keeps_group_then_chunk_order() -> None:
    raw = _grouped(
        {"document_id": "A", "document_title": "Alpha", "chunks": [{"chunk_id": 1}, {"chunk_id": 2}]},
        {"document_id": "B", "chunks": [{"chunk_id": 3}]},
        total_results=3,
        total_documents=2,
    )

    result = normalize(raw, "q")

    assert [match.chunk_id for match in result] == ["1", "2", "3"]
    assert [match.document_id for match in result] == ["A", "A", "B"]
    assert result.matches[0].document_title == "Alpha"
    assert result.document_ids == ["A", "B"]
    assert result.processing_time == pytest.approx(0.12)


def test_score_prefers_semantic_then_raw_then_zero() -> None:
    raw = _grouped(
        {
            "document_id": "A",
            "chunks": [
                {"chunk_id": "s", "semantic_score": 0.9, "raw_score": 0.5},
                {"chunk_id": "k", "raw_score": 0.4},
                {"chunk_id": "n"},
            ],
        }
    )

    semantic, keyword, bare = normalize(raw, "q").matches

    assert (semantic.match_type, semantic.score) == (MatchType.SEMANTIC, 0.9)
    assert (keyword.match_type, keyword.score) == (MatchType.KEYWORD, 0.4)
    assert (bare.match_type, bare.score) == (MatchType.KEYWORD, 0.0)


def test_missing_highlight_is_computed_locally() -> None:
    raw = _grouped({"document_id": "A", "chunks": [{"chunk_text": "say hello world"}]})

    match = normalize(raw, "hello").matches[0]

    assert "<mark>hello</mark>" in match.highlighted_text
    assert match.text == "say hello world"


def test_server_highlight_is_kept() -> None:
    raw = _grouped(
        {"document_id": "A", "chunks": [{"chunk_text": "hello", "highlighted_text": "<em>hello</em>"}]}
    )

    assert normalize(raw, "hello").matches[0].highlighted_text == "<em>hello</em>"


def test_highlight_escapes_markup_and_ignores_case() -> None:
    assert highlight("<b>Hello</b> HELLO", "hello") == (
        "&lt;b&gt;<mark>Hello</mark>&lt;/b&gt; <mark>HELLO</mark>"
    )
    assert highlight("a < b", "  ") == "a &lt; b"


def test_empty_group_still_counts_as_a_document() -> None:
    raw = _grouped(
        {"document_id": "A", "chunks": []},
        {"document_id": "B", "chunks": [{"chunk_id": 7, "metadata": {"page_number": 3}}]},
    )

    result = normalize(raw, "q")

    assert len(result) == 1
    assert result.total_documents == 2
    assert result.total_count == 1
    assert result.matches[0].page_number == 3


@pytest.mark.parametrize(
    "raw",
    [
        {"success": True},
        {"results": {"total_results": 3}},
        {"results": "nothing"},
        {"results": [{"document_id": "A", "chunks": "x"}]},
        {"results": ["not-a-group"]},
    ],
)
def test_unexpected_shapes_are_malformed(raw) -> None:
    with pytest.raises(MalformedResponse):
        normalize(raw, "q")


def test_single_document_rows_are_flat() -> None:
    raw = {
        "data": {
            "results": [
                {"chunk_id": "c1", "content": "first hello", "similarity_score": 0.8},
                {"chunk_id": "c2", "content": "second"},
            ],
            "total_count": 5,
        }
    }

    result = single_document("d1", raw, "hello")

    assert [match.document_id for match in result] == ["d1", "d1"]
    assert result.total_count == 5
    assert result.total_documents == 1
    assert result.matches[0].match_type is MatchType.SEMANTIC
    assert "<mark>hello</mark>" in result.matches[0].highlighted_text


@pytest.mark.asyncio
async def test_hybrid_search_posts_defaults(logged_in, server) -> None:
    server.add("POST", "/processing/search/", _grouped({"document_id": "A", "chunks": [{"chunk_id": 1}]}))

    result = await logged_in.search.hybrid_search("  hello ")

    assert len(result) == 1
    body = json.loads(server.requests[0].content)
    assert body == {
        "query": "hello",
        "limit": 20,
        "similarity_threshold": 0.5,
        "include_metadata": True,
    }


@pytest.mark.asyncio
async def test_document_search_uses_document_defaults(logged_in, server) -> None:
    server.add("POST", "/processing/documents/d1/search/", {"results": []})

    await logged_in.search.search_document("d1", "hello", similarity_threshold=0.0)

    body = json.loads(server.requests[0].content)
    assert body["limit"] == 10
    assert body["similarity_threshold"] == 0.0


@pytest.mark.asyncio
async def test_blank_query_is_rejected_before_network(logged_in, server) -> None:
    with pytest.raises(ValidationError):
        await logged_in.search.hybrid_search("   ")

    assert server.requests == []


def test_server_query_echo_wins_over_original() -> None:
    assert normalize({"query": "Hello", "results": []}, "hello").query == "Hello"
    assert normalize({"query": "", "results": []}, "hello").query == "hello"


@pytest.mark.parametrize(
    "chunk",
    [
        {"chunk_id": 1, "metadata": {"page_number": "iv"}},
        {"chunk_id": 1, "chunk_index": "first"},
    ],
)
def test_non_numeric_positions_are_malformed(chunk) -> None:
    with pytest.raises(MalformedResponse):
        normalize(_grouped({"document_id": "A", "chunks": [chunk]}), "q")
