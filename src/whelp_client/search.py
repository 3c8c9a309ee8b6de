"""Hybrid search requests and normalization of their nested responses."""

from __future__ import annotations

import html
import logging
import re
from typing import Any, Mapping, Sequence

from .config import Settings
from .envelopes import unwrap_object
from .errors import MalformedResponse, ValidationError
from .models import MatchType, SearchMatch, SearchResultSet
from .observability import MetricsRecorder
from .transport import ApiClient


logger = logging.getLogger(__name__)

_MARK_OPEN = "<mark>"
_MARK_CLOSE = "</mark>"


def highlight(text: str, query: str) -> str:
    """Wrap every case-insensitive occurrence of ``query`` in ``<mark>`` tags.

    Everything outside the tags is HTML-escaped so the result is safe to
    render as markup.
    """

    needle = query.strip()
    if not needle:
        return html.escape(text)
    pattern = re.compile(re.escape(needle), re.IGNORECASE)
    pieces: list[str] = []
    position = 0
    for match in pattern.finditer(text):
        pieces.append(html.escape(text[position : match.start()]))
        pieces.append(f"{_MARK_OPEN}{html.escape(match.group(0))}{_MARK_CLOSE}")
        position = match.end()
    pieces.append(html.escape(text[position:]))
    return "".join(pieces)


def normalize(raw_response: Any, original_query: str) -> SearchResultSet:
    """Flatten a grouped hybrid-search response into one ordered result set.

    Document groups and the chunks inside them keep the order the server
    returned, which already reflects relevance. Groups with no chunks add no
    matches but still count as documents when the server reports them.
    """

    body = unwrap_object(raw_response, what="search")
    container = body.get("results")
    counters: Mapping[str, Any] = body
    if isinstance(container, Mapping):
        counters = container
        container = container.get("results")
    groups = _require_sequence(container, "search results")

    matches: list[SearchMatch] = []
    for group in groups:
        if not isinstance(group, Mapping):
            raise MalformedResponse("Search result group is not an object", payload=raw_response)
        chunks = group.get("chunks") or []
        if not isinstance(chunks, list):
            raise MalformedResponse("Search result chunks are not a list", payload=raw_response)
        document_id = str(group.get("document_id") or "")
        title = group.get("document_title")
        for chunk in chunks:
            matches.append(_build_match(chunk, document_id, title, original_query))

    result = SearchResultSet(
        query=_echoed_query(body, original_query),
        matches=matches,
        total_count=_int(counters.get("total_results"), len(matches)),
        total_documents=_int(counters.get("total_documents"), len(groups)),
        current_page=_int(counters.get("current_page"), 1),
        total_pages=_int(counters.get("total_pages"), 1),
        has_next=bool(counters.get("has_next", False)),
        has_previous=bool(counters.get("has_previous", False)),
        processing_time=_float(body.get("processing_time")),
    )
    logger.debug(
        "search.normalized matches=%s documents=%s total=%s",
        len(matches),
        result.total_documents,
        result.total_count,
    )
    return result


def single_document(document_id: str, raw_response: Any, original_query: str) -> SearchResultSet:
    """Normalize a search scoped to one document, whose chunks arrive ungrouped."""

    body = unwrap_object(raw_response, what="document_search")
    container = body.get("results")
    counters: Mapping[str, Any] = body
    if isinstance(container, Mapping):
        counters = container
        container = container.get("results")
    rows = _require_sequence(container, "document search results")

    matches = [
        _build_match(row, document_id, None, original_query)
        for row in rows
    ]
    total = counters.get("total_results", counters.get("total_count"))
    return SearchResultSet(
        query=_echoed_query(body, original_query),
        matches=matches,
        total_count=_int(total, len(matches)),
        total_documents=len({match.document_id for match in matches}),
        current_page=_int(counters.get("current_page"), 1),
        total_pages=_int(counters.get("total_pages"), 1),
        has_next=bool(counters.get("has_next", False)),
        has_previous=bool(counters.get("has_previous", False)),
        processing_time=_float(body.get("processing_time")),
    )


class SearchService:
    """Issue search requests and return normalized result sets."""

    def __init__(
        self,
        client: ApiClient,
        settings: Settings,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._metrics = metrics

    async def hybrid_search(
        self,
        query: str,
        *,
        limit: int | None = None,
        similarity_threshold: float | None = None,
        include_metadata: bool = True,
        page: int | None = None,
    ) -> SearchResultSet:
        query = _require_query(query)
        request: dict[str, Any] = {
            "query": query,
            "limit": limit or self._settings.search_limit,
            "similarity_threshold": (
                self._settings.search_similarity_threshold
                if similarity_threshold is None
                else similarity_threshold
            ),
            "include_metadata": include_metadata,
        }
        if page is not None:
            request["page"] = page
        response = await self._client.post("/processing/search/", request)
        result = normalize(response, query)
        self._record(result, scope="all")
        return result

    async def search_document(
        self,
        document_id: str,
        query: str,
        *,
        limit: int | None = None,
        similarity_threshold: float | None = None,
        include_metadata: bool = True,
    ) -> SearchResultSet:
        query = _require_query(query)
        request = {
            "query": query,
            "limit": limit or self._settings.document_search_limit,
            "similarity_threshold": (
                self._settings.document_search_similarity_threshold
                if similarity_threshold is None
                else similarity_threshold
            ),
            "include_metadata": include_metadata,
        }
        response = await self._client.post(
            f"/processing/documents/{document_id}/search/", request
        )
        result = single_document(document_id, response, query)
        self._record(result, scope="document")
        return result

    def _record(self, result: SearchResultSet, *, scope: str) -> None:
        if self._metrics is not None:
            self._metrics.increment("search.matches", value=len(result), scope=scope)
        logger.info("search.completed scope=%s matches=%s total=%s", scope, len(result), result.total_count)


def _build_match(
    chunk: Any,
    document_id: str,
    document_title: str | None,
    query: str,
) -> SearchMatch:
    if not isinstance(chunk, Mapping):
        raise MalformedResponse("Search chunk is not an object", payload=chunk)

    semantic = chunk.get("semantic_score")
    if semantic is None:
        semantic = chunk.get("similarity_score")
    raw = chunk.get("raw_score")
    if semantic is not None:
        match_type, score = MatchType.SEMANTIC, _float(semantic)
    elif raw is not None:
        match_type, score = MatchType.KEYWORD, _float(raw)
    else:
        match_type, score = MatchType.KEYWORD, 0.0

    text = chunk.get("chunk_text")
    if text is None:
        text = chunk.get("content", "")
    text = str(text or "")
    metadata = chunk.get("metadata") if isinstance(chunk.get("metadata"), Mapping) else {}
    page_number = metadata.get("page_number", chunk.get("page_number"))
    highlighted = chunk.get("highlighted_text") or highlight(text, query)
    chunk_index = _int(chunk.get("chunk_index"), None)

    return SearchMatch(
        document_id=str(chunk.get("document_id") or document_id),
        document_title=chunk.get("document_title") or document_title,
        chunk_id=None if chunk.get("chunk_id") is None else str(chunk["chunk_id"]),
        chunk_index=chunk_index,
        text=text,
        score=score or 0.0,
        match_type=match_type,
        highlighted_text=highlighted,
        page_number=_int(page_number, None),
        metadata=dict(metadata),
    )


def _echoed_query(body: Mapping[str, Any], original_query: str) -> str:
    echoed = body.get("query")
    return echoed if isinstance(echoed, str) and echoed else original_query


def _require_query(query: str) -> str:
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("query is required")
    return query.strip()


def _require_sequence(value: Any, what: str) -> Sequence[Any]:
    if value is None:
        logger.error("search.response.missing container=%s", what)
        raise MalformedResponse(f"Response is missing {what}")
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        logger.error("search.response.not_sequence container=%s type=%s", what, type(value).__name__)
        raise MalformedResponse(f"{what.capitalize()} is not a list")
    return value


def _int(value: Any, default: int | None) -> int | None:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedResponse(f"Expected an integer, got {value!r}") from exc


def _float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedResponse(f"Expected a numeric score, got {value!r}") from exc
