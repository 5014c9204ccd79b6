from __future__ import annotations

import logging
import time
from typing import Any, Iterable

import httpx

from docbot.core.errors import IndexUnavailableError, IndexWriteError
from docbot.index.base import (
    FAILED_MARKER_CONTENT,
    FAILED_MARKER_NAME,
    FAILED_MARKER_SOURCE,
    Chunk,
    RetrievedChunk,
    SearchRequest,
    SearchResult,
    failed_marker_id,
)

LOGGER = logging.getLogger(__name__)

FIELD_MAP = {"title": "doc_name", "body": "content"}
_SPECIAL_CHARS = set('\\+-!():^[]"{}~?|&;/')
_EXCLUDE_MARKERS = f"-doc_source:{FAILED_MARKER_SOURCE}"


def escape_query_chars(text: str) -> str:
    return "".join(f"\\{ch}" if ch in _SPECIAL_CHARS else ch for ch in text)


def _boost_value(value: float) -> str:
    return f"{value:g}"


def _format_boosts(boosts: dict[str, float]) -> str:
    return " ".join(f"{FIELD_MAP.get(name, name)}^{_boost_value(boost)}" for name, boost in boosts.items())


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_str(value: Any) -> str | None:
    value = _first(value)
    return None if value is None else str(value)


def _as_int(value: Any) -> int:
    value = _first(value)
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def chunk_to_solr_doc(chunk: Chunk) -> dict[str, Any]:
    return {
        "id": chunk.chunk_id,
        "doc_id": chunk.parent_id,
        "doc_name": chunk.parent_name,
        "doc_source": chunk.source_label,
        "doc_type": chunk.content_type,
        "url": chunk.view_url,
        "content": chunk.text,
        "chunk_index": chunk.sequence,
        "modified_time": chunk.modified_at,
        "created_time": chunk.created_at,
    }


def solr_doc_to_chunk(doc: dict[str, Any]) -> Chunk:
    return Chunk(
        parent_id=_as_str(doc.get("doc_id")) or "",
        sequence=_as_int(doc.get("chunk_index")),
        text=_as_str(doc.get("content")) or "",
        source_label=_as_str(doc.get("doc_source")) or "",
        content_type=_as_str(doc.get("doc_type")),
        view_url=_as_str(doc.get("url")),
        modified_at=_as_str(doc.get("modified_time")),
        created_at=_as_str(doc.get("created_time")),
        parent_name=_as_str(doc.get("doc_name")) or "",
    )


def build_select_params(request: SearchRequest) -> dict[str, Any]:
    params: dict[str, Any] = {
        "defType": "edismax",
        "q": escape_query_chars(request.text),
        "qf": _format_boosts(request.field_boosts),
        "rows": request.rows,
        "fl": "*,score",
        "fq": _EXCLUDE_MARKERS,
        "wt": "json",
    }
    if request.phrase_boosts:
        params["pf"] = _format_boosts(request.phrase_boosts)
    if request.bigram_phrase_boosts:
        params["pf2"] = _format_boosts(request.bigram_phrase_boosts)
    if request.trigram_phrase_boosts:
        params["pf3"] = _format_boosts(request.trigram_phrase_boosts)
    if request.phrase_slop is not None:
        params["ps"] = request.phrase_slop
    if request.bigram_slop is not None:
        params["ps2"] = request.bigram_slop
    if request.trigram_slop is not None:
        params["ps3"] = request.trigram_slop
    if request.tie_breaker is not None:
        params["tie"] = request.tie_breaker
    if request.minimum_match:
        params["mm"] = request.minimum_match
    if request.highlight:
        params.update(
            {
                "hl": "true",
                "hl.fl": FIELD_MAP["body"],
                "hl.simple.pre": "<em>",
                "hl.simple.post": "</em>",
                "hl.snippets": request.highlight_snippets,
            }
        )
    return params


class SolrIndexAdapter:
    """Index adapter over the Solr JSON request API of a single core."""

    def __init__(self, core_url: str | None = None, timeout_seconds: float | None = None):
        if core_url is None or timeout_seconds is None:
            from docbot.core.config import settings

            core_url = core_url or settings.solr_core_url
            timeout_seconds = timeout_seconds or settings.SOLR_TIMEOUT_SECONDS
        self.core_url = str(core_url).rstrip("/")
        self.timeout_seconds = float(timeout_seconds)

    def _select(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.get(f"{self.core_url}/select", params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            raise IndexUnavailableError(f"solr select failed: {exc}") from exc

    def _update(self, payload: Any) -> None:
        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(f"{self.core_url}/update", params={"commit": "true", "wt": "json"}, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise IndexWriteError(f"solr update failed: {exc}") from exc

    def _delete_query(self, query: str) -> None:
        self._update({"delete": {"query": query}})

    def add_chunks(self, chunks: list[Chunk]) -> bool:
        if not chunks:
            return True
        try:
            self._update([chunk_to_solr_doc(chunk) for chunk in chunks])
        except IndexWriteError as exc:
            LOGGER.error("solr_add_failed", extra={"event": "solr_add_failed", "error_code": exc.error_code, "error": str(exc)})
            return False
        LOGGER.info("solr_chunks_added", extra={"event": "solr_chunks_added", "count": len(chunks)})
        return True

    def query(self, request: SearchRequest) -> SearchResult:
        started = time.perf_counter()
        try:
            payload = self._select(build_select_params(request))
        except IndexUnavailableError as exc:
            LOGGER.error("solr_query_failed", extra={"event": "solr_query_failed", "error_code": exc.error_code, "error": str(exc)})
            return SearchResult(query=request.text)

        body = payload.get("response", {}) or {}
        highlighting = payload.get("highlighting", {}) or {}
        retrieved: list[RetrievedChunk] = []
        for doc in body.get("docs", []) or []:
            doc_highlights = highlighting.get(str(_first(doc.get("id"))), {}) or {}
            retrieved.append(
                RetrievedChunk(
                    chunk=solr_doc_to_chunk(doc),
                    score=max(0.0, float(doc.get("score") or 0.0)),
                    highlights=list(doc_highlights.get(FIELD_MAP["body"], []) or []),
                )
            )
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        LOGGER.info(
            "solr_query_completed",
            extra={"event": "solr_query_completed", "query": request.text, "found": len(retrieved), "elapsed_ms": elapsed_ms},
        )
        for rank, item in enumerate(retrieved[:3], start=1):
            LOGGER.info(
                "solr_query_top_result",
                extra={"event": "solr_query_top_result", "rank": rank, "doc_name": item.chunk.parent_name, "score": item.score},
            )
        return SearchResult(
            chunks=retrieved,
            total_found=int(body.get("numFound") or 0),
            elapsed_ms=elapsed_ms,
            query=request.text,
        )

    def delete_by_parent(self, parent_id: str) -> bool:
        try:
            self._delete_query(f"doc_id:{escape_query_chars(parent_id)}")
        except IndexWriteError as exc:
            LOGGER.error("solr_delete_failed", extra={"event": "solr_delete_failed", "doc_id": parent_id, "error": str(exc)})
            return False
        return True

    def clear_all(self) -> bool:
        try:
            self._delete_query("*:*")
        except IndexWriteError as exc:
            LOGGER.error("solr_clear_failed", extra={"event": "solr_clear_failed", "error": str(exc)})
            return False
        LOGGER.warning("solr_index_cleared", extra={"event": "solr_index_cleared"})
        return True

    def all_indexed_parent_ids(self) -> set[str]:
        payload = self._select(
            {
                "q": "*:*",
                "fq": _EXCLUDE_MARKERS,
                "rows": 0,
                "facet": "true",
                "facet.field": "doc_id",
                "facet.limit": -1,
                "facet.mincount": 1,
                "wt": "json",
            }
        )
        values = ((payload.get("facet_counts") or {}).get("facet_fields") or {}).get("doc_id") or []
        # Solr returns facets as a flat [value, count, value, count, ...] list.
        return {str(value) for value in values[0::2]}

    def mark_failed(self, document_ids: Iterable[str]) -> None:
        markers = [
            {
                "id": failed_marker_id(doc_id),
                "doc_id": doc_id,
                "doc_source": FAILED_MARKER_SOURCE,
                "doc_name": FAILED_MARKER_NAME,
                "content": FAILED_MARKER_CONTENT,
            }
            for doc_id in document_ids
        ]
        if markers:
            self._update(markers)

    def failed_parent_ids(self) -> set[str]:
        count = self._select({"q": f"doc_source:{FAILED_MARKER_SOURCE}", "rows": 0, "wt": "json"})
        total = int((count.get("response") or {}).get("numFound") or 0)
        if total == 0:
            return set()
        payload = self._select({"q": f"doc_source:{FAILED_MARKER_SOURCE}", "fl": "doc_id", "rows": total, "wt": "json"})
        docs = (payload.get("response") or {}).get("docs") or []
        return {doc_id for doc_id in (_as_str(doc.get("doc_id")) for doc in docs) if doc_id}

    def clear_failed_markers(self) -> None:
        self._delete_query(f"doc_source:{FAILED_MARKER_SOURCE}")

    def document_count(self) -> int:
        try:
            payload = self._select({"q": "*:*", "fq": _EXCLUDE_MARKERS, "rows": 0, "wt": "json"})
        except IndexUnavailableError as exc:
            LOGGER.error("solr_count_failed", extra={"event": "solr_count_failed", "error": str(exc)})
            return 0
        return int((payload.get("response") or {}).get("numFound") or 0)

    def health_check(self) -> bool:
        try:
            self._select({"q": "*:*", "rows": 0, "wt": "json"})
        except IndexUnavailableError as exc:
            LOGGER.error("solr_health_check_failed", extra={"event": "solr_health_check_failed", "error": str(exc)})
            return False
        return True

    def commit(self) -> None:
        self._update({"commit": {}})
