from __future__ import annotations

import logging
import time
import uuid

from docbot.core import metrics
from docbot.core.logging import log_event, set_question_context
from docbot.index.base import IndexAdapter, SearchRequest, SearchResult
from docbot.services.answer_generator import AnswerGenerator
from docbot.services.query_analysis import (
    extract_document_name,
    is_greeting,
    is_help_request,
    is_named_document_query,
    is_status_request,
    preprocess_query,
    remove_stop_words,
    with_separator_variant,
)

LOGGER = logging.getLogger(__name__)

ERROR_PREFIX = "I encountered an error processing your question: "

GREETING_MESSAGE = (
    "Hello! I'm DocBot, your document assistant. I can help you find information "
    "from your Google Drive, Confluence and S3 documents. What would you like to know?"
)

HELP_MESSAGE = """I'm DocBot! I can help you with:
- Finding information in your documents
- Getting file URLs
- Answering questions about document content

Example queries:
- "Tell me about Practice Note 31A"
- "What is the leave policy?"
- "Give me the file url of [document name]"
"""

STATUS_TEMPLATE = """DocBot Status:
- Search index: {index}
- Language model: {llm}
- Documents indexed: {count}
"""


class QueryEngine:
    def __init__(
        self,
        index: IndexAdapter,
        generator: AnswerGenerator,
        max_results: int | None = None,
        min_score: float | None = None,
        name_boost: float | None = None,
        content_boost: float | None = None,
        context_top_n: int | None = None,
    ):
        if None in (max_results, min_score, name_boost, content_boost, context_top_n):
            from docbot.core.config import settings

            max_results = settings.SEARCH_MAX_RESULTS if max_results is None else max_results
            min_score = settings.SEARCH_MIN_SCORE if min_score is None else min_score
            name_boost = settings.SEARCH_BOOST_DOC_NAME if name_boost is None else name_boost
            content_boost = settings.SEARCH_BOOST_CONTENT if content_boost is None else content_boost
            context_top_n = settings.CONTEXT_TOP_N if context_top_n is None else context_top_n
        self.index = index
        self.generator = generator
        self.max_results = int(max_results)
        self.min_score = float(min_score)
        self.name_boost = float(name_boost)
        self.content_boost = float(content_boost)
        self.context_top_n = int(context_top_n)

    def general_request(self, text: str) -> SearchRequest:
        return SearchRequest(
            text=remove_stop_words(text),
            field_boosts={"title": self.name_boost * 5, "body": self.content_boost},
            phrase_boosts={"title": 100, "body": 50},
            bigram_phrase_boosts={"title": 50, "body": 25},
            trigram_phrase_boosts={"title": 25, "body": 10},
            phrase_slop=2,
            bigram_slop=4,
            trigram_slop=6,
            tie_breaker=0.1,
            minimum_match="2<50% 4<40%",
            rows=self.max_results,
            highlight=True,
            highlight_snippets=3,
        )

    def name_lookup_request(self, name: str) -> SearchRequest:
        return SearchRequest(
            text=name,
            field_boosts={"title": 50, "body": 1},
            phrase_boosts={"title": 100},
            minimum_match="75%",
            rows=self.max_results,
        )

    def special_response(self, text: str) -> str | None:
        if is_greeting(text):
            metrics.query_total.labels(kind="greeting").inc()
            return GREETING_MESSAGE
        if is_help_request(text):
            metrics.query_total.labels(kind="help").inc()
            return HELP_MESSAGE
        if is_status_request(text):
            metrics.query_total.labels(kind="status").inc()
            return STATUS_TEMPLATE.format(
                index="Healthy" if self.index.health_check() else "Unhealthy",
                llm="Available" if self.generator.is_available() else "Not configured",
                count=self.index.document_count(),
            )
        return None

    def search(self, text: str) -> SearchResult:
        if is_named_document_query(text):
            name = extract_document_name(text)
            metrics.query_total.labels(kind="named_lookup").inc()
            LOGGER.info("query_named_lookup", extra={"event": "query_named_lookup", "doc_name": name})
            return self.index.query(self.name_lookup_request(with_separator_variant(name)))

        metrics.query_total.labels(kind="general").inc()
        processed = preprocess_query(text)
        result = self.index.query(self.general_request(processed))
        kept = [item for item in result.chunks if item.score >= self.min_score]
        return SearchResult(chunks=kept, total_found=result.total_found, elapsed_ms=result.elapsed_ms, query=result.query)

    def answer_question(self, text: str) -> str:
        set_question_context(uuid.uuid4().hex)
        started = time.perf_counter()
        try:
            log_event("query.received", payload={"question": text[:100]})
            special = self.special_response(text)
            if special is not None:
                return special

            result = self.search(text)
            log_event("query.retrieved", payload={"found": len(result.chunks), "elapsed_ms": result.elapsed_ms})
            if not result.chunks:
                return self.generator.answer_general(text)
            return self.generator.answer_with_context(text, result.chunks[: self.context_top_n])
        except Exception as exc:  # noqa: BLE001
            metrics.query_total.labels(kind="error").inc()
            log_event("query.failed", level=logging.ERROR, payload={"error": str(exc)})
            return f"{ERROR_PREFIX}{exc}"
        finally:
            metrics.query_duration_seconds.observe(time.perf_counter() - started)
            set_question_context(None)
