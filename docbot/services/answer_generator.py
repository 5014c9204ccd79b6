from __future__ import annotations

import logging

from docbot.clients.ollama_client import OllamaClient
from docbot.index.base import RetrievedChunk

LOGGER = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "The language model is not configured. Please set LLM_ENDPOINT and LLM_MODEL."
ERROR_PREFIX = "I encountered an error processing your question: "
REFERENCES_HEADER = "\n\nHere are the references:\n"

RAG_PROMPT_TEMPLATE = """You are DocBot, an intelligent AI assistant that answers questions based on document context.

**Context Documents:**
{context}

**User Question:** {question}

**Critical Instructions:**
1. **First, carefully check if ANY of the provided context documents contain relevant information about the question.**
2. **If the documents ARE relevant**: Answer using ONLY the information from these documents. Cite specific document sources.
3. **If the documents are NOT relevant**: Clearly state "The provided context documents do not contain information about [topic]."
4. **DO NOT make assumptions** - if the documents mention something vaguely related but don't actually answer the question, say so.
5. **Be strict about relevance** - only use documents that directly address the user's question.
6. If the user is asking for a file URL, provide it from the document metadata.

**Answer:**
"""

GENERAL_PROMPT_TEMPLATE = "You are DocBot, a helpful AI assistant. Answer the following question concisely:\n\nQuestion: {question}\n\nAnswer:"


def build_context(chunks: list[RetrievedChunk], max_chars: int) -> str:
    blocks: list[str] = []
    for position, item in enumerate(chunks, start=1):
        content = item.chunk.text
        if len(content) > max_chars:
            content = content[:max_chars] + "..."
        blocks.append(
            "---\n"
            f"Document {position}:\n"
            f"Title: {item.chunk.parent_name}\n"
            f"Source: {item.chunk.source_label}\n"
            f"Relevance Score: {item.score:.2f}\n"
            "\nContent:\n"
            f"{content}\n---\n\n"
        )
    return "".join(blocks)


def build_source_references(chunks: list[RetrievedChunk], limit: int) -> str:
    if not chunks:
        return ""
    urls: list[str] = []
    for item in chunks:
        url = item.chunk.view_url
        if url and url not in urls:
            urls.append(url)
    lines = [f"{position}. {url}\n" for position, url in enumerate(urls[:limit], start=1)]
    return REFERENCES_HEADER + "".join(lines)


class AnswerGenerator:
    def __init__(self, client: OllamaClient | None = None, context_chars: int | None = None, max_references: int | None = None):
        if context_chars is None or max_references is None:
            from docbot.core.config import settings

            context_chars = context_chars or settings.CONTEXT_CHARS_PER_CHUNK
            max_references = max_references or settings.MAX_SOURCE_REFERENCES
        self.client = client or OllamaClient()
        self.context_chars = int(context_chars)
        self.max_references = int(max_references)

    def is_available(self) -> bool:
        return self.client.is_configured()

    def answer_with_context(self, question: str, chunks: list[RetrievedChunk]) -> str:
        if not self.is_available():
            return NOT_CONFIGURED_MESSAGE
        prompt = RAG_PROMPT_TEMPLATE.format(context=build_context(chunks, self.context_chars), question=question)
        try:
            answer = self.client.generate_text(prompt)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("answer_generation_failed", extra={"event": "answer_generation_failed", "error": str(exc)})
            return f"{ERROR_PREFIX}{exc}"
        return answer + build_source_references(chunks, self.max_references)

    def answer_general(self, question: str) -> str:
        if not self.is_available():
            return NOT_CONFIGURED_MESSAGE
        try:
            return self.client.generate_text(GENERAL_PROMPT_TEMPLATE.format(question=question))
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("answer_generation_failed", extra={"event": "answer_generation_failed", "error": str(exc)})
            return f"{ERROR_PREFIX}{exc}"
