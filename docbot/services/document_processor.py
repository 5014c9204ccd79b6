from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from docbot.connectors.base import SourceDocument
from docbot.index.base import Chunk, IndexAdapter
from docbot.services.text_extraction import TextExtractor

LOGGER = logging.getLogger(__name__)

SPECIAL_CHARS_PATTERN = re.compile(r"[^\w\s.,!?;:\-()\[\]\"'/\\@#$%&+=<>{}|~`*]")
HORIZONTAL_WS_PATTERN = re.compile(r"[^\S\r\n]+")
NEWLINE_RUN_PATTERN = re.compile(r"\s*[\r\n]\s*")
SENTENCE_TERMINATORS = ".!?"

DEFAULT_TITLE_LABEL = "Document"


@dataclass(frozen=True)
class ChunkSpan:
    start: int
    end: int
    text: str


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    text = SPECIAL_CHARS_PATTERN.sub("", text)
    text = HORIZONTAL_WS_PATTERN.sub(" ", text)
    text = NEWLINE_RUN_PATTERN.sub("\n", text)
    return text.strip()


def find_break_point(text: str, start: int, end: int, chunk_size: int) -> int:
    """Best natural cut position in (start + chunk_size // 2, end], or ``end`` if there is none."""
    threshold = start + chunk_size // 2

    paragraph = text.rfind("\n\n", 0, end + 2)
    if paragraph > threshold:
        return paragraph + 2

    for idx in range(end - 1, threshold, -1):
        if text[idx] in SENTENCE_TERMINATORS and idx + 1 < len(text) and text[idx + 1].isspace():
            return idx + 1

    line = text.rfind("\n", 0, end + 1)
    if line > threshold:
        return line + 1

    space = text.rfind(" ", 0, end + 1)
    if space > threshold:
        return space + 1

    return end


def create_chunks(text: str, chunk_size: int, chunk_overlap: int, min_chunk_length: int) -> list[ChunkSpan]:
    length = len(text)
    if length <= chunk_size:
        piece = text.strip()
        return [ChunkSpan(0, length, piece)] if len(piece) >= min_chunk_length else []

    spans: list[ChunkSpan] = []
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            break_point = find_break_point(text, start, end, chunk_size)
            if break_point > start:
                end = break_point

        piece = text[start:end].strip()
        if len(piece) >= min_chunk_length:
            spans.append(ChunkSpan(start, end, piece))

        new_start = end - chunk_overlap
        if new_start <= start:
            new_start = end
        start = new_start
        if start >= length:
            break
    return spans


class DocumentProcessor:
    """Turns one source document into indexed chunks: extract, clean, chunk, write."""

    def __init__(
        self,
        index: IndexAdapter,
        extractor: TextExtractor | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        min_chunk_length: int | None = None,
    ):
        if chunk_size is None or chunk_overlap is None or min_chunk_length is None:
            from docbot.core.config import settings

            chunk_size = settings.CHUNK_SIZE if chunk_size is None else chunk_size
            chunk_overlap = settings.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
            min_chunk_length = settings.MIN_CHUNK_LENGTH if min_chunk_length is None else min_chunk_length
        self.index = index
        self.extractor = extractor or TextExtractor()
        self.chunk_size = int(chunk_size)
        self.chunk_overlap = int(chunk_overlap)
        self.min_chunk_length = int(min_chunk_length)

    def chunk_text(self, text: str) -> list[ChunkSpan]:
        return create_chunks(text, self.chunk_size, self.chunk_overlap, self.min_chunk_length)

    def build_chunks(self, document: SourceDocument, spans: list[ChunkSpan], *, title_label: str = DEFAULT_TITLE_LABEL) -> list[Chunk]:
        return [
            Chunk(
                parent_id=document.id,
                sequence=sequence,
                text=f"{title_label}: {document.name}\n\n{span.text}",
                source_label=document.source_label,
                content_type=document.content_type,
                view_url=document.view_url,
                modified_at=document.modified_at,
                created_at=document.created_at,
                parent_name=document.name,
            )
            for sequence, span in enumerate(spans)
        ]

    def extract_text(self, document: SourceDocument, content: bytes | None) -> str | None:
        if document.inline_content is not None:
            return document.inline_content
        if not content:
            return None
        return self.extractor.extract(content, document.content_type, document.name)

    def process_document(
        self,
        document: SourceDocument,
        content: bytes | None = None,
        *,
        title_label: str = DEFAULT_TITLE_LABEL,
    ) -> bool:
        LOGGER.info("document_processing_started", extra={"event": "document_processing_started", "doc_id": document.id, "doc_name": document.name})
        text = self.extract_text(document, content)
        if not text or not text.strip():
            LOGGER.warning("document_no_text", extra={"event": "document_no_text", "doc_id": document.id, "doc_name": document.name})
            return False

        cleaned = clean_text(text)
        spans = self.chunk_text(cleaned)
        if not spans:
            LOGGER.warning(
                "document_no_chunks",
                extra={
                    "event": "document_no_chunks",
                    "doc_id": document.id,
                    "chars": len(cleaned),
                    "min_chunk_length": self.min_chunk_length,
                },
            )
            return False

        chunks = self.build_chunks(document, spans, title_label=title_label)
        if not self.index.delete_by_parent(document.id):
            LOGGER.error("document_replace_failed", extra={"event": "document_replace_failed", "doc_id": document.id})
            return False
        if not self.index.add_chunks(chunks):
            LOGGER.error("document_index_failed", extra={"event": "document_index_failed", "doc_id": document.id})
            return False
        LOGGER.info(
            "document_indexed",
            extra={"event": "document_indexed", "doc_id": document.id, "doc_name": document.name, "chunks": len(chunks)},
        )
        return True
