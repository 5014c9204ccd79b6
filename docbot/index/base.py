from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

FAILED_MARKER_SOURCE = "_system_failed_"
FAILED_MARKER_PREFIX = "_failed_"
FAILED_MARKER_NAME = "Failed Document Marker"
FAILED_MARKER_CONTENT = "This document failed to process"


@dataclass(frozen=True)
class Chunk:
    parent_id: str
    sequence: int
    text: str
    source_label: str
    content_type: str | None = None
    view_url: str | None = None
    modified_at: str | None = None
    created_at: str | None = None
    parent_name: str = ""

    @property
    def chunk_id(self) -> str:
        return f"{self.parent_id}_{self.sequence}"


@dataclass(frozen=True)
class RetrievedChunk:
    chunk: Chunk
    score: float
    highlights: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SearchRequest:
    """Ranked-retrieval parameters for an edismax-style backend.

    Field boosts are keyed by logical field name ("title" / "body") so adapters
    can map them onto their own schema.
    """

    text: str
    field_boosts: dict[str, float]
    phrase_boosts: dict[str, float] = field(default_factory=dict)
    bigram_phrase_boosts: dict[str, float] = field(default_factory=dict)
    trigram_phrase_boosts: dict[str, float] = field(default_factory=dict)
    phrase_slop: int | None = None
    bigram_slop: int | None = None
    trigram_slop: int | None = None
    tie_breaker: float | None = None
    minimum_match: str | None = None
    rows: int = 20
    highlight: bool = False
    highlight_snippets: int = 3


@dataclass(frozen=True)
class SearchResult:
    chunks: list[RetrievedChunk] = field(default_factory=list)
    total_found: int = 0
    elapsed_ms: int = 0
    query: str = ""


def failed_marker_id(document_id: str) -> str:
    return f"{FAILED_MARKER_PREFIX}{document_id}"


class IndexAdapter(Protocol):
    def add_chunks(self, chunks: list[Chunk]) -> bool:
        ...

    def query(self, request: SearchRequest) -> SearchResult:
        ...

    def delete_by_parent(self, parent_id: str) -> bool:
        ...

    def clear_all(self) -> bool:
        ...

    def all_indexed_parent_ids(self) -> set[str]:
        ...

    def mark_failed(self, document_ids: Iterable[str]) -> None:
        ...

    def failed_parent_ids(self) -> set[str]:
        ...

    def clear_failed_markers(self) -> None:
        ...

    def document_count(self) -> int:
        ...

    def health_check(self) -> bool:
        ...

    def commit(self) -> None:
        ...
