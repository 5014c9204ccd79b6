from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class SourceDocument:
    id: str
    name: str
    content_type: str | None
    source_label: str
    view_url: str | None = None
    modified_at: str | None = None
    created_at: str | None = None
    inline_content: str | None = None


class SourceConnector(Protocol):
    source_label: str
    title_label: str

    def is_available(self) -> bool:
        ...

    def list_documents(self) -> list[SourceDocument]:
        ...

    def fetch(self, document_id: str, content_type: str | None) -> bytes | None:
        ...
