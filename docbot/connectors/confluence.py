from __future__ import annotations

import base64
import html
import logging
import re
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any
from xml.etree import ElementTree as ET

import httpx

from docbot.connectors.base import SourceConnector, SourceDocument
from docbot.core.errors import SourceFetchError, SourceListError

LOGGER = logging.getLogger(__name__)

AC_NS = "http://atlassian.com/content"
RI_NS = "http://atlassian.com/resource/identifier"
PAGE_ID_PREFIX = "confluence_"
PAGE_CONTENT_TYPE = "confluence/page"

BLOCK_TAGS = {"p", "div", "br", "li", "tr", "pre", "table", "ul", "ol", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6"}
CELL_TAGS = {"td", "th"}
_XML_ENTITIES = {"amp", "lt", "gt", "quot", "apos"}
_ENTITY_PATTERN = re.compile(r"&([A-Za-z][A-Za-z0-9]*);")


def _load_settings() -> Any:
    try:
        from docbot.core.config import settings

        return settings
    except Exception:  # noqa: BLE001
        return SimpleNamespace(
            CONFLUENCE_BASE_URL="",
            CONFLUENCE_AUTH_MODE="basic",
            CONFLUENCE_PAT="",
            CONFLUENCE_USERNAME="",
            CONFLUENCE_API_TOKEN="",
            CONFLUENCE_SPACE_KEYS="",
            CONFLUENCE_PAGE_LIMIT=50,
            CONFLUENCE_REQUEST_TIMEOUT_SECONDS=30,
        )


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _norm_line(value: str) -> str:
    return " ".join(value.split())


def _html_entities_to_chars(markup: str) -> str:
    return _ENTITY_PATTERN.sub(lambda m: m.group(0) if m.group(1) in _XML_ENTITIES else html.unescape(m.group(0)), markup)


def _sanitize_storage_xhtml(storage_xhtml: str) -> str:
    return re.sub(r"<\s*(script|style)\b[^>]*>.*?<\s*/\s*\1\s*>", "", storage_xhtml, flags=re.IGNORECASE | re.DOTALL)


def _collect_text(node: ET.Element, parts: list[str]) -> None:
    local = _local_name(node.tag)
    if node.text:
        parts.append(node.text)
    for child in list(node):
        _collect_text(child, parts)
        if child.tail:
            parts.append(child.tail)
    if local in CELL_TAGS:
        parts.append(" ")
    elif local in BLOCK_TAGS:
        parts.append("\n")


def storage_html_to_text(storage_xhtml: str) -> str:
    """Flatten Confluence storage XHTML to plain text with one line per block element."""
    cleaned = _html_entities_to_chars(_sanitize_storage_xhtml(storage_xhtml or ""))
    wrapped = f'<root xmlns:ac="{AC_NS}" xmlns:ri="{RI_NS}">{cleaned}</root>'
    try:
        root = ET.fromstring(wrapped)
    except ET.ParseError:
        fallback = re.sub(r"<[^>]+>", " ", cleaned)
        return _norm_line(html.unescape(fallback))
    parts: list[str] = []
    _collect_text(root, parts)
    lines = [_norm_line(line) for line in "".join(parts).splitlines()]
    return "\n".join(line for line in lines if line)


@dataclass
class ConfluenceClient:
    base_url: str
    auth_mode: str
    pat: str
    username: str
    api_token: str
    timeout_seconds: float = 30

    @property
    def wiki_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/wiki"

    def _auth_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth_mode == "pat" and self.pat:
            headers["Authorization"] = f"Bearer {self.pat}"
        elif self.username:
            encoded = base64.b64encode(f"{self.username}:{self.api_token}".encode("utf-8")).decode("ascii")
            headers["Authorization"] = f"Basic {encoded}"
        return headers

    def _get(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        with httpx.Client(timeout=self.timeout_seconds, headers=self._auth_headers()) as client:
            response = client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    def list_space_keys(self) -> list[str]:
        payload = self._get(f"{self.wiki_url}/rest/api/space", params={"limit": 100})
        return [str(space["key"]) for space in payload.get("results", []) if space.get("key")]

    def list_pages(self, space_key: str, *, limit: int) -> list[dict[str, Any]]:
        pages: list[dict[str, Any]] = []
        url: str | None = f"{self.wiki_url}/rest/api/content"
        params: dict[str, Any] | None = {
            "spaceKey": space_key,
            "type": "page",
            "expand": "body.storage,version,history",
            "limit": limit,
        }
        while url:
            payload = self._get(url, params=params)
            pages.extend(payload.get("results", []) or [])
            links = payload.get("_links", {}) or {}
            next_link = links.get("next")
            url = f"{(links.get('base') or self.wiki_url).rstrip('/')}{next_link}" if next_link else None
            params = None
        return pages

    def fetch_page_body(self, page_id: str) -> dict[str, Any]:
        return self._get(f"{self.wiki_url}/rest/api/content/{page_id}", params={"expand": "body.storage"})


def _storage_value(page: dict[str, Any]) -> str:
    return str((((page.get("body") or {}).get("storage") or {}).get("value")) or "")


class ConfluencePagesConnector(SourceConnector):
    source_label = "confluence"
    title_label = "Confluence Page"

    def __init__(self, client: ConfluenceClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> ConfluenceClient:
        if self._client is None:
            cfg = _load_settings()
            self._client = ConfluenceClient(
                base_url=cfg.CONFLUENCE_BASE_URL,
                auth_mode=cfg.CONFLUENCE_AUTH_MODE,
                pat=cfg.CONFLUENCE_PAT,
                username=cfg.CONFLUENCE_USERNAME,
                api_token=cfg.CONFLUENCE_API_TOKEN,
                timeout_seconds=float(cfg.CONFLUENCE_REQUEST_TIMEOUT_SECONDS),
            )
        return self._client

    def is_available(self) -> bool:
        if self._client is not None:
            return True
        cfg = _load_settings()
        if not cfg.CONFLUENCE_BASE_URL:
            return False
        if cfg.CONFLUENCE_AUTH_MODE == "pat":
            return bool(cfg.CONFLUENCE_PAT)
        return bool(cfg.CONFLUENCE_USERNAME and cfg.CONFLUENCE_API_TOKEN)

    def space_keys(self) -> list[str]:
        configured = [key.strip() for key in (_load_settings().CONFLUENCE_SPACE_KEYS or "").split(",") if key.strip()]
        return configured or self.client.list_space_keys()

    def to_document(self, page: dict[str, Any]) -> SourceDocument:
        version = page.get("version") or {}
        history = page.get("history") or {}
        webui = (page.get("_links") or {}).get("webui") or ""
        return SourceDocument(
            id=f"{PAGE_ID_PREFIX}{page['id']}",
            name=str(page.get("title") or ""),
            content_type=PAGE_CONTENT_TYPE,
            source_label=self.source_label,
            view_url=f"{self.client.wiki_url}{webui}" if webui else None,
            modified_at=version.get("when"),
            created_at=history.get("createdDate"),
            inline_content=storage_html_to_text(_storage_value(page)),
        )

    def list_documents(self) -> list[SourceDocument]:
        limit = int(_load_settings().CONFLUENCE_PAGE_LIMIT)
        documents: list[SourceDocument] = []
        try:
            for space_key in self.space_keys():
                pages = self.client.list_pages(space_key, limit=limit)
                LOGGER.info("confluence_space_listed", extra={"event": "confluence_space_listed", "space": space_key, "pages": len(pages)})
                for page in pages:
                    if page.get("id") is None:
                        continue
                    documents.append(self.to_document(page))
        except httpx.HTTPError as exc:
            raise SourceListError(f"confluence listing failed: {exc}") from exc
        return documents

    def fetch(self, document_id: str, content_type: str | None) -> bytes | None:
        page_id = document_id.removeprefix(PAGE_ID_PREFIX)
        try:
            page = self.client.fetch_page_body(page_id)
        except httpx.HTTPError as exc:
            raise SourceFetchError(f"confluence page fetch failed for {page_id}: {exc}") from exc
        text = storage_html_to_text(_storage_value(page))
        return text.encode("utf-8") if text else None
