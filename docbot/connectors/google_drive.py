from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import httpx

from docbot.connectors.base import SourceConnector, SourceDocument
from docbot.core.errors import SourceFetchError, SourceListError

LOGGER = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_APPS_PREFIX = "application/vnd.google-apps"
FILE_FIELDS = "nextPageToken, files(id, name, mimeType, webViewLink, modifiedTime, createdTime, size)"

SUPPORTED_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
    "application/vnd.google-apps.document",
    "application/vnd.google-apps.spreadsheet",
}
SUPPORTED_EXTENSIONS = {".pdf", ".doc", ".docx", ".xls", ".xlsx", ".txt", ".csv"}

EXPORT_MIME_TYPES = {
    "application/vnd.google-apps.document": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.google-apps.spreadsheet": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.google-apps.presentation": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}


def _load_settings() -> Any:
    try:
        from docbot.core.config import settings

        return settings
    except Exception:  # noqa: BLE001
        return SimpleNamespace(
            DRIVE_API_URL="https://www.googleapis.com/drive/v3",
            DRIVE_ACCESS_TOKEN="",
            DRIVE_FOLDER_IDS="",
            DRIVE_PAGE_SIZE=100,
            DRIVE_REQUEST_TIMEOUT_SECONDS=60,
        )


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def export_mime_type(google_mime_type: str) -> str:
    return EXPORT_MIME_TYPES.get(google_mime_type, "application/pdf")


def is_supported_file(name: str, mime_type: str | None) -> bool:
    if mime_type in SUPPORTED_MIME_TYPES:
        return True
    return Path(name or "").suffix.lower() in SUPPORTED_EXTENSIONS


@dataclass
class DriveClient:
    api_url: str
    access_token: str
    page_size: int = 100
    timeout_seconds: float = 60

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}

    def list_files(self, query: str) -> list[dict[str, Any]]:
        files: list[dict[str, Any]] = []
        page_token: str | None = None
        with httpx.Client(timeout=self.timeout_seconds, headers=self._headers()) as client:
            while True:
                params: dict[str, Any] = {"q": query, "fields": FILE_FIELDS, "pageSize": self.page_size}
                if page_token:
                    params["pageToken"] = page_token
                response = client.get(f"{self.api_url.rstrip('/')}/files", params=params)
                response.raise_for_status()
                payload = response.json()
                files.extend(payload.get("files", []) or [])
                page_token = payload.get("nextPageToken")
                if not page_token:
                    return files

    def download(self, file_id: str, mime_type: str | None) -> bytes:
        base = f"{self.api_url.rstrip('/')}/files/{file_id}"
        with httpx.Client(timeout=self.timeout_seconds, headers=self._headers(), follow_redirects=True) as client:
            if mime_type and mime_type.startswith(GOOGLE_APPS_PREFIX):
                response = client.get(f"{base}/export", params={"mimeType": export_mime_type(mime_type)})
            else:
                response = client.get(base, params={"alt": "media"})
            response.raise_for_status()
            return response.content


class GoogleDriveConnector(SourceConnector):
    source_label = "google_drive"
    title_label = "Document"

    def __init__(self, client: DriveClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> DriveClient:
        if self._client is None:
            cfg = _load_settings()
            self._client = DriveClient(
                api_url=cfg.DRIVE_API_URL,
                access_token=cfg.DRIVE_ACCESS_TOKEN,
                page_size=int(cfg.DRIVE_PAGE_SIZE),
                timeout_seconds=float(cfg.DRIVE_REQUEST_TIMEOUT_SECONDS),
            )
        return self._client

    def is_available(self) -> bool:
        return self._client is not None or bool(_load_settings().DRIVE_ACCESS_TOKEN)

    def folder_ids(self) -> list[str]:
        return _split_csv(_load_settings().DRIVE_FOLDER_IDS)

    def _subfolders(self, parent_id: str, seen: set[str]) -> list[str]:
        found: list[str] = []
        query = f"'{parent_id}' in parents and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        for folder in self.client.list_files(query):
            folder_id = str(folder.get("id") or "")
            if not folder_id or folder_id in seen:
                continue
            seen.add(folder_id)
            found.append(folder_id)
            found.extend(self._subfolders(folder_id, seen))
        return found

    def _to_document(self, item: dict[str, Any]) -> SourceDocument:
        return SourceDocument(
            id=str(item.get("id")),
            name=str(item.get("name") or ""),
            content_type=item.get("mimeType"),
            source_label=self.source_label,
            view_url=item.get("webViewLink"),
            modified_at=item.get("modifiedTime"),
            created_at=item.get("createdTime"),
        )

    def list_documents(self) -> list[SourceDocument]:
        try:
            roots = self.folder_ids()
            if roots:
                folders: list[str] = []
                seen: set[str] = set(roots)
                for root in roots:
                    folders.append(root)
                    folders.extend(self._subfolders(root, seen))
                queries = [f"'{folder}' in parents and mimeType!='{FOLDER_MIME_TYPE}' and trashed=false" for folder in folders]
            else:
                LOGGER.info("drive_no_folders_configured", extra={"event": "drive_no_folders_configured"})
                queries = [f"mimeType!='{FOLDER_MIME_TYPE}' and trashed=false"]

            documents: dict[str, SourceDocument] = {}
            for query in queries:
                for item in self.client.list_files(query):
                    if not is_supported_file(str(item.get("name") or ""), item.get("mimeType")):
                        continue
                    document = self._to_document(item)
                    documents.setdefault(document.id, document)
        except httpx.HTTPError as exc:
            raise SourceListError(f"drive listing failed: {exc}") from exc

        LOGGER.info("drive_documents_listed", extra={"event": "drive_documents_listed", "count": len(documents)})
        return list(documents.values())

    def fetch(self, document_id: str, content_type: str | None) -> bytes | None:
        try:
            return self.client.download(document_id, content_type)
        except httpx.HTTPError as exc:
            raise SourceFetchError(f"drive download failed for {document_id}: {exc}") from exc
