from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from docbot.connectors.base import SourceConnector, SourceDocument
from docbot.core.errors import SourceFetchError, SourceListError

LOGGER = logging.getLogger(__name__)

EXTENSION_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".txt": "text/plain",
    ".csv": "text/csv",
}


def _load_settings() -> Any:
    try:
        from docbot.core.config import settings

        return settings
    except Exception:  # noqa: BLE001
        return SimpleNamespace(
            S3_ENDPOINT="",
            S3_ACCESS_KEY="",
            S3_SECRET_KEY="",
            S3_REGION="us-east-1",
            S3_SECURE=True,
            S3_CATALOG_BUCKET="",
            S3_CATALOG_PREFIX="",
            S3_CATALOG_ALLOWED_EXTENSIONS=".pdf,.doc,.docx,.xls,.xlsx,.txt,.csv",
            S3_CATALOG_MAX_OBJECT_MB=50,
            S3_CATALOG_PAGE_SIZE=1000,
        )


def _allowed_extensions(csv_value: str) -> set[str]:
    return {item.strip().lower() for item in csv_value.split(",") if item.strip()}


def _iso(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value else None


class S3CatalogConnector(SourceConnector):
    source_label = "s3_catalog"
    title_label = "Document"

    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def _build_client(self):
        cfg = _load_settings()
        return boto3.client(
            "s3",
            endpoint_url=cfg.S3_ENDPOINT or None,
            aws_access_key_id=cfg.S3_ACCESS_KEY or None,
            aws_secret_access_key=cfg.S3_SECRET_KEY or None,
            region_name=cfg.S3_REGION,
            use_ssl=bool(cfg.S3_SECURE),
        )

    def is_available(self) -> bool:
        return bool(_load_settings().S3_CATALOG_BUCKET)

    def list_documents(self) -> list[SourceDocument]:
        cfg = _load_settings()
        bucket = cfg.S3_CATALOG_BUCKET
        prefix = cfg.S3_CATALOG_PREFIX or ""
        allowed = _allowed_extensions(cfg.S3_CATALOG_ALLOWED_EXTENSIONS)
        max_bytes = int(cfg.S3_CATALOG_MAX_OBJECT_MB) * 1024 * 1024

        token: str | None = None
        documents: list[SourceDocument] = []
        seen: set[str] = set()
        try:
            while True:
                params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": int(cfg.S3_CATALOG_PAGE_SIZE)}
                if token:
                    params["ContinuationToken"] = token
                response = self.client.list_objects_v2(**params)
                for obj in response.get("Contents", []) or []:
                    key = str(obj.get("Key") or "")
                    if not key or key in seen or key.endswith("/"):
                        continue
                    seen.add(key)
                    suffix = Path(key).suffix.lower()
                    if suffix not in allowed:
                        continue
                    if int(obj.get("Size") or 0) > max_bytes:
                        LOGGER.warning(
                            "s3_catalog_object_skipped",
                            extra={"event": "s3_catalog_object_skipped", "error_code": "S-OBJECT-TOO-LARGE", "key": key},
                        )
                        continue
                    documents.append(
                        SourceDocument(
                            id=key,
                            name=key.rsplit("/", 1)[-1],
                            content_type=EXTENSION_MIME_TYPES.get(suffix),
                            source_label=self.source_label,
                            view_url=f"s3://{bucket}/{key}",
                            modified_at=_iso(obj.get("LastModified")),
                        )
                    )
                if not response.get("IsTruncated"):
                    break
                token = response.get("NextContinuationToken")
                if not token:
                    break
        except (BotoCoreError, ClientError) as exc:
            raise SourceListError(f"s3 listing failed for bucket {bucket}: {exc}") from exc

        documents.sort(key=lambda d: d.id)
        return documents

    def fetch(self, document_id: str, content_type: str | None) -> bytes | None:
        cfg = _load_settings()
        try:
            response = self.client.get_object(Bucket=cfg.S3_CATALOG_BUCKET, Key=document_id)
            payload = response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise SourceFetchError(f"s3 get_object failed for {document_id}: {exc}") from exc
        if len(payload) > int(cfg.S3_CATALOG_MAX_OBJECT_MB) * 1024 * 1024:
            LOGGER.warning("s3_catalog_object_too_large", extra={"event": "s3_catalog_object_too_large", "key": document_id})
            return None
        return payload
