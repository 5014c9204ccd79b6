from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from docbot.connectors import s3_catalog as module
from docbot.connectors.s3_catalog import S3CatalogConnector
from docbot.core.errors import SourceFetchError, SourceListError


def _settings(**overrides):
    values = dict(
        S3_ENDPOINT="",
        S3_ACCESS_KEY="",
        S3_SECRET_KEY="",
        S3_REGION="us-east-1",
        S3_SECURE=True,
        S3_CATALOG_BUCKET="bucket",
        S3_CATALOG_PREFIX="docs/",
        S3_CATALOG_ALLOWED_EXTENSIONS=".pdf,.txt",
        S3_CATALOG_MAX_OBJECT_MB=1,
        S3_CATALOG_PAGE_SIZE=2,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class FakeBody:
    def __init__(self, payload: bytes):
        self._payload = payload

    def read(self) -> bytes:
        return self._payload


class FakeS3Client:
    def __init__(self, body=b"hello", error: Exception | None = None):
        self.calls: list[dict] = []
        self.body = body
        self.error = error

    def list_objects_v2(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
        if len(self.calls) == 1:
            return {
                "IsTruncated": True,
                "NextContinuationToken": "t2",
                "Contents": [
                    {"Key": "docs/b.txt", "Size": 10, "LastModified": modified},
                    {"Key": "docs/folder/", "Size": 0, "LastModified": modified},
                ],
            }
        return {
            "IsTruncated": False,
            "Contents": [
                {"Key": "docs/a.pdf", "Size": 10, "LastModified": modified},
                {"Key": "docs/c.exe", "Size": 10, "LastModified": modified},
                {"Key": "docs/huge.pdf", "Size": 5 * 1024 * 1024, "LastModified": modified},
            ],
        }

    def get_object(self, **kwargs):
        if self.error is not None:
            raise self.error
        return {"Body": FakeBody(self.body)}


def _client_error():
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListObjectsV2")


def test_list_documents_paginates_and_filters_positive(monkeypatch):
    monkeypatch.setattr(module, "_load_settings", lambda: _settings())
    client = FakeS3Client()

    documents = S3CatalogConnector(client=client).list_documents()

    assert [d.id for d in documents] == ["docs/a.pdf", "docs/b.txt"]
    assert documents[0].name == "a.pdf"
    assert documents[0].content_type == "application/pdf"
    assert documents[0].view_url == "s3://bucket/docs/a.pdf"
    assert documents[0].modified_at == "2024-01-01T00:00:00+00:00"
    assert client.calls[0] == {"Bucket": "bucket", "Prefix": "docs/", "MaxKeys": 2}
    assert client.calls[1]["ContinuationToken"] == "t2"


def test_list_documents_client_error_negative(monkeypatch):
    monkeypatch.setattr(module, "_load_settings", lambda: _settings())
    with pytest.raises(SourceListError):
        S3CatalogConnector(client=FakeS3Client(error=_client_error())).list_documents()


def test_fetch_returns_object_bytes_positive(monkeypatch):
    monkeypatch.setattr(module, "_load_settings", lambda: _settings())
    assert S3CatalogConnector(client=FakeS3Client(body=b"# hello")).fetch("docs/a.txt", "text/plain") == b"# hello"


def test_fetch_oversized_object_negative(monkeypatch):
    monkeypatch.setattr(module, "_load_settings", lambda: _settings())
    connector = S3CatalogConnector(client=FakeS3Client(body=b"x" * (2 * 1024 * 1024)))
    assert connector.fetch("docs/big.txt", "text/plain") is None


def test_fetch_client_error_negative(monkeypatch):
    monkeypatch.setattr(module, "_load_settings", lambda: _settings())
    with pytest.raises(SourceFetchError):
        S3CatalogConnector(client=FakeS3Client(error=_client_error())).fetch("docs/a.txt", "text/plain")


def test_is_available_requires_bucket(monkeypatch):
    monkeypatch.setattr(module, "_load_settings", lambda: _settings(S3_CATALOG_BUCKET=""))
    assert S3CatalogConnector().is_available() is False
