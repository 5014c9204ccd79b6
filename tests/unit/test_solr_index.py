import httpx

from docbot.index.base import Chunk, SearchRequest
from docbot.index.solr import SolrIndexAdapter, build_select_params, escape_query_chars


class DummyResponse:
    def __init__(self, payload=None):
        self.payload = payload or {}

    def raise_for_status(self):
        return None

    def json(self):
        return self.payload


class DummyClient:
    def __init__(self, responses=None, error: Exception | None = None):
        self.responses = list(responses or [])
        self.error = error
        self.gets: list[tuple[str, dict]] = []
        self.posts: list[tuple[str, dict, object]] = []

    def __enter__(self):
        return self

    def __exit__(self, *_args):
        return False

    def get(self, url, params=None):
        self.gets.append((url, params))
        if self.error is not None:
            raise self.error
        return DummyResponse(self.responses.pop(0) if self.responses else {})

    def post(self, url, params=None, json=None):
        self.posts.append((url, params, json))
        if self.error is not None:
            raise self.error
        return DummyResponse({})


def _install(monkeypatch, recorder: DummyClient) -> SolrIndexAdapter:
    monkeypatch.setattr("httpx.Client", lambda *_args, **_kwargs: recorder)
    return SolrIndexAdapter(core_url="http://solr.local/solr/documents", timeout_seconds=5)


def test_escape_query_chars_positive():
    assert escape_query_chars("C++ (draft)/v1: a&b") == "C\\+\\+ \\(draft\\)\\/v1\\: a\\&b"
    assert escape_query_chars("plain words") == "plain words"


def test_build_select_params_maps_logical_fields_positive():
    params = build_select_params(
        SearchRequest(
            text="leave policy?",
            field_boosts={"title": 50.0, "body": 1.0},
            phrase_boosts={"title": 100, "body": 50},
            phrase_slop=2,
            tie_breaker=0.1,
            minimum_match="2<50% 4<40%",
            rows=20,
            highlight=True,
        )
    )
    assert params["defType"] == "edismax"
    assert params["q"] == "leave policy\\?"
    assert params["qf"] == "doc_name^50 content^1"
    assert params["pf"] == "doc_name^100 content^50"
    assert params["ps"] == 2
    assert params["tie"] == 0.1
    assert params["mm"] == "2<50% 4<40%"
    assert params["fl"] == "*,score"
    assert params["hl.fl"] == "content"
    assert params["hl.snippets"] == 3
    assert "pf2" not in params


def test_query_parses_documents_and_highlights_positive(monkeypatch):
    payload = {
        "response": {
            "numFound": 1,
            "docs": [
                {
                    "id": "doc1_2",
                    "doc_id": "doc1",
                    "doc_name": "Policy.pdf",
                    "doc_source": "google_drive",
                    "doc_type": ["application/pdf"],
                    "url": "https://drive.local/doc1",
                    "content": "Document: Policy.pdf\n\nleave rules",
                    "chunk_index": 2,
                    "score": 3.5,
                }
            ],
        },
        "highlighting": {"doc1_2": {"content": ["<em>leave</em> rules"]}},
    }
    recorder = DummyClient(responses=[payload])
    adapter = _install(monkeypatch, recorder)

    result = adapter.query(SearchRequest(text="leave", field_boosts={"title": 1, "body": 1}))
    assert result.total_found == 1
    hit = result.chunks[0]
    assert hit.chunk.chunk_id == "doc1_2"
    assert hit.chunk.content_type == "application/pdf"
    assert hit.chunk.parent_name == "Policy.pdf"
    assert hit.score == 3.5
    assert hit.highlights == ["<em>leave</em> rules"]
    assert recorder.gets[0][0] == "http://solr.local/solr/documents/select"


def test_query_transport_error_returns_empty_result_negative(monkeypatch):
    adapter = _install(monkeypatch, DummyClient(error=httpx.ConnectError("boom")))
    result = adapter.query(SearchRequest(text="leave", field_boosts={"title": 1}))
    assert result.chunks == []
    assert result.total_found == 0
    assert result.query == "leave"


def test_add_chunks_posts_solr_documents_positive(monkeypatch):
    recorder = DummyClient()
    adapter = _install(monkeypatch, recorder)
    chunk = Chunk(parent_id="doc1", sequence=0, text="body", source_label="s3_catalog", parent_name="a.txt", view_url="s3://b/a.txt")

    assert adapter.add_chunks([chunk]) is True
    url, params, docs = recorder.posts[0]
    assert url.endswith("/update")
    assert params["commit"] == "true"
    assert docs[0]["id"] == "doc1_0"
    assert docs[0]["doc_id"] == "doc1"
    assert docs[0]["doc_name"] == "a.txt"
    assert docs[0]["chunk_index"] == 0


def test_add_chunks_write_error_returns_false_negative(monkeypatch):
    adapter = _install(monkeypatch, DummyClient(error=httpx.ConnectError("down")))
    chunk = Chunk(parent_id="doc1", sequence=0, text="body", source_label="s3_catalog")
    assert adapter.add_chunks([chunk]) is False


def test_all_indexed_parent_ids_reads_facets_positive(monkeypatch):
    payload = {"facet_counts": {"facet_fields": {"doc_id": ["a", 3, "b", 1]}}}
    recorder = DummyClient(responses=[payload])
    adapter = _install(monkeypatch, recorder)

    assert adapter.all_indexed_parent_ids() == {"a", "b"}
    params = recorder.gets[0][1]
    assert params["facet.field"] == "doc_id"
    assert params["facet.limit"] == -1
    assert params["fq"] == "-doc_source:_system_failed_"


def test_mark_failed_writes_marker_documents_positive(monkeypatch):
    recorder = DummyClient()
    adapter = _install(monkeypatch, recorder)
    adapter.mark_failed(["x1"])

    marker = recorder.posts[0][2][0]
    assert marker == {
        "id": "_failed_x1",
        "doc_id": "x1",
        "doc_source": "_system_failed_",
        "doc_name": "Failed Document Marker",
        "content": "This document failed to process",
    }


def test_failed_parent_ids_positive(monkeypatch):
    recorder = DummyClient(
        responses=[
            {"response": {"numFound": 2, "docs": []}},
            {"response": {"numFound": 2, "docs": [{"doc_id": "x1"}, {"doc_id": ["x2"]}]}},
        ]
    )
    adapter = _install(monkeypatch, recorder)
    assert adapter.failed_parent_ids() == {"x1", "x2"}
    assert recorder.gets[1][1]["rows"] == 2


def test_clear_failed_markers_deletes_by_source_positive(monkeypatch):
    recorder = DummyClient()
    adapter = _install(monkeypatch, recorder)
    adapter.clear_failed_markers()
    assert recorder.posts[0][2] == {"delete": {"query": "doc_source:_system_failed_"}}


def test_health_check_and_count(monkeypatch):
    adapter = _install(monkeypatch, DummyClient(responses=[{"response": {"numFound": 9}}, {}]))
    assert adapter.document_count() == 9
    assert adapter.health_check() is True

    broken = _install(monkeypatch, DummyClient(error=httpx.ConnectError("down")))
    assert broken.health_check() is False
    assert broken.document_count() == 0


def test_delete_by_parent_escapes_id_positive(monkeypatch):
    recorder = DummyClient()
    adapter = _install(monkeypatch, recorder)
    assert adapter.delete_by_parent("confluence_1:2") is True
    assert recorder.posts[0][2] == {"delete": {"query": "doc_id:confluence_1\\:2"}}


def test_delete_by_parent_write_error_negative(monkeypatch):
    adapter = _install(monkeypatch, DummyClient(error=httpx.ConnectError("down")))
    assert adapter.delete_by_parent("doc1") is False


def test_commit_posts_commit_command(monkeypatch):
    recorder = DummyClient()
    adapter = _install(monkeypatch, recorder)
    adapter.commit()
    assert recorder.posts[0][2] == {"commit": {}}
