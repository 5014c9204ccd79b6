import re

from docbot.connectors.base import SourceDocument
from docbot.connectors.registry import ConnectorRegistry
from docbot.index.base import FAILED_MARKER_SOURCE, RetrievedChunk, SearchResult
from docbot.main import build_application

TOKEN_PATTERN = re.compile(r"\w+")

POLICY_TEXT = (
    "Remote work policy. Engineers may work remotely up to three days per week. "
    "Remote work requires manager approval and a secure home network.\n\n"
    "Equipment for remote work is provided by the IT department on request."
)
TRAVEL_TEXT = (
    "Travel expenses policy. Economy class is required for flights under six hours. "
    "Receipts must be submitted within thirty days of the trip."
)


class InMemoryIndex:
    """Term-count scoring over stored chunks, enough to drive retrieval end to end."""

    def __init__(self):
        self.chunks = {}
        self.markers = set()

    def add_chunks(self, chunks):
        for chunk in chunks:
            self.chunks[chunk.chunk_id] = chunk
        return True

    def query(self, request):
        terms = [t.lower() for t in TOKEN_PATTERN.findall(request.text)]
        hits = []
        for chunk in self.chunks.values():
            body = chunk.text.lower()
            score = float(sum(body.count(term) for term in terms))
            if score > 0:
                hits.append(RetrievedChunk(chunk=chunk, score=score))
        hits.sort(key=lambda item: item.score, reverse=True)
        return SearchResult(chunks=hits[: request.rows], total_found=len(hits), elapsed_ms=1, query=request.text)

    def delete_by_parent(self, parent_id):
        self.chunks = {key: c for key, c in self.chunks.items() if c.parent_id != parent_id}
        return True

    def clear_all(self):
        self.chunks.clear()
        self.markers.clear()
        return True

    def all_indexed_parent_ids(self):
        return {chunk.parent_id for chunk in self.chunks.values() if chunk.source_label != FAILED_MARKER_SOURCE}

    def mark_failed(self, document_ids):
        self.markers.update(document_ids)

    def failed_parent_ids(self):
        return set(self.markers)

    def clear_failed_markers(self):
        self.markers.clear()

    def document_count(self):
        return len(self.chunks)

    def health_check(self):
        return True

    def commit(self):
        return None


class FakeConnector:
    def __init__(self, source_label, title_label, documents, contents):
        self.source_label = source_label
        self.title_label = title_label
        self.documents = documents
        self.contents = contents
        self.fetched = []

    def is_available(self):
        return True

    def list_documents(self):
        return list(self.documents)

    def fetch(self, document_id, content_type):
        self.fetched.append(document_id)
        return self.contents.get(document_id)


class FakeGenerator:
    def __init__(self):
        self.context_calls = []

    def is_available(self):
        return True

    def answer_with_context(self, question, chunks):
        self.context_calls.append((question, chunks))
        return f"answer from {chunks[0].chunk.parent_name}"

    def answer_general(self, question):
        return "general answer"


def _build():
    drive = FakeConnector(
        "google_drive",
        "Document",
        documents=[
            SourceDocument(id="d1", name="remote_policy.txt", content_type="text/plain", source_label="google_drive", view_url="https://drive.local/d1"),
            SourceDocument(id="d2", name="broken.pdf", content_type="application/pdf", source_label="google_drive"),
        ],
        contents={"d1": POLICY_TEXT.encode("utf-8"), "d2": b"\x00\x01\x02 not a pdf \xff\xfe" * 5},
    )
    wiki = FakeConnector(
        "confluence",
        "Confluence Page",
        documents=[
            SourceDocument(
                id="confluence_77",
                name="Travel",
                content_type="confluence/page",
                source_label="confluence",
                view_url="https://wiki.local/pages/77",
                inline_content=TRAVEL_TEXT,
            )
        ],
        contents={},
    )
    registry = ConnectorRegistry()
    registry.register(drive)
    registry.register(wiki)
    index = InMemoryIndex()
    generator = FakeGenerator()
    app = build_application(index=index, connectors=registry, generator=generator)
    return app, index, drive, wiki, generator


def test_sync_then_answer_integration():
    app, index, drive, wiki, generator = _build()

    report = app.trigger_sync()

    assert report.sources["google_drive"].processed == 1
    assert report.sources["google_drive"].failed == 1
    assert report.sources["confluence"].processed == 1
    assert wiki.fetched == []
    assert index.markers == {"d2"}
    assert {c.parent_id for c in index.chunks.values()} == {"d1", "confluence_77"}
    assert index.chunks["confluence_77_0"].text.startswith("Confluence Page: Travel\n\n")
    assert index.chunks["d1_0"].text.startswith("Document: remote_policy.txt\n\n")

    answer = app.answer_question("Explain the remote work rules for engineers")

    assert answer == "answer from remote_policy.txt"
    _question, chunks = generator.context_calls[0]
    assert chunks[0].chunk.view_url == "https://drive.local/d1"


def test_second_pass_skips_known_and_failed_integration():
    app, _index, drive, _wiki, _generator = _build()
    app.trigger_sync()
    drive.fetched.clear()

    report = app.trigger_sync()

    assert drive.fetched == []
    assert report.skipped == 3
    assert report.processed == 0


def test_restart_hydrates_from_index_integration():
    app, index, drive, wiki, generator = _build()
    app.trigger_sync()

    registry = ConnectorRegistry()
    registry.register(drive)
    registry.register(wiki)
    restarted = build_application(index=index, connectors=registry, generator=generator)
    restarted.orchestrator.hydrate()
    drive.fetched.clear()

    status = restarted.get_sync_status()
    assert (status.indexed_count, status.failed_count) == (2, 1)
    assert restarted.trigger_sync().processed == 0
    assert drive.fetched == []


def test_reset_failed_and_full_resync_integration():
    app, index, drive, _wiki, _generator = _build()
    app.trigger_sync()

    app.reset_failed_documents()
    drive.fetched.clear()
    report = app.trigger_sync()
    assert drive.fetched == ["d2"]
    assert report.failed == 1

    drive.fetched.clear()
    report = app.force_full_resync()
    assert sorted(drive.fetched) == ["d1", "d2"]
    assert report.processed == 2
    assert app.get_sync_status().indexed_count == 2
