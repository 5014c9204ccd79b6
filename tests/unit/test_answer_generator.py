from docbot.index.base import Chunk, RetrievedChunk
from docbot.services.answer_generator import (
    ERROR_PREFIX,
    NOT_CONFIGURED_MESSAGE,
    REFERENCES_HEADER,
    AnswerGenerator,
    build_context,
    build_source_references,
)


def _hit(parent_id: str, text: str = "body", score: float = 1.0, url: str | None = None) -> RetrievedChunk:
    chunk = Chunk(
        parent_id=parent_id,
        sequence=0,
        text=text,
        source_label="google_drive",
        view_url=url if url is not None else f"https://drive.local/{parent_id}",
        parent_name=f"{parent_id}.pdf",
    )
    return RetrievedChunk(chunk=chunk, score=score)


class FakeClient:
    def __init__(self, configured=True, answer="The answer.", error: Exception | None = None):
        self.configured = configured
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []

    def is_configured(self):
        return self.configured

    def generate_text(self, prompt, *, keep_alive=None):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


def test_build_context_truncates_and_formats_score_positive():
    context = build_context([_hit("a", text="x" * 30, score=3.14159)], max_chars=10)

    assert context.startswith("---\nDocument 1:\nTitle: a.pdf\nSource: google_drive\nRelevance Score: 3.14\n")
    assert "\nContent:\n" + "x" * 10 + "...\n---\n\n" in context


def test_build_source_references_dedupes_and_limits_positive():
    hits = [_hit("a"), _hit("a"), _hit("b"), _hit("c", url="")] + [_hit(f"d{i}") for i in range(6)]
    references = build_source_references(hits, limit=5)

    assert references.startswith(REFERENCES_HEADER)
    lines = references[len(REFERENCES_HEADER):].splitlines()
    assert lines == [
        "1. https://drive.local/a",
        "2. https://drive.local/b",
        "3. https://drive.local/d0",
        "4. https://drive.local/d1",
        "5. https://drive.local/d2",
    ]


def test_build_source_references_empty_negative():
    assert build_source_references([], limit=5) == ""


def test_answer_with_context_appends_references_positive():
    client = FakeClient()
    generator = AnswerGenerator(client=client, context_chars=2000, max_references=5)

    answer = generator.answer_with_context("What is the leave policy?", [_hit("a", text="leave rules")])

    assert answer == "The answer." + REFERENCES_HEADER + "1. https://drive.local/a\n"
    assert "**User Question:** What is the leave policy?" in client.prompts[0]
    assert "leave rules" in client.prompts[0]


def test_not_configured_returns_fixed_message_negative():
    client = FakeClient(configured=False)
    generator = AnswerGenerator(client=client, context_chars=2000, max_references=5)

    assert generator.answer_with_context("q", [_hit("a")]) == NOT_CONFIGURED_MESSAGE
    assert generator.answer_general("q") == NOT_CONFIGURED_MESSAGE
    assert client.prompts == []


def test_client_error_becomes_apology_negative():
    generator = AnswerGenerator(client=FakeClient(error=RuntimeError("timeout")), context_chars=2000, max_references=5)

    assert generator.answer_with_context("q", [_hit("a")]) == f"{ERROR_PREFIX}timeout"
    assert generator.answer_general("q") == f"{ERROR_PREFIX}timeout"


def test_answer_general_uses_plain_prompt_positive():
    client = FakeClient(answer="Paris.")
    generator = AnswerGenerator(client=client, context_chars=2000, max_references=5)

    assert generator.answer_general("Capital of France?") == "Paris."
    assert "Question: Capital of France?" in client.prompts[0]
    assert REFERENCES_HEADER not in client.prompts[0]
