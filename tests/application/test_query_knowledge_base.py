"""Tests for the QueryKnowledgeBase use case (retrieve -> filter -> generate -> verify)."""

from collections.abc import Sequence
from dataclasses import dataclass, field

from kb_retrieval.application.dto.query_dto import RAGRequest
from kb_retrieval.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from kb_retrieval.application.services.context_filters import ThresholdFilter
from kb_retrieval.application.use_cases.query_knowledge_base import QueryKnowledgeBase
from kb_retrieval.domain.errors import LLMError, StoreError, ValidationError
from kb_retrieval.domain.models import SearchResult


def r(chunk_id: str, sim: float, content: str, path: str, title: str) -> SearchResult:
    return SearchResult(chunk_id, chunk_id.split("-")[0], content, sim, 0, 0, len(content), title, path)


CONTEXT = [
    r("d1-chunk-0", 0.9, "The chunk size defaults to 800 tokens.", "docs/config.md", "Configuration"),
    r("d2-chunk-0", 0.75, "Overlap keeps sentences intact across chunks.", "docs/chunking.md", "Chunking"),
]


@dataclass
class FakeSearch:
    results: list[SearchResult] = field(default_factory=list)
    error: Exception | None = None
    calls: list[tuple[str, int, float]] = field(default_factory=list)

    def search_with_threshold(self, query: str, limit: int, min_similarity: float) -> list[SearchResult]:
        self.calls.append((query, limit, min_similarity))
        if self.error:
            raise self.error
        return list(self.results)


class FakeLLM(LLMPort):
    def __init__(self, text: str = "I don't know.", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.messages: list[ChatMessage] = []

    def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.2, max_tokens: int = 512
    ) -> LLMResponse:
        self.messages = list(messages)
        if self.fail:
            raise LLMError("502 Bad Gateway")
        return LLMResponse(text=self.text, usage_tokens=123)


@dataclass
class FakeTelemetry:
    counters: list[str] = field(default_factory=list)

    def incr(self, name, tags=None):
        self.counters.append(name)

    def observe(self, name, value, tags=None):
        pass


class TestValidation:
    def test_empty_question(self) -> None:
        uc = QueryKnowledgeBase(FakeSearch(), FakeLLM())

        res = uc.execute(RAGRequest(question="  "))

        assert not res.ok
        assert isinstance(res.error, ValidationError)

    def test_non_positive_top_k(self) -> None:
        res = QueryKnowledgeBase(FakeSearch(), FakeLLM()).execute(RAGRequest("q", top_k=0))

        assert not res.ok
        assert isinstance(res.error, ValidationError)


class TestAnswering:
    def test_answer_with_verified_citations(self) -> None:
        answer = (
            'By default "the chunk size defaults to 800 tokens" '
            "[Source: Configuration](docs/config.md). "
            '"Chunks are compressed with zstd" [Source: Chunking](docs/chunking.md).'
        )
        search = FakeSearch(CONTEXT)
        llm = FakeLLM(answer)
        telemetry = FakeTelemetry()
        uc = QueryKnowledgeBase(search, llm, telemetry=telemetry)

        res = uc.execute(RAGRequest("How big are chunks?", top_k=4, min_similarity=0.3))

        out = res.unwrap()
        assert out.answer == answer
        assert [c.document_path for c in out.citations] == ["docs/config.md"]
        assert len(out.dropped_citations) == 1
        assert out.context_chunks == CONTEXT
        assert out.tokens_used == 123
        assert out.filter_outcome.status == "ok"
        assert search.calls == [("How big are chunks?", 4, 0.3)]
        assert "[1] (document: Configuration" in llm.messages[0].content
        assert llm.messages[1].content.startswith("Question: How big are chunks?")
        assert telemetry.counters == ["kb.citations.dropped"]

    def test_no_results_answers_without_context(self) -> None:
        llm = FakeLLM("General answer.")
        res = QueryKnowledgeBase(FakeSearch([]), llm).execute(RAGRequest("q"))

        assert res.ok
        assert res.value.answer == "General answer."
        assert not res.value.has_context
        assert res.value.citations == []
        assert "Context from the knowledge base" not in llm.messages[0].content

    def test_filter_dropping_everything_answers_without_context(self) -> None:
        uc = QueryKnowledgeBase(FakeSearch(CONTEXT), FakeLLM(), context_filter=ThresholdFilter(0.95))

        res = uc.execute(RAGRequest("q"))

        assert res.ok
        assert res.value.context_chunks == []
        assert res.value.filter_outcome.stats.dropped == 2

    def test_system_prompt_override(self) -> None:
        llm = FakeLLM()
        QueryKnowledgeBase(FakeSearch([]), llm).execute(RAGRequest("q", system_prompt="Answer in German."))

        assert llm.messages[0].content == "Answer in German."


class TestFailures:
    def test_llm_error_is_returned(self) -> None:
        res = QueryKnowledgeBase(FakeSearch(CONTEXT), FakeLLM(fail=True)).execute(RAGRequest("q"))

        assert not res.ok
        assert isinstance(res.error, LLMError)

    def test_store_error_is_returned(self) -> None:
        search = FakeSearch(error=StoreError("qdrant down"))

        res = QueryKnowledgeBase(search, FakeLLM()).execute(RAGRequest("q"))

        assert not res.ok
        assert isinstance(res.error, StoreError)
