"""Tests for the LLM-backed reranker and its response parsing."""

import json
from collections.abc import Sequence

import pytest

from kb_retrieval.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from kb_retrieval.application.services.llm_reranker import (
    CONTENT_PREVIEW_CHARS,
    LLMReranker,
    extract_json_array,
    parse_rerank_response,
)
from kb_retrieval.domain.errors import LLMError, RerankError
from kb_retrieval.domain.models import SearchResult


class FakeLLM(LLMPort):
    def __init__(self, text: str = "[]", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.messages: list[ChatMessage] = []

    def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.2, max_tokens: int = 512
    ) -> LLMResponse:
        self.messages = list(messages)
        if self.fail:
            raise LLMError("connection refused")
        return LLMResponse(text=self.text, usage_tokens=42)


def r(chunk_id: str, content: str = "some content", sim: float = 0.5) -> SearchResult:
    return SearchResult(chunk_id, "d1", content, sim, 0, 0, len(content))


def test_parses_fenced_json() -> None:
    text = """Here you go:
```json
[
  {"chunkId": "a", "relevance": 0.91, "reason": "answers it", "shouldUse": true},
  {"chunkId": "b", "relevance": 1.7, "shouldUse": false}
]
```"""
    decisions = parse_rerank_response(text)

    assert [d.chunk_id for d in decisions] == ["a", "b"]
    assert decisions[0].score == pytest.approx(0.91)
    assert decisions[0].should_use is True
    assert decisions[0].reason == "answers it"
    # relevance is clamped to [0, 1]
    assert decisions[1].score == 1.0
    assert decisions[1].should_use is False


def test_extract_json_array_from_prose() -> None:
    assert extract_json_array('Result: [{"chunkId": "x"}] done') == '[{"chunkId": "x"}]'


@pytest.mark.parametrize("text", ["not json at all", '{"chunkId": "a"}', '[{"relevance": 0.5}]'])
def test_unparseable_response_raises(text) -> None:
    with pytest.raises(RerankError):
        parse_rerank_response(text)


def test_rerank_sends_truncated_chunks() -> None:
    llm = FakeLLM(json.dumps([{"chunkId": "a", "relevance": 0.8, "reason": "ok", "shouldUse": True}]))
    long_content = "x" * 2000

    decisions = LLMReranker(llm).rerank("How are chunks sized?", [r("a", long_content)])

    assert decisions[0].chunk_id == "a"
    assert llm.messages[0].role == "system"
    prompt = llm.messages[1].content
    assert "How are chunks sized?" in prompt
    assert '"chunkId": "a"' in prompt
    assert "x" * CONTENT_PREVIEW_CHARS in prompt
    assert "x" * (CONTENT_PREVIEW_CHARS + 1) not in prompt


def test_llm_failure_becomes_rerank_error() -> None:
    with pytest.raises(RerankError):
        LLMReranker(FakeLLM(fail=True)).rerank("q", [r("a")])


def test_zero_decisions_is_an_error() -> None:
    with pytest.raises(RerankError):
        LLMReranker(FakeLLM("[]")).rerank("q", [r("a")])


def test_no_candidates_no_call() -> None:
    llm = FakeLLM()
    assert LLMReranker(llm).rerank("q", []) == []
    assert llm.messages == []
