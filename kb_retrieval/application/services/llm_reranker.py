"""LLM-backed reranker: asks a chat model to judge each retrieved chunk.

The model answers with a JSON array of
``{"chunkId": ..., "relevance": 0..1, "reason": ..., "shouldUse": bool}``.
The answer is validated with pydantic; anything unusable raises RerankError
so the context filter can fall back to threshold filtering.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from kb_retrieval.application.ports.llm_port import ChatMessage, LLMPort
from kb_retrieval.application.ports.reranker_port import RerankerPort
from kb_retrieval.domain.errors import LLMError, RerankError
from kb_retrieval.domain.models import RerankDecision, SearchResult

logger = logging.getLogger(__name__)

DEFAULT_RERANKER_SYSTEM_PROMPT = (
    "You are a relevance judge for a retrieval system. For every context chunk "
    "decide how useful it is for answering the user's question. Reply with a "
    "JSON array only, no prose."
)
CONTENT_PREVIEW_CHARS = 500

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class _RerankItem(BaseModel):
    """One element of the reranker's JSON answer."""

    model_config = ConfigDict(extra="ignore")

    chunk_id: str = Field(alias="chunkId")
    relevance: float = 0.0
    reason: str = ""
    should_use: bool = Field(default=False, alias="shouldUse")

    @field_validator("relevance")
    @classmethod
    def _clamp(cls, v: float) -> float:
        return min(1.0, max(0.0, v))


_ITEMS = TypeAdapter(list[_RerankItem])


def extract_json_array(text: str) -> str:
    """Strip markdown fences and surrounding prose, returning the `[...]` part."""
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1)
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return text.strip()
    return text[start : end + 1]


def parse_rerank_response(text: str) -> list[RerankDecision]:
    """Parse the model's answer into decisions.

    Raises:
        RerankError: Not a JSON array of decision objects.
    """
    try:
        items = _ITEMS.validate_json(extract_json_array(text))
    except ValidationError as ex:
        raise RerankError(f"unparseable reranker response: {ex.error_count()} error(s)") from ex
    return [
        RerankDecision(
            chunk_id=i.chunk_id, score=i.relevance, should_use=i.should_use, reason=i.reason
        )
        for i in items
    ]


class LLMReranker(RerankerPort):
    """Reranker that delegates relevance judgement to a chat model via LLMPort."""

    def __init__(
        self,
        llm: LLMPort,
        system_prompt: str = DEFAULT_RERANKER_SYSTEM_PROMPT,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> None:
        self.llm = llm
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_prompt(self, query: str, candidates: Sequence[SearchResult]) -> str:
        chunks = [
            {
                "chunkId": c.chunk_id,
                "content": c.content[:CONTENT_PREVIEW_CHARS],
                "similarity": round(c.similarity, 4),
            }
            for c in candidates
        ]
        return (
            f"User question: {json.dumps(query, ensure_ascii=False)}\n\n"
            "Rate the relevance of every chunk to the question. Return a JSON array:\n"
            '[{"chunkId": "<id>", "relevance": 0.85, "reason": "<short reason>", '
            '"shouldUse": true}, ...]\n'
            "relevance is a number from 0 to 1; shouldUse says whether the chunk "
            "belongs in the answer context.\n\n"
            f"Chunks:\n{json.dumps(chunks, ensure_ascii=False, indent=2)}"
        )

    def rerank(self, query: str, candidates: Sequence[SearchResult]) -> list[RerankDecision]:
        if not candidates:
            return []

        messages = [
            ChatMessage(role="system", content=self.system_prompt),
            ChatMessage(role="user", content=self.build_prompt(query, candidates)),
        ]
        try:
            response = self.llm.chat(
                messages, temperature=self.temperature, max_tokens=self.max_tokens
            )
        except LLMError as ex:
            raise RerankError(f"reranker LLM unavailable: {ex}") from ex

        decisions = parse_rerank_response(response.text)
        if not decisions:
            raise RerankError("reranker returned no decisions")

        logger.info(
            "Reranker judged %d/%d chunks, should_use=%d%s",
            len(decisions),
            len(candidates),
            sum(1 for d in decisions if d.should_use),
            f", tokens={response.usage_tokens}" if response.usage_tokens is not None else "",
        )
        return decisions
