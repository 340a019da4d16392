# kb_retrieval/application/dto/query_dto.py
from __future__ import annotations

from dataclasses import dataclass, field

from kb_retrieval.domain.models import (
    Citation,
    CitationValidation,
    DroppedCitation,
    FilterOutcome,
    SearchResult,
)


@dataclass(frozen=True)
class RAGRequest:
    """
    DTO for asking the knowledge base a question.

    - question: user question (non-empty)
    - top_k: number of chunks to retrieve before context filtering
    - min_similarity: retrieval threshold (cosine similarity, [-1, 1])
    - system_prompt: optional override of the default assistant instructions
    """

    question: str
    top_k: int = 5
    min_similarity: float = 0.0
    system_prompt: str | None = None


@dataclass(frozen=True)
class RAGAnswer:
    """Generated answer with verified sources and the context it was built from."""

    question: str
    answer: str
    citations: list[Citation] = field(default_factory=list)
    dropped_citations: list[DroppedCitation] = field(default_factory=list)
    context_chunks: list[SearchResult] = field(default_factory=list)
    filter_outcome: FilterOutcome | None = None
    tokens_used: int | None = None

    @property
    def has_context(self) -> bool:
        return bool(self.context_chunks)

    @property
    def citation_validation(self) -> CitationValidation:
        return CitationValidation(valid=list(self.citations), dropped=list(self.dropped_citations))
