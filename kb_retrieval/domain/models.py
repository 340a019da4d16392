# kb_retrieval/domain/models.py
# Domain models must be pure (no I/O, no external libs)
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal

from .types import Vector


@dataclass(frozen=True)
class Document:
    """
    An indexed source document. Owns its chunks.

    - id:          stable document identifier (reused on re-index of the same path)
    - file_path:   source path as given to the indexer
    - title:       display title (first markdown heading or derived from the path)
    - content:     full text; chunk offsets index into it
    - indexed_at:  UTC timestamp of the last (re-)index
    - chunk_count: number of chunks stored for this document
    """

    id: str
    file_path: str
    title: str
    content: str
    indexed_at: datetime
    chunk_count: int


@dataclass(frozen=True)
class Chunk:
    """
    Immutable span of a document, the unit of retrieval.

    Invariants: content == document.content[start_index:end_index] and
    0 <= start_index < end_index <= len(document.content).
    `embedding` is empty until the indexing pipeline attaches a vector.
    """

    id: str
    document_id: str
    content: str
    start_index: int
    end_index: int
    token_count: int
    chunk_index: int
    embedding: Vector = ()

    def with_embedding(self, embedding: Vector) -> Chunk:
        return replace(self, embedding=tuple(embedding))


def chunk_id_for(document_id: str, chunk_index: int) -> str:
    return f"{document_id}-chunk-{chunk_index}"


@dataclass(frozen=True)
class SearchResult:
    """A scored chunk, optionally enriched with its owning document's metadata."""

    chunk_id: str
    document_id: str
    content: str
    similarity: float
    chunk_index: int
    start_index: int
    end_index: int
    document_title: str | None = None
    document_file_path: str | None = None


@dataclass(frozen=True)
class FilterDecision:
    """Audit entry for one candidate chunk passing through a context filter."""

    chunk_id: str
    similarity: float
    kept: bool
    reason: str
    rerank_score: float | None = None


@dataclass(frozen=True)
class FilterStats:
    retrieved: int
    kept: int
    dropped: int
    avg_similarity_before: float
    avg_similarity_after: float

    @staticmethod
    def of(candidates: list[SearchResult], kept: list[SearchResult]) -> FilterStats:
        def _avg(items: list[SearchResult]) -> float:
            return sum(r.similarity for r in items) / len(items) if items else 0.0

        return FilterStats(
            retrieved=len(candidates),
            kept=len(kept),
            dropped=len(candidates) - len(kept),
            avg_similarity_before=_avg(candidates),
            avg_similarity_after=_avg(kept),
        )


@dataclass(frozen=True)
class FilterOutcome:
    """
    Result of a context filter: either a clean outcome or a degraded one
    (e.g. reranker unavailable, threshold fallback applied). Callers branch on
    `is_degraded` instead of catching exceptions.
    """

    status: Literal["ok", "degraded"]
    strategy: str
    kept: list[SearchResult]
    decisions: list[FilterDecision]
    stats: FilterStats
    degraded_reason: str | None = None

    @property
    def is_degraded(self) -> bool:
        return self.status == "degraded"

    @property
    def dropped(self) -> list[FilterDecision]:
        return [d for d in self.decisions if not d.kept]

    @staticmethod
    def ok(
        strategy: str,
        candidates: list[SearchResult],
        kept: list[SearchResult],
        decisions: list[FilterDecision],
    ) -> FilterOutcome:
        return FilterOutcome(
            status="ok",
            strategy=strategy,
            kept=kept,
            decisions=decisions,
            stats=FilterStats.of(candidates, kept),
        )

    @staticmethod
    def degraded(
        strategy: str,
        candidates: list[SearchResult],
        kept: list[SearchResult],
        decisions: list[FilterDecision],
        reason: str,
    ) -> FilterOutcome:
        return FilterOutcome(
            status="degraded",
            strategy=strategy,
            kept=kept,
            decisions=decisions,
            stats=FilterStats.of(candidates, kept),
            degraded_reason=reason,
        )


@dataclass(frozen=True)
class RerankDecision:
    """Relevance verdict for one chunk from a reranker (score in [0, 1])."""

    chunk_id: str
    score: float
    should_use: bool
    reason: str = ""


@dataclass(frozen=True)
class Citation:
    """A source reference from a generated answer, verified against served context."""

    text: str
    document_path: str
    document_title: str
    chunk_id: str | None = None


@dataclass(frozen=True)
class DroppedCitation:
    text: str
    document_path: str | None
    reason: str


@dataclass(frozen=True)
class CitationValidation:
    valid: list[Citation] = field(default_factory=list)
    dropped: list[DroppedCitation] = field(default_factory=list)


@dataclass(frozen=True)
class CitationMetrics:
    """
    Citation quality over a batch of answers.

    - total_questions:               answers measured
    - questions_with_citations:      answers citing at least one source
    - average_citations_per_answer:  (valid + dropped) citations per answer
    - valid_citations_percentage:    share of citations that verified, 0..100
    - answers_without_hallucinations: answers with >= 2 citations, all valid
    """

    total_questions: int
    questions_with_citations: int
    average_citations_per_answer: float
    valid_citations_percentage: float
    answers_without_hallucinations: int
