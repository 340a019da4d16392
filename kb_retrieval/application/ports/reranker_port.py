"""Reranker port for relevance verdicts over retrieved candidates.

Application defines the interface, infrastructure (cross-encoder) and
application services (LLM reranker) provide implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from kb_retrieval.domain.models import RerankDecision, SearchResult


class RerankerPort(ABC):
    """Port for judging which retrieved chunks are worth putting in a prompt."""

    @abstractmethod
    def rerank(self, query: str, candidates: Sequence[SearchResult]) -> list[RerankDecision]:
        """Return relevance decisions for the candidates.

        Args:
            query: User question
            candidates: Retrieved chunks, in retrieval order

        Returns:
            One RerankDecision per judged chunk, score clamped to [0, 1].
            Chunks the reranker did not judge may be missing.

        Raises:
            RerankError: If the reranker is unavailable or its output unusable.
                Callers fall back to threshold filtering.
        """
        ...
