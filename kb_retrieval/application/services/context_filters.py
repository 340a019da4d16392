"""Context filters decide which retrieved chunks reach the prompt.

Every filter returns a FilterOutcome. Reranker failures never propagate: the
filter falls back to threshold filtering and reports a degraded outcome. A
reranker whose decisions match none of the candidates counts as failed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from kb_retrieval.application.ports.reranker_port import RerankerPort
from kb_retrieval.application.ports.telemetry_port import TelemetryPort
from kb_retrieval.domain.errors import ConfigurationError, RerankError
from kb_retrieval.domain.models import FilterDecision, FilterOutcome, SearchResult
from kb_retrieval.domain.services.filtering import apply_rerank_decisions, apply_threshold

logger = logging.getLogger(__name__)


class ContextFilter(ABC):
    strategy: str = ""

    def __init__(self, telemetry: TelemetryPort | None = None) -> None:
        self.telemetry = telemetry

    @abstractmethod
    def _apply(self, query: str, candidates: list[SearchResult]) -> FilterOutcome: ...

    def filter(self, query: str, candidates: Sequence[SearchResult]) -> FilterOutcome:
        outcome = self._apply(query, list(candidates))
        s = outcome.stats
        logger.info(
            "Filter %s: %d -> %d chunks (avg similarity %.3f -> %.3f)%s",
            outcome.strategy,
            s.retrieved,
            s.kept,
            s.avg_similarity_before,
            s.avg_similarity_after,
            f", degraded: {outcome.degraded_reason}" if outcome.is_degraded else "",
        )
        if self.telemetry:
            tags = {"strategy": outcome.strategy}
            self.telemetry.observe("kb.filter.kept", float(s.kept), tags)
            if outcome.is_degraded:
                self.telemetry.incr("kb.filter.degraded", tags)
        return outcome


class PassthroughFilter(ContextFilter):
    """Keeps every candidate."""

    strategy = "none"

    def _apply(self, query: str, candidates: list[SearchResult]) -> FilterOutcome:
        decisions = [
            FilterDecision(chunk_id=c.chunk_id, similarity=c.similarity, kept=True, reason="passthrough")
            for c in candidates
        ]
        return FilterOutcome.ok(self.strategy, candidates, list(candidates), decisions)


class ThresholdFilter(ContextFilter):
    """Keeps candidates with similarity >= min_similarity, optionally the top keep_top."""

    strategy = "threshold"

    def __init__(
        self,
        min_similarity: float = 0.0,
        keep_top: int | None = None,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        super().__init__(telemetry)
        if keep_top is not None and keep_top < 0:
            raise ConfigurationError(f"keep_top must be >= 0, got {keep_top}")
        self.min_similarity = min_similarity
        self.keep_top = keep_top

    def _apply(self, query: str, candidates: list[SearchResult]) -> FilterOutcome:
        kept, decisions = apply_threshold(candidates, self.min_similarity, self.keep_top)
        return FilterOutcome.ok(self.strategy, candidates, kept, decisions)


class RerankFilter(ContextFilter):
    """Sends all candidates to a reranker; falls back to `fallback` when it fails."""

    strategy = "reranker"

    def __init__(
        self,
        reranker: RerankerPort,
        fallback: ThresholdFilter,
        max_chunks: int = 6,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        super().__init__(telemetry)
        if max_chunks <= 0:
            raise ConfigurationError(f"max_chunks must be > 0, got {max_chunks}")
        self.reranker = reranker
        self.fallback = fallback
        self.max_chunks = max_chunks

    def _rerank(
        self, query: str, candidates: list[SearchResult]
    ) -> tuple[list[SearchResult], list[FilterDecision]]:
        if not candidates:
            return [], []
        decisions = self.reranker.rerank(query, candidates)
        ids = {c.chunk_id for c in candidates}
        if not any(d.chunk_id in ids for d in decisions):
            raise RerankError("reranker returned no decision for any candidate chunk")
        return apply_rerank_decisions(candidates, decisions, self.max_chunks)

    def _apply(self, query: str, candidates: list[SearchResult]) -> FilterOutcome:
        try:
            kept, decisions = self._rerank(query, candidates)
        except RerankError as ex:
            logger.warning("Reranker failed, falling back to threshold filtering: %s", ex)
            kept, decisions = apply_threshold(
                candidates, self.fallback.min_similarity, self.fallback.keep_top
            )
            return FilterOutcome.degraded(
                self.strategy, candidates, kept, decisions, reason=f"reranker failed: {ex}"
            )
        return FilterOutcome.ok(self.strategy, candidates, kept, decisions)


class HybridFilter(RerankFilter):
    """Threshold first, then the reranker on the survivors only."""

    strategy = "hybrid"

    def _apply(self, query: str, candidates: list[SearchResult]) -> FilterOutcome:
        survivors, threshold_decisions = apply_threshold(
            candidates, self.fallback.min_similarity, self.fallback.keep_top
        )
        try:
            kept, rerank_decisions = self._rerank(query, survivors)
        except RerankError as ex:
            logger.warning("Reranker failed, keeping %d threshold survivors: %s", len(survivors), ex)
            return FilterOutcome.degraded(
                self.strategy,
                candidates,
                survivors,
                threshold_decisions,
                reason=f"reranker failed: {ex}",
            )

        # Reranker verdicts replace the threshold "kept" entries.
        by_id = {d.chunk_id: d for d in rerank_decisions}
        decisions = [by_id.get(d.chunk_id, d) for d in threshold_decisions]
        return FilterOutcome.ok(self.strategy, candidates, kept, decisions)
