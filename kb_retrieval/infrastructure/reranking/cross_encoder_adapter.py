"""Cross-encoder reranker adapter using sentence-transformers.

Cross-encoders score query/chunk pairs directly, which is more accurate than
bi-encoder similarity and needs no remote LLM.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from importlib import import_module
from typing import Any

from ...application.ports.reranker_port import RerankerPort
from ...domain.errors import RerankError
from ...domain.models import RerankDecision, SearchResult

logger = logging.getLogger(__name__)


class CrossEncoderReranker(RerankerPort):
    """Reranker backed by a sentence-transformers CrossEncoder.

    Recommended models:
    - BAAI/bge-reranker-v2-m3 (multilingual, apply sigmoid)
    - cross-encoder/ms-marco-MiniLM-L-6-v2 (English, fast)

    Args:
        model_name: HuggingFace model identifier
        device: "cpu" or "cuda"
        apply_sigmoid: Map raw logits to [0, 1]
        min_score: Chunks scoring at least this are marked should_use
    """

    _model_cache: dict[str, Any] = {}

    def __init__(
        self,
        model_name: str = "BAAI/bge-reranker-v2-m3",
        device: str = "cpu",
        apply_sigmoid: bool = True,
        min_score: float = 0.5,
    ) -> None:
        self.model_name = model_name
        self.device = device
        self.apply_sigmoid = apply_sigmoid
        self.min_score = min_score
        self._model: Any | None = None

    def _load_model(self) -> Any:
        cache_key = f"{self.model_name}:{self.device}"
        if cache_key in self._model_cache:
            return self._model_cache[cache_key]

        try:
            # Lazy import for testability
            CrossEncoder = import_module("sentence_transformers").CrossEncoder
            model = CrossEncoder(self.model_name, device=self.device)
        except Exception as e:  # noqa: BLE001
            raise RerankError(f"Failed to load cross-encoder model {self.model_name}: {e}") from e
        self._model_cache[cache_key] = model
        return model

    def score(self, query: str, texts: Sequence[str]) -> list[float]:
        """Relevance score per text, in [0, 1] when apply_sigmoid is set."""
        if not texts:
            return []
        if self._model is None:
            self._model = self._load_model()

        try:
            pairs = [(query, t) for t in texts]
            scores = self._model.predict(pairs, convert_to_numpy=True, show_progress_bar=False)
            if self.apply_sigmoid:
                np = import_module("numpy")
                scores = 1.0 / (1.0 + np.exp(-scores))
            return [float(s) for s in scores.tolist()]
        except Exception as e:  # noqa: BLE001
            raise RerankError(f"Cross-encoder scoring failed for query '{query[:50]}': {e}") from e

    def rerank(self, query: str, candidates: Sequence[SearchResult]) -> list[RerankDecision]:
        scores = self.score(query, [c.content for c in candidates])
        decisions = []
        for c, s in zip(candidates, scores, strict=True):
            clamped = min(1.0, max(0.0, s))
            decisions.append(
                RerankDecision(
                    chunk_id=c.chunk_id,
                    score=clamped,
                    should_use=clamped >= self.min_score,
                    reason=f"cross-encoder score {clamped:.3f}",
                )
            )
        logger.debug(
            "Cross-encoder marked %d/%d chunks usable",
            sum(1 for d in decisions if d.should_use),
            len(decisions),
        )
        return decisions
