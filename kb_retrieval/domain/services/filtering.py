"""Pure post-retrieval filtering rules.

Both functions return the kept results and one FilterDecision per candidate;
every dropped candidate carries a human-readable reason.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..models import FilterDecision, RerankDecision, SearchResult
from .ranking import rank_by_similarity, sort_by_scores_desc


def apply_threshold(
    candidates: Sequence[SearchResult],
    min_similarity: float,
    keep_top: int | None = None,
) -> tuple[list[SearchResult], list[FilterDecision]]:
    """Keep candidates with similarity >= min_similarity, optionally capped at keep_top.

    Kept candidates stay in input order; when keep_top trims, the survivors
    are the keep_top most similar ones (deterministic tie-break).

    Examples:
        similarities [0.9, 0.6, 0.8] with min_similarity=0.7 keep 0.9 then 0.8.
    """
    passed: list[SearchResult] = []
    decisions: dict[str, FilterDecision] = {}
    for c in candidates:
        if c.similarity < min_similarity:
            decisions[c.chunk_id] = FilterDecision(
                chunk_id=c.chunk_id,
                similarity=c.similarity,
                kept=False,
                reason=f"similarity {c.similarity:.3f} below threshold {min_similarity:.3f}",
            )
        else:
            passed.append(c)

    kept = passed
    if keep_top is not None and len(passed) > keep_top:
        top_ids = {r.chunk_id for r in rank_by_similarity(passed)[:keep_top]}
        kept = [r for r in passed if r.chunk_id in top_ids]
        for r in passed:
            if r.chunk_id not in top_ids:
                decisions[r.chunk_id] = FilterDecision(
                    chunk_id=r.chunk_id,
                    similarity=r.similarity,
                    kept=False,
                    reason=f"keep_top limit: only top {keep_top} chunks kept",
                )

    for r in kept:
        decisions[r.chunk_id] = FilterDecision(
            chunk_id=r.chunk_id,
            similarity=r.similarity,
            kept=True,
            reason=f"similarity {r.similarity:.3f} >= threshold {min_similarity:.3f}",
        )
    return kept, [decisions[c.chunk_id] for c in candidates]


def apply_rerank_decisions(
    candidates: Sequence[SearchResult],
    rerank: Sequence[RerankDecision],
    max_chunks: int | None = None,
) -> tuple[list[SearchResult], list[FilterDecision]]:
    """Keep candidates the reranker marked should_use, ordered by rerank score desc.

    Ties keep retrieval order. Candidates the reranker did not mention are
    dropped. The result is capped at max_chunks.
    """
    by_id = {d.chunk_id: d for d in rerank}
    decisions: dict[str, FilterDecision] = {}
    usable: list[SearchResult] = []

    for c in candidates:
        d = by_id.get(c.chunk_id)
        if d is None:
            decisions[c.chunk_id] = FilterDecision(
                chunk_id=c.chunk_id,
                similarity=c.similarity,
                kept=False,
                reason="no reranker decision",
            )
        elif not d.should_use:
            decisions[c.chunk_id] = FilterDecision(
                chunk_id=c.chunk_id,
                similarity=c.similarity,
                kept=False,
                reason=f"reranker marked not relevant (score {d.score:.2f})"
                + (f": {d.reason}" if d.reason else ""),
                rerank_score=d.score,
            )
        else:
            usable.append(c)

    kept: list[SearchResult] = []
    for c in sort_by_scores_desc(usable, [by_id[c.chunk_id].score for c in usable]):
        score = by_id[c.chunk_id].score
        if max_chunks is not None and len(kept) >= max_chunks:
            decisions[c.chunk_id] = FilterDecision(
                chunk_id=c.chunk_id,
                similarity=c.similarity,
                kept=False,
                reason=f"reranker max_chunks limit: only top {max_chunks} chunks kept",
                rerank_score=score,
            )
            continue
        kept.append(c)
        decisions[c.chunk_id] = FilterDecision(
            chunk_id=c.chunk_id,
            similarity=c.similarity,
            kept=True,
            reason=by_id[c.chunk_id].reason or "reranker marked relevant",
            rerank_score=score,
        )

    return kept, [decisions[c.chunk_id] for c in candidates]
