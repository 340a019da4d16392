# kb_retrieval/domain/services/ranking.py
# Pure domain services: no I/O, deterministic, no external libraries.
from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from kb_retrieval.domain.models import SearchResult

T = TypeVar("T")


def ranking_key(result: SearchResult) -> tuple[float, int, str]:
    """Sort key: similarity desc, then chunk_index asc, then document_id asc."""
    return (-result.similarity, result.chunk_index, result.document_id)


def rank_by_similarity(results: Sequence[SearchResult]) -> list[SearchResult]:
    """
    Order results by descending similarity with a total, deterministic tie-break.

    Ties are broken by ascending chunk_index and then document_id, so two scans
    over the same store always return the same order.
    """
    return sorted(results, key=ranking_key)


def top_k(results: Sequence[SearchResult], k: int) -> list[SearchResult]:
    """Ranked prefix of length <= k."""
    if k <= 0:
        return []
    return rank_by_similarity(results)[:k]


def sort_by_scores_desc(items: Sequence[T], scores: Sequence[float]) -> list[T]:
    """Stable descending sort of items by parallel scores.

    Equal scores keep their input order, i.e. the retrieval rank.

    Examples:
        >>> sort_by_scores_desc(["a", "b", "c"], [0.2, 0.9, 0.5])
        ['b', 'c', 'a']
    """
    if len(items) != len(scores):
        raise ValueError(f"items ({len(items)}) and scores ({len(scores)}) differ in length")
    pairs = list(zip(scores, items, strict=True))
    pairs.sort(key=lambda p: p[0], reverse=True)
    return [it for _, it in pairs]
