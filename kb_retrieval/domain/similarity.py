"""Pure similarity functions.

Brute-force search calls `cosine_similarity` once per stored chunk, so it is
kept dependency-free and total for well-formed input.
"""

from collections.abc import Sequence
from math import sqrt

from .types import Score


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> Score:
    """Compute cosine similarity between two equal-length vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        dot(a, b) / (|a| * |b|), or 0.0 when either vector has zero norm.

    Raises:
        ValueError: If the vectors differ in length (caller bug, not data).
    """
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same size. Got {len(a)} and {len(b)}")
    if not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    na = sqrt(sum(x * x for x in a))
    nb = sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return dot / (na * nb)


def cosine_similarities(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> list[Score]:
    """Score every vector against the query, preserving input order."""
    return [cosine_similarity(query, v) for v in vectors]
