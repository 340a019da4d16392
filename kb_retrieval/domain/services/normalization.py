"""Pure vector normalization strategies for embeddings.

The same strategy must be applied at indexing and at query time; the choice is
process-wide configuration, never per request.

Functions:
- normalize_range_scale: divide by the dimension count (fixed linear rescale)
- normalize_l2: divide by the Euclidean norm (unit length)
- normalize_min_max: map min -> 0, max -> 1
- normalize: dispatch on a NormalizationStrategy name
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from math import sqrt
from typing import get_args

from ..types import NormalizationStrategy

NORMALIZATION_STRATEGIES: tuple[str, ...] = get_args(NormalizationStrategy)


def normalize_range_scale(vector: Sequence[float]) -> list[float]:
    """Divide every component by the vector's dimension.

    Not a unit-length normalization; cosine similarity is unaffected by it.

    Examples:
        >>> normalize_range_scale([2.0, 4.0])
        [1.0, 2.0]
        >>> normalize_range_scale([])
        []
    """
    if not vector:
        return []
    dim = len(vector)
    return [float(x) / dim for x in vector]


def normalize_l2(vector: Sequence[float]) -> list[float]:
    """Scale to unit Euclidean length; a zero vector is returned unchanged.

    Examples:
        >>> normalize_l2([3.0, 4.0])
        [0.6, 0.8]
    """
    magnitude = sqrt(sum(float(x) * float(x) for x in vector))
    if magnitude == 0.0:
        return [float(x) for x in vector]
    return [float(x) / magnitude for x in vector]


def normalize_min_max(vector: Sequence[float]) -> list[float]:
    """Linearly map min -> 0.0 and max -> 1.0; a constant vector maps to zeros.

    Examples:
        >>> normalize_min_max([10.0, 20.0, 30.0])
        [0.0, 0.5, 1.0]
        >>> normalize_min_max([5.0, 5.0])
        [0.0, 0.0]
    """
    if not vector:
        return []
    lo, hi = min(vector), max(vector)
    if hi == lo:
        return [0.0] * len(vector)
    span = hi - lo
    return [(float(x) - lo) / span for x in vector]


_STRATEGIES: dict[str, Callable[[Sequence[float]], list[float]]] = {
    "range_scale": normalize_range_scale,
    "l2": normalize_l2,
    "min_max": normalize_min_max,
}


def normalize(vector: Sequence[float], strategy: NormalizationStrategy) -> list[float]:
    """Apply the named strategy.

    Raises:
        ValueError: Unknown strategy name (settings validate this at startup).
    """
    try:
        fn = _STRATEGIES[strategy]
    except KeyError:
        raise ValueError(f"Unknown normalization strategy '{strategy}'") from None
    return fn(vector)
