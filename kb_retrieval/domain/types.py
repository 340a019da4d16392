# kb_retrieval/domain/types.py
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)

Vector = tuple[float, ...]  # dimension is fixed by the embedding model, checked at search time
Score = float  # cosine similarity in [-1, 1]

NormalizationStrategy = Literal["range_scale", "l2", "min_max"]
FilterStrategy = Literal["none", "threshold", "reranker", "hybrid"]


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """Outcome of a use case that reports domain errors instead of raising them."""

    ok: bool
    value: T | None = None
    error: E | None = None

    @staticmethod
    def success(v: T) -> "Result[T, E]":
        return Result(ok=True, value=v)

    @staticmethod
    def failure(e: E) -> "Result[T, E]":
        return Result(ok=False, error=e)

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if not self.ok:
            assert self.error is not None
            raise self.error
        return self.value  # type: ignore[return-value]
