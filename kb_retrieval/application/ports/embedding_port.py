from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingPort(Protocol):
    """Turns text into dense vectors.

    Adapters raise EmbeddingError on empty input, transport failure or a
    malformed response. Vectors are returned raw; normalization is applied by
    the caller with the process-wide strategy.
    """

    def embed(self, text: str) -> list[float]: ...

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]: ...
