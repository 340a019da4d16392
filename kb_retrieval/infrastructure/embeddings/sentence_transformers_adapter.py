from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from kb_retrieval.application.ports.embedding_port import EmbeddingPort
from kb_retrieval.domain.errors import EmbeddingError


@dataclass
class SentenceTransformersEmbeddingAdapter(EmbeddingPort):
    """Local embeddings with a sentence-transformers bi-encoder.

    Vectors are returned raw; the configured normalization strategy is applied
    by the indexing and search use cases.
    """

    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    device: str = "cpu"  # "cuda" if available
    batch_size: int = 32

    def __post_init__(self) -> None:
        self._model: Any | None = None

    def _get(self) -> Any:
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer  # type: ignore
            except ImportError as ex:  # pragma: no cover
                raise EmbeddingError("sentence-transformers not installed") from ex
            try:
                self._model = SentenceTransformer(self.model_name, device=self.device)
            except Exception as ex:  # noqa: BLE001
                raise EmbeddingError(f"Failed to load model {self.model_name}: {ex}") from ex
        return self._model

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts or any(not t.strip() for t in texts):
            raise EmbeddingError("cannot embed empty text")
        model = self._get()
        try:
            vectors = model.encode(
                list(texts),
                batch_size=self.batch_size,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as ex:  # noqa: BLE001
            raise EmbeddingError(f"Embedding failed: {ex}") from ex
        return [v.tolist() for v in vectors]

    def embed(self, text: str) -> list[float]:
        return self.embed_texts([text])[0]
