from collections.abc import Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from kb_retrieval.application.ports.embedding_port import EmbeddingPort
from kb_retrieval.domain.errors import EmbeddingError


@dataclass
class OpenAIEmbeddingAdapter(EmbeddingPort):
    """Embeddings from any OpenAI-compatible /v1/embeddings endpoint."""

    base_url: str | None = None  # None -> api.openai.com
    api_key: str = "EMPTY"
    model: str = "text-embedding-3-small"
    timeout_s: float = 30.0

    def __post_init__(self) -> None:
        # Defer import of OpenAI to the first call to avoid hard dependency in tests
        self._client: Any | None = None

    def _get_client(self) -> Any:
        if self._client is None:
            OpenAI = import_module("openai").OpenAI
            self._client = OpenAI(base_url=self.base_url, api_key=self.api_key, timeout=self.timeout_s)
        return self._client

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts or any(not t.strip() for t in texts):
            raise EmbeddingError("cannot embed empty text")
        try:
            resp: Any = self._get_client().embeddings.create(model=self.model, input=list(texts))
            data = sorted(resp.data, key=lambda d: d.index)
            vectors = [list(map(float, d.embedding)) for d in data]
        except Exception as ex:  # noqa: BLE001
            # Translate external errors to domain-specific errors
            raise EmbeddingError(f"Embedding request failed: {ex}") from ex
        if len(vectors) != len(texts) or any(not v for v in vectors):
            raise EmbeddingError(
                f"malformed embedding response: {len(vectors)} vectors for {len(texts)} inputs"
            )
        return vectors

    def embed(self, text: str) -> list[float]:
        return self.embed_texts([text])[0]
