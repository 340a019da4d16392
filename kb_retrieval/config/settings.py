"""Application settings with environment-driven configuration.

The only place that reads environment variables. Everything is validated once
at construction, so a bad value fails at startup instead of mid-request.
"""

import os
from dataclasses import dataclass, field
from typing import get_args

from kb_retrieval.domain.errors import ConfigurationError
from kb_retrieval.domain.types import FilterStrategy, NormalizationStrategy

_NORMALIZATION_ALIASES = {
    "rangescale": "range_scale",
    "range_scale": "range_scale",
    "l2": "l2",
    "minmax": "min_max",
    "min_max": "min_max",
}

EMBEDDING_BACKENDS = ("sentence_transformers", "openai")
RERANKER_BACKENDS = ("llm", "cross_encoder")
STORE_BACKENDS = ("memory", "qdrant")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as ex:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from ex


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as ex:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from ex


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    return _env_int(name, raw) if raw else None


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppSettings:
    """Application settings loaded from environment variables.

    All other layers receive settings via dependency injection.

    Raises:
        ConfigurationError: Invalid sizes, unknown strategy/backend names,
            negative caps or timeouts.
    """

    # ===== Chunking =====
    chunk_size_tokens: int = field(default_factory=lambda: _env_int("CHUNK_SIZE_TOKENS", "800"))
    overlap_tokens: int = field(default_factory=lambda: _env_int("OVERLAP_TOKENS", "100"))

    # ===== Retrieval =====
    normalization_strategy: str = field(
        default_factory=lambda: os.getenv("NORMALIZATION_STRATEGY", "range_scale")
    )
    # Supported: "range_scale" (alias "rangeScale") | "l2" | "min_max" (alias "minMax")

    filter_strategy: str = field(
        default_factory=lambda: os.getenv("FILTER_STRATEGY", "threshold").lower()
    )
    # Supported: "none" | "threshold" | "reranker" | "hybrid"

    min_similarity: float = field(default_factory=lambda: _env_float("MIN_SIMILARITY", "0.0"))
    keep_top: int | None = field(default_factory=lambda: _env_optional_int("KEEP_TOP"))

    # ===== Reranker =====
    reranker_backend: str = field(
        default_factory=lambda: os.getenv("RERANKER_BACKEND", "llm").lower()
    )
    reranker_max_chunks: int = field(default_factory=lambda: _env_int("RERANKER_MAX_CHUNKS", "6"))
    reranker_model: str = field(
        default_factory=lambda: os.getenv("RERANKER_MODEL", "BAAI/bge-reranker-v2-m3")
    )
    reranker_min_score: float = field(
        default_factory=lambda: _env_float("RERANKER_MIN_SCORE", "0.5")
    )
    reranker_timeout_s: float = field(
        default_factory=lambda: _env_float("RERANKER_TIMEOUT_S", "180")
    )

    # ===== Embedding =====
    embedding_backend: str = field(
        default_factory=lambda: os.getenv("EMBEDDING_BACKEND", "sentence_transformers").lower()
    )
    embedding_model: str = field(
        default_factory=lambda: os.getenv(
            "EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2"
        )
    )
    embedding_device: str = field(default_factory=lambda: os.getenv("EMBEDDING_DEVICE", "cpu"))
    # Supported: "cpu" | "cuda" | "mps"
    embedding_timeout_s: float = field(
        default_factory=lambda: _env_float("EMBEDDING_TIMEOUT_S", "30")
    )

    # ===== LLM =====
    llm_base_url: str = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL", "http://localhost:8000/v1")
    )
    llm_api_key: str = field(default_factory=lambda: os.getenv("LLM_API_KEY", "EMPTY"))
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"))
    llm_timeout_s: float = field(default_factory=lambda: _env_float("LLM_TIMEOUT_S", "60"))

    # ===== Knowledge store =====
    store_backend: str = field(
        default_factory=lambda: os.getenv("STORE_BACKEND", "memory").lower()
    )
    qdrant_url: str = field(
        default_factory=lambda: os.getenv("QDRANT_URL", "http://localhost:6333")
    )
    qdrant_api_key: str = field(default_factory=lambda: os.getenv("QDRANT_API_KEY", ""))
    qdrant_collection: str = field(default_factory=lambda: os.getenv("QDRANT_COLLECTION", "kb"))
    qdrant_timeout_s: float = field(default_factory=lambda: _env_float("QDRANT_TIMEOUT_S", "10"))

    # ===== Telemetry / logging =====
    telemetry_enabled: bool = field(default_factory=lambda: _env_bool("TELEMETRY_ENABLED", "false"))
    otlp_endpoint: str = field(default_factory=lambda: os.getenv("OTLP_ENDPOINT", ""))
    # Empty string = no OTLP export
    telemetry_environment: str = field(
        default_factory=lambda: os.getenv("TELEMETRY_ENVIRONMENT", "production")
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def __post_init__(self) -> None:
        if self.chunk_size_tokens <= 0:
            raise ConfigurationError(
                f"chunk_size_tokens must be positive, got {self.chunk_size_tokens}"
            )
        if not 0 <= self.overlap_tokens < self.chunk_size_tokens:
            raise ConfigurationError(
                f"overlap_tokens must be in [0, {self.chunk_size_tokens}), got {self.overlap_tokens}"
            )

        strategy = _NORMALIZATION_ALIASES.get(self.normalization_strategy.strip().lower())
        if strategy is None:
            raise ConfigurationError(
                f"Unknown normalization strategy '{self.normalization_strategy}', "
                f"expected one of {get_args(NormalizationStrategy)}"
            )
        object.__setattr__(self, "normalization_strategy", strategy)

        self._check_choice("filter_strategy", get_args(FilterStrategy))
        self._check_choice("reranker_backend", RERANKER_BACKENDS)
        self._check_choice("embedding_backend", EMBEDDING_BACKENDS)
        self._check_choice("store_backend", STORE_BACKENDS)

        if self.keep_top is not None and self.keep_top < 0:
            raise ConfigurationError(f"keep_top must be >= 0, got {self.keep_top}")
        if self.reranker_max_chunks <= 0:
            raise ConfigurationError(
                f"reranker_max_chunks must be > 0, got {self.reranker_max_chunks}"
            )
        if not -1.0 <= self.min_similarity <= 1.0:
            raise ConfigurationError(f"min_similarity must be in [-1, 1], got {self.min_similarity}")
        for name in ("embedding_timeout_s", "llm_timeout_s", "reranker_timeout_s", "qdrant_timeout_s"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be > 0, got {getattr(self, name)}")

    def _check_choice(self, name: str, allowed: tuple[str, ...]) -> None:
        value = getattr(self, name)
        if value not in allowed:
            raise ConfigurationError(f"Unknown {name} '{value}', expected one of {allowed}")
