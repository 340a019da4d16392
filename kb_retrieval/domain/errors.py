"""Domain errors (typed) for the retrieval engine.

Adapters translate library exceptions into this family so the application
layer never sees infrastructure types.
"""

from dataclasses import dataclass


class DomainError(Exception):
    """Base class for domain-specific errors."""


class ConfigurationError(DomainError):
    """Invalid engine configuration (chunk sizes, strategies). Fatal at startup."""


class ValidationError(DomainError):
    """Invalid request input."""


class EmbeddingError(DomainError):
    """Embedding backend failed, timed out or returned a malformed vector."""


class StoreError(DomainError):
    """Knowledge store failed to read or write."""


class LLMError(DomainError):
    """LLM backend failed or timed out."""


class DocumentError(DomainError):
    """Document loading/parsing failed."""


@dataclass(frozen=True)
class RerankError(DomainError):
    """Reranking call or response parsing failed. Never fatal."""

    detail: str = ""

    def __str__(self) -> str:
        return self.detail
