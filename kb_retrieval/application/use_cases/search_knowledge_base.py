# kb_retrieval/application/use_cases/search_knowledge_base.py
from __future__ import annotations

import logging
from dataclasses import replace

from kb_retrieval.application.ports.embedding_port import EmbeddingPort
from kb_retrieval.application.ports.knowledge_store_port import KnowledgeStorePort
from kb_retrieval.application.ports.telemetry_port import TelemetryPort
from kb_retrieval.domain.errors import EmbeddingError, ValidationError
from kb_retrieval.domain.models import SearchResult
from kb_retrieval.domain.services.normalization import normalize
from kb_retrieval.domain.services.ranking import top_k
from kb_retrieval.domain.similarity import cosine_similarities
from kb_retrieval.domain.types import NormalizationStrategy

logger = logging.getLogger(__name__)


class KnowledgeBaseSearch:
    """
    Brute-force semantic search over every stored chunk.

    Embeds the query, applies the same normalization strategy used at indexing
    time, scores all chunks by cosine similarity and returns the ranked head
    enriched with document metadata. O(n) in the number of stored chunks.
    """

    def __init__(
        self,
        embedding: EmbeddingPort,
        store: KnowledgeStorePort,
        normalization: NormalizationStrategy = "range_scale",
        telemetry: TelemetryPort | None = None,
    ) -> None:
        self.embedding = embedding
        self.store = store
        self.normalization = normalization
        self.telemetry = telemetry

    def search(self, query: str, limit: int = 5, min_similarity: float = 0.0) -> list[SearchResult]:
        """Return up to `limit` results with similarity >= min_similarity, best first.

        Raises:
            ValidationError: limit <= 0.
            EmbeddingError: Query embedding failed.
            StoreError: Knowledge store unavailable.
        """
        if limit <= 0:
            raise ValidationError(f"limit must be > 0, got {limit}")
        if not query or not query.strip():
            logger.debug("Blank query, returning no results")
            return []

        if self.telemetry:
            self.telemetry.incr("kb.search.requests")

        query_vector = normalize(self.embedding.embed(query), self.normalization)

        chunks = self.store.get_all_chunks()
        if not chunks:
            logger.warning("Knowledge base is empty, nothing to search")
            return []
        if self.telemetry:
            self.telemetry.observe("kb.search.scanned_chunks", float(len(chunks)))

        comparable = [c for c in chunks if len(c.embedding) == len(query_vector)]
        skipped = len(chunks) - len(comparable)
        similarities = cosine_similarities(query_vector, [c.embedding for c in comparable])
        scored = [
            SearchResult(
                chunk_id=chunk.id,
                document_id=chunk.document_id,
                content=chunk.content,
                similarity=sim,
                chunk_index=chunk.chunk_index,
                start_index=chunk.start_index,
                end_index=chunk.end_index,
            )
            for chunk, sim in zip(comparable, similarities, strict=True)
        ]
        if skipped:
            logger.warning(
                "Skipped %d chunk(s) whose embedding dimension differs from the query (%d); "
                "re-index them with the current embedding model",
                skipped,
                len(query_vector),
            )

        results = [r for r in top_k(scored, limit) if r.similarity >= min_similarity]
        logger.debug(
            "Search scanned %d chunks, returning %d (limit=%d, min_similarity=%.3f)",
            len(chunks),
            len(results),
            limit,
            min_similarity,
        )
        return self._enrich(results)

    def search_with_threshold(
        self, query: str, limit: int = 5, min_similarity: float = 0.0
    ) -> list[SearchResult]:
        """Over-fetch 2x limit, keep those above the threshold, truncate to limit."""
        if limit <= 0:
            raise ValidationError(f"limit must be > 0, got {limit}")
        candidates = self.search(query, limit * 2)
        return [r for r in candidates if r.similarity >= min_similarity][:limit]

    def search_or_empty(
        self, query: str, limit: int = 5, min_similarity: float = 0.0
    ) -> list[SearchResult]:
        """Like search, but an embedding failure yields [] instead of raising."""
        try:
            return self.search(query, limit, min_similarity)
        except EmbeddingError as ex:
            logger.warning("Query embedding failed, returning no results: %s", ex)
            return []

    def _enrich(self, results: list[SearchResult]) -> list[SearchResult]:
        if not results:
            return []
        ids = list(dict.fromkeys(r.document_id for r in results))
        documents = self.store.get_documents_by_ids(ids)
        enriched = []
        for r in results:
            doc = documents.get(r.document_id)
            if doc is None:
                enriched.append(r)
                continue
            enriched.append(replace(r, document_title=doc.title, document_file_path=doc.file_path))
        return enriched
