from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from ...domain.errors import DocumentError, DomainError, EmbeddingError, ValidationError
from ...domain.models import Chunk, Document
from ...domain.services.chunking import ChunkingParams, TextChunker
from ...domain.services.citations import normalize_path
from ...domain.services.normalization import normalize
from ...domain.types import NormalizationStrategy
from ..dto.index_dto import IndexingResult
from ..ports.clock_port import ClockPort
from ..ports.document_loader_port import DocumentLoaderPort
from ..ports.embedding_port import EmbeddingPort
from ..ports.knowledge_store_port import KnowledgeStorePort
from ..ports.telemetry_port import TelemetryPort

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md", ".markdown", ".txt")


def title_from_path(path: str) -> str:
    """'docs/getting-started_guide.md' -> 'Getting started guide'."""
    stem = os.path.splitext(os.path.basename(path))[0]
    words = stem.replace("-", " ").replace("_", " ").split()
    return " ".join(words).capitalize() or path


@dataclass
class IndexDocuments:
    """Indexing pipeline: text -> chunks -> embeddings -> normalized vectors -> store."""

    loader: DocumentLoaderPort
    embedding: EmbeddingPort
    store: KnowledgeStorePort
    clock: ClockPort
    chunking: ChunkingParams = field(default_factory=ChunkingParams)
    normalization: NormalizationStrategy = "range_scale"
    telemetry: TelemetryPort | None = None

    def index_text(self, document_id: str, file_path: str, title: str, content: str) -> Document:
        """Chunk, embed and store one document, replacing any previous version.

        Embedding happens before any store write, so a failure leaves the
        previously stored version untouched.

        Raises:
            ValidationError: Empty content.
            EmbeddingError: Any chunk could not be embedded.
            StoreError: The store write failed.
        """
        if not content.strip():
            raise ValidationError(f"Document '{file_path}' is empty.")

        chunks = TextChunker(self.chunking).chunk(content, document_id)
        vectors = self.embedding.embed_texts([c.content for c in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingError(
                f"embedding backend returned {len(vectors)} vectors for {len(chunks)} chunks"
            )

        embedded: list[Chunk] = [
            c.with_embedding(tuple(normalize(v, self.normalization)))
            for c, v in zip(chunks, vectors, strict=True)
        ]
        document = Document(
            id=document_id,
            file_path=file_path,
            title=title,
            content=content,
            indexed_at=self.clock.now(),
            chunk_count=len(embedded),
        )
        self.store.save_document(document, embedded)

        if self.telemetry:
            self.telemetry.observe("kb.index.chunks", float(len(embedded)))
        logger.info("Indexed %s (%s): %d chunks", file_path, document_id, len(embedded))
        return document

    def index_file(self, path: str) -> Document:
        """Load and index a file, reusing the id of a previous index of the same path."""
        payload = self.loader.load(path)
        file_path = payload.source_path or path
        existing = self._find_by_path(file_path)
        document_id = existing.id if existing else str(uuid.uuid4())
        if existing:
            logger.debug("Re-indexing %s under existing id %s", file_path, document_id)
        title = payload.title or title_from_path(file_path)
        return self.index_text(document_id, file_path, title, payload.text)

    def index_directory(
        self, path: str, extensions: Sequence[str] = DEFAULT_EXTENSIONS
    ) -> list[IndexingResult]:
        """Index every matching file below `path`; failures are recorded and skipped.

        Raises:
            DocumentError: `path` is not a directory.
        """
        if not os.path.isdir(path):
            raise DocumentError(f"Not a directory: {path}")

        suffixes = tuple(e.lower() for e in extensions)
        files = sorted(
            os.path.join(root, name)
            for root, _dirs, names in os.walk(path)
            for name in names
            if name.lower().endswith(suffixes)
        )
        logger.info("Indexing %d file(s) from %s", len(files), path)

        results: list[IndexingResult] = []
        for file_path in files:
            try:
                doc = self.index_file(file_path)
            except DomainError as ex:
                logger.warning("Failed to index %s: %s", file_path, ex)
                results.append(IndexingResult(file_path=file_path, success=False, error=str(ex)))
                continue
            results.append(
                IndexingResult(
                    file_path=file_path,
                    success=True,
                    document_id=doc.id,
                    chunk_count=doc.chunk_count,
                )
            )

        failed = sum(1 for r in results if not r.success)
        if failed:
            logger.warning("Indexed %d/%d file(s), %d failed", len(results) - failed, len(results), failed)
        return results

    def delete_document(self, document_id: str) -> None:
        self.store.delete_document(document_id)
        logger.info("Deleted document %s", document_id)

    def reset(self) -> None:
        self.store.clear()
        logger.info("Knowledge base cleared")

    def _find_by_path(self, file_path: str) -> Document | None:
        wanted = normalize_path(file_path)
        for doc in self.store.list_documents():
            if normalize_path(doc.file_path) == wanted:
                return doc
        return None
