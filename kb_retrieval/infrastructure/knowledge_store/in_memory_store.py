from __future__ import annotations

import threading
from collections.abc import Sequence

from kb_retrieval.application.ports.knowledge_store_port import KnowledgeStorePort
from kb_retrieval.domain.models import Chunk, Document


class InMemoryKnowledgeStore(KnowledgeStorePort):
    """Process-local store for tests, demos and small corpora.

    A document and its chunk list are swapped in one step under a lock, so
    readers observe either the old or the new chunk set.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, tuple[Chunk, ...]] = {}

    def get_all_chunks(self) -> list[Chunk]:
        with self._lock:
            snapshot = list(self._chunks.items())
        return [c for _doc_id, chunks in sorted(snapshot, key=lambda kv: kv[0]) for c in chunks]

    def get_documents_by_ids(self, ids: Sequence[str]) -> dict[str, Document]:
        with self._lock:
            return {i: self._documents[i] for i in ids if i in self._documents}

    def get_document(self, document_id: str) -> Document | None:
        with self._lock:
            return self._documents.get(document_id)

    def list_documents(self) -> list[Document]:
        with self._lock:
            docs = list(self._documents.values())
        return sorted(docs, key=lambda d: d.file_path)

    def save_document(self, document: Document, chunks: Sequence[Chunk]) -> None:
        ordered = tuple(sorted(chunks, key=lambda c: c.chunk_index))
        with self._lock:
            self._documents[document.id] = document
            self._chunks[document.id] = ordered

    def delete_document(self, document_id: str) -> None:
        with self._lock:
            self._documents.pop(document_id, None)
            self._chunks.pop(document_id, None)

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._chunks.clear()
