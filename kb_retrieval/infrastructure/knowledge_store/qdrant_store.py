"""Qdrant-backed knowledge store.

Two collections: `<name>_chunks` holds chunk vectors and payloads,
`<name>_documents` holds one placeholder-vector point per document.

Re-indexing is made atomic for readers with generations: new chunk points are
written under a fresh generation, then the document record is flipped to it,
then chunks of older generations are deleted. Readers only return chunks whose
generation matches their document record, and rescan when a record changed
while they were paging.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from importlib import import_module
from typing import Any

from kb_retrieval.application.ports.knowledge_store_port import KnowledgeStorePort
from kb_retrieval.domain.errors import StoreError
from kb_retrieval.domain.models import Chunk, Document

logger = logging.getLogger(__name__)

_SCROLL_PAGE = 256


def _point_id(key: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, key))


def _document_from_payload(p: dict[str, Any]) -> Document:
    return Document(
        id=p["document_id"],
        file_path=p["file_path"],
        title=p["title"],
        content=p["content"],
        indexed_at=datetime.fromisoformat(p["indexed_at"]),
        chunk_count=int(p["chunk_count"]),
    )


def _chunk_from_point(point: Any) -> Chunk:
    p = point.payload
    vector = point.vector or ()
    return Chunk(
        id=p["chunk_id"],
        document_id=p["document_id"],
        content=p["content"],
        start_index=int(p["start_index"]),
        end_index=int(p["end_index"]),
        token_count=int(p["token_count"]),
        chunk_index=int(p["chunk_index"]),
        embedding=tuple(float(x) for x in vector),
    )


@dataclass
class QdrantKnowledgeStore(KnowledgeStorePort):
    url: str = "http://localhost:6333"
    api_key: str | None = None
    collection: str = "kb"
    timeout_s: float = 10.0
    read_attempts: int = 3
    _cli: Any | None = field(default=None, init=False, repr=False)
    _models: Any | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        try:
            QdrantClient = import_module("qdrant_client").QdrantClient
            self._models = import_module("qdrant_client.models")
        except ImportError as ex:  # pragma: no cover
            raise StoreError("qdrant-client not available; install runtime deps") from ex
        self._cli = QdrantClient(url=self.url, api_key=self.api_key, timeout=int(self.timeout_s))

    @property
    def chunks_collection(self) -> str:
        return f"{self.collection}_chunks"

    @property
    def documents_collection(self) -> str:
        return f"{self.collection}_documents"

    # ---------- helpers ----------

    def _ensure_collection(self, name: str, dim: int) -> None:
        m = self._models
        if not self._cli.collection_exists(collection_name=name):
            self._cli.create_collection(
                collection_name=name,
                vectors_config=m.VectorParams(size=dim, distance=m.Distance.COSINE),
            )

    def _exists(self, name: str) -> bool:
        return bool(self._cli.collection_exists(collection_name=name))

    def _scroll_all(
        self, name: str, with_vectors: bool = False, scroll_filter: Any | None = None
    ) -> Iterator[Any]:
        offset = None
        while True:
            points, offset = self._cli.scroll(
                collection_name=name,
                scroll_filter=scroll_filter,
                limit=_SCROLL_PAGE,
                offset=offset,
                with_payload=True,
                with_vectors=with_vectors,
            )
            yield from points
            if offset is None:
                break

    def _by_document(self, document_id: str) -> Any:
        m = self._models
        return m.FieldCondition(key="document_id", match=m.MatchValue(value=document_id))

    def _generations(self) -> dict[str, str]:
        if not self._exists(self.documents_collection):
            return {}
        return {
            p.payload["document_id"]: p.payload["generation"]
            for p in self._scroll_all(self.documents_collection)
        }

    # ---------- reads ----------

    def get_all_chunks(self) -> list[Chunk]:
        """Every chunk of the current generation of each document.

        The scroll is not a snapshot: a save or delete landing between pages
        can leave a torn set. The generation map is re-read after the scan and
        the scan repeats while any document it covered has changed.

        Raises:
            StoreError: Backend failure, or documents kept changing for
                `read_attempts` consecutive scans.
        """
        try:
            for attempt in range(1, self.read_attempts + 1):
                generations = self._generations()
                if not generations or not self._exists(self.chunks_collection):
                    return []
                chunks = [
                    _chunk_from_point(p)
                    for p in self._scroll_all(self.chunks_collection, with_vectors=True)
                    if generations.get(p.payload.get("document_id")) == p.payload.get("generation")
                ]
                after = self._generations()
                if all(after.get(doc_id) == gen for doc_id, gen in generations.items()):
                    break
                logger.debug(
                    "Documents changed during chunk scan, retrying (%d/%d)",
                    attempt,
                    self.read_attempts,
                )
            else:
                raise StoreError(
                    f"Documents in '{self.collection}' kept changing during "
                    f"{self.read_attempts} chunk scans"
                )
        except StoreError:
            raise
        except Exception as ex:  # noqa: BLE001
            raise StoreError(f"Failed to read chunks from '{self.chunks_collection}': {ex}") from ex
        chunks.sort(key=lambda c: (c.document_id, c.chunk_index))
        return chunks

    def get_documents_by_ids(self, ids: Sequence[str]) -> dict[str, Document]:
        if not ids:
            return {}
        try:
            if not self._exists(self.documents_collection):
                return {}
            points = self._cli.retrieve(
                collection_name=self.documents_collection,
                ids=[_point_id(i) for i in ids],
                with_payload=True,
                with_vectors=False,
            )
        except Exception as ex:  # noqa: BLE001
            raise StoreError(f"Failed to fetch documents: {ex}") from ex
        docs = [_document_from_payload(p.payload) for p in points]
        return {d.id: d for d in docs}

    def get_document(self, document_id: str) -> Document | None:
        return self.get_documents_by_ids([document_id]).get(document_id)

    def list_documents(self) -> list[Document]:
        try:
            if not self._exists(self.documents_collection):
                return []
            docs = [_document_from_payload(p.payload) for p in self._scroll_all(self.documents_collection)]
        except Exception as ex:  # noqa: BLE001
            raise StoreError(f"Failed to list documents: {ex}") from ex
        return sorted(docs, key=lambda d: d.file_path)

    # ---------- writes ----------

    def save_document(self, document: Document, chunks: Sequence[Chunk]) -> None:
        m = self._models
        generation = uuid.uuid4().hex
        try:
            if chunks:
                self._ensure_collection(self.chunks_collection, len(chunks[0].embedding))
                points = [
                    m.PointStruct(
                        id=_point_id(f"{c.id}@{generation}"),
                        vector=list(c.embedding),
                        payload={
                            "chunk_id": c.id,
                            "document_id": c.document_id,
                            "chunk_index": c.chunk_index,
                            "content": c.content,
                            "start_index": c.start_index,
                            "end_index": c.end_index,
                            "token_count": c.token_count,
                            "generation": generation,
                        },
                    )
                    for c in chunks
                ]
                self._cli.upsert(collection_name=self.chunks_collection, points=points, wait=True)

            # Flip the document record to the new generation.
            self._ensure_collection(self.documents_collection, 1)
            self._cli.upsert(
                collection_name=self.documents_collection,
                points=[
                    m.PointStruct(
                        id=_point_id(document.id),
                        vector=[1.0],
                        payload={
                            "document_id": document.id,
                            "file_path": document.file_path,
                            "title": document.title,
                            "content": document.content,
                            "indexed_at": document.indexed_at.isoformat(),
                            "chunk_count": document.chunk_count,
                            "generation": generation,
                        },
                    )
                ],
                wait=True,
            )

            if self._exists(self.chunks_collection):
                stale = m.Filter(
                    must=[self._by_document(document.id)],
                    must_not=[
                        m.FieldCondition(key="generation", match=m.MatchValue(value=generation))
                    ],
                )
                self._cli.delete(
                    collection_name=self.chunks_collection,
                    points_selector=m.FilterSelector(filter=stale),
                    wait=True,
                )
        except Exception as ex:  # noqa: BLE001
            raise StoreError(f"Failed to save document {document.id}: {ex}") from ex
        logger.debug("Saved document %s generation %s (%d chunks)", document.id, generation, len(chunks))

    def delete_document(self, document_id: str) -> None:
        m = self._models
        try:
            if self._exists(self.documents_collection):
                self._cli.delete(
                    collection_name=self.documents_collection,
                    points_selector=m.PointIdsList(points=[_point_id(document_id)]),
                    wait=True,
                )
            if self._exists(self.chunks_collection):
                self._cli.delete(
                    collection_name=self.chunks_collection,
                    points_selector=m.FilterSelector(
                        filter=m.Filter(must=[self._by_document(document_id)])
                    ),
                    wait=True,
                )
        except Exception as ex:  # noqa: BLE001
            raise StoreError(f"Failed to delete document {document_id}: {ex}") from ex

    def clear(self) -> None:
        try:
            for name in (self.documents_collection, self.chunks_collection):
                if self._exists(name):
                    self._cli.delete_collection(collection_name=name)
        except Exception as ex:  # noqa: BLE001
            raise StoreError(f"Failed to clear collection '{self.collection}': {ex}") from ex
