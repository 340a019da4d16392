from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from kb_retrieval.domain.models import Chunk, Document


@runtime_checkable
class KnowledgeStorePort(Protocol):
    """Persistence contract for documents and their embedded chunks.

    Readers must see either a document's old complete chunk set or its new
    one, never a mix. Adapters raise StoreError on backend failure.
    """

    def get_all_chunks(self) -> list[Chunk]: ...

    def get_documents_by_ids(self, ids: Sequence[str]) -> dict[str, Document]: ...

    def get_document(self, document_id: str) -> Document | None: ...

    def list_documents(self) -> list[Document]: ...

    def save_document(self, document: Document, chunks: Sequence[Chunk]) -> None:
        """Atomically replace the document and its whole chunk set."""
        ...

    def delete_document(self, document_id: str) -> None: ...

    def clear(self) -> None: ...
