"""Tests for KnowledgeBaseSearch (brute-force retrieval)."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from kb_retrieval.application.use_cases.search_knowledge_base import KnowledgeBaseSearch
from kb_retrieval.domain.errors import EmbeddingError, StoreError, ValidationError
from kb_retrieval.domain.models import Chunk, Document


@dataclass
class FakeEmbedding:
    vector: list[float] = field(default_factory=lambda: [1.0, 0.0, 0.0])
    fail: bool = False
    calls: list[str] = field(default_factory=list)

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("embedding service down")
        return list(self.vector)

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]


@dataclass
class FakeStore:
    documents: dict[str, Document] = field(default_factory=dict)
    chunks: list[Chunk] = field(default_factory=list)
    fail: bool = False
    fetched_ids: list[list[str]] = field(default_factory=list)

    def get_all_chunks(self) -> list[Chunk]:
        if self.fail:
            raise StoreError("store unavailable")
        return list(self.chunks)

    def get_documents_by_ids(self, ids: Sequence[str]) -> dict[str, Document]:
        self.fetched_ids.append(list(ids))
        return {i: self.documents[i] for i in ids if i in self.documents}


@dataclass
class FakeTelemetry:
    events: list[tuple[str, object]] = field(default_factory=list)

    def incr(self, name, tags=None):
        self.events.append((name, tags))

    def observe(self, name, value, tags=None):
        self.events.append((name, value))


def doc(doc_id: str, path: str) -> Document:
    return Document(doc_id, path, f"Title {doc_id}", "...", datetime(2024, 1, 1, tzinfo=UTC), 3)


def chunk(doc_id: str, idx: int, embedding: tuple[float, ...]) -> Chunk:
    return Chunk(f"{doc_id}-chunk-{idx}", doc_id, f"text {doc_id} {idx}", idx * 10, idx * 10 + 10, 2, idx, embedding)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(
        documents={"d1": doc("d1", "docs/one.md"), "d2": doc("d2", "docs/two.md")},
        chunks=[
            chunk("d1", 0, (1.0, 0.0, 0.0)),  # 1.0
            chunk("d1", 1, (0.8, 0.6, 0.0)),  # 0.8
            chunk("d1", 2, (0.0, 1.0, 0.0)),  # 0.0
            chunk("d2", 0, (0.6, 0.8, 0.0)),  # 0.6
        ],
    )


class TestSearch:
    def test_ranked_and_enriched(self, store) -> None:
        svc = KnowledgeBaseSearch(FakeEmbedding(), store)

        results = svc.search("what is it?", limit=3)

        assert [r.chunk_id for r in results] == ["d1-chunk-0", "d1-chunk-1", "d2-chunk-0"]
        assert [r.similarity for r in results] == pytest.approx([1.0, 0.8, 0.6])
        assert results[2].document_title == "Title d2"
        assert results[2].document_file_path == "docs/two.md"
        # one batch fetch with distinct ids
        assert store.fetched_ids == [["d1", "d2"]]

    def test_min_similarity_applied_after_limit(self, store) -> None:
        svc = KnowledgeBaseSearch(FakeEmbedding(), store)

        results = svc.search("q", limit=5, min_similarity=0.7)

        assert [r.chunk_id for r in results] == ["d1-chunk-0", "d1-chunk-1"]

    def test_blank_query_skips_embedding(self, store) -> None:
        emb = FakeEmbedding()
        svc = KnowledgeBaseSearch(emb, store)

        assert svc.search("   ", limit=3) == []
        assert emb.calls == []

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_rejected(self, store, limit) -> None:
        svc = KnowledgeBaseSearch(FakeEmbedding(), store)

        with pytest.raises(ValidationError):
            svc.search("q", limit=limit)

    def test_empty_store_warns(self, caplog) -> None:
        svc = KnowledgeBaseSearch(FakeEmbedding(), FakeStore())

        with caplog.at_level(logging.WARNING):
            assert svc.search("q", limit=3) == []
        assert "empty" in caplog.text

    def test_mismatched_dimensions_are_skipped(self, store, caplog) -> None:
        store.chunks.append(chunk("d2", 1, (1.0, 0.0)))
        svc = KnowledgeBaseSearch(FakeEmbedding(), store)

        with caplog.at_level(logging.WARNING):
            results = svc.search("q", limit=10)

        assert "d2-chunk-1" not in [r.chunk_id for r in results]
        assert len(results) == 4
        assert "Skipped 1 chunk" in caplog.text

    def test_ties_are_deterministic(self) -> None:
        st = FakeStore(
            chunks=[chunk("b", 1, (1.0, 0.0, 0.0)), chunk("a", 1, (1.0, 0.0, 0.0)), chunk("c", 0, (1.0, 0.0, 0.0))]
        )
        svc = KnowledgeBaseSearch(FakeEmbedding(), st)

        ids = [r.chunk_id for r in svc.search("q", limit=3)]

        assert ids == ["c-chunk-0", "a-chunk-1", "b-chunk-1"]

    @pytest.mark.parametrize("strategy", ["range_scale", "l2", "min_max"])
    def test_results_sorted_under_every_strategy(self, store, strategy) -> None:
        svc = KnowledgeBaseSearch(FakeEmbedding(vector=[0.9, 0.1, 0.2]), store, normalization=strategy)

        sims = [r.similarity for r in svc.search("q", limit=4)]

        assert sims == sorted(sims, reverse=True)

    def test_errors_propagate(self, store) -> None:
        with pytest.raises(EmbeddingError):
            KnowledgeBaseSearch(FakeEmbedding(fail=True), store).search("q", 3)
        store.fail = True
        with pytest.raises(StoreError):
            KnowledgeBaseSearch(FakeEmbedding(), store).search("q", 3)

    def test_telemetry_counts_requests(self, store) -> None:
        telemetry = FakeTelemetry()
        KnowledgeBaseSearch(FakeEmbedding(), store, telemetry=telemetry).search("q", 2)

        assert ("kb.search.requests", None) in telemetry.events
        assert ("kb.search.scanned_chunks", 4.0) in telemetry.events


class TestSearchVariants:
    def test_search_with_threshold(self, store) -> None:
        svc = KnowledgeBaseSearch(FakeEmbedding(), store)

        assert [r.chunk_id for r in svc.search_with_threshold("q", 2, 0.7)] == [
            "d1-chunk-0",
            "d1-chunk-1",
        ]
        assert [r.chunk_id for r in svc.search_with_threshold("q", 1, 0.7)] == ["d1-chunk-0"]
        assert svc.search_with_threshold("q", 3, 0.99)[0].chunk_id == "d1-chunk-0"

    def test_search_or_empty_swallows_embedding_failure(self, store, caplog) -> None:
        svc = KnowledgeBaseSearch(FakeEmbedding(fail=True), store)

        with caplog.at_level(logging.WARNING):
            assert svc.search_or_empty("q", 3) == []
        assert "embedding failed" in caplog.text.lower()
