"""Composition root: builds adapters from settings and wires them into use cases."""

from kb_retrieval.application.ports.clock_port import ClockPort
from kb_retrieval.application.ports.embedding_port import EmbeddingPort
from kb_retrieval.application.ports.knowledge_store_port import KnowledgeStorePort
from kb_retrieval.application.ports.llm_port import LLMPort
from kb_retrieval.application.ports.reranker_port import RerankerPort
from kb_retrieval.application.ports.telemetry_port import TelemetryPort
from kb_retrieval.application.services.context_filters import (
    ContextFilter,
    HybridFilter,
    PassthroughFilter,
    RerankFilter,
    ThresholdFilter,
)
from kb_retrieval.application.services.llm_reranker import LLMReranker
from kb_retrieval.application.use_cases.index_documents import IndexDocuments
from kb_retrieval.application.use_cases.query_knowledge_base import QueryKnowledgeBase
from kb_retrieval.application.use_cases.search_knowledge_base import KnowledgeBaseSearch
from kb_retrieval.config.settings import AppSettings
from kb_retrieval.domain.services.chunking import ChunkingParams
from kb_retrieval.infrastructure.embeddings.openai_embedding_adapter import OpenAIEmbeddingAdapter
from kb_retrieval.infrastructure.embeddings.sentence_transformers_adapter import (
    SentenceTransformersEmbeddingAdapter,
)
from kb_retrieval.infrastructure.knowledge_store.in_memory_store import InMemoryKnowledgeStore
from kb_retrieval.infrastructure.knowledge_store.qdrant_store import QdrantKnowledgeStore
from kb_retrieval.infrastructure.llm.openai_chat_adapter import OpenAIChatAdapter
from kb_retrieval.infrastructure.parsing.document_loaders import FileDocumentLoader
from kb_retrieval.infrastructure.reranking.cross_encoder_adapter import CrossEncoderReranker
from kb_retrieval.infrastructure.telemetry.otel_adapter import (
    NoopTelemetry,
    OpenTelemetryAdapter,
    OtelConfig,
)
from kb_retrieval.infrastructure.time.system_clock import SystemClock


def build_embedding(settings: AppSettings) -> EmbeddingPort:
    if settings.embedding_backend == "openai":
        return OpenAIEmbeddingAdapter(
            base_url=settings.llm_base_url or None,
            api_key=settings.llm_api_key,
            model=settings.embedding_model,
            timeout_s=settings.embedding_timeout_s,
        )
    return SentenceTransformersEmbeddingAdapter(
        model_name=settings.embedding_model,
        device=settings.embedding_device,
    )


def build_llm(settings: AppSettings, timeout_s: float | None = None) -> LLMPort:
    return OpenAIChatAdapter(
        base_url=settings.llm_base_url or None,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        timeout_s=timeout_s if timeout_s is not None else settings.llm_timeout_s,
    )


def build_knowledge_store(settings: AppSettings) -> KnowledgeStorePort:
    if settings.store_backend == "qdrant":
        return QdrantKnowledgeStore(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key or None,
            collection=settings.qdrant_collection,
            timeout_s=settings.qdrant_timeout_s,
        )
    return InMemoryKnowledgeStore()


def build_clock() -> ClockPort:
    return SystemClock()


def build_telemetry(settings: AppSettings) -> TelemetryPort:
    if not settings.telemetry_enabled:
        return NoopTelemetry()
    return OpenTelemetryAdapter(
        OtelConfig(
            otlp_endpoint=settings.otlp_endpoint or None,
            environment=settings.telemetry_environment,
        )
    )


def build_reranker(settings: AppSettings) -> RerankerPort:
    """LLM judge (default) or a local cross-encoder, per RERANKER_BACKEND."""
    if settings.reranker_backend == "cross_encoder":
        return CrossEncoderReranker(
            model_name=settings.reranker_model,
            device=settings.embedding_device,
            min_score=settings.reranker_min_score,
        )
    return LLMReranker(llm=build_llm(settings, timeout_s=settings.reranker_timeout_s))


def build_context_filter(
    settings: AppSettings,
    reranker: RerankerPort | None = None,
    telemetry: TelemetryPort | None = None,
) -> ContextFilter:
    strategy = settings.filter_strategy
    if strategy == "none":
        return PassthroughFilter(telemetry=telemetry)

    threshold = ThresholdFilter(
        min_similarity=settings.min_similarity,
        keep_top=settings.keep_top,
        telemetry=telemetry,
    )
    if strategy == "threshold":
        return threshold

    cls = HybridFilter if strategy == "hybrid" else RerankFilter
    return cls(
        reranker=reranker or build_reranker(settings),
        fallback=threshold,
        max_chunks=settings.reranker_max_chunks,
        telemetry=telemetry,
    )


def build_search_service(
    settings: AppSettings,
    store: KnowledgeStorePort | None = None,
    embedding: EmbeddingPort | None = None,
    telemetry: TelemetryPort | None = None,
) -> KnowledgeBaseSearch:
    return KnowledgeBaseSearch(
        embedding=embedding or build_embedding(settings),
        store=store or build_knowledge_store(settings),
        normalization=settings.normalization_strategy,  # type: ignore[arg-type]
        telemetry=telemetry,
    )


def build_index_use_case(
    settings: AppSettings | None = None,
    store: KnowledgeStorePort | None = None,
    embedding: EmbeddingPort | None = None,
    telemetry: TelemetryPort | None = None,
) -> IndexDocuments:
    settings = settings or AppSettings()
    return IndexDocuments(
        loader=FileDocumentLoader(),
        embedding=embedding or build_embedding(settings),
        store=store or build_knowledge_store(settings),
        clock=build_clock(),
        chunking=ChunkingParams(
            chunk_size_tokens=settings.chunk_size_tokens,
            overlap_tokens=settings.overlap_tokens,
        ),
        normalization=settings.normalization_strategy,  # type: ignore[arg-type]
        telemetry=telemetry,
    )


def build_query_use_case(
    settings: AppSettings | None = None,
    store: KnowledgeStorePort | None = None,
    embedding: EmbeddingPort | None = None,
    llm: LLMPort | None = None,
    telemetry: TelemetryPort | None = None,
) -> QueryKnowledgeBase:
    """Wire search, context filter and LLM.

    Pass the same `store` (and `embedding`) used for indexing when the store
    backend is in-memory, otherwise the two use cases see different stores.
    """
    settings = settings or AppSettings()
    telemetry = telemetry or build_telemetry(settings)
    return QueryKnowledgeBase(
        search=build_search_service(settings, store=store, embedding=embedding, telemetry=telemetry),
        llm=llm or build_llm(settings),
        context_filter=build_context_filter(settings, telemetry=telemetry),
        telemetry=telemetry,
    )
