"""Application ports package."""

from kb_retrieval.application.ports.clock_port import ClockPort
from kb_retrieval.application.ports.document_loader_port import DocumentLoaderPort, DocumentPayload
from kb_retrieval.application.ports.embedding_port import EmbeddingPort
from kb_retrieval.application.ports.knowledge_store_port import KnowledgeStorePort
from kb_retrieval.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from kb_retrieval.application.ports.reranker_port import RerankerPort
from kb_retrieval.application.ports.telemetry_port import TelemetryPort

__all__ = [
    "ClockPort",
    "DocumentLoaderPort",
    "DocumentPayload",
    "EmbeddingPort",
    "KnowledgeStorePort",
    "LLMPort",
    "ChatMessage",
    "LLMResponse",
    "RerankerPort",
    "TelemetryPort",
]
