# kb_retrieval/application/use_cases/query_knowledge_base.py
from __future__ import annotations

import logging

from kb_retrieval.application.dto.query_dto import RAGAnswer, RAGRequest
from kb_retrieval.application.ports.llm_port import LLMPort
from kb_retrieval.application.ports.telemetry_port import TelemetryPort
from kb_retrieval.application.services.context_filters import ContextFilter, PassthroughFilter
from kb_retrieval.application.services.prompt_builder import PromptBuilder, PromptResult
from kb_retrieval.application.use_cases.search_knowledge_base import KnowledgeBaseSearch
from kb_retrieval.domain.errors import DomainError, ValidationError
from kb_retrieval.domain.models import FilterOutcome
from kb_retrieval.domain.services.citations import validate_citations
from kb_retrieval.domain.types import Result

logger = logging.getLogger(__name__)


class QueryKnowledgeBase:
    """
    Application use case answering a question from the knowledge base.

    search (with threshold) -> context filter -> prompt -> LLM -> citation
    validation. Uses only ports; domain errors are returned via Result[T, E].
    """

    def __init__(
        self,
        search: KnowledgeBaseSearch,
        llm: LLMPort,
        context_filter: ContextFilter | None = None,
        prompt_builder: PromptBuilder | None = None,
        telemetry: TelemetryPort | None = None,
    ) -> None:
        self.search = search
        self.llm = llm
        self.context_filter = context_filter or PassthroughFilter()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.telemetry = telemetry

    def execute(self, req: RAGRequest) -> Result[RAGAnswer, DomainError]:
        # 1) Validate
        if not req.question or not req.question.strip():
            return Result.failure(ValidationError("question must not be empty"))
        if req.top_k <= 0:
            return Result.failure(ValidationError("top_k must be > 0"))

        try:
            # 2) Retrieve
            retrieved = self.search.search_with_threshold(
                req.question, req.top_k, req.min_similarity
            )
            if not retrieved:
                logger.info("No chunks above %.3f, answering without context", req.min_similarity)
                return Result.success(self._answer_without_context(req))

            # 3) Filter / rerank
            outcome = self.context_filter.filter(req.question, retrieved)
            if not outcome.kept:
                logger.info("Context filter kept no chunks, answering without context")
                return Result.success(self._answer_without_context(req, outcome=outcome))

            # 4) Generate
            prompt = self._builder(req).build_with_context(req.question, outcome.kept)
            text, tokens = self._generate(prompt)
        except DomainError as ex:
            logger.warning("Query failed: %s", ex)
            return Result.failure(ex)

        # 5) Keep only citations backed by the served context
        validation = validate_citations(text, outcome.kept)
        if validation.dropped:
            logger.info("Dropped %d unverifiable citation(s)", len(validation.dropped))
            if self.telemetry:
                self.telemetry.incr("kb.citations.dropped", {"count": len(validation.dropped)})

        return Result.success(
            RAGAnswer(
                question=req.question,
                answer=text,
                citations=validation.valid,
                dropped_citations=validation.dropped,
                context_chunks=outcome.kept,
                filter_outcome=outcome,
                tokens_used=tokens,
            )
        )

    def _builder(self, req: RAGRequest) -> PromptBuilder:
        if req.system_prompt:
            return PromptBuilder(system_message=req.system_prompt)
        return self.prompt_builder

    def _answer_without_context(
        self, req: RAGRequest, outcome: FilterOutcome | None = None
    ) -> RAGAnswer:
        prompt = self._builder(req).build_without_context(req.question)
        text, tokens = self._generate(prompt)
        return RAGAnswer(
            question=req.question,
            answer=text,
            filter_outcome=outcome,
            tokens_used=tokens,
        )

    def _generate(self, prompt: PromptResult) -> tuple[str, int | None]:
        resp = self.llm.generate_text(prompt.user_message, system_prompt=prompt.system_prompt)
        return resp.text, resp.usage_tokens
