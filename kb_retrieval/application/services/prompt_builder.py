from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from kb_retrieval.domain.models import SearchResult

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = (
    "You are an assistant that answers questions using the provided context from a knowledge base."
)

CITATION_INSTRUCTIONS = """\
- Answer only from the provided context
- If the context does not contain the answer, say so
- Use concrete details from the context and point out contradictions

Citations are mandatory:
- Back every statement taken from the context with a short verbatim quote and its source
- Format: "exact quote from the context" [Source: document title](document path)
- Copy titles and paths exactly as listed above
- Example: "Chunks overlap by about one hundred tokens" [Source: Indexing guide](docs/indexing.md)
- Cite every document you use"""


@dataclass(frozen=True)
class PromptResult:
    system_prompt: str
    user_message: str


class PromptBuilder:
    """Assembles the system prompt (documents, numbered context, instructions) and user message."""

    def __init__(self, system_message: str = DEFAULT_SYSTEM_MESSAGE) -> None:
        self.system_message = system_message

    def build_with_context(self, question: str, chunks: Sequence[SearchResult]) -> PromptResult:
        if not chunks:
            logger.warning("No chunks provided for context")
            return self.build_without_context(question)

        system_prompt = "\n".join(
            [
                self.system_message,
                "",
                "Available documents:",
                self._documents_list(chunks),
                "",
                "Context from the knowledge base:",
                "",
                self._context_section(chunks),
                "",
                "Instructions:",
                CITATION_INSTRUCTIONS,
            ]
        )
        return PromptResult(system_prompt=system_prompt, user_message=self._user_message(question))

    def build_without_context(self, question: str) -> PromptResult:
        return PromptResult(
            system_prompt=self.system_message, user_message=self._user_message(question)
        )

    @staticmethod
    def _user_message(question: str) -> str:
        return f"Question: {question}\n\nAnswer:"

    @staticmethod
    def _context_section(chunks: Sequence[SearchResult]) -> str:
        blocks = []
        for i, c in enumerate(chunks, start=1):
            path = c.document_file_path or c.document_id
            title = c.document_title or path
            pct = int(c.similarity * 100)
            blocks.append(
                f"[{i}] (document: {title}, path: {path}, similarity: {pct}%)\n{c.content.strip()}"
            )
        return "\n\n".join(blocks)

    @staticmethod
    def _documents_list(chunks: Sequence[SearchResult]) -> str:
        docs: dict[str, str] = {}
        for c in chunks:
            path = c.document_file_path or c.document_id
            docs.setdefault(path, c.document_title or path)
        return "\n".join(f"- {title} -> path: {path}" for path, title in sorted(docs.items()))
