from collections.abc import Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any, cast

from kb_retrieval.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from kb_retrieval.domain.errors import LLMError


@dataclass
class OpenAIChatAdapter(LLMPort):
    """Chat completions against any OpenAI-compatible server (OpenAI, vLLM, Ollama)."""

    base_url: str | None = None  # e.g. "http://localhost:8000/v1"
    api_key: str = "EMPTY"
    model: str = "gpt-4o-mini"
    timeout_s: float = 60.0

    def __post_init__(self) -> None:
        # Defer import of OpenAI to chat() to avoid hard dependency in tests
        self._client: Any | None = None

    def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.2, max_tokens: int = 512
    ) -> LLMResponse:
        try:
            if self._client is None:
                OpenAI = import_module("openai").OpenAI
                self._client = OpenAI(
                    base_url=self.base_url, api_key=self.api_key, timeout=self.timeout_s
                )
            payload: Any = [{"role": m.role, "content": m.content} for m in messages]
            resp: Any = self._client.chat.completions.create(
                model=self.model,
                messages=cast(Any, payload),
                temperature=temperature,
                max_tokens=max_tokens,
            )
            choice = resp.choices[0]
            usage = getattr(resp, "usage", None)
            return LLMResponse(
                text=choice.message.content or "",
                finish_reason=choice.finish_reason or "stop",
                usage_tokens=getattr(usage, "total_tokens", None),
            )
        except Exception as ex:  # noqa: BLE001
            # Translate external errors to domain-specific errors
            raise LLMError(f"LLM communication failed: {ex}") from ex
