from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any, cast

from rag_engine.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse
from rag_engine.domain.errors import LLMError


@dataclass
class OpenAIChatAdapter(LLMPort):
    """Chat adapter for any OpenAI-compatible server (vLLM, llama.cpp, MLC, ...)."""

    base_url: str  # e.g. "http://localhost:8000/v1"
    api_key: str = "EMPTY"
    model: str = "Qwen2.5-3B-Instruct-q4f16_1-MLC"

    def __post_init__(self) -> None:
        # Defer import of OpenAI to first use to avoid hard dependency in tests
        self._client: Any | None = None

    def _get_client(self) -> Any:
        if self._client is None:
            module = import_module("openai")
            self._client = module.AsyncOpenAI(base_url=self.base_url, api_key=self.api_key)
        return self._client

    @staticmethod
    def _payload(messages: Sequence[ChatMessage]) -> Any:
        return cast(Any, [{"role": m.role, "content": m.content} for m in messages])

    async def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.7, max_tokens: int = 1024
    ) -> LLMResponse:
        try:
            client = self._get_client()
            resp: Any = await client.chat.completions.create(
                model=self.model,
                messages=self._payload(messages),
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

    async def stream(
        self, messages: Sequence[ChatMessage], temperature: float = 0.7, max_tokens: int = 1024
    ) -> AsyncIterator[str]:
        try:
            client = self._get_client()
            events: Any = await client.chat.completions.create(
                model=self.model,
                messages=self._payload(messages),
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            async for event in events:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as ex:  # noqa: BLE001
            raise LLMError(f"LLM streaming failed: {ex}") from ex
