from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(frozen=True)
class LLMResponse:
    text: str
    finish_reason: str = "stop"
    usage_tokens: int | None = None


class LLMPort(Protocol):
    """Generation engine: consumes role-tagged messages, produces text."""

    async def chat(
        self, messages: Sequence[ChatMessage], temperature: float = 0.7, max_tokens: int = 1024
    ) -> LLMResponse: ...

    def stream(
        self, messages: Sequence[ChatMessage], temperature: float = 0.7, max_tokens: int = 1024
    ) -> AsyncIterator[str]:
        """Yield incremental text deltas of the answer."""
        ...
