# rag_engine/application/dto/query_dto.py
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from rag_engine.application.ports.llm_port import ChatMessage
from rag_engine.domain.models import SearchResult


@dataclass(frozen=True)
class AnswerRequest:
    """
    DTO for answering a chat turn, optionally grounded in a knowledge base.

    - query: the new user message (non-empty)
    - history: previous conversation messages, oldest first
    - knowledge_base_id: knowledge base to search; None disables retrieval
    - rag_enabled: master switch for retrieval
    - model_id: generation model id, drives capability-based parameters
    - system_prompt: optional instructions replacing the generated template
    """

    query: str
    history: Sequence[ChatMessage] = ()
    knowledge_base_id: str | None = None
    rag_enabled: bool = True
    model_id: str | None = None
    system_prompt: str | None = None


@dataclass(frozen=True)
class RAGAnswer:
    """Generated answer with the analyzed sources and the messages sent."""

    text: str
    sources: tuple[SearchResult, ...]
    messages: tuple[ChatMessage, ...]
    retrieval_error: str | None = None

    @property
    def used_sources(self) -> list[SearchResult]:
        return [s for s in self.sources if s.used_in_response]
