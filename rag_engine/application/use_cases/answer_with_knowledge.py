# rag_engine/application/use_cases/answer_with_knowledge.py
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace

from rag_engine.application.dto.query_dto import AnswerRequest, RAGAnswer
from rag_engine.application.ports.llm_port import ChatMessage, LLMPort
from rag_engine.application.use_cases.search_knowledge_base import SearchKnowledgeBase
from rag_engine.domain.errors import DomainError, LLMError, ValidationError
from rag_engine.domain.models import SearchResult
from rag_engine.domain.services.citations import analyze_response_citations
from rag_engine.domain.services.prompting import create_rag_prompt
from rag_engine.domain.services.query_analysis import get_adaptive_rag_config
from rag_engine.domain.types import Result

logger = logging.getLogger(__name__)


class AnswerWithKnowledge:
    """
    Application use case for one chat turn:
    adaptive config -> search -> prompt -> generation -> citation analysis.

    Retrieval problems degrade to an ungrounded answer (reported in
    ``RAGAnswer.retrieval_error``); generation problems fail the turn.
    """

    def __init__(
        self,
        search: SearchKnowledgeBase,
        llm: LLMPort,
        rag_history_window: int = 7,
        chat_history_window: int = 10,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> None:
        self.search = search
        self.llm = llm
        self.rag_history_window = rag_history_window
        self.chat_history_window = chat_history_window
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def execute(
        self,
        req: AnswerRequest,
        on_delta: Callable[[str], None] | None = None,
    ) -> Result[RAGAnswer, DomainError]:
        # 1) Validate
        query = req.query.strip()
        if not query:
            return Result.failure(ValidationError("query must not be empty"))

        # 2) Retrieve (optional)
        results: list[SearchResult] = []
        retrieval_error: str | None = None
        if (
            req.rag_enabled
            and req.knowledge_base_id
            and self.search.embeddings.is_model_loaded()
        ):
            config = replace(
                get_adaptive_rag_config(query, req.model_id),
                selected_knowledge_base=req.knowledge_base_id,
            )
            try:
                results = await self.search.search_in_knowledge_base(
                    query, req.knowledge_base_id, config
                )
            except DomainError as ex:
                retrieval_error = str(ex)
                logger.warning("Retrieval failed, answering without documents: %s", ex)
            else:
                logger.info("Found %d relevant chunks for the query", len(results))

        # 3) Messages
        messages = self._build_messages(query, req, results)

        # 4) Generate
        try:
            text = await self._generate(messages, on_delta)
        except LLMError as ex:
            return Result.failure(ex)
        except Exception as ex:  # noqa: BLE001
            return Result.failure(LLMError(f"generation failed: {ex}"))

        # 5) Which sources were actually used
        sources = results
        if results and text:
            sources = analyze_response_citations(text, results)
            used = sum(1 for s in sources if s.used_in_response)
            logger.info("Sources used in answer: %d/%d", used, len(sources))

        return Result.success(
            RAGAnswer(
                text=text,
                sources=tuple(sources),
                messages=tuple(messages),
                retrieval_error=retrieval_error,
            )
        )

    def _build_messages(
        self, query: str, req: AnswerRequest, results: list[SearchResult]
    ) -> list[ChatMessage]:
        user = ChatMessage(role="user", content=query)
        history = list(req.history)

        if not results:
            conversation = [*history, user]
            return conversation[-self.chat_history_window :] if self.chat_history_window else [user]

        # The system message already carries the context and the instructions
        system = ChatMessage(
            role="system",
            content=create_rag_prompt(query, results, req.system_prompt, req.model_id),
        )
        recent = history[-self.rag_history_window :] if self.rag_history_window else []
        return [system, *recent, user]

    async def _generate(
        self, messages: list[ChatMessage], on_delta: Callable[[str], None] | None
    ) -> str:
        if on_delta is None:
            resp = await self.llm.chat(
                messages, temperature=self.temperature, max_tokens=self.max_tokens
            )
            return resp.text

        parts: list[str] = []
        async for delta in self.llm.stream(
            messages, temperature=self.temperature, max_tokens=self.max_tokens
        ):
            parts.append(delta)
            on_delta(delta)
        return "".join(parts)
