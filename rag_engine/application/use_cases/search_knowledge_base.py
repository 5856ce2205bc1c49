# rag_engine/application/use_cases/search_knowledge_base.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from rag_engine.application.ports.clock_port import ClockPort
from rag_engine.application.ports.knowledge_store_port import KnowledgeStorePort
from rag_engine.application.services.embedding_provider import EmbeddingProvider
from rag_engine.domain.models import RAGConfig, SearchResult
from rag_engine.domain.services.reranking import rerank
from rag_engine.domain.similarity import find_similar

logger = logging.getLogger(__name__)

# Candidates fetched per requested result, to give the re-ranker room.
OVERFETCH_FACTOR = 2


@dataclass
class SearchKnowledgeBase:
    """
    Exhaustive semantic search over persisted chunks.

    Store and embedding failures propagate unchanged: an empty list always
    means "no match", never "backend unavailable".
    """

    embeddings: EmbeddingProvider
    store: KnowledgeStorePort
    clock: ClockPort

    async def search_in_knowledge_base(
        self, query: str, knowledge_base_id: str, config: RAGConfig
    ) -> list[SearchResult]:
        # 1) Embed query
        q_vec = await self.embeddings.embed(query)

        # 2) Load every chunk of the knowledge base
        chunks = await self.store.get_chunks_by_knowledge_base(knowledge_base_id)
        if not chunks:
            return []

        # 3) Score, threshold, overfetch
        scored = find_similar(
            q_vec,
            [(c.embedding, c) for c in chunks],
            threshold=config.similarity_threshold,
            max_results=config.max_results * OVERFETCH_FACTOR,
        )
        results = [SearchResult(chunk=c, similarity=s, relevance=s) for s, c in scored]

        # 4) Optional heuristic rerank
        if config.use_reranking:
            results = rerank(query, results, self.clock.now())

        final = results[: config.max_results]
        logger.debug(
            "KB %s: %d of %d chunks above %.2f, returning %d",
            knowledge_base_id,
            len(scored),
            len(chunks),
            config.similarity_threshold,
            len(final),
        )
        return final

    async def search_global(self, query: str, config: RAGConfig) -> list[SearchResult]:
        kbs = await self.store.get_all_knowledge_bases()
        if not kbs:
            return []

        merged: list[SearchResult] = []
        for kb in kbs:
            merged.extend(await self.search_in_knowledge_base(query, kb.id, config))

        merged.sort(key=lambda r: r.relevance, reverse=True)
        return merged[: config.max_results]
