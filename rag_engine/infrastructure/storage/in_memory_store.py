from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from rag_engine.application.ports.knowledge_store_port import KnowledgeStorePort
from rag_engine.domain.models import DocumentChunk, KnowledgeBase


class InMemoryKnowledgeStore(KnowledgeStorePort):
    """Process-local store; chunks are indexed by owning knowledge-base id.

    Suitable for tests and for sessions that do not need persistence.
    """

    def __init__(self) -> None:
        self._kbs: dict[str, KnowledgeBase] = {}
        self._chunks: dict[str, DocumentChunk] = {}
        self._by_kb: dict[str, list[str]] = {}

    async def save_knowledge_base(self, kb: KnowledgeBase) -> None:
        self._kbs[kb.id] = replace(kb, chunks=())

    async def get_knowledge_base(self, kb_id: str) -> KnowledgeBase | None:
        return self._kbs.get(kb_id)

    async def get_all_knowledge_bases(self) -> list[KnowledgeBase]:
        return list(self._kbs.values())

    async def delete_knowledge_base(self, kb_id: str) -> None:
        self._kbs.pop(kb_id, None)
        for chunk_id in self._by_kb.pop(kb_id, []):
            self._chunks.pop(chunk_id, None)

    async def save_chunks(self, chunks: Sequence[DocumentChunk]) -> None:
        for c in chunks:
            if c.id not in self._chunks:
                self._by_kb.setdefault(c.metadata.source_id, []).append(c.id)
            self._chunks[c.id] = c

    async def get_chunks_by_knowledge_base(self, kb_id: str) -> list[DocumentChunk]:
        return [self._chunks[cid] for cid in self._by_kb.get(kb_id, [])]

    async def clear_all(self) -> None:
        self._kbs.clear()
        self._chunks.clear()
        self._by_kb.clear()
