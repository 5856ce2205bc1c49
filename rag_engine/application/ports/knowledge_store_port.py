from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from rag_engine.domain.models import DocumentChunk, KnowledgeBase


@runtime_checkable
class KnowledgeStorePort(Protocol):
    """Persistent store for knowledge bases and their chunks.

    Chunks are indexed by their owning knowledge-base id
    (``chunk.metadata.source_id``). Deleting a knowledge base cascades to
    its chunks. Implementations raise ``StorageError`` when unavailable.
    """

    async def save_knowledge_base(self, kb: KnowledgeBase) -> None: ...

    async def get_knowledge_base(self, kb_id: str) -> KnowledgeBase | None: ...

    async def get_all_knowledge_bases(self) -> list[KnowledgeBase]: ...

    async def delete_knowledge_base(self, kb_id: str) -> None: ...

    async def save_chunks(self, chunks: Sequence[DocumentChunk]) -> None: ...

    async def get_chunks_by_knowledge_base(self, kb_id: str) -> list[DocumentChunk]: ...

    async def clear_all(self) -> None: ...
