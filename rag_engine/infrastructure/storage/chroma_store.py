from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any

from rag_engine.application.ports.knowledge_store_port import KnowledgeStorePort
from rag_engine.domain.errors import StorageError
from rag_engine.domain.models import ChunkMetadata, DocumentChunk, KnowledgeBase

try:  # pragma: no cover - exercised via tests with monkeypatch
    import chromadb
except Exception:  # noqa: BLE001
    chromadb = None

# Knowledge-base records carry no vector; Chroma still wants one per entry.
_KB_PLACEHOLDER_VECTOR = [1.0]


def _chunk_metadata(c: DocumentChunk) -> dict[str, Any]:
    m = c.metadata
    return {
        "source_id": m.source_id,
        "source_name": m.source_name,
        "chunk_index": m.chunk_index,
        "start_char": m.start_char,
        "end_char": m.end_char,
        "created_at": m.created_at.isoformat(),
    }


def _kb_metadata(kb: KnowledgeBase) -> dict[str, Any]:
    return {
        "name": kb.name,
        "description": kb.description,
        "type": kb.type,
        "color": kb.color,
        "total_documents": kb.total_documents,
        "total_chunks": kb.total_chunks,
        "size_bytes": kb.size_bytes,
        "created_at": kb.created_at.isoformat(),
        "updated_at": kb.updated_at.isoformat(),
    }


def _kb_from_metadata(kb_id: str, meta: dict[str, Any]) -> KnowledgeBase:
    return KnowledgeBase(
        id=kb_id,
        name=str(meta["name"]),
        description=str(meta.get("description", "")),
        type=meta.get("type", "custom"),
        color=str(meta.get("color", "")),
        total_documents=int(meta["total_documents"]),
        total_chunks=int(meta["total_chunks"]),
        size_bytes=int(meta["size_bytes"]),
        created_at=datetime.fromisoformat(meta["created_at"]),
        updated_at=datetime.fromisoformat(meta["updated_at"]),
    )


@dataclass
class ChromaKnowledgeStore(KnowledgeStorePort):
    """Persistent knowledge store on a local Chroma database.

    Chunks live in one collection (filtered by ``source_id``), knowledge-base
    records in another. Similarity is computed by the application, so Chroma
    is used as a document store only.
    """

    persist_dir: str = "var/chroma/knowledge"
    chunk_collection: str = "kb_chunks"
    kb_collection: str = "knowledge_bases"
    _client: Any | None = None
    _chunks: Any | None = None
    _kbs: Any | None = None

    def __post_init__(self) -> None:
        if chromadb is None:
            raise StorageError("chromadb not installed.")
        os.makedirs(self.persist_dir, exist_ok=True)
        try:
            self._client = chromadb.PersistentClient(path=self.persist_dir)
            self._ensure_collections()
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Failed to init Chroma at '{self.persist_dir}': {ex}") from ex

    async def _call(self, fn: Any, *args: Any, **kwargs: Any) -> Any:
        """Run a blocking Chroma call on the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    def _ensure_collections(self) -> None:
        assert self._client is not None
        self._chunks = self._client.get_or_create_collection(
            name=self.chunk_collection,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )
        self._kbs = self._client.get_or_create_collection(
            name=self.kb_collection,
            embedding_function=None,
        )

    async def save_knowledge_base(self, kb: KnowledgeBase) -> None:
        try:
            await self._call(
                self._kbs.upsert,
                ids=[kb.id],
                embeddings=[_KB_PLACEHOLDER_VECTOR],
                metadatas=[_kb_metadata(kb)],
                documents=[kb.name],
            )
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Saving knowledge base '{kb.id}' failed: {ex}") from ex

    async def get_knowledge_base(self, kb_id: str) -> KnowledgeBase | None:
        try:
            result = await self._call(self._kbs.get, ids=[kb_id], include=["metadatas"])
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Loading knowledge base '{kb_id}' failed: {ex}") from ex
        ids = result.get("ids") or []
        if not ids:
            return None
        return _kb_from_metadata(str(ids[0]), result["metadatas"][0])

    async def get_all_knowledge_bases(self) -> list[KnowledgeBase]:
        try:
            result = await self._call(self._kbs.get, include=["metadatas"])
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Listing knowledge bases failed: {ex}") from ex
        kbs = [
            _kb_from_metadata(str(kb_id), meta)
            for kb_id, meta in zip(result.get("ids") or [], result.get("metadatas") or [])
        ]
        kbs.sort(key=lambda kb: kb.created_at)
        return kbs

    async def delete_knowledge_base(self, kb_id: str) -> None:
        try:
            await self._call(self._chunks.delete, where={"source_id": kb_id})
            await self._call(self._kbs.delete, ids=[kb_id])
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Deleting knowledge base '{kb_id}' failed: {ex}") from ex

    async def save_chunks(self, chunks: Sequence[DocumentChunk]) -> None:
        if not chunks:
            return
        try:
            await self._call(
                self._chunks.upsert,
                ids=[c.id for c in chunks],
                embeddings=[list(c.embedding) for c in chunks],
                metadatas=[_chunk_metadata(c) for c in chunks],
                documents=[c.content for c in chunks],
            )
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Saving {len(chunks)} chunks failed: {ex}") from ex

    async def get_chunks_by_knowledge_base(self, kb_id: str) -> list[DocumentChunk]:
        try:
            result = await self._call(
                self._chunks.get,
                where={"source_id": kb_id},
                include=["embeddings", "documents", "metadatas"],
            )
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Loading chunks of '{kb_id}' failed: {ex}") from ex

        ids = result.get("ids") or []
        embeddings = result.get("embeddings")
        if embeddings is None:
            embeddings = []
        documents = result.get("documents") or []
        metadatas = result.get("metadatas") or []

        chunks: list[DocumentChunk] = []
        for chunk_id, vec, doc, meta in zip(ids, embeddings, documents, metadatas):
            chunks.append(
                DocumentChunk(
                    id=str(chunk_id),
                    content=str(doc or ""),
                    embedding=tuple(float(x) for x in vec),
                    metadata=ChunkMetadata(
                        source_id=str(meta["source_id"]),
                        source_name=str(meta["source_name"]),
                        chunk_index=int(meta["chunk_index"]),
                        start_char=int(meta["start_char"]),
                        end_char=int(meta["end_char"]),
                        created_at=datetime.fromisoformat(meta["created_at"]),
                    ),
                )
            )
        # Chroma does not guarantee insertion order
        chunks.sort(
            key=lambda c: (c.metadata.created_at, c.metadata.source_name, c.metadata.chunk_index)
        )
        return chunks

    async def clear_all(self) -> None:
        if self._client is None:
            raise StorageError("Chroma client not initialized.")
        try:
            await self._call(self._client.delete_collection, self.chunk_collection)
            await self._call(self._client.delete_collection, self.kb_collection)
            await self._call(self._ensure_collections)
        except Exception as ex:  # noqa: BLE001
            raise StorageError(f"Clearing the knowledge store failed: {ex}") from ex
