from __future__ import annotations

import logging
import random
import time
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace

from ...domain.errors import EmbeddingError, EmptyChunkResultError, ModelNotLoadedError
from ...domain.models import ChunkingOptions, ChunkMetadata, DocumentChunk, KnowledgeBase
from ...domain.services.chunking import chunk_text, estimate_chunks
from ...domain.services.documents import document_size_bytes, validate_document
from ..dto.ingest_dto import DocumentProgress, KnowledgeBaseProgress, RawDocument, StorageStats
from ..ports.clock_port import ClockPort
from ..ports.knowledge_store_port import KnowledgeStorePort
from ..services.embedding_provider import EmbeddingProvider

logger = logging.getLogger(__name__)

LOCATE_PREFIX_CHARS = 50


def new_knowledge_base_id() -> str:
    return f"custom_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def random_color() -> str:
    return f"hsl({random.randint(0, 359)}, 70%, 50%)"


@dataclass
class _PendingKnowledgeBase:
    id: str
    committed: bool = False


@dataclass
class DocumentProcessor:
    """Turns raw documents into persisted, embedded chunks.

    Documents and chunks are processed one at a time; a chunk whose
    embedding fails is logged and skipped instead of failing the document.
    """

    embeddings: EmbeddingProvider
    store: KnowledgeStorePort
    clock: ClockPort
    options: ChunkingOptions = field(default_factory=ChunkingOptions)

    async def process_document(
        self,
        content: str,
        source_name: str,
        knowledge_base_id: str,
        options: ChunkingOptions | None = None,
        on_progress: DocumentProgress | None = None,
    ) -> list[DocumentChunk]:
        opts = options or self.options
        report = on_progress or (lambda pct, stage: None)

        # 1) Chunking (pure domain)
        report(0, "Chunking text")
        texts = chunk_text(content, opts)
        if not texts:
            raise EmptyChunkResultError(f"No usable chunk produced from '{source_name}'.")

        # 2) Embeddings, chunk by chunk
        report(20, "Generating embeddings")
        created_at = self.clock.now()
        chunks: list[DocumentChunk] = []
        for i, text in enumerate(texts):
            try:
                vector = await self.embeddings.embed(text)
            except ModelNotLoadedError:
                raise
            except EmbeddingError as ex:
                logger.warning("Skipping chunk %d of '%s': %s", i, source_name, ex)
                continue

            # Cleaning can alter whitespace, so the prefix may not be found
            start = max(0, content.find(text[:LOCATE_PREFIX_CHARS]))
            chunks.append(
                DocumentChunk(
                    id=f"{knowledge_base_id}::chunk::{i}::{uuid.uuid4().hex[:8]}",
                    content=text,
                    embedding=vector,
                    metadata=ChunkMetadata(
                        source_id=knowledge_base_id,
                        source_name=source_name,
                        chunk_index=i,
                        start_char=start,
                        end_char=min(len(content), start + len(text)),
                        created_at=created_at,
                    ),
                )
            )
            report(20 + (i + 1) / len(texts) * 70, f"Embedding {i + 1}/{len(texts)}")

        # 3) Persistence in one batch
        report(90, "Saving")
        if chunks:
            await self.store.save_chunks(chunks)
        if len(chunks) < len(texts):
            logger.warning(
                "'%s': %d of %d chunks embedded", source_name, len(chunks), len(texts)
            )

        report(100, "Done")
        return chunks

    async def create_knowledge_base(
        self,
        name: str,
        description: str,
        documents: Sequence[RawDocument],
        options: ChunkingOptions | None = None,
        on_progress: KnowledgeBaseProgress | None = None,
    ) -> KnowledgeBase:
        """Process every document into a new knowledge base.

        Any failure removes whatever was already persisted under the new id
        (best effort) before the error propagates.
        """
        report = on_progress or (lambda pct, stage, detail: None)
        kb_id = new_knowledge_base_id()

        async with self._pending_knowledge_base(kb_id) as pending:
            report(0, "Initializing", None)
            all_chunks: list[DocumentChunk] = []
            total_bytes = 0
            n_docs = len(documents)

            for idx, doc in enumerate(documents):
                doc_base = idx / n_docs * 90
                report(doc_base, f"Document {idx + 1}/{n_docs}", doc.name)

                def doc_progress(pct: float, stage: str, _base=doc_base, _name=doc.name) -> None:
                    report(_base + pct / 100 * (90 / n_docs), stage, _name)

                chunks = await self.process_document(
                    doc.content, doc.name, kb_id, options, doc_progress
                )
                all_chunks.extend(chunks)
                total_bytes += document_size_bytes(doc.content)

            now = self.clock.now()
            kb = KnowledgeBase(
                id=kb_id,
                name=name,
                description=description,
                type="custom",
                color=random_color(),
                total_documents=n_docs,
                total_chunks=len(all_chunks),
                size_bytes=total_bytes,
                created_at=now,
                updated_at=now,
                chunks=tuple(all_chunks),
            )

            report(95, "Saving knowledge base", None)
            await self.store.save_knowledge_base(replace(kb, chunks=()))
            pending.committed = True

        logger.info("Created knowledge base %s with %d chunks", kb_id, kb.total_chunks)
        report(100, "Done", None)
        return kb

    @asynccontextmanager
    async def _pending_knowledge_base(self, kb_id: str) -> AsyncIterator[_PendingKnowledgeBase]:
        pending = _PendingKnowledgeBase(kb_id)
        try:
            yield pending
        finally:
            if not pending.committed:
                await self._discard(kb_id)

    async def _discard(self, kb_id: str) -> None:
        try:
            await self.store.delete_knowledge_base(kb_id)
        except Exception as ex:  # noqa: BLE001
            logger.warning("Cleanup of knowledge base %s failed: %s", kb_id, ex)

    # ----- management -----

    async def delete_knowledge_base(self, kb_id: str) -> None:
        await self.store.delete_knowledge_base(kb_id)

    async def list_knowledge_bases(self) -> list[KnowledgeBase]:
        return await self.store.get_all_knowledge_bases()

    async def get_knowledge_base(self, kb_id: str) -> KnowledgeBase | None:
        return await self.store.get_knowledge_base(kb_id)

    async def storage_stats(self) -> StorageStats:
        kbs = await self.store.get_all_knowledge_bases()
        return StorageStats(
            knowledge_bases=len(kbs),
            chunks=sum(kb.total_chunks for kb in kbs),
            size_bytes=sum(kb.size_bytes for kb in kbs),
        )

    async def clear_all(self) -> None:
        await self.store.clear_all()

    # ----- helpers for upload forms -----

    @staticmethod
    def validate_document(content: str) -> None:
        validate_document(content)

    def estimate_chunks(self, content: str, options: ChunkingOptions | None = None) -> int:
        return estimate_chunks(content, options or self.options)
