# rag_engine/domain/models.py
# Domain models must be pure (no I/O, no external libs)
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from .types import Vector

SplitOn = Literal["sentence", "paragraph", "character"]
PromptMode = Literal["strict", "balanced", "rich"]
KnowledgeBaseType = Literal["custom", "predefined"]
QueryType = Literal["search", "question", "analysis", "general"]
QueryComplexity = Literal["simple", "medium", "complex"]


@dataclass(frozen=True)
class ChunkMetadata:
    """Provenance of a chunk inside its knowledge base.

    - source_id:    owning knowledge-base id (secondary index key in the store)
    - source_name:  original document name
    - chunk_index:  0-based position within the source document
    - start_char:   approximate offset into the original document
    - end_char:     approximate end offset (clamped to the document length)
    """

    source_id: str
    source_name: str
    chunk_index: int
    start_char: int
    end_char: int
    created_at: datetime


@dataclass(frozen=True)
class DocumentChunk:
    """Immutable unit of indexed text, created once during document processing."""

    id: str
    content: str
    embedding: Vector
    metadata: ChunkMetadata


@dataclass(frozen=True)
class KnowledgeBase:
    id: str
    name: str
    description: str
    type: KnowledgeBaseType
    color: str
    total_documents: int
    total_chunks: int
    size_bytes: int
    created_at: datetime
    updated_at: datetime
    # Only populated on the in-memory result of a creation call.
    chunks: tuple[DocumentChunk, ...] = ()


@dataclass(frozen=True)
class Citation:
    """Span of a retrieved chunk judged to have been used in a generated answer."""

    text: str
    start_index: int
    end_index: int
    confidence: float


@dataclass(frozen=True)
class SearchResult:
    """A retrieved chunk with its raw similarity and re-ranked relevance.

    ``used_in_response`` and ``citations`` stay ``None`` until citation analysis ran.
    """

    chunk: DocumentChunk
    similarity: float
    relevance: float
    used_in_response: bool | None = None
    citations: tuple[Citation, ...] | None = None


@dataclass(frozen=True)
class ChunkingOptions:
    chunk_size: int = 512
    chunk_overlap: int = 50
    split_on: SplitOn = "sentence"
    min_chunk_size: int = 100
    max_chunk_size: int = 1000


DEFAULT_CHUNKING_OPTIONS = ChunkingOptions()


@dataclass(frozen=True)
class RAGConfig:
    """Retrieval parameters for a single query; built fresh per query."""

    enabled: bool = True
    selected_knowledge_base: str | None = None
    similarity_threshold: float = 0.38
    max_results: int = 4
    use_reranking: bool = True
    context_length: int = 4000


@dataclass(frozen=True)
class ModelCapabilities:
    max_context: int
    max_chunks: int
    prompt_mode: PromptMode


@dataclass(frozen=True)
class QueryAnalysis:
    type: QueryType
    keywords: tuple[str, ...]
    complexity: QueryComplexity


@dataclass(frozen=True)
class EmbeddingModel:
    """Catalog entry for an embedding model (dimension fixed per model)."""

    id: str
    name: str
    repo_id: str
    dimensions: int
    max_tokens: int
    languages: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GenerationModel:
    """Catalog entry for a generation model served by the chat backend."""

    id: str
    name: str
    serving_id: str
    min_ram_gb: int


AVAILABLE_EMBEDDING_MODELS: tuple[EmbeddingModel, ...] = (
    EmbeddingModel(
        id="all-minilm-l6-v2",
        name="all-MiniLM-L6-v2",
        repo_id="sentence-transformers/all-MiniLM-L6-v2",
        dimensions=384,
        max_tokens=256,
        languages=("en", "fr"),
    ),
    EmbeddingModel(
        id="all-minilm-l12-v2",
        name="all-MiniLM-L12-v2",
        repo_id="sentence-transformers/all-MiniLM-L12-v2",
        dimensions=384,
        max_tokens=256,
        languages=("en", "fr"),
    ),
)

AVAILABLE_GENERATION_MODELS: tuple[GenerationModel, ...] = (
    GenerationModel("llama-3.2-1b", "Llama 3.2 1B", "Llama-3.2-1B-Instruct-q4f16_1-MLC", 4),
    GenerationModel("phi-3.5-3.8b", "Phi-3.5 3.8B", "Phi-3.5-mini-instruct-q4f16_1-MLC", 8),
    GenerationModel("qwen2.5-3b", "Qwen 2.5 3B", "Qwen2.5-3B-Instruct-q4f16_1-MLC", 8),
    GenerationModel("llama-3.1-8b", "Llama 3.1 8B", "Llama-3.1-8B-Instruct-q4f16_1-MLC", 12),
)


def find_embedding_model(model_id: str) -> EmbeddingModel | None:
    for m in AVAILABLE_EMBEDDING_MODELS:
        if m.id == model_id:
            return m
    return None


def find_generation_model(model_id: str) -> GenerationModel | None:
    for m in AVAILABLE_GENERATION_MODELS:
        if m.id == model_id:
            return m
    return None
