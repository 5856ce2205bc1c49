"""Composition root: the only place that instantiates concrete adapters.

Every ``build_*`` call returns fresh objects; there are no module-level
singletons, so tests and applications own their service graph explicitly.
"""

from dataclasses import dataclass

from rag_engine.application.ports.clock_port import ClockPort
from rag_engine.application.ports.embedding_port import EmbeddingRuntimePort
from rag_engine.application.ports.knowledge_store_port import KnowledgeStorePort
from rag_engine.application.ports.llm_port import LLMPort
from rag_engine.application.services.embedding_provider import EmbeddingProvider
from rag_engine.application.use_cases.answer_with_knowledge import AnswerWithKnowledge
from rag_engine.application.use_cases.ingest_documents import DocumentProcessor
from rag_engine.application.use_cases.search_knowledge_base import SearchKnowledgeBase
from rag_engine.config.settings import AppSettings
from rag_engine.domain.models import (
    EmbeddingModel,
    find_embedding_model,
    find_generation_model,
)
from rag_engine.infrastructure.embeddings.sentence_transformers_runtime import (
    SentenceTransformersRuntime,
)
from rag_engine.infrastructure.llm.openai_chat_adapter import OpenAIChatAdapter
from rag_engine.infrastructure.storage.chroma_store import ChromaKnowledgeStore
from rag_engine.infrastructure.storage.in_memory_store import InMemoryKnowledgeStore
from rag_engine.infrastructure.time.system_clock import SystemClock


@dataclass
class RAGServices:
    """The wired service graph handed to a UI layer."""

    settings: AppSettings
    embeddings: EmbeddingProvider
    store: KnowledgeStorePort
    processor: DocumentProcessor
    search: SearchKnowledgeBase
    answer: AnswerWithKnowledge


def build_embedding_runtime(settings: AppSettings) -> EmbeddingRuntimePort:
    return SentenceTransformersRuntime(
        device=settings.embedding_device,
        local_files_only=settings.embedding_local_files_only,
    )


def build_embedding_provider(settings: AppSettings) -> EmbeddingProvider:
    return EmbeddingProvider(build_embedding_runtime(settings))


def resolve_embedding_model(settings: AppSettings) -> EmbeddingModel:
    model = find_embedding_model(settings.embedding_model)
    if model is None:
        raise ValueError(f"Unknown embedding model '{settings.embedding_model}'")
    return model


def build_knowledge_store(settings: AppSettings) -> KnowledgeStorePort:
    backend = settings.knowledge_backend

    if backend == "chroma":
        return ChromaKnowledgeStore(
            persist_dir=settings.chroma_dir,
            chunk_collection=settings.chroma_chunk_collection,
            kb_collection=settings.chroma_kb_collection,
        )

    if backend == "memory":
        return InMemoryKnowledgeStore()

    raise ValueError(f"Unsupported KNOWLEDGE_BACKEND '{backend}'")


def build_llm(settings: AppSettings) -> LLMPort:
    # Catalog ids are sent under their serving id; anything else goes through as is
    catalog_entry = find_generation_model(settings.llm_model)
    return OpenAIChatAdapter(
        base_url=settings.llm_base_url,
        api_key=settings.llm_api_key,
        model=catalog_entry.serving_id if catalog_entry else settings.llm_model,
    )


def build_clock() -> ClockPort:
    """Tests should inject a fixed clock instead."""
    return SystemClock()


def build_services(
    settings: AppSettings | None = None,
    *,
    store: KnowledgeStorePort | None = None,
    llm: LLMPort | None = None,
    embeddings: EmbeddingProvider | None = None,
    clock: ClockPort | None = None,
) -> RAGServices:
    """Wire the complete pipeline; keyword overrides replace single adapters."""
    settings = settings or AppSettings()
    embeddings = embeddings or build_embedding_provider(settings)
    store = store or build_knowledge_store(settings)
    clock = clock or build_clock()

    search = SearchKnowledgeBase(embeddings=embeddings, store=store, clock=clock)
    return RAGServices(
        settings=settings,
        embeddings=embeddings,
        store=store,
        processor=DocumentProcessor(
            embeddings=embeddings,
            store=store,
            clock=clock,
            options=settings.chunking_options(),
        ),
        search=search,
        answer=AnswerWithKnowledge(
            search=search,
            llm=llm or build_llm(settings),
            rag_history_window=settings.rag_history_window,
            chat_history_window=settings.chat_history_window,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        ),
    )
