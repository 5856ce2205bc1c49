"""Tests for the composition root.

Concrete adapters are only instantiated here; no heavy library is loaded
at build time (models and clients are created lazily).
"""

import logging
from dataclasses import dataclass

import pytest

import rag_engine.config.composition as comp
from rag_engine.application.ports.clock_port import ClockPort
from rag_engine.application.ports.knowledge_store_port import KnowledgeStorePort
from rag_engine.config.logging_setup import configure_logging
from rag_engine.config.settings import AppSettings
from rag_engine.infrastructure.llm.openai_chat_adapter import OpenAIChatAdapter
from rag_engine.infrastructure.storage.in_memory_store import InMemoryKnowledgeStore
from rag_engine.infrastructure.time.system_clock import SystemClock


@dataclass
class DummyChroma:
    persist_dir: str = ""
    chunk_collection: str = ""
    kb_collection: str = ""


def test_memory_backend(monkeypatch):
    monkeypatch.setenv("KNOWLEDGE_BACKEND", "memory")
    store = comp.build_knowledge_store(AppSettings())
    assert isinstance(store, InMemoryKnowledgeStore)
    assert isinstance(store, KnowledgeStorePort)


def test_chroma_backend_receives_settings(monkeypatch):
    monkeypatch.setenv("KNOWLEDGE_BACKEND", "chroma")
    monkeypatch.setenv("CHROMA_DIR", "/tmp/kb")
    monkeypatch.setenv("CHROMA_KB_COLLECTION", "kbs")
    monkeypatch.setattr(comp, "ChromaKnowledgeStore", DummyChroma, raising=True)

    store = comp.build_knowledge_store(AppSettings())

    assert store == DummyChroma(
        persist_dir="/tmp/kb", chunk_collection="kb_chunks", kb_collection="kbs"
    )


def test_unknown_backend_is_rejected(monkeypatch):
    monkeypatch.setenv("KNOWLEDGE_BACKEND", "postgres")
    with pytest.raises(ValueError, match="KNOWLEDGE_BACKEND"):
        comp.build_knowledge_store(AppSettings())


def test_llm_catalog_id_is_sent_as_serving_id(monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "llama-3.1-8b")
    monkeypatch.setenv("LLM_BASE_URL", "http://gpu:8000/v1")

    llm = comp.build_llm(AppSettings())

    assert isinstance(llm, OpenAIChatAdapter)
    assert llm.model == "Llama-3.1-8B-Instruct-q4f16_1-MLC"
    assert llm.base_url == "http://gpu:8000/v1"


def test_llm_unknown_model_passes_through(monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "mistral-7b-instruct")
    assert comp.build_llm(AppSettings()).model == "mistral-7b-instruct"


def test_embedding_model_resolution(monkeypatch):
    monkeypatch.setenv("EMBEDDING_MODEL", "all-minilm-l12-v2")
    assert comp.resolve_embedding_model(AppSettings()).repo_id.endswith("all-MiniLM-L12-v2")

    monkeypatch.setenv("EMBEDDING_MODEL", "bge-m3")
    with pytest.raises(ValueError, match="bge-m3"):
        comp.resolve_embedding_model(AppSettings())


def test_clock_is_system_clock():
    clock = comp.build_clock()
    assert isinstance(clock, ClockPort)
    assert isinstance(clock, SystemClock)


def test_build_services_shares_one_provider_and_store(monkeypatch):
    monkeypatch.setenv("KNOWLEDGE_BACKEND", "memory")
    monkeypatch.setenv("RAG_HISTORY_WINDOW", "3")
    monkeypatch.setenv("CHUNK_SIZE", "700")

    services = comp.build_services(AppSettings())

    assert services.processor.embeddings is services.embeddings
    assert services.search.embeddings is services.embeddings
    assert services.processor.store is services.store
    assert services.search.store is services.store
    assert services.answer.search is services.search
    assert services.answer.rag_history_window == 3
    assert services.processor.options.chunk_size == 700


def test_build_services_returns_fresh_graphs_and_accepts_overrides(monkeypatch):
    monkeypatch.setenv("KNOWLEDGE_BACKEND", "memory")
    store = InMemoryKnowledgeStore()

    first = comp.build_services(AppSettings(), store=store)
    second = comp.build_services(AppSettings())

    assert first.store is store
    assert second.store is not store
    assert first.embeddings is not second.embeddings


def test_configure_logging_installs_single_handler():
    configure_logging("debug")
    configure_logging("debug")
    logger = logging.getLogger("rag_engine")
    try:
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
    finally:
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
