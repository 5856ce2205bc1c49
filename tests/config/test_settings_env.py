import pytest

from rag_engine.config.settings import AppSettings
from rag_engine.domain.models import ChunkingOptions


def test_defaults(monkeypatch):
    for var in (
        "EMBEDDING_MODEL",
        "KNOWLEDGE_BACKEND",
        "LLM_MODEL",
        "CHUNK_SIZE",
        "CHUNK_OVERLAP",
        "CHUNK_SPLIT_ON",
        "CHUNK_MIN_SIZE",
        "CHUNK_MAX_SIZE",
        "RAG_HISTORY_WINDOW",
        "CHAT_HISTORY_WINDOW",
        "EMBEDDING_LOCAL_FILES_ONLY",
    ):
        monkeypatch.delenv(var, raising=False)

    s = AppSettings()

    assert s.embedding_model == "all-minilm-l6-v2"
    assert s.knowledge_backend == "memory"
    assert s.llm_model == "qwen2.5-3b"
    assert s.embedding_local_files_only is False
    assert s.rag_history_window == 7
    assert s.chat_history_window == 10
    assert s.chunking_options() == ChunkingOptions()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("KNOWLEDGE_BACKEND", "CHROMA")
    monkeypatch.setenv("EMBEDDING_LOCAL_FILES_ONLY", "true")
    monkeypatch.setenv("LLM_TEMPERATURE", "0.1")
    monkeypatch.setenv("CHUNK_SIZE", "800")
    monkeypatch.setenv("CHUNK_SPLIT_ON", "Paragraph")
    monkeypatch.setenv("RAG_LOG_LEVEL", "debug")

    s = AppSettings()

    assert s.knowledge_backend == "chroma"
    assert s.embedding_local_files_only is True
    assert s.llm_temperature == 0.1
    assert s.log_level == "DEBUG"
    opts = s.chunking_options()
    assert opts.chunk_size == 800
    assert opts.split_on == "paragraph"


def test_unknown_split_mode_is_rejected(monkeypatch):
    monkeypatch.setenv("CHUNK_SPLIT_ON", "words")
    with pytest.raises(ValueError, match="CHUNK_SPLIT_ON"):
        AppSettings().chunking_options()


def test_settings_are_immutable():
    s = AppSettings()
    with pytest.raises(AttributeError):
        s.llm_model = "other"  # type: ignore[misc]
