"""Application settings with environment-driven configuration.

This is the ONLY place where environment variables are read.
All other layers receive settings via dependency injection.
"""

import os
from dataclasses import dataclass, field

from rag_engine.domain.models import ChunkingOptions


@dataclass(frozen=True)
class AppSettings:
    """Application settings loaded from environment variables."""

    log_level: str = field(default_factory=lambda: os.getenv("RAG_LOG_LEVEL", "INFO").upper())

    # ===== Embedding Configuration =====
    embedding_model: str = field(
        default_factory=lambda: os.getenv("EMBEDDING_MODEL", "all-minilm-l6-v2")
    )
    # Catalog id: "all-minilm-l6-v2" | "all-minilm-l12-v2"
    embedding_device: str = field(default_factory=lambda: os.getenv("EMBEDDING_DEVICE", "cpu"))
    # Supported: "cpu" | "cuda" | "mps"
    embedding_local_files_only: bool = field(
        default_factory=lambda: os.getenv("EMBEDDING_LOCAL_FILES_ONLY", "false").lower() == "true"
    )

    # ===== Knowledge Store Configuration =====
    knowledge_backend: str = field(
        default_factory=lambda: os.getenv("KNOWLEDGE_BACKEND", "memory").lower()
    )
    # Supported: "memory" | "chroma"
    chroma_dir: str = field(default_factory=lambda: os.getenv("CHROMA_DIR", "var/chroma/knowledge"))
    chroma_chunk_collection: str = field(
        default_factory=lambda: os.getenv("CHROMA_CHUNK_COLLECTION", "kb_chunks")
    )
    chroma_kb_collection: str = field(
        default_factory=lambda: os.getenv("CHROMA_KB_COLLECTION", "knowledge_bases")
    )

    # ===== LLM Configuration =====
    llm_base_url: str = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL", "http://localhost:8000/v1")
    )
    llm_api_key: str = field(default_factory=lambda: os.getenv("LLM_API_KEY", "EMPTY"))
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "qwen2.5-3b"))
    # Catalog or serving id; also selects context budget and prompt mode
    llm_temperature: float = field(
        default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.7"))
    )
    llm_max_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "1024")))

    # ===== Chunking Configuration =====
    chunk_size: int = field(default_factory=lambda: int(os.getenv("CHUNK_SIZE", "512")))
    chunk_overlap: int = field(default_factory=lambda: int(os.getenv("CHUNK_OVERLAP", "50")))
    chunk_split_on: str = field(
        default_factory=lambda: os.getenv("CHUNK_SPLIT_ON", "sentence").lower()
    )
    # Supported: "sentence" | "paragraph" | "character"
    chunk_min_size: int = field(default_factory=lambda: int(os.getenv("CHUNK_MIN_SIZE", "100")))
    chunk_max_size: int = field(default_factory=lambda: int(os.getenv("CHUNK_MAX_SIZE", "1000")))

    # ===== Conversation Configuration =====
    rag_history_window: int = field(
        default_factory=lambda: int(os.getenv("RAG_HISTORY_WINDOW", "7"))
    )
    # Previous messages sent along with a grounded prompt
    chat_history_window: int = field(
        default_factory=lambda: int(os.getenv("CHAT_HISTORY_WINDOW", "10"))
    )

    def chunking_options(self) -> ChunkingOptions:
        if self.chunk_split_on not in ("sentence", "paragraph", "character"):
            raise ValueError(f"Unsupported CHUNK_SPLIT_ON '{self.chunk_split_on}'")
        return ChunkingOptions(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            split_on=self.chunk_split_on,  # type: ignore[arg-type]
            min_chunk_size=self.chunk_min_size,
            max_chunk_size=self.chunk_max_size,
        )
