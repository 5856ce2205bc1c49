"""Application ports package.

Re-exports the collaborator contracts consumed by the use cases.
"""

from rag_engine.application.ports.clock_port import ClockPort
from rag_engine.application.ports.embedding_port import EmbeddingRuntimePort
from rag_engine.application.ports.knowledge_store_port import KnowledgeStorePort
from rag_engine.application.ports.llm_port import ChatMessage, LLMPort, LLMResponse, Role

__all__ = [
    "ClockPort",
    "EmbeddingRuntimePort",
    "KnowledgeStorePort",
    "LLMPort",
    "ChatMessage",
    "LLMResponse",
    "Role",
]
