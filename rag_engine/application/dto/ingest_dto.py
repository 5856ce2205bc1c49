from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

# (percent 0-100, stage)
DocumentProgress = Callable[[float, str], None]
# (percent 0-100, stage, document name or None)
KnowledgeBaseProgress = Callable[[float, str, str | None], None]


@dataclass(frozen=True)
class RawDocument:
    """Plain-text document supplied by an upload or an import."""

    name: str
    content: str


@dataclass(frozen=True)
class StorageStats:
    knowledge_bases: int
    chunks: int
    size_bytes: int
