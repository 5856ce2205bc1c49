"""Domain errors (typed) for the retrieval pipeline.

Adapters translate backend failures into this family so callers never
see third-party exception types.
"""

from dataclasses import dataclass


class DomainError(Exception):
    """Base class for domain-specific errors."""


class ValidationError(DomainError):
    """Invalid input document or request."""


class EmptyChunkResultError(DomainError):
    """Chunking produced no usable chunk for a document."""


class EmbeddingError(DomainError):
    """Embedding backend failed or is misconfigured."""


class ModelNotLoadedError(EmbeddingError):
    """Embedding requested while no model is active."""


@dataclass(frozen=True)
class DimensionMismatchError(DomainError):
    """Two vectors of different length were compared."""

    left: int
    right: int

    def __str__(self) -> str:
        return f"vector dimensions differ: {self.left} != {self.right}"


class StorageError(DomainError):
    """Knowledge store backend failed or is unavailable."""


class LLMError(DomainError):
    """Generation backend failed or is misconfigured."""
