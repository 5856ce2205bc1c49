"""Pure similarity functions for exhaustive vector search.

A knowledge base is scanned linearly; at the scale of a single user's local
collections this is fast enough and keeps results fully deterministic.
"""

from __future__ import annotations

from collections.abc import Sequence
from math import sqrt
from typing import TypeVar

from .errors import DimensionMismatchError
from .types import Score

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> Score:
    """Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Cosine similarity in [-1, 1]; 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(left=len(a), right=len(b))

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (sqrt(norm_a) * sqrt(norm_b))


def find_similar(
    query: Sequence[float],
    candidates: Sequence[tuple[Sequence[float], T]],
    threshold: float = 0.5,
    max_results: int = 10,
) -> list[tuple[Score, T]]:
    """Score every candidate against ``query`` and keep the best ones.

    Args:
        query: Query vector
        candidates: ``(vector, payload)`` pairs
        threshold: Minimum similarity (inclusive)
        max_results: Maximum number of pairs returned

    Returns:
        ``(similarity, payload)`` pairs sorted by similarity, highest first.
        Equal similarities keep candidate order (stable sort).
    """
    if max_results <= 0:
        return []
    scored = [(cosine_similarity(query, vec), payload) for vec, payload in candidates]
    kept = [pair for pair in scored if pair[0] >= threshold]
    kept.sort(key=lambda p: p[0], reverse=True)
    return kept[:max_results]
