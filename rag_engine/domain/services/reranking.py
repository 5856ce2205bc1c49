"""Pure domain functions for heuristic re-ranking.

Functions:
- keyword_boost: whole-word query term occurrences in a chunk
- age_bonus: recency adjustment from the chunk's creation time
- length_penalty: malus for very short or very long chunks
- rerank: combine the above with the raw similarity and reorder
- sort_by_scores_desc: stable descending sort by scores
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import TypeVar

from ..models import SearchResult

T = TypeVar("T")

KEYWORD_WEIGHT = 0.1
_WORD = re.compile(r"\w+")


def query_terms(query: str) -> list[str]:
    """Lowercased query words longer than two characters."""
    return [w for w in _WORD.findall(query.lower()) if len(w) > 2]


def keyword_boost(terms: Sequence[str], content: str) -> float:
    lowered = content.lower()
    boost = 0.0
    for term in terms:
        occurrences = len(re.findall(rf"\b{re.escape(term)}\b", lowered))
        boost += occurrences * KEYWORD_WEIGHT
    return boost


def age_bonus(created_at: datetime, now: datetime) -> float:
    """Recent chunks get a small bonus, old ones a small malus.

    Examples:
        >>> age_bonus(now - timedelta(days=1), now)
        0.05
        >>> age_bonus(now - timedelta(days=365), now)
        -0.02
    """
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    days = (now - created_at).total_seconds() / 86400
    if days < 7:
        return 0.05
    if days < 30:
        return 0.02
    if days < 90:
        return 0.0
    return -0.02


def length_penalty(length: int) -> float:
    if length < 100:
        return 0.1
    if length > 2000:
        return 0.05
    return 0.0


def sort_by_scores_desc(items: Sequence[T], scores: Sequence[float]) -> list[T]:
    """Stable sort (descending) by scores, pure & deterministic.

    Examples:
        >>> sort_by_scores_desc(["a", "b", "c"], [0.2, 0.9, 0.5])
        ["b", "c", "a"]
    """
    pairs: list[tuple[float, T]] = list(zip(scores, items, strict=True))
    pairs.sort(key=lambda p: p[0], reverse=True)
    return [it for _, it in pairs]


def rerank(query: str, results: Sequence[SearchResult], now: datetime) -> list[SearchResult]:
    """Recompute ``relevance`` for each result and reorder by it.

    relevance = min(1, similarity + keyword boost + age bonus - length penalty).
    Equal relevances keep their input order.
    """
    terms = query_terms(query)
    rescored: list[SearchResult] = []
    for r in results:
        content = r.chunk.content
        boost = keyword_boost(terms, content)
        boost += age_bonus(r.chunk.metadata.created_at, now)
        boost -= length_penalty(len(content))
        rescored.append(replace(r, relevance=min(1.0, r.similarity + boost)))
    return sort_by_scores_desc(rescored, [r.relevance for r in rescored])
