"""Query intent analysis and adaptive retrieval parameters.

Patterns target French queries, the language of the chat front-end.
"""

from __future__ import annotations

import re
from dataclasses import replace

from ..models import QueryAnalysis, QueryComplexity, QueryType, RAGConfig
from .model_capabilities import get_model_capabilities

_QUESTION = re.compile(
    r"^\s*(?:qu['’]|(?:que|qui|quoi|comment|pourquoi|quand|où|combien|quels?|quelles?"
    r"|est-ce)\b)"
)
_ANALYSIS = re.compile(r"\b(analys\w*|compar\w*|expliqu\w*|détaill\w*|résum\w*|évalu\w*)\b")
_SEARCH = re.compile(r"\b(trouv\w*|cherch\w*|recherch\w*|list\w*|montr\w*|affich\w*)\b")
_NON_WORD = re.compile(r"[^\w\s]")

STOP_WORDS = frozenset(
    {
        "les", "des", "une", "dans", "avec", "pour", "sur", "par", "est", "sont",
        "aux", "ces", "ses", "son", "mais", "que", "qui", "quoi", "pas", "plus",
        "cette", "cet", "leur", "leurs", "nous", "vous", "ils", "elles", "comme",
        "tout", "tous", "entre", "sans", "sous", "été", "être", "avoir", "fait",
    }
)  # fmt: skip

BASE_THRESHOLD = 0.38


def extract_keywords(query: str) -> list[str]:
    words = _NON_WORD.sub(" ", query.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def classify_query(query: str) -> QueryType:
    lowered = query.lower()
    if _QUESTION.match(lowered):
        return "question"
    if _ANALYSIS.search(lowered):
        return "analysis"
    if _SEARCH.search(lowered):
        return "search"
    return "general"


def analyze_query(query: str) -> QueryAnalysis:
    keywords = extract_keywords(query)
    complexity: QueryComplexity
    if len(keywords) < 3:
        complexity = "simple"
    elif len(keywords) < 6:
        complexity = "medium"
    else:
        complexity = "complex"
    return QueryAnalysis(type=classify_query(query), keywords=tuple(keywords), complexity=complexity)


def get_adaptive_rag_config(query: str, model_id: str | None = None) -> RAGConfig:
    """Derive retrieval parameters from the query intent and the target model.

    - search:   +2 results (max 10), stricter threshold
    - analysis: +4 results (max 12), looser threshold, +2000 chars context (max 1.5x)
    - question / general: model defaults
    """
    caps = get_model_capabilities(model_id)
    base = RAGConfig(
        enabled=True,
        selected_knowledge_base=None,
        similarity_threshold=BASE_THRESHOLD,
        max_results=caps.max_chunks,
        use_reranking=True,
        context_length=caps.max_context,
    )

    kind = classify_query(query)
    if kind == "search":
        return replace(base, max_results=min(base.max_results + 2, 10), similarity_threshold=0.42)
    if kind == "analysis":
        return replace(
            base,
            max_results=min(base.max_results + 4, 12),
            similarity_threshold=0.35,
            context_length=min(base.context_length + 2000, int(base.context_length * 1.5)),
        )
    if kind == "question":
        return replace(base, similarity_threshold=BASE_THRESHOLD)
    return base
