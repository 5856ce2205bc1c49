"""Post-hoc citation analysis: which retrieved chunks did an answer use?

Two detectors, both heuristics:
- exact: a 5-word window of a chunk sentence appears verbatim in the answer
  (precise, misses paraphrases) -> confidence 0.9
- overlap: the answer shares at least 3 long words with the chunk
  (recovers paraphrases, also fires on common phrasing) -> confidence 0.6

Neither can tell reused common phrasing apart from genuine grounding.
Each chunk is judged on its own, so results keep their input order.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace

from ..models import Citation, SearchResult

EXACT_CONFIDENCE = 0.9
OVERLAP_CONFIDENCE = 0.6
WINDOW_WORDS = 5
MIN_WINDOW_CHARS = 20
MIN_SENTENCE_CHARS = 20
MIN_OVERLAP_WORD_CHARS = 4
MIN_COMMON_WORDS = 3

_SENT_SPLIT = re.compile(r"[.!?]+")
_WORD = re.compile(r"\w+")


def candidate_sentences(content: str) -> list[str]:
    return [s.strip() for s in _SENT_SPLIT.split(content) if len(s.strip()) > MIN_SENTENCE_CHARS]


def _long_words(text: str) -> set[str]:
    return {w for w in _WORD.findall(text.lower()) if len(w) > MIN_OVERLAP_WORD_CHARS}


def _citation_for(content: str, sentence: str, confidence: float) -> Citation:
    start = content.find(sentence)
    return Citation(
        text=sentence,
        start_index=start,
        end_index=start + len(sentence),
        confidence=confidence,
    )


def find_exact_citation(content: str, response_lower: str) -> Citation | None:
    """First chunk sentence that shares a 5-word window with the response."""
    for sentence in candidate_sentences(content):
        words = sentence.split()
        for i in range(len(words) - WINDOW_WORDS + 1):
            window = " ".join(words[i : i + WINDOW_WORDS]).lower()
            if len(window) > MIN_WINDOW_CHARS and window in response_lower:
                return _citation_for(content, sentence, EXACT_CONFIDENCE)
    return None


def find_overlap_citation(content: str, response_words: set[str]) -> Citation | None:
    common = response_words & _long_words(content)
    if len(common) < MIN_COMMON_WORDS:
        return None
    for sentence in candidate_sentences(content):
        if _long_words(sentence) & common:
            return _citation_for(content, sentence, OVERLAP_CONFIDENCE)
    # No qualifying sentence: cite the chunk as a whole
    text = content.strip()
    return _citation_for(content, text, OVERLAP_CONFIDENCE)


def analyze_response_citations(
    response_text: str, results: Sequence[SearchResult]
) -> list[SearchResult]:
    """Mark each result as used or unused and attach the cited span.

    Pure: returns new results, inputs are left untouched.
    """
    response_lower = response_text.lower()
    response_words = _long_words(response_text)

    analyzed: list[SearchResult] = []
    for r in results:
        content = r.chunk.content
        citation = find_exact_citation(content, response_lower)
        if citation is None:
            citation = find_overlap_citation(content, response_words)

        if citation is None:
            analyzed.append(replace(r, used_in_response=False, citations=None))
        else:
            analyzed.append(replace(r, used_in_response=True, citations=(citation,)))
    return analyzed
