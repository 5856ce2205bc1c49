from __future__ import annotations

import math
import re
from collections.abc import Sequence

from ..models import DEFAULT_CHUNKING_OPTIONS, ChunkingOptions

# ---------- Normalization ----------

_CRLF = re.compile(r"\r\n?")
_MANY_NEWLINES = re.compile(r"\n{3,}")
_MANY_BLANKS = re.compile(r"[ \t]{2,}")

_SENT_END = re.compile(r"[.!?]+")
_PARA_BREAK = re.compile(r"\n\s*\n")
_BREAK_CHAR = re.compile(r"[\s.!?]")

MIN_SENTENCE_CHARS = 10
MIN_PARAGRAPH_CHARS = 20
BOUNDARY_LOOKBACK = 100


def clean_text(text: str) -> str:
    """Unify line endings, collapse blank runs and trim."""
    text = _CRLF.sub("\n", text)
    text = _MANY_NEWLINES.sub("\n\n", text)
    text = _MANY_BLANKS.sub(" ", text)
    return text.strip()


# ---------- Segmenters ----------


def split_into_sentences(text: str) -> list[str]:
    """Split on runs of ``.!?``, keeping the terminator with its sentence.

    Fragments of at most 10 characters are dropped. If nothing survives,
    the whole (non-empty) text is returned as a single segment.
    """
    sentences: list[str] = []
    last = 0
    for m in _SENT_END.finditer(text):
        sentence = text[last : m.end()].strip()
        if len(sentence) > MIN_SENTENCE_CHARS:
            sentences.append(sentence)
        last = m.end()

    remaining = text[last:].strip()
    if len(remaining) >= MIN_SENTENCE_CHARS:
        sentences.append(remaining)

    if not sentences and text.strip():
        return [text.strip()]
    return sentences


def split_into_paragraphs(text: str) -> list[str]:
    """Blank lines separate paragraphs; paragraphs of 20 chars or less are dropped."""
    return [p.strip() for p in _PARA_BREAK.split(text) if len(p.strip()) > MIN_PARAGRAPH_CHARS]


def split_by_characters(text: str, chunk_size: int) -> list[str]:
    """Fixed-size windows whose right edge is pulled back to a natural break.

    The break is searched in the last 100 characters of each window, so a
    window never ends mid-word unless the word itself is longer than that.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")

    chunks: list[str] = []
    start = 0
    n = len(text)
    while start < n:
        end = min(start + chunk_size, n)
        if end < n:
            search_start = max(start, end - BOUNDARY_LOOKBACK)
            for i in range(end - 1, search_start - 1, -1):
                if _BREAK_CHAR.match(text[i]):
                    end = i + 1
                    break
        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
        start = end
    return chunks


# ---------- Chunk packer ----------


def pack_segments(segments: Sequence[str], options: ChunkingOptions) -> list[str]:
    """Greedily merge segments into chunks of roughly ``chunk_size`` characters.

    The size floor (``min_chunk_size``) wins over the target size: an
    undersized running chunk keeps absorbing segments past ``chunk_size``.
    """
    chunks: list[str] = []
    current = ""
    current_len = 0

    for segment in segments:
        seg_len = len(segment)

        # Oversized segment: flush, then force-split it on its own
        if seg_len > options.max_chunk_size:
            if current.strip() and current_len >= options.min_chunk_size:
                chunks.append(current.strip())
            chunks.extend(split_by_characters(segment, options.chunk_size))
            current = ""
            current_len = 0
            continue

        if current_len + seg_len > options.chunk_size and current.strip():
            if current_len >= options.min_chunk_size:
                chunks.append(current.strip())
                if options.chunk_overlap > 0:
                    tail = current[-options.chunk_overlap :]
                    current = f"{tail} {segment}"
                    current_len = len(tail) + seg_len + 1
                else:
                    current = segment
                    current_len = seg_len
            else:
                current += " " + segment
                current_len += seg_len + 1
        elif current.strip():
            current += " " + segment
            current_len += seg_len + 1
        else:
            current = segment
            current_len = seg_len

    if current.strip() and current_len >= options.min_chunk_size:
        chunks.append(current.strip())

    return chunks


def chunk_text(text: str, options: ChunkingOptions | None = None) -> list[str]:
    """Pipeline: normalize → segment (per ``split_on``) → pack → size filter."""
    p = options or DEFAULT_CHUNKING_OPTIONS
    cleaned = clean_text(text)
    if not cleaned:
        return []

    if p.split_on == "sentence":
        segments = split_into_sentences(cleaned)
    elif p.split_on == "paragraph":
        segments = split_into_paragraphs(cleaned)
    else:
        segments = split_by_characters(cleaned, p.chunk_size)

    chunks = pack_segments(segments, p)
    return [c for c in chunks if len(c) >= p.min_chunk_size]


def estimate_chunks(text: str, options: ChunkingOptions | None = None) -> int:
    """Rough chunk count for UI previews (no segmentation performed)."""
    p = options or DEFAULT_CHUNKING_OPTIONS
    return math.ceil(len(clean_text(text)) / p.chunk_size)
