from __future__ import annotations

from ..errors import ValidationError

MIN_DOCUMENT_CHARS = 100
MAX_DOCUMENT_CHARS = 10 * 1024 * 1024  # 10MB


def validate_document(content: str) -> None:
    """Reject documents that are empty, too short or too large.

    Raises:
        ValidationError: With a user-presentable message.
    """
    if not content or not content.strip():
        raise ValidationError("Document is empty.")
    if len(content) < MIN_DOCUMENT_CHARS:
        raise ValidationError(f"Document is too short (minimum {MIN_DOCUMENT_CHARS} characters).")
    if len(content) > MAX_DOCUMENT_CHARS:
        raise ValidationError("Document is too large (maximum 10MB).")


def document_size_bytes(content: str) -> int:
    """Encoded size of a raw document (UTF-8, as a browser Blob reports it)."""
    return len(content.encode("utf-8"))
