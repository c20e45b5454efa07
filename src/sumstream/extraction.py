"""Plain-text extraction from uploaded documents."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_CR_TAB_RE = re.compile(r"[\r\t]+")
_WHITESPACE_RE = re.compile(r"\s+")

TEXT_EXTENSIONS = (".txt", ".md", ".csv", ".log", ".json")


@dataclass
class Document:
    """A single uploaded document.

    Args:
        content: Raw file bytes, possibly empty.
        filename: Name the client declared for the upload.
        content_type: Declared mimetype.
        text: Inline text sent instead of (or alongside) a file. Takes
            precedence over ``content`` when non-blank.
    """

    content: bytes = b""
    filename: str | None = None
    content_type: str | None = None
    text: str | None = None

    @property
    def is_text_file(self) -> bool:
        if self.content_type and self.content_type.startswith("text/"):
            return True
        return (self.filename or "").lower().endswith(TEXT_EXTENSIONS)


def sanitize_text(raw: str | None) -> str:
    """Replace control characters with spaces and collapse whitespace."""
    if not raw:
        return ""
    cleaned = _CONTROL_RE.sub(" ", raw)
    cleaned = _CR_TAB_RE.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def extract_text(document: Document) -> str:
    """Return sanitized plain text, or ``""`` if nothing usable was found.

    Declared text files tolerate stray invalid bytes. Anything else must
    decode cleanly as UTF-8, otherwise it is treated as undecodable.
    """
    if document.text and document.text.strip():
        return sanitize_text(document.text)
    if not document.content:
        return ""
    try:
        return sanitize_text(document.content.decode("utf-8"))
    except UnicodeDecodeError as e:
        if not document.is_text_file:
            logger.info(f"Upload {document.filename!r} is not decodable text: {e}")
            return ""
        logger.warning(f"Invalid UTF-8 in {document.filename!r}, replacing bad bytes")
    return sanitize_text(document.content.decode("utf-8", errors="replace"))
